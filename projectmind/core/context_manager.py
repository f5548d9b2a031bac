# projectmind/core/context_manager.py
"""
Builds the conversation transcript handed to the provider router:
the initial system preamble with project/task context, copy-on-append
turns, chat titles and the composite assistant turn.

Nothing in here performs I/O; every function returns a new value.
"""

import logging
from dataclasses import replace
from typing import List, Optional

from projectmind.core.models import (
    ActionResult,
    ChatMessage,
    ChatSession,
    Project,
    Role,
    Task,
    UserIdentity,
    utc_now,
)

logger = logging.getLogger(__name__)

TITLE_MAX_CHARS = 50
# system + first user turn + first assistant turn
TITLE_TRIGGER_LENGTH = 3

SUCCESS_GLYPH = "✅"
FAILURE_GLYPH = "❌"

ASSISTANT_ROLE = (
    "You are the AI assistant of ProjectMind, a project management workspace.\n"
    "Your job is to help users manage their projects and tasks."
)

ACTION_INSTRUCTIONS = (
    "When the user asks you to create a task, answer normally and include exactly "
    "one JSON object in your reply with this structure:\n"
    "{\n"
    '  "type": "create_task",\n'
    '  "title": "Short, clear task title",\n'
    '  "description": "Detailed description with requirements",\n'
    '  "priority": "LOW, MEDIUM or HIGH",\n'
    '  "status": "TODO, IN_PROGRESS or REVIEW",\n'
    '  "dueDate": "YYYY-MM-DD or null",\n'
    '  "estimatedHours": "number of hours or null",\n'
    '  "tags": ["list", "of", "tags"]\n'
    "}\n"
    "Do not include a JSON object when no task should be created."
)

TASK_CREATION_SYSTEM_PROMPT = (
    "You are a project management expert. Your job is to analyse user requests "
    "and turn them into structured tasks."
)


def build_initial_system_prompt(
    user: UserIdentity,
    project: Optional[Project] = None,
    task: Optional[Task] = None,
) -> str:
    """
    Preamble for a brand-new session.

    Missing optional fields (descriptions, the project or task themselves)
    are left out rather than rendered empty.
    """
    lines: List[str] = [
        ASSISTANT_ROLE,
        f"User: {user.display_name}",
        f"Role: {user.role}",
    ]

    if project is not None:
        lines.append(f"Current project: {project.title}")
        if project.description:
            lines.append(f"Project description: {project.description}")
        lines.append(f"Project status: {project.status}")

    if task is not None:
        lines.append(f"Current task: {task.title}")
        if task.description:
            lines.append(f"Task description: {task.description}")
        lines.append(f"Task status: {task.status.value}")
        lines.append(f"Task priority: {task.priority.value}")

    return "\n".join(lines) + "\n\n" + ACTION_INSTRUCTIONS


def build_task_creation_prompt(project: Project, description: str) -> List[ChatMessage]:
    """Dedicated two-message prompt for the create-task-from-description flow."""
    prompt = (
        "Analyse the user's request and create a structured task for the project.\n\n"
        f"Project: {project.title}\n"
        f"Project description: {project.description or 'No description'}\n"
        f"User request: {description}\n\n"
        "Return your answer as JSON with the following structure:\n"
        "{\n"
        '  "title": "Short, clear task title",\n'
        '  "description": "Detailed description with requirements",\n'
        '  "priority": "LOW, MEDIUM or HIGH",\n'
        '  "status": "TODO, IN_PROGRESS or REVIEW",\n'
        '  "dueDate": "YYYY-MM-DD or null",\n'
        '  "estimatedHours": "number of hours or null",\n'
        '  "tags": ["list", "of", "tags"]\n'
        "}\n\n"
        "Important: return only the JSON, without any additional text."
    )
    return [
        ChatMessage(Role.SYSTEM, TASK_CREATION_SYSTEM_PROMPT),
        ChatMessage(Role.USER, prompt),
    ]


def append_turn(session: ChatSession, role: Role, content: str) -> ChatSession:
    """Return a copy of `session` with one more message at the end."""
    logger.debug(f"Appending {role.value} turn to chat {session.id} (content_len={len(content)})")
    return session.with_messages(session.messages + (ChatMessage(role, content),))


def truncate_title(text: str) -> str:
    text = text.strip()
    if len(text) > TITLE_MAX_CHARS:
        return text[:TITLE_MAX_CHARS] + "..."
    return text


def derive_title(session: ChatSession, first_user_message: str) -> ChatSession:
    """
    Set the title once, right after the first exchange.

    Applies only when the transcript holds exactly three messages and no
    title exists; any other call returns `session` unchanged.
    """
    if session.title or len(session.messages) != TITLE_TRIGGER_LENGTH:
        return session
    return replace(session, title=truncate_title(first_user_message))


def compose_assistant_turn(reply_text: str, action_result: Optional[ActionResult]) -> str:
    """Model text, then a blank line and the action outcome when one ran."""
    if action_result is None:
        return reply_text
    glyph = SUCCESS_GLYPH if action_result.success else FAILURE_GLYPH
    return f"{reply_text}\n\n{glyph} {action_result.message}"


def describe_created_task(task: Task, assignee_name: Optional[str]) -> str:
    """Confirmation appended to a chat by the create-task flow."""
    due = task.due_date.isoformat() if task.due_date else "Not set"
    return (
        f"{SUCCESS_GLYPH} Task \"{task.title}\" created successfully!\n\n"
        f"📋 **Description:** {task.description or ''}\n"
        f"🎯 **Priority:** {task.priority.value}\n"
        f"📊 **Status:** {task.status.value}\n"
        f"👤 **Assignee:** {assignee_name or task.assignee_id or 'Unassigned'}\n"
        f"📅 **Due:** {due}"
    )


def touch(session: ChatSession) -> ChatSession:
    """Bump updated_at; used by the session manager when persisting."""
    return replace(session, updated_at=utc_now())
