# projectmind/core/models.py
"""
Domain records shared by the assistant core.

Chat sessions and messages are frozen: every step of a turn returns a new
value instead of mutating the one it was given. Storage collaborators are
the only place these records are written.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ----------------------------------------------------------------------
# Enumerations
# ----------------------------------------------------------------------

class ProviderType(Enum):
    """Supported AI provider families."""
    Z_AI = "Z_AI"              # hosted default
    LM_STUDIO = "LM_STUDIO"    # self-hosted, OpenAI-compatible
    OPENAI = "OPENAI"
    ANTHROPIC = "ANTHROPIC"
    CUSTOM = "CUSTOM"          # any OpenAI-compatible endpoint

    @classmethod
    def parse(cls, value: Any) -> "ProviderType":
        """Accept an enum member or its string id (case-insensitive)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        raise ValueError(f"Unknown provider: {value!r}")


# Providers that talk to a user-supplied server and need a base URL.
SELF_HOSTED_PROVIDERS = frozenset({ProviderType.LM_STUDIO, ProviderType.CUSTOM})
# Providers that need a per-user API key.
CLOUD_PROVIDERS = frozenset({ProviderType.OPENAI, ProviderType.ANTHROPIC})


class Role(Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class TaskPriority(Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class TaskStatus(Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    REVIEW = "REVIEW"
    DONE = "DONE"


# Statuses a model is allowed to request when creating a task.
ACTION_TASK_STATUSES = frozenset({TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.REVIEW})


# ----------------------------------------------------------------------
# Settings
# ----------------------------------------------------------------------

DEFAULT_MAX_TOKENS = 1000
DEFAULT_TEMPERATURE = 0.7


@dataclass
class AISettings:
    """Per-user provider configuration."""
    user_id: str
    provider: ProviderType = ProviderType.Z_AI
    base_url: Optional[str] = None
    model: Optional[str] = None
    api_key: Optional[str] = None
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE
    enabled: bool = True
    updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def default_for(cls, user_id: str) -> "AISettings":
        """The record created on first access."""
        return cls(user_id=user_id)

    def to_dict(self, include_secret: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "userId": self.user_id,
            "provider": self.provider.value,
            "baseUrl": self.base_url,
            "model": self.model,
            "maxTokens": self.max_tokens,
            "temperature": self.temperature,
            "enabled": self.enabled,
            "updatedAt": self.updated_at.isoformat(),
        }
        if include_secret:
            data["apiKey"] = self.api_key
        else:
            data["hasApiKey"] = bool(self.api_key)
        return data


# ----------------------------------------------------------------------
# Identity and read models of the storage collaborator
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class UserIdentity:
    id: str
    email: str
    name: Optional[str] = None
    role: str = "MEMBER"

    @property
    def display_name(self) -> str:
        return self.name or self.email

    @property
    def is_admin(self) -> bool:
        return self.role.upper() == "ADMIN"


@dataclass
class Project:
    id: str
    title: str
    description: Optional[str] = None
    status: str = "PLANNING"
    member_ids: List[str] = field(default_factory=list)


@dataclass
class Task:
    id: str
    project_id: str
    title: str
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[date] = None
    estimated_hours: Optional[float] = None
    tags: List[str] = field(default_factory=list)
    assignee_id: Optional[str] = None
    creator_id: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority.value,
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "estimatedHours": self.estimated_hours,
            "tags": list(self.tags),
            "assigneeId": self.assignee_id,
            "creatorId": self.creator_id,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class NewTask:
    """Field set handed to the storage collaborator's task-create operation."""
    project_id: str
    title: str
    description: str
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.TODO
    due_date: Optional[date] = None
    estimated_hours: Optional[float] = None
    tags: Tuple[str, ...] = ()
    assignee_id: Optional[str] = None
    creator_id: Optional[str] = None


# ----------------------------------------------------------------------
# Conversation
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class ChatMessage:
    role: Role
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatMessage":
        return cls(role=Role(data["role"]), content=str(data.get("content") or ""))


@dataclass(frozen=True)
class ChatSession:
    id: str
    user_id: str
    messages: Tuple[ChatMessage, ...] = ()
    project_id: Optional[str] = None
    task_id: Optional[str] = None
    title: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def is_new(self) -> bool:
        return not self.messages

    def with_messages(self, messages: Tuple[ChatMessage, ...]) -> "ChatSession":
        return replace(self, messages=tuple(messages))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "projectId": self.project_id,
            "taskId": self.task_id,
            "title": self.title,
            "messages": [m.to_dict() for m in self.messages],
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


# ----------------------------------------------------------------------
# Actions
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class CreateTask:
    """Task creation requested by the model. Never stored on its own."""
    title: str
    description: str
    project_id: Optional[str] = None
    priority: Optional[TaskPriority] = None
    status: Optional[TaskStatus] = None
    due_date: Optional[date] = None
    estimated_hours: Optional[float] = None
    tags: Tuple[str, ...] = ()

    @property
    def effective_priority(self) -> TaskPriority:
        return self.priority or TaskPriority.MEDIUM

    @property
    def effective_status(self) -> TaskStatus:
        return self.status or TaskStatus.TODO


# Tagged variant of all actions the extractor can produce.
Action = CreateTask


@dataclass
class ActionResult:
    success: bool
    message: str
    task: Optional[Task] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.task is not None:
            result["task"] = self.task.to_dict()
        return result


# ----------------------------------------------------------------------
# Inbound / outbound payloads
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class ChatRequest:
    message: str
    project_id: Optional[str] = None
    task_id: Optional[str] = None
    chat_id: Optional[str] = None


@dataclass
class ChatReply:
    message: str
    chat_id: str
    model: Optional[str] = None
    usage: Optional[Dict[str, int]] = None
    action_result: Optional[ActionResult] = None
    error: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"message": self.message, "chatId": self.chat_id}
        if self.model is not None:
            result["model"] = self.model
        if self.usage is not None:
            result["usage"] = self.usage
        if self.action_result is not None:
            result["actionResult"] = self.action_result.to_dict()
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class TaskCreationReply:
    message: str
    task: Task
    provider: Optional[str] = None
    model: Optional[str] = None
    warning: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"message": self.message, "task": self.task.to_dict()}
        for key in ("provider", "model", "warning", "error"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        return result


@dataclass
class ProjectAnalysisReply:
    analysis: Dict[str, Any]
    project_data: Dict[str, Any]
    warning: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "success": True,
            "analysis": self.analysis,
            "projectData": self.project_data,
        }
        if self.warning is not None:
            result["warning"] = self.warning
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class ReportReply:
    report: Dict[str, Any]
    metadata: Dict[str, Any]
    warning: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "success": True,
            "report": self.report,
            "metadata": self.metadata,
        }
        if self.warning is not None:
            result["warning"] = self.warning
        if self.error is not None:
            result["error"] = self.error
        return result
