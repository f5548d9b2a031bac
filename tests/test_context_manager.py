from projectmind.core.context_manager import (
    append_turn,
    build_initial_system_prompt,
    build_task_creation_prompt,
    compose_assistant_turn,
    derive_title,
)
from projectmind.core.models import (
    ActionResult,
    ChatMessage,
    ChatSession,
    Project,
    Role,
    Task,
    TaskPriority,
    TaskStatus,
    UserIdentity,
)


USER = UserIdentity(id="u1", email="ada@example.com", name="Ada", role="MANAGER")


def session_with(n: int, title=None) -> ChatSession:
    roles = [Role.SYSTEM, Role.USER, Role.ASSISTANT]
    messages = tuple(ChatMessage(roles[i % 3], f"m{i}") for i in range(n))
    return ChatSession(id="c1", user_id="u1", messages=messages, title=title)


# ---------------------------------------------------------------------------
# System preamble
# ---------------------------------------------------------------------------

def test_system_prompt_contains_user_project_and_task_context():
    project = Project(id="p1", title="Website", description="Public site", status="ACTIVE")
    task = Task(
        id="t1", project_id="p1", title="Landing page", description="Hero section",
        status=TaskStatus.IN_PROGRESS, priority=TaskPriority.HIGH,
    )

    prompt = build_initial_system_prompt(USER, project, task)

    assert "User: Ada" in prompt
    assert "Role: MANAGER" in prompt
    assert "Current project: Website" in prompt
    assert "Project description: Public site" in prompt
    assert "Project status: ACTIVE" in prompt
    assert "Current task: Landing page" in prompt
    assert "Task description: Hero section" in prompt
    assert "Task status: IN_PROGRESS" in prompt
    assert "Task priority: HIGH" in prompt
    assert '"create_task"' in prompt


def test_system_prompt_omits_missing_optional_fields():
    anonymous = UserIdentity(id="u2", email="bob@example.com")
    project = Project(id="p1", title="Website")

    prompt = build_initial_system_prompt(anonymous, project)

    assert "User: bob@example.com" in prompt
    assert "Project description" not in prompt
    assert "Current task" not in prompt


def test_task_creation_prompt_is_two_messages():
    messages = build_task_creation_prompt(Project(id="p1", title="Website"), "Add a contact form")
    assert [m.role for m in messages] == [Role.SYSTEM, Role.USER]
    assert "Add a contact form" in messages[1].content
    assert "No description" in messages[1].content


# ---------------------------------------------------------------------------
# Turns and titles
# ---------------------------------------------------------------------------

def test_append_turns_preserves_order_and_input():
    before = session_with(3)

    updated = append_turn(before, Role.USER, "question")
    updated = append_turn(updated, Role.ASSISTANT, "answer")

    assert len(updated.messages) == len(before.messages) + 2
    assert updated.messages[:3] == before.messages
    assert updated.messages[-2:] == (
        ChatMessage(Role.USER, "question"),
        ChatMessage(Role.ASSISTANT, "answer"),
    )
    assert len(before.messages) == 3


def test_title_is_derived_only_after_first_exchange():
    assert derive_title(session_with(2), "hello").title is None
    assert derive_title(session_with(5), "hello").title is None
    assert derive_title(session_with(3), "hello").title == "hello"


def test_title_truncates_long_first_message():
    message = "x" * 60
    assert derive_title(session_with(3), message).title == "x" * 50 + "..."
    assert derive_title(session_with(3), "y" * 50).title == "y" * 50


def test_title_derivation_is_idempotent():
    titled = derive_title(session_with(3), "first question")
    again = derive_title(titled, "a different question")
    assert again.title == "first question"
    assert derive_title(session_with(3, title="Kept"), "other").title == "Kept"


# ---------------------------------------------------------------------------
# Composite assistant turn
# ---------------------------------------------------------------------------

def test_compose_assistant_turn_appends_outcome():
    assert compose_assistant_turn("Sure.", None) == "Sure."
    assert compose_assistant_turn("Sure.", ActionResult(True, "Task created")) == "Sure.\n\n✅ Task created"
    assert compose_assistant_turn("Sure.", ActionResult(False, "No project")) == "Sure.\n\n❌ No project"
