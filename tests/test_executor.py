from datetime import date

import pytest

from projectmind.core.errors import StorageError
from projectmind.core.executor import ActionExecutor
from projectmind.core.models import (
    CreateTask,
    TaskPriority,
    TaskStatus,
    UserIdentity,
)
from projectmind.core.storage.memory import InMemoryStore


class FailingStore(InMemoryStore):
    """Store whose task writes always fail."""

    def create_task(self, new_task):
        raise StorageError("disk full at /var/lib/secret")


@pytest.fixture
def store():
    s = InMemoryStore()
    s.add_user(UserIdentity(id="u1", email="ada@example.com", name="Ada"))
    s.add_user(UserIdentity(id="u2", email="bob@example.com"))
    s.add_project("Website", member_ids=["u1"], project_id="p1")
    s.add_project("Mobile", member_ids=["u1"], project_id="p2")
    return s


def test_valid_action_creates_matching_task(store):
    action = CreateTask(
        title="Fix bug", description="Null pointer on login", project_id="p2",
        due_date=date(2025, 1, 31), estimated_hours=2.0, tags=("bug",),
    )

    result = ActionExecutor(store).execute(action, "u1")

    assert result.success is True
    task = result.task
    assert store.get_task(task.id) == task
    assert task.project_id == "p2"
    assert task.title == "Fix bug"
    assert task.priority is TaskPriority.MEDIUM
    assert task.status is TaskStatus.TODO
    assert task.assignee_id == "u1"
    assert task.creator_id is None
    assert task.tags == ["bug"]
    assert "Fix bug" in result.message


def test_record_creator_sets_creator(store):
    result = ActionExecutor(store).execute(
        CreateTask(title="T", description="D", project_id="p1"), "u1", record_creator=True
    )
    assert result.task.creator_id == "u1"


def test_missing_project_id_falls_back_to_first_user_project(store):
    result = ActionExecutor(store).execute(CreateTask(title="T", description="D"), "u1")
    assert result.success
    assert result.task.project_id == "p1"


def test_non_member_and_unknown_project_fail_without_task(store):
    executor = ActionExecutor(store)

    foreign = executor.execute(CreateTask(title="T", description="D", project_id="p1"), "u2")
    unknown = executor.execute(CreateTask(title="T", description="D", project_id="nope"), "u1")
    no_projects = executor.execute(CreateTask(title="T", description="D"), "u2")

    for result in (foreign, unknown, no_projects):
        assert result.success is False
        assert result.task is None
    assert store.tasks == {}


def test_admin_bypass_allows_foreign_project(store):
    result = ActionExecutor(store).execute(
        CreateTask(title="T", description="D", project_id="p1"), "u2", bypass_membership=True
    )
    assert result.success


def test_storage_failure_is_reported_by_class_only(store):
    failing = FailingStore()
    failing.projects = store.projects

    result = ActionExecutor(failing).execute(CreateTask(title="T", description="D", project_id="p1"), "u1")

    assert result.success is False
    assert result.task is None
    assert "StorageError" in result.message
    assert "/var/lib/secret" not in result.message


def test_executing_twice_creates_two_tasks(store):
    executor = ActionExecutor(store)
    action = CreateTask(title="Same", description="D", project_id="p1")

    first = executor.execute(action, "u1")
    second = executor.execute(action, "u1")

    assert first.task.id != second.task.id
    assert len(store.tasks) == 2

