# projectmind/core/storage/base.py
"""
Storage collaborator contract.

The assistant core never talks to a database directly; it reads and writes
through this interface. Each call is atomic per record and implementations
report failures as StorageError.
"""

import uuid
from abc import ABC, abstractmethod
from typing import List, Optional

from projectmind.core.models import (
    AISettings,
    ChatSession,
    NewTask,
    Project,
    Task,
    UserIdentity,
)


def new_id() -> str:
    return uuid.uuid4().hex


class BaseStore(ABC):
    """Create / find / update keyed by opaque string ids."""

    # -- settings ------------------------------------------------------
    @abstractmethod
    def get_settings(self, user_id: str) -> Optional[AISettings]:
        ...

    @abstractmethod
    def save_settings(self, settings: AISettings) -> AISettings:
        ...

    # -- chats ---------------------------------------------------------
    @abstractmethod
    def create_chat(self, session: ChatSession) -> ChatSession:
        ...

    @abstractmethod
    def find_chat(self, chat_id: str, user_id: str) -> Optional[ChatSession]:
        """Return the chat only when it belongs to `user_id`."""

    @abstractmethod
    def update_chat(self, session: ChatSession) -> ChatSession:
        """Replace the stored record (full message sequence) with `session`."""

    @abstractmethod
    def list_chats(
        self,
        user_id: str,
        project_id: Optional[str] = None,
        task_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[ChatSession]:
        """Owned chats, most recently updated first."""

    @abstractmethod
    def delete_chat(self, chat_id: str, user_id: str) -> bool:
        ...

    # -- projects, tasks, users ---------------------------------------
    @abstractmethod
    def get_project(self, project_id: str) -> Optional[Project]:
        ...

    @abstractmethod
    def get_task(self, task_id: str) -> Optional[Task]:
        ...

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[UserIdentity]:
        ...

    @abstractmethod
    def find_user_by_email(self, email: str) -> Optional[UserIdentity]:
        """Case-insensitive email lookup."""

    @abstractmethod
    def list_user_projects(self, user_id: str) -> List[Project]:
        """Projects `user_id` is a member of, in creation order."""

    @abstractmethod
    def list_project_tasks(self, project_id: str) -> List[Task]:
        """Tasks of one project, in creation order."""

    @abstractmethod
    def create_task(self, new_task: NewTask) -> Task:
        ...

    def is_project_member(self, project_id: str, user_id: str) -> bool:
        project = self.get_project(project_id)
        return project is not None and user_id in project.member_ids
