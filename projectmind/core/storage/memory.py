# projectmind/core/storage/memory.py
"""In-process store. Used by the test-suite and as the base of JsonFileStore."""

import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional

from projectmind.core.errors import StorageError
from projectmind.core.models import (
    AISettings,
    ChatSession,
    NewTask,
    Project,
    Task,
    UserIdentity,
)
from projectmind.core.storage.base import BaseStore, new_id

logger = logging.getLogger(__name__)

_MISSING = object()


class InMemoryStore(BaseStore):
    def __init__(self) -> None:
        self.users: Dict[str, UserIdentity] = {}
        self.projects: Dict[str, Project] = {}
        self.tasks: Dict[str, Task] = {}
        self.chats: Dict[str, ChatSession] = {}
        self.settings: Dict[str, AISettings] = {}

    # Subclasses persist after every write.
    def _changed(self) -> None:
        pass

    def _put(self, table: Dict[str, Any], key: str, value: Any) -> Any:
        """Store `value` and persist; the table is restored when persisting fails."""
        previous = table.get(key, _MISSING)
        table[key] = value
        try:
            self._changed()
        except StorageError:
            if previous is _MISSING:
                del table[key]
            else:
                table[key] = previous
            raise
        return value

    # ------------------------------------------------------------------
    # Seeding helpers
    # ------------------------------------------------------------------
    def add_user(self, user: UserIdentity) -> UserIdentity:
        return self._put(self.users, user.id, user)

    def add_project(
        self,
        title: str,
        member_ids: Iterable[str] = (),
        description: Optional[str] = None,
        status: str = "PLANNING",
        project_id: Optional[str] = None,
    ) -> Project:
        project = Project(
            id=project_id or new_id(),
            title=title,
            description=description,
            status=status,
            member_ids=list(member_ids),
        )
        return self._put(self.projects, project.id, project)

    def add_task(self, task: Task) -> Task:
        return self._put(self.tasks, task.id, task)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------
    def get_settings(self, user_id: str) -> Optional[AISettings]:
        return self.settings.get(user_id)

    def save_settings(self, settings: AISettings) -> AISettings:
        return self._put(self.settings, settings.user_id, settings)

    # ------------------------------------------------------------------
    # Chats
    # ------------------------------------------------------------------
    def create_chat(self, session: ChatSession) -> ChatSession:
        if not session.id:
            session = replace(session, id=new_id())
        if session.id in self.chats:
            raise StorageError(f"Chat {session.id} already exists")
        return self._put(self.chats, session.id, session)

    def find_chat(self, chat_id: str, user_id: str) -> Optional[ChatSession]:
        chat = self.chats.get(chat_id)
        if chat is None or chat.user_id != user_id:
            return None
        return chat

    def update_chat(self, session: ChatSession) -> ChatSession:
        if session.id not in self.chats:
            raise StorageError(f"Chat {session.id} does not exist")
        return self._put(self.chats, session.id, session)

    def list_chats(
        self,
        user_id: str,
        project_id: Optional[str] = None,
        task_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[ChatSession]:
        chats = [
            c for c in self.chats.values()
            if c.user_id == user_id
            and (project_id is None or c.project_id == project_id)
            and (task_id is None or c.task_id == task_id)
        ]
        chats.sort(key=lambda c: c.updated_at, reverse=True)
        return chats[:limit]

    def delete_chat(self, chat_id: str, user_id: str) -> bool:
        if self.find_chat(chat_id, user_id) is None:
            return False
        removed = self.chats.pop(chat_id)
        try:
            self._changed()
        except StorageError:
            self.chats[chat_id] = removed
            raise
        return True

    # ------------------------------------------------------------------
    # Projects, tasks, users
    # ------------------------------------------------------------------
    def get_project(self, project_id: str) -> Optional[Project]:
        return self.projects.get(project_id)

    def get_task(self, task_id: str) -> Optional[Task]:
        return self.tasks.get(task_id)

    def get_user(self, user_id: str) -> Optional[UserIdentity]:
        return self.users.get(user_id)

    def find_user_by_email(self, email: str) -> Optional[UserIdentity]:
        lowered = email.strip().lower()
        for user in self.users.values():
            if user.email.lower() == lowered:
                return user
        return None

    def list_user_projects(self, user_id: str) -> List[Project]:
        return [p for p in self.projects.values() if user_id in p.member_ids]

    def list_project_tasks(self, project_id: str) -> List[Task]:
        return [t for t in self.tasks.values() if t.project_id == project_id]

    def create_task(self, new_task: NewTask) -> Task:
        if new_task.project_id not in self.projects:
            raise StorageError(f"Project {new_task.project_id} does not exist")
        task = Task(
            id=new_id(),
            project_id=new_task.project_id,
            title=new_task.title,
            description=new_task.description,
            status=new_task.status,
            priority=new_task.priority,
            due_date=new_task.due_date,
            estimated_hours=new_task.estimated_hours,
            tags=list(new_task.tags),
            assignee_id=new_task.assignee_id,
            creator_id=new_task.creator_id,
        )
        self._put(self.tasks, task.id, task)
        logger.debug(f"Created task {task.id} in project {task.project_id}")
        return task
