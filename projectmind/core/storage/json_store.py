# projectmind/core/storage/json_store.py
"""
JSON-file backed store used by the CLI.

The whole dataset lives in one JSON document (default
~/.projectmind/store.json) that is rewritten after every write.
API keys are stored as given; keep the file private.
"""

import json
import logging
import os
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

from projectmind.core.errors import StorageError
from projectmind.core.models import (
    AISettings,
    ChatMessage,
    ChatSession,
    Project,
    ProviderType,
    Task,
    TaskPriority,
    TaskStatus,
    UserIdentity,
)
from projectmind.core.storage.memory import InMemoryStore

logger = logging.getLogger(__name__)

DEFAULT_STORE_PATH = Path(os.path.expanduser("~/.projectmind")) / "store.json"


def _dt(raw: Optional[str]) -> datetime:
    return datetime.fromisoformat(raw) if raw else datetime.now().astimezone()


# ----------------------------------------------------------------------
# Record codecs
# ----------------------------------------------------------------------

def settings_from_dict(data: Dict[str, Any]) -> AISettings:
    return AISettings(
        user_id=data["userId"],
        provider=ProviderType.parse(data.get("provider") or ProviderType.Z_AI),
        base_url=data.get("baseUrl"),
        model=data.get("model"),
        api_key=data.get("apiKey"),
        max_tokens=int(data.get("maxTokens", 1000)),
        temperature=float(data.get("temperature", 0.7)),
        enabled=bool(data.get("enabled", True)),
        updated_at=_dt(data.get("updatedAt")),
    )


def chat_from_dict(data: Dict[str, Any]) -> ChatSession:
    return ChatSession(
        id=data["id"],
        user_id=data["userId"],
        messages=tuple(ChatMessage.from_dict(m) for m in data.get("messages") or []),
        project_id=data.get("projectId"),
        task_id=data.get("taskId"),
        title=data.get("title"),
        created_at=_dt(data.get("createdAt")),
        updated_at=_dt(data.get("updatedAt")),
    )


def task_from_dict(data: Dict[str, Any]) -> Task:
    due = data.get("dueDate")
    return Task(
        id=data["id"],
        project_id=data["projectId"],
        title=data["title"],
        description=data.get("description"),
        status=TaskStatus(data.get("status") or "TODO"),
        priority=TaskPriority(data.get("priority") or "MEDIUM"),
        due_date=date.fromisoformat(due) if due else None,
        estimated_hours=data.get("estimatedHours"),
        tags=list(data.get("tags") or []),
        assignee_id=data.get("assigneeId"),
        creator_id=data.get("creatorId"),
        created_at=_dt(data.get("createdAt")),
    )


def project_to_dict(project: Project) -> Dict[str, Any]:
    return {
        "id": project.id,
        "title": project.title,
        "description": project.description,
        "status": project.status,
        "memberIds": list(project.member_ids),
    }


def project_from_dict(data: Dict[str, Any]) -> Project:
    return Project(
        id=data["id"],
        title=data["title"],
        description=data.get("description"),
        status=data.get("status") or "PLANNING",
        member_ids=list(data.get("memberIds") or []),
    )


def user_to_dict(user: UserIdentity) -> Dict[str, Any]:
    return {"id": user.id, "email": user.email, "name": user.name, "role": user.role}


def user_from_dict(data: Dict[str, Any]) -> UserIdentity:
    return UserIdentity(
        id=data["id"],
        email=data["email"],
        name=data.get("name"),
        role=data.get("role") or "MEMBER",
    )


class JsonFileStore(InMemoryStore):
    """InMemoryStore that mirrors itself to a JSON file."""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        super().__init__()
        self.path = Path(path).expanduser() if path else DEFAULT_STORE_PATH
        self._loading = False
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            logger.debug(f"JsonFileStore: {self.path} does not exist yet, starting empty")
            return

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StorageError(f"Cannot read store file {self.path}: {e}") from e
        if not isinstance(raw, dict):
            raise StorageError(f"Store file {self.path} is not a JSON object")

        try:
            self._loading = True
            for item in raw.get("users", []):
                self.add_user(user_from_dict(item))
            for item in raw.get("projects", []):
                project = project_from_dict(item)
                self.projects[project.id] = project
            for item in raw.get("tasks", []):
                self.add_task(task_from_dict(item))
            for item in raw.get("chats", []):
                chat = chat_from_dict(item)
                self.chats[chat.id] = chat
            for item in raw.get("settings", []):
                self.save_settings(settings_from_dict(item))
        except (KeyError, ValueError, TypeError) as e:
            raise StorageError(f"Store file {self.path} is malformed: {e}") from e
        finally:
            self._loading = False

        logger.info(
            f"JsonFileStore: loaded {len(self.projects)} projects, "
            f"{len(self.tasks)} tasks and {len(self.chats)} chats from {self.path}"
        )

    def _changed(self) -> None:
        if self._loading:
            return
        self._save()

    def _save(self) -> None:
        data = {
            "users": [user_to_dict(u) for u in self.users.values()],
            "projects": [project_to_dict(p) for p in self.projects.values()],
            "tasks": [t.to_dict() for t in self.tasks.values()],
            "chats": [c.to_dict() for c in self.chats.values()],
            "settings": [s.to_dict(include_secret=True) for s in self.settings.values()],
        }
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as e:
            raise StorageError(f"Cannot write store file {self.path}: {e}") from e
