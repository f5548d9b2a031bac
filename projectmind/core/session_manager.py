# projectmind/core/session_manager.py
"""
Session State Manager

Loads or creates the chat session for a turn, persists the full transcript
at the end of it, and owns the lazily-created per-user AI settings.
This is the only component that writes chats and settings.
"""

import logging
from typing import Any, Optional

from projectmind.core.context_manager import append_turn, touch
from projectmind.core.errors import NotFoundError
from projectmind.core.models import AISettings, ChatSession, Role
from projectmind.core.storage.base import BaseStore, new_id
from projectmind.services.validation_service import ValidationService

logger = logging.getLogger(__name__)


class SessionManager:
    def __init__(self, store: BaseStore, validator: Optional[ValidationService] = None):
        self.store = store
        self.validator = validator or ValidationService()

    # ------------------------------------------------------------------
    # Chats
    # ------------------------------------------------------------------
    def load_or_create(
        self,
        user_id: str,
        chat_id: Optional[str] = None,
        project_id: Optional[str] = None,
        task_id: Optional[str] = None,
    ) -> ChatSession:
        """
        With `chat_id`: the chat owned by `user_id`, or NotFoundError.
        Without: a new, stored session with no messages.
        """
        if chat_id:
            chat = self.store.find_chat(chat_id, user_id)
            if chat is None:
                # Same answer for "missing" and "someone else's".
                raise NotFoundError("Chat not found")
            return chat

        session = ChatSession(
            id=new_id(),
            user_id=user_id,
            project_id=project_id,
            task_id=task_id,
        )
        created = self.store.create_chat(session)
        logger.info(f"Created chat {created.id} for user {user_id}")
        return created

    def persist(self, session: ChatSession) -> ChatSession:
        """Write the whole message sequence and bump updated_at."""
        saved = self.store.update_chat(touch(session))
        logger.debug(f"Persisted chat {saved.id} ({len(saved.messages)} messages)")
        return saved

    def append_and_persist(
        self, chat_id: Optional[str], user_id: str, role: Role, content: str
    ) -> Optional[ChatSession]:
        """
        Append one message to a chat owned by `user_id` and persist it.

        Returns None when no chat id was given or the chat is not owned by
        `user_id`; nothing is written then.
        """
        if not chat_id:
            return None
        chat = self.store.find_chat(chat_id, user_id)
        if chat is None:
            logger.info(f"Not appending to chat {chat_id}: not found for user {user_id}")
            return None
        return self.persist(append_turn(chat, role, content))

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------
    def get_or_create_settings(self, user_id: str) -> AISettings:
        settings = self.store.get_settings(user_id)
        if settings is None:
            settings = self.store.save_settings(AISettings.default_for(user_id))
            logger.info(f"Created default AI settings for user {user_id}")
        return settings

    def update_settings(self, user_id: str, **changes: Any) -> AISettings:
        """
        Validate and apply `changes` (snake_case or camelCase keys).

        Raises:
            ValidationError: malformed field or missing provider requirement
        """
        current = self.get_or_create_settings(user_id)
        updated = self.validator.apply_settings_changes(current, changes)
        saved = self.store.save_settings(updated)
        logger.info(f"Updated AI settings for user {user_id} (provider={saved.provider.value})")
        return saved
