# projectmind/core/auth.py
"""
Auth collaborator.

Maps whatever identifies the caller (a session token in a web layer, the
configured user in the CLI) to a UserIdentity, or None when the caller is
unauthenticated.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

from projectmind.core.errors import AuthorizationError
from projectmind.core.models import UserIdentity
from projectmind.core.storage.base import BaseStore

logger = logging.getLogger(__name__)


class Authenticator(ABC):
    @abstractmethod
    def resolve(self, credentials: Any) -> Optional[UserIdentity]:
        ...

    def require(self, credentials: Any) -> UserIdentity:
        """Like resolve(), but unauthenticated callers raise AuthorizationError."""
        user = self.resolve(credentials)
        if user is None:
            raise AuthorizationError("Unauthorized")
        return user


class StoreAuthenticator(Authenticator):
    """
    Resolves a user id or email against the users known to a store.

    `credentials` may be a plain string or a mapping with `user_id`/`id` or
    `email` keys.
    """

    def __init__(self, store: BaseStore):
        self.store = store

    def resolve(self, credentials: Any) -> Optional[UserIdentity]:
        if not credentials:
            return None

        if isinstance(credentials, Mapping):
            key = credentials.get("user_id") or credentials.get("id") or credentials.get("email")
        else:
            key = credentials
        if not isinstance(key, str) or not key.strip():
            return None
        key = key.strip()

        user = self.store.get_user(key)
        if user is not None:
            return user

        user = self.store.find_user_by_email(key)
        if user is not None:
            return user

        logger.info(f"Authentication failed for {key!r}")
        return None
