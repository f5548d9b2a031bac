"""Storage collaborators: the abstract contract and two reference stores."""

from projectmind.core.storage.base import BaseStore, new_id
from projectmind.core.storage.memory import InMemoryStore
from projectmind.core.storage.json_store import JsonFileStore

__all__ = ["BaseStore", "InMemoryStore", "JsonFileStore", "new_id"]
