# Core modules
from .chat_engine import ChatEngine
from .session_manager import SessionManager
from .executor import ActionExecutor
from .action_extractor import extract
from .auth import Authenticator, StoreAuthenticator

__all__ = [
    "ChatEngine",
    "SessionManager",
    "ActionExecutor",
    "extract",
    "Authenticator",
    "StoreAuthenticator",
]
