"""
ProjectMind CLI: Entry Point

Drives the assistant core from the shell against the JSON file store.
Every command prints JSON; handled errors print their payload and exit 1.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from projectmind import __version__
from projectmind.config.settings import get_config_service
from projectmind.core.ai.factory import AIProviderFactory
from projectmind.core.auth import StoreAuthenticator
from projectmind.core.chat_engine import ChatEngine
from projectmind.core.errors import ProjectMindError, ValidationError
from projectmind.core.insights import REPORT_TYPES, TIME_RANGES
from projectmind.core.models import UserIdentity
from projectmind.core.storage.json_store import JsonFileStore
from projectmind.core.storage.base import new_id
from projectmind.services.config_service import ConfigService

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

DEMO_USERS = [
    ("admin@example.com", "Administrator", "ADMIN"),
    ("manager@example.com", "Manager", "MANAGER"),
    ("user@example.com", "User", "MEMBER"),
]

DEMO_PROJECTS = [
    ("Web application", "Build a modern web application", "ACTIVE"),
    ("Mobile application", "Build a mobile application for iOS and Android", "PLANNING"),
]


def _emit(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _configure_logging(config: ConfigService, verbose: bool) -> None:
    level_name = "DEBUG" if verbose else str(config.get("logging.level", "WARNING")).upper()
    level = getattr(logging, level_name, logging.WARNING)
    logging.basicConfig(level=level, format=LOG_FORMAT)


def _open_store(args, config: ConfigService) -> JsonFileStore:
    return JsonFileStore(args.store or config.get("storage.path"))


def _current_user(args, config: ConfigService, store: JsonFileStore) -> UserIdentity:
    who = args.user or config.get("user")
    if not who:
        raise ValidationError(
            "No user configured; pass --user or set 'user' in the config file",
            details={"user": "missing"},
        )
    return StoreAuthenticator(store).require(who)


def _parse_setting(raw: str) -> Dict[str, Any]:
    if "=" not in raw:
        raise ValidationError(f"Expected KEY=VALUE, got {raw!r}", details={raw: "missing '='"})
    key, value = raw.split("=", 1)
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        parsed = value
    return {key.strip(): parsed}


# =====================================================================
#  COMMANDS
# =====================================================================

async def cmd_chat(args, engine: ChatEngine, user: UserIdentity) -> int:
    request = engine.validator.validate_chat_request({
        "message": args.message,
        "projectId": args.project,
        "taskId": args.task,
        "chatId": args.chat,
    })
    reply = await engine.handle_chat(user, request)
    _emit(reply.to_dict())
    return 0


async def cmd_create_task(args, engine: ChatEngine, user: UserIdentity) -> int:
    reply = await engine.create_task_from_description(
        user, args.project_id, args.description, chat_id=args.chat
    )
    _emit(reply.to_dict())
    return 0


async def cmd_analyze(args, engine: ChatEngine, user: UserIdentity) -> int:
    reply = await engine.analyze_project(user, args.project_id)
    _emit(reply.to_dict())
    return 0


async def cmd_report(args, engine: ChatEngine, user: UserIdentity) -> int:
    reply = await engine.generate_report(
        user, project_id=args.project, report_type=args.type, time_range=args.range
    )
    _emit(reply.to_dict())
    return 0


async def cmd_chats(args, engine: ChatEngine, user: UserIdentity) -> int:
    action = args.chats_command or "list"
    if action == "list":
        chats = engine.list_chats(user, project_id=args.project, task_id=args.task, limit=args.limit)
        _emit({"chats": [
            {
                "id": c.id,
                "title": c.title,
                "projectId": c.project_id,
                "taskId": c.task_id,
                "messageCount": len(c.messages),
                "updatedAt": c.updated_at.isoformat(),
            }
            for c in chats
        ]})
    elif action == "show":
        _emit({"chat": engine.get_chat(user, args.chat_id).to_dict()})
    elif action == "delete":
        engine.delete_chat(user, args.chat_id)
        _emit({"message": "Chat deleted", "chatId": args.chat_id})
    return 0


async def cmd_settings(args, engine: ChatEngine, user: UserIdentity) -> int:
    action = args.settings_command or "show"
    if action == "show":
        _emit({
            "settings": engine.get_settings(user).to_dict(),
            "providers": AIProviderFactory.get_available_providers(),
        })
        return 0

    changes: Dict[str, Any] = {}
    for raw in args.values:
        changes.update(_parse_setting(raw))
    settings = engine.update_settings(user, **changes)
    _emit({"message": "Settings updated", "settings": settings.to_dict()})
    return 0


async def cmd_test_connection(args, engine: ChatEngine, user: UserIdentity) -> int:
    result = await engine.test_connection(user, args.message)
    _emit(result)
    return 0 if result.get("success") else 1


def cmd_demo_data(args, store: JsonFileStore) -> int:
    """Seed the store with demo users and projects (idempotent for users)."""
    users: List[UserIdentity] = []
    for email, name, role in DEMO_USERS:
        user = store.find_user_by_email(email)
        if user is None:
            user = store.add_user(UserIdentity(id=new_id(), email=email, name=name, role=role))
        users.append(user)

    projects = []
    for title, description, status in DEMO_PROJECTS:
        projects.append(store.add_project(
            title,
            member_ids=[u.id for u in users],
            description=description,
            status=status,
        ))

    _emit({
        "message": "Demo data created",
        "users": [{"id": u.id, "email": u.email, "role": u.role} for u in users],
        "projects": [{"id": p.id, "title": p.title} for p in projects],
    })
    return 0


# =====================================================================
#  CLI ENTRY WITH SUBCOMMANDS
# =====================================================================

def _create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="projectmind",
        description="ProjectMind: AI assistant for projects and tasks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  projectmind demo-data
  projectmind --user user@example.com chat "Plan the release" --project <id>
  projectmind --user user@example.com create-task <project-id> "Write release notes"
  projectmind --user user@example.com analyze <project-id>
  projectmind --user user@example.com report --type team --range quarter
  projectmind --user user@example.com settings set provider=LM_STUDIO baseUrl=http://localhost:1234
        """
    )

    # Global options
    parser.add_argument("--version", action="version", version=f"projectmind {__version__}")
    parser.add_argument("--config", type=str, help="Path to config.json")
    parser.add_argument("--store", type=str, help="Path to the JSON store file")
    parser.add_argument("--user", type=str, help="Act as this user (id or email)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # chat
    parser_chat = subparsers.add_parser("chat", help="Send one chat message")
    parser_chat.add_argument("message", help="Message text")
    parser_chat.add_argument("--project", help="Project id for context")
    parser_chat.add_argument("--task", help="Task id for context")
    parser_chat.add_argument("--chat", help="Continue an existing chat")

    # create-task
    parser_task = subparsers.add_parser("create-task", help="Create a task from a description")
    parser_task.add_argument("project_id", help="Target project id")
    parser_task.add_argument("description", help="What the task is about")
    parser_task.add_argument("--chat", help="Chat to post the confirmation to")

    # analyze
    parser_analyze = subparsers.add_parser("analyze", help="AI assessment of one project")
    parser_analyze.add_argument("project_id", help="Project id")

    # report
    parser_report = subparsers.add_parser("report", help="AI report over a time range")
    parser_report.add_argument("--project", help="Limit the report to one project")
    parser_report.add_argument("--type", choices=REPORT_TYPES, default="comprehensive")
    parser_report.add_argument("--range", choices=TIME_RANGES, default="month")

    # chats
    parser_chats = subparsers.add_parser("chats", help="Chat history")
    chats_sub = parser_chats.add_subparsers(dest="chats_command")
    parser_list = chats_sub.add_parser("list", help="List chats")
    parser_list.add_argument("--project", help="Only chats about this project")
    parser_list.add_argument("--task", help="Only chats about this task")
    parser_list.add_argument("--limit", type=int, default=50)
    parser_show = chats_sub.add_parser("show", help="Show one chat")
    parser_show.add_argument("chat_id")
    parser_delete = chats_sub.add_parser("delete", help="Delete one chat")
    parser_delete.add_argument("chat_id")
    parser_chats.set_defaults(project=None, task=None, limit=50)

    # settings
    parser_settings = subparsers.add_parser("settings", help="AI settings")
    settings_sub = parser_settings.add_subparsers(dest="settings_command")
    settings_sub.add_parser("show", help="Show current settings")
    parser_set = settings_sub.add_parser("set", help="Update settings (KEY=VALUE ...)")
    parser_set.add_argument("values", nargs="+", help="e.g. provider=OPENAI apiKey=sk-... maxTokens=500")

    # test-connection
    parser_test = subparsers.add_parser("test-connection", help="Send a test message to the configured provider")
    parser_test.add_argument("--message", default="Hello", help="Test message")

    # demo-data
    subparsers.add_parser("demo-data", help="Seed the store with demo users and projects")

    return parser


USER_COMMANDS = {
    "chat": cmd_chat,
    "create-task": cmd_create_task,
    "analyze": cmd_analyze,
    "report": cmd_report,
    "chats": cmd_chats,
    "settings": cmd_settings,
    "test-connection": cmd_test_connection,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point with subcommand routing."""
    parser = _create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    try:
        config = get_config_service(Path(args.config).expanduser() if args.config else None)
    except ValueError as e:
        # Unreadable config file.
        _emit({"error": "ConfigurationError", "message": str(e)})
        return 1
    _configure_logging(config, args.verbose)

    try:
        store = _open_store(args, config)

        if args.command == "demo-data":
            return cmd_demo_data(args, store)

        user = _current_user(args, config, store)
        engine = ChatEngine(store, config=config)
        return asyncio.run(USER_COMMANDS[args.command](args, engine, user))
    except ProjectMindError as e:
        logger.debug(f"Command {args.command} failed: {e!r}")
        _emit(e.to_payload())
        return 1


if __name__ == "__main__":
    sys.exit(main() or 0)
