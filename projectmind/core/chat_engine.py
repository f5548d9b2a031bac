# projectmind/core/chat_engine.py
"""
ProjectMind Chat Engine

Responsibilities:
  - Run one chat turn: load/create the session, build context, call the
    provider router, detect and execute actions, persist the transcript
  - Create tasks from free-form descriptions
  - Project analysis and reports, with computed fallbacks
  - Chat history and AI settings management for the acting user

Provider failures never escape a turn: the canned apology is appended as the
assistant turn and the reply carries an `error` block instead.
"""

import asyncio
import logging
import weakref
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

from projectmind.core import insights
from projectmind.core.action_extractor import extract
from projectmind.core.ai.errors import ProviderError
from projectmind.core.ai.router import ProviderRouter
from projectmind.core.context_manager import (
    append_turn,
    build_initial_system_prompt,
    build_task_creation_prompt,
    compose_assistant_turn,
    derive_title,
    describe_created_task,
)
from projectmind.core.errors import (
    ActionExecutionError,
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from projectmind.core.executor import ActionExecutor
from projectmind.core.models import (
    AISettings,
    ActionResult,
    ChatReply,
    ChatRequest,
    ChatSession,
    CreateTask,
    Project,
    ProjectAnalysisReply,
    ReportReply,
    Role,
    Task,
    TaskCreationReply,
    UserIdentity,
    utc_now,
)
from projectmind.core.session_manager import SessionManager
from projectmind.core.storage.base import BaseStore
from projectmind.services.config_service import DEFAULT_FALLBACK_MESSAGE
from projectmind.services.validation_service import ValidationService

logger = logging.getLogger(__name__)

FALLBACK_TITLE_CHARS = 50


def fallback_task_title(description: str) -> str:
    suffix = "..." if len(description) > FALLBACK_TITLE_CHARS else ""
    return f"Task based on: {description[:FALLBACK_TITLE_CHARS]}{suffix}"


class ChatEngine:
    """
    Core engine that connects:
      - SessionManager (chat and settings persistence)
      - ProviderRouter (LLM backends)
      - action extraction and ActionExecutor (task creation)
    """

    def __init__(
        self,
        store: BaseStore,
        router: Optional[ProviderRouter] = None,
        config: Optional[Any] = None,
        validator: Optional[ValidationService] = None,
    ):
        self.store = store
        self.validator = validator or ValidationService()
        self.sessions = SessionManager(store, self.validator)
        self.executor = ActionExecutor(store)

        if router is None:
            router = ProviderRouter.from_config(config) if config is not None else ProviderRouter()
        self.router = router

        self.fallback_message = DEFAULT_FALLBACK_MESSAGE
        if config is not None:
            self.fallback_message = config.get("ai.fallback_message", DEFAULT_FALLBACK_MESSAGE)

        # Serializes turns on one session within this process. Entries vanish
        # once no coroutine holds a reference to the lock.
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _session_lock(self, chat_id: str) -> asyncio.Lock:
        lock = self._locks.get(chat_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[chat_id] = lock
        return lock

    # ------------------------------------------------------------------
    # Access checks
    # ------------------------------------------------------------------
    def _can_access_project(self, user: UserIdentity, project_id: str) -> bool:
        return user.is_admin or self.store.is_project_member(project_id, user.id)

    def _check_anchors(
        self,
        user: UserIdentity,
        project_id: Optional[str],
        task_id: Optional[str],
    ) -> Tuple[Optional[Project], Optional[Task]]:
        project = None
        task = None

        if project_id:
            project = self.store.get_project(project_id)
            if project is None or not self._can_access_project(user, project_id):
                raise AuthorizationError("Access to the project is denied")

        if task_id:
            task = self.store.get_task(task_id)
            # task anchors require membership, admins included
            if task is None or not self.store.is_project_member(task.project_id, user.id):
                raise NotFoundError("Task not found")

        return project, task

    def _enabled_settings(self, user_id: str) -> AISettings:
        settings = self.sessions.get_or_create_settings(user_id)
        if not settings.enabled:
            raise ValidationError(
                "AI assistant is disabled in settings",
                details={"enabled": "false"},
            )
        return settings

    def _default_project_id(
        self,
        request: ChatRequest,
        session: ChatSession,
        task: Optional[Task],
    ) -> Optional[str]:
        """Project a created task lands in when the reply names none."""
        project_id = request.project_id or session.project_id
        if project_id:
            return project_id
        if task is None and session.task_id:
            task = self.store.get_task(session.task_id)
        return task.project_id if task is not None else None

    def _project_members(self, project: Project) -> List[UserIdentity]:
        members = []
        for user_id in project.member_ids:
            member = self.store.get_user(user_id)
            members.append(member if member is not None else UserIdentity(id=user_id, email=user_id))
        return members

    def _check_project_access(self, user: UserIdentity, project_id: str) -> Project:
        if not self._can_access_project(user, project_id):
            raise AuthorizationError("Access to the project is denied")
        project = self.store.get_project(project_id)
        if project is None:
            raise NotFoundError("Project not found")
        return project

    # ------------------------------------------------------------------
    # Chat turn
    # ------------------------------------------------------------------
    async def handle_chat(self, user: UserIdentity, request: ChatRequest) -> ChatReply:
        """
        Run one chat turn for `user`.

        Raises:
            ValidationError: empty message or AI disabled
            AuthorizationError / NotFoundError: project, task or chat not accessible
        """
        if not isinstance(request.message, str) or not request.message.strip():
            raise ValidationError("Message is required", details={"message": "empty"})

        project, task = self._check_anchors(user, request.project_id, request.task_id)
        settings = self._enabled_settings(user.id)

        if request.chat_id:
            async with self._session_lock(request.chat_id):
                session = self.sessions.load_or_create(user.id, chat_id=request.chat_id)
                return await self._run_turn(user, settings, session, request, project, task)

        session = self.sessions.load_or_create(
            user.id, project_id=request.project_id, task_id=request.task_id
        )
        async with self._session_lock(session.id):
            return await self._run_turn(user, settings, session, request, project, task)

    async def _run_turn(
        self,
        user: UserIdentity,
        settings: AISettings,
        session: ChatSession,
        request: ChatRequest,
        project: Optional[Project],
        task: Optional[Task],
    ) -> ChatReply:
        if session.is_new:
            session = append_turn(
                session, Role.SYSTEM, build_initial_system_prompt(user, project, task)
            )
        session = append_turn(session, Role.USER, request.message)

        try:
            response = await self.router.generate(settings, session.messages)
        except ProviderError as e:
            logger.error(f"Chat {session.id}: provider failure ({e.__class__.__name__}): {e}")
            session = append_turn(session, Role.ASSISTANT, self.fallback_message)
            session = self.sessions.persist(derive_title(session, request.message))
            return ChatReply(
                message=self.fallback_message,
                chat_id=session.id,
                error={"type": e.__class__.__name__, "message": e.message},
            )

        action_result: Optional[ActionResult] = None
        action = extract(response.content, default_project_id=self._default_project_id(request, session, task))
        if action is not None:
            action_result = self.executor.execute(
                action, user.id, bypass_membership=user.is_admin
            )

        content = compose_assistant_turn(response.content, action_result)
        session = append_turn(session, Role.ASSISTANT, content)
        session = self.sessions.persist(derive_title(session, request.message))

        return ChatReply(
            message=content,
            chat_id=session.id,
            model=response.model,
            usage=response.usage,
            action_result=action_result,
        )

    # ------------------------------------------------------------------
    # Task creation from a description
    # ------------------------------------------------------------------
    async def create_task_from_description(
        self,
        user: UserIdentity,
        project_id: str,
        description: str,
        chat_id: Optional[str] = None,
    ) -> TaskCreationReply:
        """
        Ask the model to turn `description` into a task in `project_id`.

        When the model fails or its reply holds no valid task, a basic task is
        created from the description and the reply carries a warning.
        """
        self.validator.validate_task_description(project_id, description)
        project = self._check_project_access(user, project_id)
        settings = self._enabled_settings(user.id)

        response = None
        failure: Optional[str] = None
        action: Optional[CreateTask] = None
        try:
            response = await self.router.generate(
                settings, build_task_creation_prompt(project, description)
            )
            action = extract(response.content, default_project_id=project_id)
            if action is None:
                failure = "The AI reply did not contain a valid task"
        except ProviderError as e:
            logger.error(f"Task creation: provider failure ({e.__class__.__name__}): {e}")
            failure = e.message

        if action is not None:
            result = self.executor.execute(
                replace(action, project_id=project_id),
                user.id,
                record_creator=True,
                bypass_membership=user.is_admin,
            )
            if result.success:
                self._confirm_in_chat(chat_id, user, result)
                return TaskCreationReply(
                    message="Task created successfully",
                    task=result.task,
                    provider=settings.provider.value,
                    model=response.model if response else None,
                )
            failure = result.message

        basic = CreateTask(
            title=fallback_task_title(description),
            description=description,
            project_id=project_id,
        )
        result = self.executor.execute(
            basic, user.id, record_creator=True, bypass_membership=user.is_admin
        )
        if not result.success:
            raise ActionExecutionError(result.message)

        self._confirm_in_chat(chat_id, user, result)
        return TaskCreationReply(
            message="Task created (basic version)",
            task=result.task,
            warning="The AI could not process the request; a basic task was created",
            error=failure,
        )

    def _confirm_in_chat(self, chat_id: Optional[str], user: UserIdentity, result: ActionResult) -> None:
        if not chat_id or result.task is None:
            return
        assignee = self.store.get_user(result.task.assignee_id) if result.task.assignee_id else None
        self.sessions.append_and_persist(
            chat_id,
            user.id,
            Role.ASSISTANT,
            describe_created_task(result.task, assignee.display_name if assignee else user.display_name),
        )

    # ------------------------------------------------------------------
    # Project analysis and reports
    # ------------------------------------------------------------------
    async def analyze_project(self, user: UserIdentity, project_id: str) -> ProjectAnalysisReply:
        """
        Ask the model for an assessment of `project_id`.

        When the model fails or returns no usable analysis, one computed from
        task statuses is returned with a warning.
        """
        self.validator.validate_analysis_request(project_id)
        project = self._check_project_access(user, project_id)
        settings = self._enabled_settings(user.id)

        tasks = self.store.list_project_tasks(project_id)
        members = self._project_members(project)
        now = utc_now()
        project_data = insights.analysis_project_data(project, tasks)

        failure: Optional[str] = None
        try:
            response = await self.router.generate(
                replace(
                    settings,
                    max_tokens=insights.ANALYSIS_MAX_TOKENS,
                    temperature=insights.ANALYSIS_TEMPERATURE,
                ),
                insights.build_analysis_prompt(
                    insights.build_project_snapshot(project, tasks, members), now.date()
                ),
            )
            analysis = insights.extract_analysis(response.content)
            if analysis is not None:
                return ProjectAnalysisReply(analysis=analysis, project_data=project_data)
            failure = "The AI reply did not contain a valid analysis"
        except ProviderError as e:
            logger.error(f"Project analysis: provider failure ({e.__class__.__name__}): {e}")
            failure = e.message

        logger.warning(f"Project {project_id}: returning basic analysis ({failure})")
        return ProjectAnalysisReply(
            analysis=insights.fallback_analysis(tasks, members, now.date()),
            project_data=project_data,
            warning="AI analysis is unavailable; a basic analysis is shown",
            error=failure,
        )

    async def generate_report(
        self,
        user: UserIdentity,
        project_id: Optional[str] = None,
        report_type: str = "comprehensive",
        time_range: str = "month",
    ) -> ReportReply:
        """
        Ask the model for a report over `time_range`, either for one project
        or for every project of `user`.
        """
        self.validator.validate_report_request(project_id, report_type, time_range)
        project = self._check_project_access(user, project_id) if project_id else None
        settings = self._enabled_settings(user.id)

        now = utc_now()
        start = insights.period_start(time_range, now)
        if project is not None:
            data = insights.build_project_report_data(
                project,
                self.store.list_project_tasks(project.id),
                self._project_members(project),
                start,
                now,
                time_range,
            )
        else:
            data = insights.build_portfolio_report_data(
                [(p, self.store.list_project_tasks(p.id)) for p in self.store.list_user_projects(user.id)],
                start,
                now,
                time_range,
            )
        metadata = {
            "type": report_type,
            "period": time_range,
            "projectId": project_id,
            "generatedAt": now.isoformat(),
        }

        failure: Optional[str] = None
        try:
            response = await self.router.generate(
                replace(
                    settings,
                    max_tokens=insights.REPORT_MAX_TOKENS,
                    temperature=insights.REPORT_TEMPERATURE,
                ),
                insights.build_report_prompt(data, user, report_type, time_range, now),
            )
            report = insights.extract_report(response.content)
            if report is not None:
                return ReportReply(report=report, metadata=metadata)
            failure = "The AI reply did not contain a valid report"
        except ProviderError as e:
            logger.error(f"Report generation: provider failure ({e.__class__.__name__}): {e}")
            failure = e.message

        logger.warning(f"Returning basic {report_type} report for user {user.id} ({failure})")
        return ReportReply(
            report=insights.fallback_report(time_range, now),
            metadata=metadata,
            warning="AI report generation is unavailable; a basic report is shown",
            error=failure,
        )

    # ------------------------------------------------------------------
    # Chat history
    # ------------------------------------------------------------------
    def list_chats(
        self,
        user: UserIdentity,
        project_id: Optional[str] = None,
        task_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[ChatSession]:
        return self.store.list_chats(user.id, project_id=project_id, task_id=task_id, limit=limit)

    def get_chat(self, user: UserIdentity, chat_id: str) -> ChatSession:
        chat = self.store.find_chat(chat_id, user.id)
        if chat is None:
            raise NotFoundError("Chat not found")
        return chat

    def delete_chat(self, user: UserIdentity, chat_id: str) -> None:
        if not self.store.delete_chat(chat_id, user.id):
            raise NotFoundError("Chat not found")
        logger.info(f"Deleted chat {chat_id} for user {user.id}")

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------
    def get_settings(self, user: UserIdentity) -> AISettings:
        return self.sessions.get_or_create_settings(user.id)

    def update_settings(self, user: UserIdentity, **changes: Any) -> AISettings:
        return self.sessions.update_settings(user.id, **changes)

    async def test_connection(self, user: UserIdentity, message: str = "Hello") -> Dict[str, Any]:
        settings = self.sessions.get_or_create_settings(user.id)
        return await self.router.test_connection(settings, message)
