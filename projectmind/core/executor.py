# projectmind/core/executor.py
"""
ProjectMind Action Executor

Carries out actions detected in model replies against the storage
collaborator. Execution never raises for domain failures: a missing
project, a non-member or a storage error all come back as an
ActionResult with success=False.

There is no idempotency: executing the same action twice creates two tasks.
"""

import logging
from typing import Optional

from projectmind.core.errors import StorageError
from projectmind.core.models import (
    ActionResult,
    CreateTask,
    NewTask,
    Project,
)
from projectmind.core.storage.base import BaseStore

logger = logging.getLogger(__name__)


class ActionExecutor:
    """Facade over the storage collaborator for model-requested actions."""

    def __init__(self, store: BaseStore):
        self.store = store

    def _resolve_project(
        self, action: CreateTask, user_id: str, bypass_membership: bool
    ) -> Optional[Project]:
        if action.project_id:
            project = self.store.get_project(action.project_id)
            if project is None:
                return None
            if not bypass_membership and user_id not in project.member_ids:
                return None
            return project

        # No explicit target: the user's first project.
        projects = self.store.list_user_projects(user_id)
        return projects[0] if projects else None

    def execute(
        self,
        action: CreateTask,
        acting_user_id: str,
        *,
        record_creator: bool = False,
        bypass_membership: bool = False,
    ) -> ActionResult:
        """
        Create the task described by `action` on behalf of `acting_user_id`.

        The task is assigned to the acting user; `record_creator` also records
        them as creator (dedicated create-task flow).
        """
        try:
            project = self._resolve_project(action, acting_user_id, bypass_membership)
            if project is None:
                logger.info(
                    f"Action rejected for user {acting_user_id}: "
                    f"project {action.project_id or '<default>'} not available"
                )
                return ActionResult(
                    success=False,
                    message="Task was not created: project not found or access denied",
                )

            task = self.store.create_task(
                NewTask(
                    project_id=project.id,
                    title=action.title,
                    description=action.description,
                    priority=action.effective_priority,
                    status=action.effective_status,
                    due_date=action.due_date,
                    estimated_hours=action.estimated_hours,
                    tags=action.tags,
                    assignee_id=acting_user_id,
                    creator_id=acting_user_id if record_creator else None,
                )
            )
        except StorageError as e:
            logger.error(f"Task creation failed: {e}")
            return ActionResult(
                success=False,
                message=f"Task was not created ({e.__class__.__name__})",
            )

        logger.info(f"Created task {task.id} in project {project.id} for user {acting_user_id}")
        return ActionResult(
            success=True,
            message=f'Task "{task.title}" created in project "{project.title}"',
            task=task,
        )
