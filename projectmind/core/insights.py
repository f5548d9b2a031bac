# projectmind/core/insights.py
"""
Project analysis and report generation.

Both flows hand the model a JSON snapshot of project data, take the first
JSON object in the reply that has the expected shape, and fall back to a
deterministic result computed from the same data when the model fails.
Nothing in here performs I/O.
"""

import calendar
import json
import logging
import math
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from projectmind.core.action_extractor import SchemaError, iter_candidates
from projectmind.core.models import (
    ChatMessage,
    Project,
    Role,
    Task,
    TaskStatus,
    UserIdentity,
)

logger = logging.getLogger(__name__)

ANALYSIS_MAX_TOKENS = 2000
ANALYSIS_TEMPERATURE = 0.4
REPORT_MAX_TOKENS = 2500
REPORT_TEMPERATURE = 0.5

ANALYSIS_STATUSES = ("excellent", "good", "average", "poor", "critical")
REPORT_TYPES = ("progress", "team", "timeline", "risks", "comprehensive")
TIME_RANGES = ("week", "month", "quarter", "year")

UNASSIGNED = "Unassigned"
FALLBACK_COMPLETION_DAYS = 30
FALLBACK_PRODUCTIVITY = 70

ANALYSIS_SYSTEM_PROMPT = (
    "You are a project management expert with many years of experience. "
    "Your job is to analyse project data and give detailed, practical recommendations."
)

REPORT_SYSTEM_PROMPT = (
    "You are an expert in data analysis and project management reporting. "
    "Your job is to write structured, informative reports from the data you are given."
)

ANALYSIS_FORMAT = """{
  "progress": "Project completion percentage (0-100)",
  "status": "Overall assessment (excellent, good, average, poor, critical)",
  "risks": [
    {"level": "low, medium or high", "description": "Risk", "recommendation": "How to mitigate it"}
  ],
  "recommendations": [
    {
      "category": "planning, execution, team, resources or communication",
      "title": "Short title",
      "description": "Full description",
      "priority": "low, medium or high"
    }
  ],
  "timeline": {
    "estimatedCompletion": "YYYY-MM-DD",
    "delays": [{"task": "Task title", "delay": "Delay in days", "reason": "Why"}]
  },
  "team": {
    "productivity": "Team productivity score (0-100)",
    "workload": [{"member": "Name", "tasks": "Number of tasks", "workload": "low, medium or high"}]
  }
}"""

REPORT_FORMAT = """{
  "title": "Report title",
  "summary": "Two or three sentence summary",
  "generatedAt": "%(generated_at)s",
  "period": "%(period)s",
  "sections": [
    {"title": "Section title", "content": "Section text", "data": {}, "insights": ["Key insight"]}
  ],
  "recommendations": [
    {"priority": "low, medium or high", "category": "Category", "description": "Recommendation"}
  ],
  "metrics": {"metric name": "value"}
}"""

REPORT_FOCUS = {
    "progress": "task and project progress and completion statistics",
    "team": "teamwork, task distribution and productivity",
    "timeline": "deadlines, delays and planning",
    "risks": "risks and problem areas",
    "comprehensive": "every aspect of the project or projects",
}


# ----------------------------------------------------------------------
# Shared helpers
# ----------------------------------------------------------------------

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def project_progress(tasks: Sequence[Task]) -> int:
    """Percentage of DONE tasks, 0 for a project without tasks."""
    if not tasks:
        return 0
    done = sum(1 for t in tasks if t.status is TaskStatus.DONE)
    return _round_half_up(done * 100 / len(tasks))


def progress_status(progress: int) -> str:
    if progress > 75:
        return "good"
    if progress > 50:
        return "average"
    return "poor"


def _percentage(value: Any, name: str) -> int:
    if isinstance(value, str):
        try:
            value = float(value.strip().rstrip("%"))
        except ValueError:
            raise SchemaError(f"{name} must be a number")
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise SchemaError(f"{name} must be a number")
    if not 0 <= value <= 100:
        raise SchemaError(f"{name} must be between 0 and 100")
    return _round_half_up(value)


def _list_of_objects(data: Dict[str, Any], name: str) -> List[Dict[str, Any]]:
    value = data.get(name)
    if value is None:
        return []
    if not isinstance(value, list):
        raise SchemaError(f"{name} must be a list")
    return [item for item in value if isinstance(item, dict)]


def _object(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = data.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise SchemaError(f"{name} must be an object")
    return value


def _first_valid(text: str, validate, kind: str) -> Optional[Dict[str, Any]]:
    for candidate in iter_candidates(text or ""):
        try:
            return validate(candidate)
        except SchemaError as e:
            logger.debug(f"Discarding {kind} candidate: {e}")
    return None


def _assigned_count(tasks: Sequence[Task], user_id: str) -> int:
    return sum(1 for t in tasks if t.assignee_id == user_id)


# ----------------------------------------------------------------------
# Project analysis
# ----------------------------------------------------------------------

def build_project_snapshot(
    project: Project,
    tasks: Sequence[Task],
    members: Sequence[UserIdentity],
) -> Dict[str, Any]:
    """Project data handed to the model."""
    names = {m.id: m.display_name for m in members}
    return {
        "title": project.title,
        "description": project.description or "",
        "status": project.status,
        "tasks": [
            {
                "id": t.id,
                "title": t.title,
                "description": t.description or "",
                "status": t.status.value,
                "priority": t.priority.value,
                "dueDate": t.due_date.isoformat() if t.due_date else None,
                "assignee": names.get(t.assignee_id, UNASSIGNED) if t.assignee_id else UNASSIGNED,
                "estimatedHours": t.estimated_hours,
                "tags": list(t.tags),
            }
            for t in tasks
        ],
        "members": [
            {
                "name": m.display_name,
                "role": m.role,
                "tasksAssigned": _assigned_count(tasks, m.id),
                "tasksCreated": sum(1 for t in tasks if t.creator_id == m.id),
            }
            for m in members
        ],
    }


def build_analysis_prompt(snapshot: Dict[str, Any], today: date) -> List[ChatMessage]:
    prompt = (
        "Analyse the project data below and give a detailed assessment of its current "
        "state, its risks and your recommendations.\n\n"
        f"Project data:\n{json.dumps(snapshot, indent=2, ensure_ascii=False)}\n\n"
        f"Answer with JSON in this format:\n{ANALYSIS_FORMAT}\n\n"
        f"Take into account:\n"
        f"- Today's date: {today.isoformat()}\n"
        f"- Task statuses: {', '.join(s.value for s in TaskStatus)}\n"
        f"- Priorities: LOW, MEDIUM, HIGH\n\n"
        "Be objective and practical. Return only the JSON, without any other text."
    )
    return [
        ChatMessage(Role.SYSTEM, ANALYSIS_SYSTEM_PROMPT),
        ChatMessage(Role.USER, prompt),
    ]


def validate_analysis(data: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize one decoded object into an analysis, or raise SchemaError."""
    if "progress" not in data:
        raise SchemaError("progress is required")
    status = data.get("status")
    if not isinstance(status, str) or status.strip().lower() not in ANALYSIS_STATUSES:
        raise SchemaError(f"unknown status: {status!r}")

    analysis = dict(data)
    analysis["progress"] = _percentage(data["progress"], "progress")
    analysis["status"] = status.strip().lower()
    analysis["risks"] = _list_of_objects(data, "risks")
    analysis["recommendations"] = _list_of_objects(data, "recommendations")
    analysis["timeline"] = _object(data, "timeline")
    analysis["team"] = _object(data, "team")
    return analysis


def extract_analysis(text: str) -> Optional[Dict[str, Any]]:
    return _first_valid(text, validate_analysis, "analysis")


def fallback_analysis(
    tasks: Sequence[Task],
    members: Sequence[UserIdentity],
    today: date,
) -> Dict[str, Any]:
    """Analysis computed from task statuses alone."""
    progress = project_progress(tasks)
    return {
        "progress": progress,
        "status": progress_status(progress),
        "risks": [
            {
                "level": "medium",
                "description": "AI analysis is temporarily unavailable",
                "recommendation": "Run the analysis again later",
            }
        ],
        "recommendations": [
            {
                "category": "planning",
                "title": "Keep working on the project",
                "description": "Focus on finishing the tasks in progress",
                "priority": "medium",
            }
        ],
        "timeline": {
            "estimatedCompletion": (today + timedelta(days=FALLBACK_COMPLETION_DAYS)).isoformat(),
            "delays": [],
        },
        "team": {
            "productivity": FALLBACK_PRODUCTIVITY,
            "workload": [
                {"member": m.display_name, "tasks": _assigned_count(tasks, m.id), "workload": "medium"}
                for m in members
            ],
        },
    }


def analysis_project_data(project: Project, tasks: Sequence[Task]) -> Dict[str, Any]:
    return {
        "title": project.title,
        "tasksCount": len(tasks),
        "completedTasks": sum(1 for t in tasks if t.status is TaskStatus.DONE),
        "membersCount": len(project.member_ids),
    }


# ----------------------------------------------------------------------
# Reports
# ----------------------------------------------------------------------

def _months_back(moment: datetime, months: int) -> datetime:
    month_index = moment.year * 12 + moment.month - 1 - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def period_start(time_range: str, now: datetime) -> datetime:
    """Start of the reporting window ending at `now`."""
    if time_range == "week":
        return now - timedelta(days=7)
    if time_range == "month":
        return _months_back(now, 1)
    if time_range == "quarter":
        return _months_back(now, 3)
    if time_range == "year":
        return _months_back(now, 12)
    raise ValueError(f"Unknown time range: {time_range!r}")


def _period(start: datetime, now: datetime, time_range: str) -> Dict[str, str]:
    return {"start": start.isoformat(), "end": now.isoformat(), "range": time_range}


def _in_period(tasks: Sequence[Task], start: datetime) -> List[Task]:
    return [t for t in tasks if t.created_at >= start]


def build_project_report_data(
    project: Project,
    tasks: Sequence[Task],
    members: Sequence[UserIdentity],
    start: datetime,
    now: datetime,
    time_range: str,
) -> Dict[str, Any]:
    names = {m.id: m.display_name for m in members}
    return {
        "project": {
            "id": project.id,
            "title": project.title,
            "description": project.description,
            "status": project.status,
        },
        "tasks": [
            {
                "id": t.id,
                "title": t.title,
                "status": t.status.value,
                "priority": t.priority.value,
                "createdAt": t.created_at.isoformat(),
                "dueDate": t.due_date.isoformat() if t.due_date else None,
                "assignee": names.get(t.assignee_id, UNASSIGNED) if t.assignee_id else UNASSIGNED,
                "estimatedHours": t.estimated_hours,
            }
            for t in _in_period(tasks, start)
        ],
        "members": [{"id": m.id, "name": m.display_name, "role": m.role} for m in members],
        "period": _period(start, now, time_range),
    }


def build_portfolio_report_data(
    projects: Sequence[Tuple[Project, Sequence[Task]]],
    start: datetime,
    now: datetime,
    time_range: str,
) -> Dict[str, Any]:
    """Report data across every project of the user; counts cover all tasks."""
    return {
        "projects": [
            {
                "id": project.id,
                "title": project.title,
                "status": project.status,
                "tasksCount": len(tasks),
                "membersCount": len(project.member_ids),
                "completedTasks": sum(
                    1 for t in _in_period(tasks, start) if t.status is TaskStatus.DONE
                ),
            }
            for project, tasks in projects
        ],
        "period": _period(start, now, time_range),
    }


def build_report_prompt(
    data: Dict[str, Any],
    user: UserIdentity,
    report_type: str,
    time_range: str,
    now: datetime,
) -> List[ChatMessage]:
    prompt = (
        f"Write a detailed {report_type} report for the last {time_range}.\n\n"
        f"Report data:\n{json.dumps(data, indent=2, ensure_ascii=False)}\n\n"
        f"Today's date: {now.date().isoformat()}\n"
        f"User: {user.display_name}\n"
        f"Role: {user.role}\n\n"
        "Answer with JSON in this format:\n"
        + REPORT_FORMAT % {"generated_at": now.isoformat(), "period": time_range}
        + f"\n\nFocus on {REPORT_FOCUS[report_type]}.\n"
        "Be specific and use facts from the data. Return only the JSON, without any other text."
    )
    return [
        ChatMessage(Role.SYSTEM, REPORT_SYSTEM_PROMPT),
        ChatMessage(Role.USER, prompt),
    ]


def validate_report(data: Dict[str, Any]) -> Dict[str, Any]:
    report = dict(data)
    for name in ("title", "summary"):
        value = data.get(name)
        if not isinstance(value, str) or not value.strip():
            raise SchemaError(f"{name} must be a non-empty string")
        report[name] = value.strip()
    report["sections"] = _list_of_objects(data, "sections")
    report["recommendations"] = _list_of_objects(data, "recommendations")
    report["metrics"] = _object(data, "metrics")
    return report


def extract_report(text: str) -> Optional[Dict[str, Any]]:
    return _first_valid(text, validate_report, "report")


def fallback_report(time_range: str, now: datetime) -> Dict[str, Any]:
    return {
        "title": f"Report for the last {time_range}",
        "summary": "AI report generation is temporarily unavailable",
        "generatedAt": now.isoformat(),
        "period": time_range,
        "sections": [
            {
                "title": "General information",
                "content": "This report was generated in basic mode without AI analysis",
                "insights": ["Try generating the report again later"],
            }
        ],
        "recommendations": [
            {
                "priority": "medium",
                "category": "technical issues",
                "description": "Try generating the report again later",
            }
        ],
        "metrics": {"status": "limited"},
    }
