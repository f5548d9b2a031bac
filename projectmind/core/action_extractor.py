# projectmind/core/action_extractor.py
"""
Best-effort detection of structured actions embedded in free-text replies.

Models wrap the JSON in prose, fences or nothing at all, so extraction is a
lexical scan bounded by schema validation: the first candidate object that
validates wins and later ones are ignored. Anything that does not validate
yields None, never an exception.
"""

import json
import logging
import math
import re
from datetime import date, datetime
from typing import Any, Dict, Iterator, List, Optional

from projectmind.core.models import (
    ACTION_TASK_STATUSES,
    CreateTask,
    TaskPriority,
    TaskStatus,
)

logger = logging.getLogger(__name__)

ACTION_CREATE_TASK = "create_task"

_FENCE_RE = re.compile(r"```(?:json|action)?\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)

# camelCase wire name -> accepted aliases
_ALIASES = {
    "projectId": ("projectId", "project_id"),
    "dueDate": ("dueDate", "due_date"),
    "estimatedHours": ("estimatedHours", "estimated_hours"),
}


class SchemaError(ValueError):
    """A candidate object does not describe a valid action."""


def _decode_objects(raw: str) -> List[Dict[str, Any]]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return []
    if isinstance(data, dict):
        return [data]
    if isinstance(data, list):
        return [item for item in data if isinstance(item, dict)]
    return []


def iter_candidates(text: str) -> Iterator[Dict[str, Any]]:
    """
    Yield JSON objects found in `text`, in priority order:

    1. the widest span, first `{` to last `}`
    2. fenced ```json blocks
    3. one object decoded at every `{`, left to right
    """
    if not text:
        return

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return

    yield from _decode_objects(text[start:end + 1])

    for m in _FENCE_RE.finditer(text):
        raw = m.group(1).strip()
        if raw:
            yield from _decode_objects(raw)

    decoder = json.JSONDecoder()
    pos = text.find("{")
    while pos != -1:
        try:
            obj, _ = decoder.raw_decode(text, pos)
        except json.JSONDecodeError:
            obj = None
        if isinstance(obj, dict):
            yield obj
        pos = text.find("{", pos + 1)


# ----------------------------------------------------------------------
# Schema
# ----------------------------------------------------------------------

def _field(data: Dict[str, Any], name: str) -> Any:
    for key in _ALIASES.get(name, (name,)):
        if key in data:
            return data[key]
    return None


def _required_text(data: Dict[str, Any], name: str) -> str:
    value = data.get(name)
    if not isinstance(value, str) or not value.strip():
        raise SchemaError(f"{name} must be a non-empty string")
    return value.strip()


def _parse_priority(value: Any) -> Optional[TaskPriority]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise SchemaError("priority must be a string")
    try:
        return TaskPriority(value.strip().upper())
    except ValueError:
        raise SchemaError(f"unknown priority: {value!r}")


def _parse_status(value: Any) -> Optional[TaskStatus]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise SchemaError("status must be a string")
    try:
        status = TaskStatus(value.strip().upper())
    except ValueError:
        raise SchemaError(f"unknown status: {value!r}")
    if status not in ACTION_TASK_STATUSES:
        raise SchemaError(f"status {status.value} cannot be requested")
    return status


def _parse_due_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise SchemaError("dueDate must be an ISO date string or null")
    raw = value.strip()
    if not raw or raw.lower() == "null":
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
    except ValueError:
        raise SchemaError(f"invalid dueDate: {value!r}")


def _parse_hours(value: Any) -> Optional[float]:
    if value is None:
        return None
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SchemaError("estimatedHours must be a number or null")
    # json accepts NaN and Infinity
    if not math.isfinite(value):
        raise SchemaError("estimatedHours must be finite")
    if value < 0:
        raise SchemaError("estimatedHours must not be negative")
    return float(value)


def _parse_tags(value: Any) -> tuple:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(t, str) for t in value):
        raise SchemaError("tags must be a list of strings")
    return tuple(t.strip() for t in value if t.strip())


def validate_create_task(data: Dict[str, Any], default_project_id: Optional[str] = None) -> CreateTask:
    """Validate one decoded object and build the action, or raise SchemaError."""
    kind = data.get("type", data.get("action"))
    if kind is not None and (not isinstance(kind, str) or kind.strip().lower() != ACTION_CREATE_TASK):
        raise SchemaError(f"unsupported action type: {kind!r}")

    project_id = _field(data, "projectId")
    if project_id is not None and not isinstance(project_id, str):
        raise SchemaError("projectId must be a string")

    return CreateTask(
        title=_required_text(data, "title"),
        description=_required_text(data, "description"),
        project_id=(project_id or "").strip() or default_project_id,
        priority=_parse_priority(data.get("priority")),
        status=_parse_status(data.get("status")),
        due_date=_parse_due_date(_field(data, "dueDate")),
        estimated_hours=_parse_hours(_field(data, "estimatedHours")),
        tags=_parse_tags(data.get("tags")),
    )


def extract(reply_text: str, default_project_id: Optional[str] = None) -> Optional[CreateTask]:
    """
    Return the first valid CreateTask embedded in `reply_text`, or None.

    `default_project_id` anchors actions that do not name a project.
    """
    for candidate in iter_candidates(reply_text or ""):
        try:
            action = validate_create_task(candidate, default_project_id)
        except SchemaError as e:
            logger.debug(f"Discarding action candidate: {e}")
            continue
        logger.info(f"Detected create_task action: {action.title!r}")
        return action
    return None
