"""
Validation Service

Service class for validation of inbound requests and AI settings.
Every failure is reported as a ValidationError whose `details` map the
offending field to a human-readable problem.
"""

import logging
import re
from dataclasses import replace
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlparse

from projectmind.core.errors import ValidationError
from projectmind.core.insights import REPORT_TYPES, TIME_RANGES
from projectmind.core.models import (
    CLOUD_PROVIDERS,
    SELF_HOSTED_PROVIDERS,
    AISettings,
    ChatRequest,
    ProviderType,
    utc_now,
)

logger = logging.getLogger(__name__)

MIN_MAX_TOKENS = 1
MAX_MAX_TOKENS = 8000
MIN_TEMPERATURE = 0.0
MAX_TEMPERATURE = 2.0

# Accepted spellings of each settings field.
SETTINGS_FIELDS: Dict[str, str] = {
    "provider": "provider",
    "base_url": "base_url",
    "baseUrl": "base_url",
    "model": "model",
    "api_key": "api_key",
    "apiKey": "api_key",
    "max_tokens": "max_tokens",
    "maxTokens": "max_tokens",
    "temperature": "temperature",
    "enabled": "enabled",
}

_HOST_RE = re.compile(r"^[A-Za-z0-9.\-_\[\]:]+$")


class ValidationService:
    """
    Service class for validation operations.

    Provides:
    - URL validation
    - AI settings validation (ranges and provider requirements)
    - Chat, create-task, analysis and report request validation
    """

    def validate_url(self, url: str) -> bool:
        """
        Validate an absolute http(s) URL.

        Args:
            url: URL to validate

        Returns:
            True if valid
        """
        if not isinstance(url, str) or not url.strip():
            return False
        parsed = urlparse(url.strip())
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return False
        return bool(_HOST_RE.match(parsed.netloc.rsplit("@", 1)[-1]))

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------
    def _coerce_settings_field(self, name: str, value: Any, errors: Dict[str, str]) -> Any:
        if name == "provider":
            try:
                return ProviderType.parse(value)
            except ValueError:
                allowed = ", ".join(p.value for p in ProviderType)
                errors["provider"] = f"Must be one of: {allowed}"
                return None

        if name == "base_url":
            if value is None or value == "":
                return None
            if not self.validate_url(value):
                errors["base_url"] = "Invalid URL format"
                return None
            return value.strip()

        if name == "model":
            if value is None:
                return None
            if not isinstance(value, str) or not value.strip():
                errors["model"] = "Model name must be a non-empty string"
                return None
            return value.strip()

        if name == "api_key":
            if value is None or value == "":
                return None
            if not isinstance(value, str):
                errors["api_key"] = "API key must be a string"
                return None
            return value.strip()

        if name == "max_tokens":
            if isinstance(value, bool) or not isinstance(value, int):
                errors["max_tokens"] = "Must be an integer"
                return None
            if not MIN_MAX_TOKENS <= value <= MAX_MAX_TOKENS:
                errors["max_tokens"] = f"Must be between {MIN_MAX_TOKENS} and {MAX_MAX_TOKENS}"
                return None
            return value

        if name == "temperature":
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                errors["temperature"] = "Must be a number"
                return None
            if not MIN_TEMPERATURE <= value <= MAX_TEMPERATURE:
                errors["temperature"] = f"Must be between {MIN_TEMPERATURE:g} and {MAX_TEMPERATURE:g}"
                return None
            return float(value)

        if name == "enabled":
            if not isinstance(value, bool):
                errors["enabled"] = "Must be true or false"
                return None
            return value

        errors[name] = "Unknown setting"
        return None

    def provider_requirement_errors(self, settings: AISettings) -> Dict[str, str]:
        """Fields a provider needs but the settings do not carry."""
        errors: Dict[str, str] = {}
        if settings.provider in SELF_HOSTED_PROVIDERS and not settings.base_url:
            errors["base_url"] = f"Base URL is required for {settings.provider.value}"
        if settings.provider in CLOUD_PROVIDERS and not settings.api_key:
            errors["api_key"] = f"API key is required for {settings.provider.value}"
        return errors

    def apply_settings_changes(self, current: AISettings, changes: Mapping[str, Any]) -> AISettings:
        """
        Validate `changes` against `current` and return the merged record.

        Raises:
            ValidationError: any field is malformed, unknown, or the merged
                record misses a provider requirement
        """
        errors: Dict[str, str] = {}
        updates: Dict[str, Any] = {}
        for key, value in changes.items():
            name = SETTINGS_FIELDS.get(key, key)
            coerced = self._coerce_settings_field(name, value, errors)
            if name not in errors:
                updates[name] = coerced

        if errors:
            raise ValidationError("Invalid AI settings", details=errors)

        merged = replace(current, **updates, updated_at=utc_now())
        errors = self.provider_requirement_errors(merged)
        if errors:
            raise ValidationError("AI settings incomplete for the selected provider", details=errors)

        logger.debug(f"Validated settings update for user {current.user_id}: {sorted(updates)}")
        return merged

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------
    def _optional_id(self, data: Mapping[str, Any], *keys: str, errors: Dict[str, str]) -> Optional[str]:
        for key in keys:
            if key in data and data[key] is not None:
                value = data[key]
                if not isinstance(value, str) or not value.strip():
                    errors[keys[0]] = "Must be a non-empty string"
                    return None
                return value.strip()
        return None

    def validate_chat_request(self, data: Mapping[str, Any]) -> ChatRequest:
        """
        Build a ChatRequest from a raw payload (camelCase or snake_case keys).

        Raises:
            ValidationError: message missing/empty or an id is malformed
        """
        errors: Dict[str, str] = {}
        message = data.get("message")
        if not isinstance(message, str) or not message.strip():
            errors["message"] = "Message is required"

        project_id = self._optional_id(data, "projectId", "project_id", errors=errors)
        task_id = self._optional_id(data, "taskId", "task_id", errors=errors)
        chat_id = self._optional_id(data, "chatId", "chat_id", errors=errors)

        if errors:
            raise ValidationError("Invalid chat request", details=errors)
        return ChatRequest(message=message, project_id=project_id, task_id=task_id, chat_id=chat_id)

    def validate_task_description(self, project_id: Any, description: Any) -> None:
        errors: Dict[str, str] = {}
        if not isinstance(project_id, str) or not project_id.strip():
            errors["projectId"] = "Project id is required"
        if not isinstance(description, str) or not description.strip():
            errors["description"] = "Task description is required"
        if errors:
            raise ValidationError("Invalid task creation request", details=errors)

    def validate_analysis_request(self, project_id: Any) -> None:
        if not isinstance(project_id, str) or not project_id.strip():
            raise ValidationError("Invalid analysis request", details={"projectId": "Project id is required"})

    def validate_report_request(self, project_id: Any, report_type: Any, time_range: Any) -> None:
        """
        Check a report request; `project_id` may be None for a report over
        every project of the user.
        """
        errors: Dict[str, str] = {}
        if project_id is not None and (not isinstance(project_id, str) or not project_id.strip()):
            errors["projectId"] = "Must be a non-empty string"
        if report_type not in REPORT_TYPES:
            errors["reportType"] = f"Must be one of: {', '.join(REPORT_TYPES)}"
        if time_range not in TIME_RANGES:
            errors["timeRange"] = f"Must be one of: {', '.join(TIME_RANGES)}"
        if errors:
            raise ValidationError("Invalid report request", details=errors)
