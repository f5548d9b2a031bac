"""
Service Layer

Service classes for configuration and validation.
"""

from projectmind.services.config_service import ConfigService
from projectmind.services.validation_service import ValidationService

__all__ = [
    "ConfigService",
    "ValidationService",
]
