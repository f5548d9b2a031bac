"""
Configuration helpers

Module-level access to one shared ConfigService.
"""

import logging
from pathlib import Path
from typing import Dict, Any, Optional

from projectmind.services.config_service import ConfigService

logger = logging.getLogger(__name__)

# Global config service instance
_config_service: Optional[ConfigService] = None


def get_config_service(config_path: Optional[Path] = None) -> ConfigService:
    """
    Get or create the global config service instance.

    Passing `config_path` replaces the current instance.
    """
    global _config_service
    if _config_service is None or config_path is not None:
        _config_service = ConfigService(config_path=config_path)
    return _config_service


def load_config() -> Dict[str, Any]:
    """Effective configuration: defaults, then the config file, then env."""
    return get_config_service().load()


def save_config(data: Dict[str, Any]) -> None:
    """Write configuration back to the config file."""
    service = get_config_service()
    if not service.save(data):
        logger.warning(f"Configuration could not be written to {service.config_path}")
