"""Configuration infrastructure module."""

from translationrouter.domain.models.system_error import ConfigurationError
from translationrouter.infrastructure.config.file_loader import ConfigurationFileLoader
from translationrouter.infrastructure.config.settings import RouterSettings

__all__ = [
    "RouterSettings",
    "ConfigurationFileLoader",
    "ConfigurationError",
]
