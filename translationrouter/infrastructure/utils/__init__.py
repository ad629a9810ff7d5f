"""Infrastructure utilities."""

from translationrouter.infrastructure.utils.clock import SYSTEM_CLOCK, Clock
from translationrouter.infrastructure.utils.credentials import (
    EnvironmentCredentialResolver,
    StaticCredentialResolver,
)

__all__ = [
    "Clock",
    "SYSTEM_CLOCK",
    "EnvironmentCredentialResolver",
    "StaticCredentialResolver",
]
