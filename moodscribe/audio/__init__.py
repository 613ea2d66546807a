"""Audio capture and permission module."""

from .base import AbstractAudioSource
from .permissions import (
    AbstractPermissionProvider,
    StaticPermissionProvider,
    ConsolePermissionProvider,
    create_permission_provider,
)

__all__ = [
    'AbstractAudioSource',
    'AbstractPermissionProvider',
    'StaticPermissionProvider',
    'ConsolePermissionProvider',
    'create_permission_provider',
]
