"""Core business logic for mcnotify."""

from mcnotify.core.api import CurseForgeClient, ModrinthClient
from mcnotify.core.exceptions import (
    APIError,
    FetchTimeoutError,
    MCNotifyError,
    NotificationError,
    ProjectNotFoundError,
    RateLimitError,
    StoreError,
)
from mcnotify.core.manager import NotifyManager
from mcnotify.core.scheduler import Scheduler

__all__ = [
    "CurseForgeClient",
    "ModrinthClient",
    "NotifyManager",
    "Scheduler",
    "APIError",
    "FetchTimeoutError",
    "MCNotifyError",
    "NotificationError",
    "ProjectNotFoundError",
    "RateLimitError",
    "StoreError",
]
