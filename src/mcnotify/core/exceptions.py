"""Exceptions for mcnotify."""

from pathlib import Path


class MCNotifyError(Exception):
    """Base exception for all mcnotify errors."""


class APIError(MCNotifyError):
    """General API error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Initialize APIError.

        Args:
            message: Error message
            status_code: HTTP status code if applicable
        """
        super().__init__(message)
        self.status_code = status_code


class ProjectNotFoundError(APIError):
    """Project does not exist on the platform."""

    def __init__(self, project_id: str) -> None:
        """Initialize ProjectNotFoundError.

        Args:
            project_id: Project id that was not found
        """
        super().__init__(f"Project not found: {project_id}", status_code=404)
        self.project_id = project_id


class RateLimitError(APIError):
    """Rate limit exceeded."""

    def __init__(self, retry_after: int | None = None) -> None:
        """Initialize RateLimitError.

        Args:
            retry_after: Seconds to wait before retrying
        """
        message = "Rate limit exceeded"
        if retry_after is not None:
            message += f", retry after {retry_after} seconds"
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class FetchTimeoutError(APIError):
    """Request was aborted because the timeout elapsed."""

    def __init__(self, url: str, timeout: float) -> None:
        """Initialize FetchTimeoutError.

        Args:
            url: URL of the aborted request
            timeout: Timeout in seconds that was exceeded
        """
        super().__init__(f"Request timed out after {timeout:g}s: {url}")
        self.url = url
        self.timeout = timeout


class NotificationError(MCNotifyError):
    """Rendering or delivering an update card failed."""

    def __init__(self, message: str, channel_id: str | None = None) -> None:
        """Initialize NotificationError.

        Args:
            message: Error message
            channel_id: Target channel of the failed notification
        """
        super().__init__(message)
        self.channel_id = channel_id


class StoreError(MCNotifyError):
    """Error reading/writing a persisted JSON file."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        """Initialize StoreError.

        Args:
            message: Error message
            path: Path to the file
        """
        super().__init__(message)
        self.path = path
