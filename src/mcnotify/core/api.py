"""Modrinth and CurseForge API clients."""

import re
from typing import Any, Protocol, Self

import httpx

from mcnotify import __version__
from mcnotify.core.exceptions import (
    APIError,
    FetchTimeoutError,
    ProjectNotFoundError,
    RateLimitError,
)
from mcnotify.core.models import (
    CurseForgeFile,
    CurseForgeMod,
    LatestVersion,
    ModrinthProject,
    ModrinthVersion,
    Platform,
    ProjectDetail,
)

LOADER_PATTERN = re.compile(r"forge|fabric|quilt|neoforge", re.IGNORECASE)
GAME_VERSION_PATTERN = re.compile(r"\d")


class VersionFetcher(Protocol):
    """Protocol for platform clients used by the check engine."""

    platform: Platform

    async def get_latest_version(self, project_id: str) -> LatestVersion | None:
        """Fetch the newest release of a project, or None if it has none."""
        ...

    async def get_project(self, project_id: str) -> ProjectDetail:
        """Fetch project detail for card rendering."""
        ...


class BaseClient:
    """Shared async HTTP plumbing for platform clients.

    No retries are made; a failed request surfaces as an APIError subclass
    and the caller decides what to do with it.
    """

    BASE_URL = ""
    DEFAULT_TIMEOUT = 15.0
    platform: Platform

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the client.

        Args:
            client: Optional httpx.AsyncClient for dependency injection.
                If provided, it must be pre-configured with base_url and headers.
                The client will not be automatically configured or closed.
            timeout: Request timeout in seconds; the request is aborted once
                it elapses
        """
        self._client = client
        self._owns_client = client is None
        self.timeout = timeout

    @property
    def _headers(self) -> dict[str, str]:
        """Default headers for API requests."""
        return {
            "User-Agent": f"mcnotify/{__version__}",
            "Accept": "application/json",
        }

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.BASE_URL,
                headers=self._headers,
                timeout=self.timeout,
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        if self._owns_client and self._client:
            await self._client.aclose()
            self._client = None

    def _handle_error_response(
        self, response: httpx.Response, project_id: str | None = None
    ) -> None:
        """Raise the matching exception for an error response.

        Args:
            response: HTTP response to check
            project_id: Project id for better error messages

        Raises:
            ProjectNotFoundError: For 404 responses
            RateLimitError: For 429 responses
            APIError: For other error responses
        """
        if response.status_code == 404:
            raise ProjectNotFoundError(project_id or str(response.url.path))

        if response.status_code == 429:
            retry_after_str = response.headers.get("Retry-After")
            retry_after = (
                int(retry_after_str)
                if retry_after_str and retry_after_str.isdigit()
                else None
            )
            raise RateLimitError(retry_after=retry_after)

        if response.status_code >= 400:
            raise APIError(
                f"API request failed: HTTP {response.status_code}",
                status_code=response.status_code,
            )

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        project_id: str | None = None,
    ) -> httpx.Response:
        """Make a single HTTP request.

        Args:
            method: HTTP method
            path: API endpoint path
            params: Query parameters
            project_id: Project id for better error messages

        Returns:
            httpx.Response object

        Raises:
            FetchTimeoutError: If the timeout elapsed
            ProjectNotFoundError: For 404 responses
            RateLimitError: For 429 responses
            APIError: For other error responses and transport failures
        """
        if self._client is None:
            msg = "Client not initialized. Use async with context manager."
            raise RuntimeError(msg)

        try:
            response = await self._client.request(
                method, path, params=params, timeout=self.timeout
            )
        except httpx.TimeoutException as e:
            raise FetchTimeoutError(path, self.timeout) from e
        except httpx.TransportError as e:
            raise APIError(f"Transport error: {e}") from e

        self._handle_error_response(response, project_id=project_id)
        return response

    async def _get_json(
        self,
        path: str,
        params: dict[str, str] | None = None,
        project_id: str | None = None,
    ) -> Any:
        response = await self._request("GET", path, params=params, project_id=project_id)
        try:
            return response.json()
        except ValueError as e:
            raise APIError(
                f"Invalid JSON response from {path}", status_code=response.status_code
            ) from e


class ModrinthClient(BaseClient):
    """Async client for Modrinth API v2."""

    BASE_URL = "https://api.modrinth.com/v2"
    platform = Platform.MODRINTH

    async def get_latest_version(self, project_id: str) -> LatestVersion | None:
        """Get the newest version of a project.

        Modrinth lists versions newest first; only the first entry is used.

        Args:
            project_id: Modrinth project id or slug

        Returns:
            LatestVersion, or None if the project has no versions
        """
        versions = await self._get_json(
            f"/project/{project_id}/version", project_id=project_id
        )
        if not isinstance(versions, list) or not versions:
            return None

        latest = ModrinthVersion.model_validate(versions[0])
        file = latest.files[0] if latest.files else None
        return LatestVersion(
            version_id=latest.id,
            version=latest.version_number or latest.name or latest.id,
            changelog=latest.changelog or "",
            downloads=latest.downloads,
            date_published=latest.date_published,
            release_type=latest.version_type,
            loaders=[str(v) for v in latest.loaders],
            game_versions=[str(v) for v in latest.game_versions],
            file_name=file.filename if file else "",
            file_size=file.size if file else 0,
        )

    async def get_project(self, project_id: str) -> ProjectDetail:
        """Get project detail.

        Args:
            project_id: Modrinth project id or slug

        Returns:
            ProjectDetail tagged with source "Modrinth"
        """
        data = await self._get_json(f"/project/{project_id}", project_id=project_id)
        project = ModrinthProject.model_validate(data)
        return ProjectDetail(
            id=project.id,
            slug=project.slug,
            title=project.title,
            description=project.description,
            downloads=project.downloads,
            icon_url=project.icon_url,
            url=f"https://modrinth.com/{project.project_type or 'mod'}/{project.slug}",
            source=Platform.MODRINTH.display_name,
        )


class CurseForgeClient(BaseClient):
    """Async client for CurseForge API v1.

    Without an API key requests go through a public mirror of the API.
    """

    BASE_URL = "https://api.curse.tools/v1/cf"
    OFFICIAL_BASE_URL = "https://api.curseforge.com/v1"
    platform = Platform.CURSEFORGE

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = BaseClient.DEFAULT_TIMEOUT,
        api_key: str | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            client: Optional pre-configured httpx.AsyncClient
            timeout: Request timeout in seconds
            api_key: CurseForge API key; switches to the official endpoint
        """
        super().__init__(client=client, timeout=timeout)
        self.api_key = api_key
        if api_key:
            self.BASE_URL = self.OFFICIAL_BASE_URL

    @property
    def _headers(self) -> dict[str, str]:
        headers = super()._headers
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    async def get_latest_version(self, project_id: str) -> LatestVersion | None:
        """Get the newest file of a mod.

        Args:
            project_id: Numeric CurseForge mod id

        Returns:
            LatestVersion, or None if the mod has no files
        """
        payload = await self._get_json(
            f"/mods/{project_id}/files",
            params={"index": "0", "pageSize": "1"},
            project_id=project_id,
        )
        files = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(files, list) or not files:
            return None

        latest = CurseForgeFile.model_validate(files[0])
        tags = [str(v) for v in latest.game_versions]
        return LatestVersion(
            version_id=str(latest.id),
            version=latest.display_name or latest.file_name or str(latest.id),
            changelog=latest.changelog or "",
            downloads=latest.download_count,
            date_published=latest.file_date,
            release_type=(
                str(latest.release_type) if latest.release_type is not None else None
            ),
            loaders=[v for v in tags if LOADER_PATTERN.search(v)],
            game_versions=[v for v in tags if GAME_VERSION_PATTERN.search(v)],
            file_name=latest.file_name or "",
            file_size=latest.file_length or 0,
        )

    async def get_project(self, project_id: str) -> ProjectDetail:
        """Get mod detail.

        Args:
            project_id: Numeric CurseForge mod id

        Returns:
            ProjectDetail tagged with source "CurseForge"
        """
        payload = await self._get_json(f"/mods/{project_id}", project_id=project_id)
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            raise ProjectNotFoundError(project_id)

        mod = CurseForgeMod.model_validate(data)
        return ProjectDetail(
            id=str(mod.id),
            slug=mod.slug,
            title=mod.name,
            description=mod.summary,
            downloads=mod.download_count,
            icon_url=(mod.logo.thumbnail_url or mod.logo.url) if mod.logo else None,
            url=mod.links.website_url if mod.links else None,
            source=Platform.CURSEFORGE.display_name,
        )
