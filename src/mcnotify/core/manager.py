"""Subscription checking orchestration."""

import logging
import time
from collections.abc import Callable
from typing import Self

from mcnotify.core.api import (
    BaseClient,
    CurseForgeClient,
    ModrinthClient,
    VersionFetcher,
)
from mcnotify.core.config import Settings, resolve_data_path
from mcnotify.core.detector import Decision, decide
from mcnotify.core.models import (
    ActiveSubscription,
    CheckOneResult,
    CheckStats,
    LatestVersion,
    NotifyConfig,
    Platform,
)
from mcnotify.core.notifier import CardRenderer, ChannelRouter, Delivery, Notifier
from mcnotify.core.store import ConfigStore, StateStore

logger = logging.getLogger(__name__)


class NotifyManager:
    """Checks subscriptions for new versions and triggers notifications.

    Owns the config and state stores, the platform clients and the
    in-memory last-check timestamps used to gate automatic checks.
    """

    def __init__(
        self,
        settings: Settings,
        config_store: ConfigStore | None = None,
        state_store: StateStore | None = None,
        fetchers: dict[Platform, VersionFetcher] | None = None,
        delivery: Delivery | None = None,
        renderers: dict[Platform, CardRenderer] | None = None,
        notifier: Notifier | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize NotifyManager.

        Args:
            settings: Plugin settings
            config_store: Optional config store for dependency injection
            state_store: Optional state store for dependency injection
            fetchers: Optional platform clients for dependency injection
            delivery: Delivery collaborator (an empty ChannelRouter by default)
            renderers: Card renderer per platform
            notifier: Optional notifier for dependency injection
            clock: Wall-clock source in seconds
        """
        self._settings = settings
        self._config_store = config_store or ConfigStore(
            resolve_data_path(settings.config_file),
            initial=NotifyConfig(enabled=settings.enabled),
            default_interval=settings.interval,
        )
        self._state_store = state_store or StateStore(
            resolve_data_path(settings.state_file)
        )
        self._fetchers = fetchers
        self._owned_clients: list[BaseClient] = []
        self._delivery = delivery or ChannelRouter()
        self._renderers = renderers
        self._notifier = notifier
        self._owns_notifier = notifier is None
        self._clock = clock
        self._last_check: dict[str, float] = {}

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        if self._fetchers is None:
            timeout = self._settings.timeout_seconds
            modrinth = ModrinthClient(timeout=timeout)
            curseforge = CurseForgeClient(
                timeout=timeout, api_key=self._settings.curseforge_api_key
            )
            for client in (modrinth, curseforge):
                await client.__aenter__()
                self._owned_clients.append(client)
            self._fetchers = {
                Platform.MODRINTH: modrinth,
                Platform.CURSEFORGE: curseforge,
            }
        if self._notifier is None:
            self._notifier = Notifier(
                self._fetchers, self._delivery, renderers=self._renderers
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        # Cleanup each client independently so all are attempted
        for client in self._owned_clients:
            try:
                await client.__aexit__(exc_type, exc_val, exc_tb)
            except Exception as e:
                logger.error("Failed to cleanup %s client: %s", client.platform, e)
        if self._owned_clients:
            self._owned_clients = []
            self._fetchers = None
        if self._owns_notifier:
            self._notifier = None

    @property
    def settings(self) -> Settings:
        """Plugin settings."""
        return self._settings

    @property
    def config_store(self) -> ConfigStore:
        """Durable subscription config."""
        return self._config_store

    @property
    def state_store(self) -> StateStore:
        """Durable last-seen versions."""
        return self._state_store

    @property
    def delivery(self) -> Delivery:
        """Delivery collaborator."""
        return self._delivery

    def last_checked(self, sub: ActiveSubscription) -> float | None:
        """Wall-clock time of the last automatic check attempt, if any."""
        return self._last_check.get(sub.key)

    def is_eligible(self, sub: ActiveSubscription, now: float) -> bool:
        """Whether the subscription's interval has elapsed since its last check."""
        last = self._last_check.get(sub.key)
        if last is None:
            return True
        return (now - last) * 1000 >= sub.interval

    async def fetch_latest(self, sub: ActiveSubscription) -> LatestVersion | None:
        """Fetch the latest version record for a subscription."""
        if self._fetchers is None:
            msg = "Clients not initialized. Use async context manager."
            raise RuntimeError(msg)
        return await self._fetchers[sub.platform].get_latest_version(sub.project_id)

    async def _apply(
        self, sub: ActiveSubscription, latest: LatestVersion, force: bool
    ) -> Decision:
        """Compare, notify and record the new version.

        A notification failure propagates before the state is touched, so
        the same version is offered again on the next check.
        """
        if self._notifier is None:
            msg = "Notifier not initialized. Use async context manager."
            raise RuntimeError(msg)

        store = self._state_store
        state = await store.get(sub.channel_id, sub.platform, sub.project_id)
        decision = decide(state, latest, force=force)
        logger.debug(
            "%s@%s: %s (%s)", sub.label, sub.channel_id, decision.value, latest.version
        )
        key = (sub.channel_id, sub.platform, sub.project_id)

        if decision is Decision.SEED:
            await store.create(*key, latest.version)
            return decision

        if state is None:
            await store.create(*key, latest.version)
        if decision.notify:
            await self._notifier.send_update(sub, latest)
        if decision.write:
            await store.update(*key, latest.version)
        return decision

    async def check_once(
        self, channel_id: str | None = None, force: bool = False
    ) -> CheckStats | None:
        """Run one checking pass over active subscriptions.

        Subscriptions are processed one after another. Each one is checked
        only if its interval has elapsed, unless force is set. The last-check
        time is stamped before fetching so failures also consume the window.

        Args:
            channel_id: Restrict the pass to one channel
            force: Ignore the per-subscription interval

        Returns:
            CheckStats, or None if automatic checks are globally disabled
        """
        if not await self._config_store.is_enabled():
            return None

        stats = CheckStats()
        for sub in await self._config_store.active_subscriptions(channel_id):
            try:
                now = self._clock()
                if not force and not self.is_eligible(sub, now):
                    stats.skipped += 1
                    continue
                self._last_check[sub.key] = now
                stats.checked += 1

                latest = await self.fetch_latest(sub)
                if latest is None:
                    stats.failed += 1
                    continue

                decision = await self._apply(sub, latest, force=False)
                if decision is Decision.CHANGED:
                    stats.updated += 1
                else:
                    stats.no_change += 1
            except Exception as e:
                logger.warning("Check failed (%s): %s", sub.label, e)
                stats.failed += 1
        return stats

    async def check_one(
        self, sub: ActiveSubscription, force: bool = False
    ) -> CheckOneResult:
        """Check a single subscription on demand, bypassing the interval gate.

        Args:
            sub: Subscription to check
            force: Send the latest card even if the version is unchanged

        Returns:
            CheckOneResult telling whether a card was sent
        """
        latest = await self.fetch_latest(sub)
        if latest is None:
            return CheckOneResult()

        decision = await self._apply(sub, latest, force=force)
        if decision.notify:
            return CheckOneResult(sent=True, updated=True)
        return CheckOneResult()
