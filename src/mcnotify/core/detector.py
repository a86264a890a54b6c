"""Version change detection."""

from enum import Enum

from mcnotify.core.models import LatestVersion, VersionState


class Decision(str, Enum):
    """What to do with a freshly fetched version."""

    SEED = "seed"  # first observation, record baseline silently
    REPAIR = "repair"  # stored version empty, overwrite silently
    UNCHANGED = "unchanged"
    CHANGED = "changed"
    FORCED = "forced"

    @property
    def notify(self) -> bool:
        """Whether a notification card must be sent."""
        return self in (Decision.CHANGED, Decision.FORCED)

    @property
    def write(self) -> bool:
        """Whether the stored version must be written."""
        return self is not Decision.UNCHANGED


def decide(
    state: VersionState | None,
    latest: LatestVersion,
    force: bool = False,
) -> Decision:
    """Classify a fetched version against the stored state.

    Only the version label takes part in the comparison.

    Args:
        state: Stored state, or None if the tuple was never observed
        latest: Latest version just fetched
        force: Notify regardless of the stored state

    Returns:
        Decision for the caller to act on
    """
    if force:
        return Decision.FORCED
    if state is None:
        return Decision.SEED
    if not state.last_version:
        return Decision.REPAIR
    if state.last_version == latest.version:
        return Decision.UNCHANGED
    return Decision.CHANGED
