"""Per-channel queued/saved/blocked state."""

from collections.abc import Iterable
from dataclasses import dataclass, field


def _clean_ids(ids: Iterable[str]) -> set[str]:
    """Return the stripped, non-blank ids as a set."""
    return {item_id.strip() for item_id in ids if item_id and item_id.strip()}


@dataclass
class ChannelState:
    """Decision state for one channel.

    The three id sets are persisted between runs; ``error_flag`` only lives for
    the current run and gates the playlist and cleanup steps.

    Attributes:
        channel_key: Stable identifier of the channel.
        queued: Ids that need fetching this run.
        saved: Ids confirmed present locally.
        blocked: Ids that failed with a non-retryable error.
        error_flag: Set when an unrecoverable I/O error occurred this run.
    """

    channel_key: str
    queued: set[str] = field(default_factory=set[str])
    saved: set[str] = field(default_factory=set[str])
    blocked: set[str] = field(default_factory=set[str])
    error_flag: bool = False

    def normalize(self) -> None:
        """Apply the persistence cleanup order in place.

        Blank ids are stripped first, then the set differences are applied in
        a fixed order so that blocked beats saved and saved beats queued.
        """
        self.queued = _clean_ids(self.queued)
        self.saved = _clean_ids(self.saved)
        self.blocked = _clean_ids(self.blocked)

        self.queued -= self.blocked
        self.queued -= self.saved
        self.saved -= self.blocked
        self.blocked -= self.saved

    def mark_saved(self, item_id: str) -> None:
        """Record an item as present locally."""
        self.queued.discard(item_id)
        self.blocked.discard(item_id)
        self.saved.add(item_id)

    def mark_blocked(self, item_id: str) -> None:
        """Record an item as permanently failed."""
        self.queued.discard(item_id)
        self.saved.discard(item_id)
        self.blocked.add(item_id)

    def is_disjoint(self) -> bool:
        """Return True if no id appears in more than one set."""
        return (
            self.queued.isdisjoint(self.saved)
            and self.queued.isdisjoint(self.blocked)
            and self.saved.isdisjoint(self.blocked)
        )
