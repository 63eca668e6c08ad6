"""Counters accumulated over a run."""

from dataclasses import asdict, dataclass, fields
from typing import Any


@dataclass
class SyncStats:
    """What a run did, summed over channels.

    Dry-run counters (``would_*``) count actions a ``prevent_*`` flag
    suppressed.
    """

    saved_in_place: int = 0
    renamed: int = 0
    rename_failures: int = 0
    would_rename: int = 0
    queued: int = 0
    blocked_skipped: int = 0
    downloaded: int = 0
    download_failures: int = 0
    download_errors: int = 0
    would_download: int = 0
    filtered: int = 0
    deleted: int = 0
    deletion_failures: int = 0
    would_delete: int = 0
    playlists_updated: int = 0

    def merge(self, other: "SyncStats") -> None:
        """Add another stats object's counters to this one."""
        for stat_field in fields(self):
            setattr(
                self,
                stat_field.name,
                getattr(self, stat_field.name) + getattr(other, stat_field.name),
            )

    def summary_dict(self) -> dict[str, Any]:
        """Return the non-zero counters, for logging."""
        return {key: value for key, value in asdict(self).items() if value}
