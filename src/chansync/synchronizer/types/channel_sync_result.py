"""Results of synchronizing one channel."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ...exceptions import ChansyncError
from .phase_result import PhaseResult
from .sync_stats import SyncStats


def _not_run() -> PhaseResult:
    return PhaseResult(success=False, skipped=True)


@dataclass
class ChannelSyncResult:
    """Comprehensive results from ChannelSynchronizer.sync_channel().

    Attributes:
        channel_key: The channel that was processed.
        start_time: When processing began.
        total_duration_seconds: Total time for all phases.
        stats: Counters for this channel.
        fetch_result: Results from the catalog fetch phase.
        reconcile_result: Results from the reconcile phase.
        download_result: Results from the download phase.
        playlist_result: Results from the playlist phase.
        cleanup_result: Results from the cleanup phase.
        fatal_error: The error that aborted the channel, if any.
    """

    channel_key: str
    start_time: datetime
    total_duration_seconds: float = 0.0
    stats: SyncStats = field(default_factory=SyncStats)

    fetch_result: PhaseResult = field(default_factory=_not_run)
    reconcile_result: PhaseResult = field(default_factory=_not_run)
    download_result: PhaseResult = field(default_factory=_not_run)
    playlist_result: PhaseResult = field(default_factory=_not_run)
    cleanup_result: PhaseResult = field(default_factory=_not_run)

    fatal_error: ChansyncError | None = None

    @property
    def is_fatal(self) -> bool:
        """True if the channel was aborted by a fatal error."""
        return self.fatal_error is not None

    @property
    def all_errors(self) -> list[ChansyncError]:
        """All errors from all phases, fatal error first."""
        errors: list[ChansyncError] = []
        if self.fatal_error:
            errors.append(self.fatal_error)
        for phase in (
            self.fetch_result,
            self.reconcile_result,
            self.download_result,
            self.playlist_result,
            self.cleanup_result,
        ):
            errors.extend(e for e in phase.errors if e is not self.fatal_error)
        return errors

    def summary_dict(self) -> dict[str, Any]:
        """Return a dictionary summary suitable for logging."""
        return {
            "channel_key": self.channel_key,
            "success": not self.is_fatal,
            "total_duration_seconds": round(self.total_duration_seconds, 3),
            "stats": self.stats.summary_dict(),
            "error_count": len(self.all_errors),
            "fatal_error": str(self.fatal_error) if self.fatal_error else None,
        }
