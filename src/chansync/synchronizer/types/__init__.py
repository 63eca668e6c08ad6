from .channel_sync_result import ChannelSyncResult
from .phase_result import PhaseResult
from .sync_stats import SyncStats

__all__ = [
    "ChannelSyncResult",
    "PhaseResult",
    "SyncStats",
]
