from .cleanup_sweeper import CleanupSweeper
from .coordinator import ChannelSynchronizer
from .download_runner import DownloadRunner
from .playlist_writer import PlaylistWriter
from .reconciler import Reconciler

__all__ = [
    "ChannelSynchronizer",
    "CleanupSweeper",
    "DownloadRunner",
    "PlaylistWriter",
    "Reconciler",
]
