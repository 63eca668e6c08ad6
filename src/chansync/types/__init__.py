from .channel_state import ChannelState
from .download_response import DownloadResponse, DownloadStatus
from .io_result import Err, ErrorKind, IOResult, Ok
from .key_store_entry import KeyStoreEntry
from .video_record import CatalogItem, VideoRecord

__all__ = [
    "CatalogItem",
    "ChannelState",
    "DownloadResponse",
    "DownloadStatus",
    "Err",
    "ErrorKind",
    "IOResult",
    "KeyStoreEntry",
    "Ok",
    "VideoRecord",
]
