from .channel_config import ChannelConfig, base_channel_key
from .config import AppSettings
from .sync_policy import SyncPolicy

__all__ = [
    "AppSettings",
    "ChannelConfig",
    "SyncPolicy",
    "base_channel_key",
]
