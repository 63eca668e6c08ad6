"""Helpers for resolving the paths of persisted application data."""

from dataclasses import dataclass
import logging
from pathlib import Path

import aiofiles.os

from .exceptions import FileOperationError

logger = logging.getLogger(__name__)

LIST_FILE_FORMAT = "txt"
DATA_FILE_FORMAT = "json"


@dataclass(frozen=True, slots=True)
class ChannelStatePaths:
    """Files backing the persisted state of one channel.

    Attributes:
        state_dir: Directory holding every file below.
        queue_file: Ids queued for download.
        save_file: Ids confirmed saved.
        blocked_file: Ids blocked after a permanent failure.
        data_file: Cached catalog response.
        call_log_file: Append-only record of catalog fetches.
    """

    state_dir: Path
    queue_file: Path
    save_file: Path
    blocked_file: Path
    data_file: Path
    call_log_file: Path

    @property
    def id_list_files(self) -> tuple[Path, Path, Path]:
        """Return the queue, save, and blocked files, in that order."""
        return (self.queue_file, self.save_file, self.blocked_file)


class PathManager:
    """Centralized management of file system paths for persisted state.

    Provides a single source of truth for where channel state lists, cached
    catalog data, and the key store live under the data directory.

    Attributes:
        _base_data_dir: Root directory for all application data.
    """

    def __init__(self, base_data_dir: Path):
        self._base_data_dir = Path(base_data_dir).expanduser().resolve()

    @property
    def base_data_dir(self) -> Path:
        """Return the root directory for all application data."""
        return self._base_data_dir

    @property
    def base_channel_dir(self) -> Path:
        """Return the directory holding one state directory per channel."""
        return self._base_data_dir / "channel"

    @property
    def key_store_file(self) -> Path:
        """Return the path of the key store document."""
        return self._base_data_dir / f"key_store.{DATA_FILE_FORMAT}"

    @property
    def key_store_backup_file(self) -> Path:
        """Return the path of the key store backup document."""
        return self._base_data_dir / f"key_store-bak.{DATA_FILE_FORMAT}"

    def channel_state_paths(self, channel_key: str) -> ChannelStatePaths:
        """Return the state file paths for a channel without touching the disk.

        Args:
            channel_key: Unique identifier for the channel.

        Returns:
            The channel's state file paths.

        Raises:
            ValueError: If channel_key is empty, whitespace-only, or not a plain name.
        """
        if not channel_key or not channel_key.strip():
            raise ValueError("channel_key cannot be empty or whitespace-only")
        if channel_key in (".", "..") or Path(channel_key).name != channel_key:
            raise ValueError(f"channel_key must be a plain name: {channel_key!r}")

        state_dir = self.base_channel_dir / channel_key
        return ChannelStatePaths(
            state_dir=state_dir,
            queue_file=state_dir / f"{channel_key}-queue.{LIST_FILE_FORMAT}",
            save_file=state_dir / f"{channel_key}-save.{LIST_FILE_FORMAT}",
            blocked_file=state_dir / f"{channel_key}-blocked.{LIST_FILE_FORMAT}",
            data_file=state_dir / f"{channel_key}-data.{DATA_FILE_FORMAT}",
            call_log_file=state_dir / f"{channel_key}-callLog.{LIST_FILE_FORMAT}",
        )

    async def channel_state_dir(self, channel_key: str) -> ChannelStatePaths:
        """Return the state file paths for a channel, creating its directory.

        Args:
            channel_key: Unique identifier for the channel.

        Returns:
            The channel's state file paths.

        Raises:
            ValueError: If channel_key is empty, whitespace-only, or not a plain name.
            FileOperationError: If the directory cannot be created.
        """
        paths = self.channel_state_paths(channel_key)
        try:
            await aiofiles.os.makedirs(paths.state_dir, exist_ok=True)
        except OSError as e:
            raise FileOperationError(
                "Failed to create channel state directory.",
                file_path=str(paths.state_dir),
            ) from e
        return paths
