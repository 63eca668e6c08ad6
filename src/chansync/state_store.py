"""Persistence of per-channel synchronization state.

Each channel owns a state directory holding its queued, saved, and blocked id
lists, the cached catalog response from the last fetch, and an append-only
call log. Every operation returns an ``IOResult`` instead of raising, so the
synchronizer can decide per step whether a failure aborts the channel.
"""

from datetime import UTC, datetime
import logging

import aiofiles.os

from .exceptions import FileOperationError, StateStoreError
from .file_manager import FileManager
from .path_manager import ChannelStatePaths, PathManager
from .types import ChannelState, Err, ErrorKind, IOResult, Ok

logger = logging.getLogger(__name__)


def _err(kind: ErrorKind, message: str, channel_key: str, cause: Exception) -> Err:
    error = StateStoreError(
        message,
        channel_key=channel_key,
        file_path=getattr(cause, "file_path", None),
    )
    error.__cause__ = cause
    return Err(kind, error)


class StateStore:
    """Load and persist the queued/saved/blocked sets of each channel.

    Attributes:
        _paths: Resolves the state files of a channel.
        _file_manager: Performs the file reads and atomic writes.
    """

    def __init__(self, path_manager: PathManager, file_manager: FileManager):
        self._paths = path_manager
        self._file_manager = file_manager

    async def _state_paths(self, channel_key: str) -> ChannelStatePaths:
        try:
            return await self._paths.channel_state_dir(channel_key)
        except ValueError as e:
            raise FileOperationError(str(e)) from e

    async def load(self, channel_key: str) -> IOResult[ChannelState]:
        """Load the persisted state of a channel.

        Missing list files are created empty, so the first run of a channel
        starts from an empty state instead of failing.

        Args:
            channel_key: Unique identifier for the channel.

        Returns:
            Ok with the normalized ChannelState, or a FATAL Err if a list
            cannot be read or created.
        """
        try:
            paths = await self._state_paths(channel_key)
            lists: list[list[str]] = []
            for list_file in paths.id_list_files:
                if not await self._file_manager.file_exists(list_file):
                    await self._file_manager.write_lines_atomic(list_file, [])
                lists.append(await self._file_manager.read_lines(list_file))
        except FileOperationError as e:
            return _err(
                ErrorKind.FATAL, "Failed to load channel state.", channel_key, e
            )

        queued, saved, blocked = lists
        state = ChannelState(
            channel_key=channel_key,
            queued=set(queued),
            saved=set(saved),
            blocked=set(blocked),
        )
        loaded_count = len(state.queued) + len(state.saved) + len(state.blocked)
        state.normalize()
        if len(state.queued) + len(state.saved) + len(state.blocked) != loaded_count:
            logger.warning(
                "Persisted channel state overlapped; normalized on load.",
                extra={"channel_key": channel_key},
            )

        logger.debug(
            "Channel state loaded.",
            extra={
                "channel_key": channel_key,
                "queued": len(state.queued),
                "saved": len(state.saved),
                "blocked": len(state.blocked),
            },
        )
        return Ok(state)

    async def read_saved_ids(self, channel_key: str) -> IOResult[set[str]]:
        """Read the saved ids of a channel without creating any file.

        Used to inspect sibling channels that may not have run yet.
        """
        try:
            paths = self._paths.channel_state_paths(channel_key)
            lines = await self._file_manager.read_lines(paths.save_file)
        except (ValueError, FileOperationError) as e:
            return _err(
                ErrorKind.NON_FATAL, "Failed to read saved ids.", channel_key, e
            )
        return Ok(set(lines))

    async def save(self, state: ChannelState) -> IOResult[None]:
        """Normalize a channel state and atomically rewrite its three lists.

        The state is normalized in place before writing, so callers observe
        exactly what was persisted. Ids are written sorted, one per line.

        Args:
            state: The state to persist.

        Returns:
            Ok(None), or a FATAL Err if any list cannot be written. A failed
            write leaves that file's previous version intact.
        """
        state.normalize()
        try:
            paths = await self._state_paths(state.channel_key)
            for list_file, ids in zip(
                paths.id_list_files,
                (state.queued, state.saved, state.blocked),
                strict=True,
            ):
                await self._file_manager.write_lines_atomic(list_file, sorted(ids))
        except FileOperationError as e:
            return _err(
                ErrorKind.FATAL, "Failed to save channel state.", state.channel_key, e
            )
        return Ok(None)

    async def cleanup_data(
        self, channel_key: str, prevent_channel_fetch: bool
    ) -> IOResult[int]:
        """Delete the cached catalog responses of a channel.

        Does nothing when ``prevent_channel_fetch`` is set, since the cache is
        then the only catalog source. The id lists are never touched.

        Returns:
            Ok with the number of files deleted, or a NON_FATAL Err.
        """
        if prevent_channel_fetch:
            return Ok(0)

        deleted = 0
        try:
            paths = await self._state_paths(channel_key)
            data_prefix = paths.data_file.stem
            for file_path in await self._file_manager.list_files(paths.state_dir):
                if file_path.name.startswith(data_prefix):
                    await self._file_manager.delete_file(file_path)
                    deleted += 1
        except (FileOperationError, FileNotFoundError) as e:
            return _err(
                ErrorKind.NON_FATAL,
                "Failed to clean up cached channel data.",
                channel_key,
                e,
            )
        if deleted:
            logger.debug(
                "Cached channel data deleted.",
                extra={"channel_key": channel_key, "deleted": deleted},
            )
        return Ok(deleted)

    async def reset(self, channel_key: str) -> IOResult[None]:
        """Delete every state file of a channel.

        The next load starts from an empty state, so every catalog item is
        reconciled against the file system from scratch.
        """
        try:
            paths = self._paths.channel_state_paths(channel_key)
            for file_path in await self._file_manager.list_files(paths.state_dir):
                await self._file_manager.delete_file(file_path)
            if await aiofiles.os.path.isdir(paths.state_dir):
                await aiofiles.os.rmdir(paths.state_dir)
        except (ValueError, FileOperationError, OSError) as e:
            return _err(
                ErrorKind.FATAL, "Failed to reset channel state.", channel_key, e
            )
        logger.info("Channel state reset.", extra={"channel_key": channel_key})
        return Ok(None)

    async def append_call_log(self, channel_key: str, entry: str) -> IOResult[None]:
        """Append a timestamped line to the channel's call log."""
        timestamp = datetime.now(UTC).isoformat(timespec="seconds")
        try:
            paths = await self._state_paths(channel_key)
            await self._file_manager.append_line(
                paths.call_log_file, f"{timestamp} {entry}"
            )
        except FileOperationError as e:
            return _err(
                ErrorKind.NON_FATAL, "Failed to append to call log.", channel_key, e
            )
        return Ok(None)

    async def read_catalog_cache(self, channel_key: str) -> IOResult[str | None]:
        """Return the cached catalog response, or None if nothing is cached."""
        try:
            paths = await self._state_paths(channel_key)
            return Ok(await self._file_manager.read_text(paths.data_file))
        except FileOperationError as e:
            return _err(
                ErrorKind.NON_FATAL, "Failed to read cached catalog.", channel_key, e
            )

    async def write_catalog_cache(
        self, channel_key: str, content: str
    ) -> IOResult[None]:
        """Atomically replace the cached catalog response."""
        try:
            paths = await self._state_paths(channel_key)
            await self._file_manager.write_text_atomic(paths.data_file, content)
        except FileOperationError as e:
            return _err(
                ErrorKind.NON_FATAL, "Failed to write cached catalog.", channel_key, e
            )
        return Ok(None)
