"""Delete files that no longer belong to any saved item of a channel."""

import logging
from pathlib import Path

from ..config import ChannelConfig, SyncPolicy
from ..exceptions import DeletionError, FileOperationError
from ..file_manager import FileManager
from ..key_store import KeyStore
from ..state_store import StateStore
from ..types import ChannelState, Err, ErrorKind, IOResult, Ok, VideoRecord
from .types import SyncStats

logger = logging.getLogger(__name__)


class CleanupSweeper:
    """Remove untracked files from channel output directories.

    Channels split into sub-channels (``Parent``, ``Parent_P01``, ...) may
    share an output directory, so the files to keep are gathered from every
    sibling before anything is deleted.

    Attributes:
        _file_manager: Lists, resolves, and deletes files.
        _state_store: Reads the saved ids of sibling channels.
        _key_store: Maps saved ids to their files.
    """

    def __init__(
        self,
        file_manager: FileManager,
        state_store: StateStore,
        key_store: KeyStore,
    ):
        self._file_manager = file_manager
        self._state_store = state_store
        self._key_store = key_store

    async def _delete(
        self,
        file_path: Path,
        policy: SyncPolicy,
        stats: SyncStats,
        log_params: dict[str, str],
    ) -> bool:
        """Delete one file, honoring prevent_deletion. Failures are logged."""
        params = {**log_params, "file_path": str(file_path)}
        if policy.prevent_deletion:
            logger.info("Would have deleted file.", extra=params)
            stats.would_delete += 1
            return False
        try:
            await self._file_manager.delete_file(file_path)
        except (FileNotFoundError, FileOperationError) as e:
            logger.error("Failed to delete file.", extra=params, exc_info=e)
            stats.deletion_failures += 1
            return False
        logger.info("Deleted file.", extra=params)
        stats.deleted += 1
        return True

    async def delete_records(
        self,
        channel_key: str,
        records: list[VideoRecord],
        policy: SyncPolicy,
        stats: SyncStats,
    ) -> int:
        """Delete the files of records a filter rule selected for deletion.

        Returns:
            The number of files deleted.
        """
        log_params = {"channel_key": channel_key, "reason": "filtered"}
        deleted = 0
        for record in records:
            if not await self._file_manager.file_exists(record.output_path):
                continue
            if await self._delete(record.output_path, policy, stats, log_params):
                deleted += 1
        return deleted

    async def _paths_to_keep(
        self,
        channel_key: str,
        records: list[VideoRecord],
        state: ChannelState,
        siblings: dict[str, ChannelConfig],
    ) -> IOResult[set[Path]]:
        keep = self._key_store.channel(channel_key).saved_paths(state.saved)
        keep.update(r.output_path for r in records if r.id in state.saved)

        for sibling_key, sibling in siblings.items():
            if sibling.playlist_file is not None:
                keep.add(sibling.playlist_file)
            if sibling_key == channel_key:
                continue
            saved_result = await self._state_store.read_saved_ids(sibling_key)
            if isinstance(saved_result, Err):
                return saved_result
            sibling_view = self._key_store.channel(sibling_key)
            keep.update(sibling_view.saved_paths(saved_result.value))

        return Ok({await self._file_manager.canonical_path(p) for p in keep})

    async def sweep(
        self,
        channel_key: str,
        channel: ChannelConfig,
        records: list[VideoRecord],
        state: ChannelState,
        siblings: dict[str, ChannelConfig],
        policy: SyncPolicy,
        stats: SyncStats,
    ) -> IOResult[int]:
        """Delete every file in the output directory no sibling has saved.

        Only regular files directly inside the output directory are
        considered. Does nothing unless ``keep_clean`` is set, and nothing
        after an error this run. A failed deletion is logged and the sweep
        continues.

        Args:
            channel_key: The channel being processed.
            channel: The channel configuration.
            records: This run's records; their paths reflect renames.
            state: This channel's state.
            siblings: Configurations of every channel sharing this channel's
                base key, this one included.
            policy: Run policy flags.
            stats: Counters to update.

        Returns:
            Ok with the number of files deleted, or a NON_FATAL Err if the set
            of files to keep or the directory listing could not be built.
        """
        if not channel.keep_clean:
            return Ok(0)
        log_params = {"channel_key": channel_key, "output_dir": str(channel.output_dir)}
        if state.error_flag:
            logger.warning(
                "Skipping cleanup after an error this run.", extra=log_params
            )
            return Ok(0)

        keep_result = await self._paths_to_keep(channel_key, records, state, siblings)
        if isinstance(keep_result, Err):
            logger.error(
                "Cannot determine files to keep; skipping cleanup.",
                extra=log_params,
                exc_info=keep_result.error,
            )
            return keep_result
        keep = keep_result.value

        try:
            files = await self._file_manager.list_files(channel.output_dir)
        except FileOperationError as e:
            error = DeletionError(
                "Failed to list channel output directory.",
                channel_key=channel_key,
                file_path=str(channel.output_dir),
            )
            error.__cause__ = e
            return Err(ErrorKind.NON_FATAL, error)

        deleted = 0
        sweep_params = {**log_params, "reason": "not a saved item"}
        for file_path in files:
            if await self._file_manager.canonical_path(file_path) in keep:
                continue
            if await self._delete(file_path, policy, stats, sweep_params):
                deleted += 1

        logger.debug("Cleanup finished.", extra={**log_params, "deleted": deleted})
        return Ok(deleted)
