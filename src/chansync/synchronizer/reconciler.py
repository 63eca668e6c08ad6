"""Partition a channel's catalog into saved, queued, and blocked items.

The reconciler walks the catalog in order and decides, for each item, whether
its file is already where it is expected, whether an older copy can be moved
into place, whether it stays blocked, or whether it must be downloaded.
"""

from collections.abc import Iterator
import logging
from pathlib import Path

from ..config import ChannelConfig, SyncPolicy
from ..exceptions import FileOperationError, SyncError
from ..file_manager import FileManager
from ..key_store import ChannelKeyStore, KeyStore
from ..naming import formats_compatible, get_format, title_key
from ..types import ChannelState, Err, ErrorKind, IOResult, Ok, VideoRecord
from .types import SyncStats

logger = logging.getLogger(__name__)


class _OutputDirIndex:
    """Snapshot of the files in an output directory, kept current across moves."""

    def __init__(self, files: list[Path]):
        self._files = sorted(files)

    def move(self, source: Path, dest: Path) -> None:
        self._files = sorted({*(f for f in self._files if f != source), dest})

    def __iter__(self) -> Iterator[Path]:
        return iter(self._files)


class _Claims:
    """Files already spoken for during one reconciliation pass.

    A file is reserved for a catalog item when it sits at that item's expected
    path or at its key store path; claimed files were adopted earlier in the
    pass. Neither kind may be taken over by another item's rename.
    """

    def __init__(self, reserved: dict[Path, str]):
        self._reserved = reserved
        self._claimed: set[Path] = set()

    def claim(self, path: Path) -> None:
        self._claimed.add(path)

    def available(self, path: Path, item_id: str) -> bool:
        if path in self._claimed:
            return False
        return self._reserved.get(path, item_id) == item_id


class Reconciler:
    """Compute the queued/saved/blocked partition of a channel's catalog.

    Attributes:
        _file_manager: File system access for existence checks and moves.
        _key_store: Last known locations of saved items.
    """

    def __init__(self, file_manager: FileManager, key_store: KeyStore):
        self._file_manager = file_manager
        self._key_store = key_store

    async def _reserve_owned_files(
        self, records: list[VideoRecord], key_view: ChannelKeyStore
    ) -> _Claims:
        """Reserve every file a catalog item already owns, before any rename."""
        reserved: dict[Path, str] = {}
        for record in records:
            if await self._file_manager.is_exact_file(record.output_path):
                reserved.setdefault(record.output_path, record.id)
        for record in records:
            entry = key_view.get(record.id)
            if entry is not None and await self._file_manager.file_exists(
                entry.local_path
            ):
                reserved.setdefault(entry.local_path, record.id)
        return _Claims(reserved)

    async def _find_by_title(
        self,
        record: VideoRecord,
        index: _OutputDirIndex,
        claimed: _Claims,
        channel_key: str,
    ) -> Path | None:
        """Scan the output directory for a non-empty file matching the title key."""
        expected = record.output_path
        expected_key = title_key(expected.name)
        candidates: list[Path] = []
        for candidate in index:
            if not claimed.available(candidate, record.id):
                continue
            if title_key(candidate.name) != expected_key:
                continue
            if not formats_compatible(candidate.name, expected.name):
                continue
            if await self._file_manager.file_size(candidate) <= 0:
                continue
            candidates.append(candidate)

        if len(candidates) > 1:
            logger.warning(
                "Several existing files match item title; using the first.",
                extra={
                    "channel_key": channel_key,
                    "item_id": record.id,
                    "expected_path": str(expected),
                    "candidates": [str(c) for c in candidates],
                },
            )
        return candidates[0] if candidates else None

    async def _find_existing(
        self,
        record: VideoRecord,
        key_view: ChannelKeyStore,
        index: _OutputDirIndex,
        claimed: _Claims,
    ) -> Path | None:
        """Locate an existing copy of an item that is not at its expected path."""
        entry = key_view.get(record.id)
        if (
            entry is not None
            and claimed.available(entry.local_path, record.id)
            and await self._file_manager.file_exists(entry.local_path)
        ):
            return entry.local_path
        return await self._find_by_title(record, index, claimed, key_view.channel_key)

    async def _adopt_existing(
        self,
        record: VideoRecord,
        old_path: Path,
        index: _OutputDirIndex,
        policy: SyncPolicy,
        stats: SyncStats,
        channel_key: str,
    ) -> None:
        """Point a record at an existing file, moving it to its new name if allowed."""
        target = record.output_dir / f"{record.title}.{get_format(old_path.name)}"
        log_params = {
            "channel_key": channel_key,
            "item_id": record.id,
            "old_path": str(old_path),
            "new_path": str(target),
            "reason": "title changed",
        }

        if old_path == target:
            record.update_output(old_path)
            return

        if policy.prevent_renaming:
            logger.info("Would have renamed file.", extra=log_params)
            stats.would_rename += 1
            record.update_output(old_path)
            return

        try:
            await self._file_manager.move_file(old_path, target)
        except FileExistsError:
            logger.warning(
                "Rename target already exists; keeping file at its old path.",
                extra=log_params,
            )
            stats.rename_failures += 1
            record.update_output(old_path)
            return
        except FileOperationError as e:
            logger.error(
                "Failed to rename file; keeping it at its old path.",
                extra=log_params,
                exc_info=e,
            )
            stats.rename_failures += 1
            record.update_output(old_path)
            return

        logger.info("Renamed file.", extra=log_params)
        stats.renamed += 1
        index.move(old_path, target)
        record.update_output(target)

    async def reconcile(
        self,
        channel_key: str,
        channel: ChannelConfig,
        records: list[VideoRecord],
        state: ChannelState,
        policy: SyncPolicy,
        stats: SyncStats,
    ) -> IOResult[None]:
        """Reconcile a catalog against the file system and the previous state.

        The queue is rebuilt from scratch. Items whose files exist (at the
        expected path, a key store path, or a matching name in the output
        directory) become saved; blocked items stay blocked unless failures are
        being retried; everything else is queued. Saved ids that are no longer
        in the catalog are left untouched.

        Args:
            channel_key: The channel being processed.
            channel: The channel configuration.
            records: Catalog records in catalog order; output paths are
                updated in place to where each file actually is.
            state: The loaded channel state, updated in place.
            policy: Run policy flags.
            stats: Counters to update.

        Returns:
            Ok(None), or a FATAL Err if the output directory cannot be listed.
        """
        state.queued.clear()
        if policy.retry_previous_failures and state.blocked:
            logger.info(
                "Retrying previously blocked items.",
                extra={"channel_key": channel_key, "blocked": len(state.blocked)},
            )
            state.blocked.clear()

        try:
            index = _OutputDirIndex(
                await self._file_manager.list_files(channel.output_dir)
            )
        except FileOperationError as e:
            error = SyncError(
                "Failed to list channel output directory.",
                channel_key=channel_key,
                file_path=str(channel.output_dir),
            )
            error.__cause__ = e
            return Err(ErrorKind.FATAL, error)

        key_view = self._key_store.channel(channel_key)
        claimed = await self._reserve_owned_files(records, key_view)
        expected_owner: dict[str, str] = {}

        for record in records:
            state.saved.discard(record.id)
            expected_key = str(record.output_path).casefold()
            owner = expected_owner.setdefault(expected_key, record.id)
            if owner != record.id:
                logger.warning(
                    "Two items resolve to the same file name.",
                    extra={
                        "channel_key": channel_key,
                        "item_id": record.id,
                        "other_item_id": owner,
                        "expected_path": str(record.output_path),
                    },
                )

            if await self._file_manager.is_exact_file(record.output_path):
                state.mark_saved(record.id)
                key_view.put(record)
                claimed.claim(record.output_path)
                stats.saved_in_place += 1
                continue

            if record.id in state.blocked:
                logger.debug(
                    "Skipping blocked item.",
                    extra={"channel_key": channel_key, "item_id": record.id},
                )
                stats.blocked_skipped += 1
                continue

            old_path = await self._find_existing(record, key_view, index, claimed)
            if old_path is not None:
                await self._adopt_existing(
                    record, old_path, index, policy, stats, channel_key
                )
                state.mark_saved(record.id)
                key_view.put(record)
                claimed.claim(record.output_path)
                continue

            state.queued.add(record.id)
            stats.queued += 1

        logger.info(
            "Channel reconciled.",
            extra={
                "channel_key": channel_key,
                "catalog": len(records),
                "queued": len(state.queued),
                "saved": len(state.saved),
                "blocked": len(state.blocked),
            },
        )
        return Ok(None)
