"""Persisted lookup from catalog item to its last known local file.

The key store remembers, per channel, where each saved item's file was last
confirmed and under which title. The reconciler consults it to find files
that moved or were renamed since the previous run, and the cleanup sweeper
uses it to collect the files that belong to saved items.

The store is one JSON document under the data directory. Before each write
the previous document is copied to a backup, which is restored automatically
when the main document is missing, empty, or unreadable.
"""

import logging
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from .exceptions import FileOperationError, KeyStoreError
from .file_manager import FileManager
from .path_manager import PathManager
from .types import Err, ErrorKind, IOResult, KeyStoreEntry, Ok, VideoRecord

logger = logging.getLogger(__name__)

KEY_STORE_VERSION = 1


class KeyStoreDocument(BaseModel):
    """On-disk shape of the key store."""

    version: int = KEY_STORE_VERSION
    entries: list[KeyStoreEntry] = Field(default_factory=list[KeyStoreEntry])


class ChannelKeyStore:
    """View of the key store restricted to one channel.

    Attributes:
        channel_key: The channel namespace this view reads and writes.
    """

    def __init__(self, store: "KeyStore", channel_key: str):
        self._store = store
        self.channel_key = channel_key

    def get(self, item_id: str) -> KeyStoreEntry | None:
        """Return the entry for an item, or None if it was never saved."""
        return self._store.get_entry(self.channel_key, item_id)

    def put(self, record: VideoRecord) -> None:
        """Upsert the entry for a record using its current output path."""
        entry = KeyStoreEntry(
            channel_key=self.channel_key,
            item_id=record.id,
            local_path=record.output_path,
            last_title=record.title,
        )
        self._store.put_entry(entry)

    def saved_paths(self, item_ids: set[str]) -> set[Path]:
        """Return the recorded paths of the given items that have an entry."""
        return {
            entry.local_path
            for item_id in item_ids
            if (entry := self.get(item_id)) is not None
        }


class KeyStore:
    """Channel-namespaced mapping from item id to last known local path.

    Entries are upserted whenever an item is confirmed saved and are never
    deleted: an entry whose file no longer exists is simply ignored.

    Attributes:
        _paths: Resolves the key store and backup file locations.
        _file_manager: Performs file reads, copies, and atomic writes.
        _entries: Loaded entries keyed by channel key, then item id.
        _dirty: Whether entries changed since the last load or save.
    """

    def __init__(self, path_manager: PathManager, file_manager: FileManager):
        self._paths = path_manager
        self._file_manager = file_manager
        self._entries: dict[str, dict[str, KeyStoreEntry]] = {}
        self._dirty = False

    def channel(self, channel_key: str) -> ChannelKeyStore:
        """Return the view of one channel's entries."""
        return ChannelKeyStore(self, channel_key)

    def get_entry(self, channel_key: str, item_id: str) -> KeyStoreEntry | None:
        """Return the entry for an item of a channel, or None."""
        return self._entries.get(channel_key, {}).get(item_id)

    def put_entry(self, entry: KeyStoreEntry) -> None:
        """Insert or replace an entry, marking the store changed if it differs."""
        channel_entries = self._entries.setdefault(entry.channel_key, {})
        if channel_entries.get(entry.item_id) != entry:
            channel_entries[entry.item_id] = entry
            self._dirty = True

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())

    async def _read_document(self, file_path: Path) -> KeyStoreDocument | None:
        """Read and validate a key store document; None if missing or empty."""
        content = await self._file_manager.read_text(file_path)
        if content is None or not content.strip():
            return None
        return KeyStoreDocument.model_validate_json(content)

    async def load(self) -> IOResult[int]:
        """Load the key store, falling back to the backup document.

        Returns:
            Ok with the number of entries loaded, or a NON_FATAL Err when
            neither document could be read. The store is empty in that case.
        """
        self._entries = {}
        self._dirty = False
        main_file = self._paths.key_store_file
        backup_file = self._paths.key_store_backup_file

        document: KeyStoreDocument | None = None
        main_error: Exception | None = None
        try:
            document = await self._read_document(main_file)
        except (FileOperationError, ValidationError) as e:
            main_error = e

        if document is None and await self._file_manager.file_exists(backup_file):
            logger.warning(
                "Key store unreadable or missing, restoring from backup.",
                extra={"file_path": str(main_file), "backup": str(backup_file)},
                exc_info=main_error,
            )
            try:
                document = await self._read_document(backup_file)
                if document is not None:
                    await self._file_manager.copy_file(backup_file, main_file)
            except (FileOperationError, ValidationError) as e:
                error = KeyStoreError(
                    "Failed to restore key store from backup.",
                    file_path=str(backup_file),
                )
                error.__cause__ = e
                return Err(ErrorKind.NON_FATAL, error)
        elif main_error is not None:
            error = KeyStoreError("Failed to load key store.", file_path=str(main_file))
            error.__cause__ = main_error
            return Err(ErrorKind.NON_FATAL, error)

        for entry in document.entries if document else []:
            self._entries.setdefault(entry.channel_key, {})[entry.item_id] = entry

        logger.debug("Key store loaded.", extra={"entries": len(self)})
        return Ok(len(self))

    async def save(self) -> IOResult[None]:
        """Persist the key store if it changed, keeping the previous version.

        Returns:
            Ok(None), or a NON_FATAL Err if the document cannot be written.
        """
        if not self._dirty:
            return Ok(None)

        main_file = self._paths.key_store_file
        document = KeyStoreDocument(
            entries=[
                self._entries[channel_key][item_id]
                for channel_key in sorted(self._entries)
                for item_id in sorted(self._entries[channel_key])
            ]
        )
        try:
            if await self._file_manager.file_size(main_file) > 0:
                await self._file_manager.copy_file(
                    main_file, self._paths.key_store_backup_file
                )
            await self._file_manager.write_text_atomic(
                main_file, document.model_dump_json(indent=2)
            )
        except FileOperationError as e:
            error = KeyStoreError("Failed to save key store.", file_path=e.file_path)
            error.__cause__ = e
            return Err(ErrorKind.NON_FATAL, error)

        self._dirty = False
        logger.debug("Key store saved.", extra={"entries": len(self)})
        return Ok(None)
