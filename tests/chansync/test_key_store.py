# pyright: reportPrivateUsage=false

"""Tests for the KeyStore and its backup handling."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from chansync.exceptions import FileOperationError, KeyStoreError
from chansync.file_manager import FileManager
from chansync.key_store import KeyStore
from chansync.path_manager import PathManager
from chansync.types import Err, ErrorKind, KeyStoreEntry, Ok, VideoRecord

# --- Fixtures ---


@pytest.fixture
def path_manager(tmp_path: Path) -> PathManager:
    """Provides a PathManager rooted at a temporary directory."""
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    return PathManager(data_dir)


@pytest.fixture
def key_store(path_manager: PathManager) -> KeyStore:
    """Provides an empty KeyStore backed by the real file manager."""
    return KeyStore(path_manager, FileManager())


def make_record(item_id: str, path: Path) -> VideoRecord:
    """Builds a record whose output path is already known."""
    return VideoRecord(
        id=item_id,
        original_title=path.stem,
        title=path.stem,
        output_dir=path.parent,
        output_path=path,
        url=f"https://example.com/{item_id}",
    )


def entry_document(*entries: KeyStoreEntry) -> str:
    """Serializes entries the way the key store writes them."""
    return json.dumps(
        {"version": 1, "entries": [e.model_dump(mode="json") for e in entries]}
    )


# --- Tests for channel namespacing ---


@pytest.mark.unit
def test_entries_are_namespaced_by_channel(key_store: KeyStore):
    """Tests that the same item id in two channels maps to two entries."""
    key_store.channel("A").put(make_record("v1", Path("/a/One.mp4")))
    key_store.channel("B").put(make_record("v1", Path("/b/One.mp3")))

    entry_a = key_store.channel("A").get("v1")
    entry_b = key_store.channel("B").get("v1")

    assert entry_a is not None and entry_a.local_path == Path("/a/One.mp4")
    assert entry_b is not None and entry_b.local_path == Path("/b/One.mp3")
    assert key_store.channel("C").get("v1") is None
    assert len(key_store) == 2


@pytest.mark.unit
def test_saved_paths(key_store: KeyStore):
    """Tests collecting the recorded paths of a set of items."""
    view = key_store.channel("A")
    view.put(make_record("v1", Path("/a/One.mp4")))
    view.put(make_record("v2", Path("/a/Two.mp4")))

    assert view.saved_paths({"v1", "v3"}) == {Path("/a/One.mp4")}


# --- Tests for save and load ---


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_skipped_when_unchanged(
    key_store: KeyStore, path_manager: PathManager
):
    """Tests that nothing is written when no entry changed."""
    assert await key_store.save() == Ok(None)

    assert not path_manager.key_store_file.exists()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_then_load(key_store: KeyStore, path_manager: PathManager):
    """Tests that saved entries are loaded by a fresh store."""
    key_store.channel("A").put(make_record("v1", Path("/a/One.mp4")))
    assert await key_store.save() == Ok(None)

    fresh = KeyStore(path_manager, FileManager())
    result = await fresh.load()

    assert result == Ok(1)
    entry = fresh.get_entry("A", "v1")
    assert entry is not None
    assert entry.last_title == "One"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_keeps_previous_version_as_backup(
    key_store: KeyStore, path_manager: PathManager
):
    """Tests that each save copies the previous document to the backup."""
    key_store.channel("A").put(make_record("v1", Path("/a/One.mp4")))
    await key_store.save()
    first_version = path_manager.key_store_file.read_text()

    key_store.channel("A").put(make_record("v2", Path("/a/Two.mp4")))
    await key_store.save()

    assert path_manager.key_store_backup_file.read_text() == first_version
    assert "v2" in path_manager.key_store_file.read_text()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_load_restores_corrupt_main_from_backup(
    key_store: KeyStore, path_manager: PathManager
):
    """Tests that an unreadable main document is replaced by the backup."""
    entry = KeyStoreEntry(
        channel_key="A", item_id="v1", local_path=Path("/a/One.mp4"), last_title="One"
    )
    path_manager.key_store_file.write_text("{not json")
    path_manager.key_store_backup_file.write_text(entry_document(entry))

    result = await key_store.load()

    assert result == Ok(1)
    assert key_store.get_entry("A", "v1") == entry
    assert path_manager.key_store_file.read_text() == entry_document(entry)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_load_restores_empty_main_from_backup(
    key_store: KeyStore, path_manager: PathManager
):
    """Tests that an empty main document falls back to the backup."""
    entry = KeyStoreEntry(channel_key="A", item_id="v1", local_path=Path("/a/x.mp4"))
    path_manager.key_store_file.write_text("")
    path_manager.key_store_backup_file.write_text(entry_document(entry))

    assert await key_store.load() == Ok(1)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_load_missing_documents_is_empty(key_store: KeyStore):
    """Tests that a first run starts with an empty key store."""
    assert await key_store.load() == Ok(0)
    assert len(key_store) == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_load_corrupt_without_backup_is_non_fatal(
    key_store: KeyStore, path_manager: PathManager
):
    """Tests that a corrupt document with no backup reports a NON_FATAL error."""
    path_manager.key_store_file.write_text("[1, 2")

    result = await key_store.load()

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.NON_FATAL
    assert isinstance(result.error, KeyStoreError)
    assert len(key_store) == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_failure_is_non_fatal(key_store: KeyStore):
    """Tests that a failed write is reported and the store stays dirty."""
    key_store.channel("A").put(make_record("v1", Path("/a/One.mp4")))

    with patch.object(
        FileManager,
        "write_text_atomic",
        AsyncMock(side_effect=FileOperationError("disk full", file_path="k")),
    ):
        result = await key_store.save()

    assert isinstance(result, Err)
    assert not result.is_fatal
    assert key_store._dirty is True
