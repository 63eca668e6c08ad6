"""Tests for the PathManager class and its state path resolution."""

from pathlib import Path
from unittest.mock import patch

import pytest

from chansync.exceptions import FileOperationError
from chansync.path_manager import PathManager

# --- Fixtures ---


@pytest.fixture
def data_dir(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """Creates temporary data directory for tests."""
    return tmp_path_factory.mktemp("test_data")


@pytest.fixture
def path_manager(data_dir: Path) -> PathManager:
    """Provides a PathManager instance rooted at a temporary directory."""
    return PathManager(data_dir)


# --- Tests for properties ---


@pytest.mark.unit
def test_init_resolves_base_dir(data_dir: Path):
    """Tests that the base directory is normalized and resolved."""
    path_manager = PathManager(data_dir / "sub" / "..")

    assert path_manager.base_data_dir == data_dir.resolve()


@pytest.mark.unit
def test_key_store_files(path_manager: PathManager, data_dir: Path):
    """Tests the key store and backup locations."""
    assert path_manager.key_store_file == data_dir.resolve() / "key_store.json"
    assert (
        path_manager.key_store_backup_file == data_dir.resolve() / "key_store-bak.json"
    )


# --- Tests for channel_state_paths ---


@pytest.mark.unit
def test_channel_state_paths_layout(path_manager: PathManager):
    """Tests that every state file lives in the channel's own directory."""
    paths = path_manager.channel_state_paths("Lectures")

    assert paths.state_dir == path_manager.base_channel_dir / "Lectures"
    assert paths.queue_file.name == "Lectures-queue.txt"
    assert paths.save_file.name == "Lectures-save.txt"
    assert paths.blocked_file.name == "Lectures-blocked.txt"
    assert paths.data_file.name == "Lectures-data.json"
    assert paths.call_log_file.name == "Lectures-callLog.txt"
    assert paths.id_list_files == (
        paths.queue_file,
        paths.save_file,
        paths.blocked_file,
    )
    assert not paths.state_dir.exists()


@pytest.mark.unit
@pytest.mark.parametrize("channel_key", ["", "   ", "a/b", "..", "."])
def test_channel_state_paths_rejects_bad_keys(
    path_manager: PathManager, channel_key: str
):
    """Tests that empty keys and keys escaping the state directory are rejected."""
    with pytest.raises(ValueError):
        path_manager.channel_state_paths(channel_key)


# --- Tests for channel_state_dir ---


@pytest.mark.unit
@pytest.mark.asyncio
async def test_channel_state_dir_creates_directory(path_manager: PathManager):
    """Tests that channel_state_dir creates the state directory."""
    paths = await path_manager.channel_state_dir("Lectures")

    assert paths.state_dir.is_dir()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_channel_state_dir_failure(path_manager: PathManager):
    """Tests that a directory creation failure raises FileOperationError."""
    with (
        patch("aiofiles.os.makedirs", side_effect=OSError("read-only")),
        pytest.raises(FileOperationError) as exc_info,
    ):
        await path_manager.channel_state_dir("Lectures")

    assert exc_info.value.file_path == str(path_manager.base_channel_dir / "Lectures")
