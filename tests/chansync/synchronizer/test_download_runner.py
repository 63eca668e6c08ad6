# pyright: reportPrivateUsage=false

"""Tests for the DownloadRunner bookkeeping and checkpointing."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from chansync.config import ChannelConfig, SyncPolicy
from chansync.exceptions import DownloadExecutorError, StateStoreError
from chansync.file_manager import FileManager
from chansync.key_store import KeyStore
from chansync.path_manager import PathManager
from chansync.protocols import DownloadExecutor
from chansync.state_store import StateStore
from chansync.synchronizer import DownloadRunner
from chansync.synchronizer.types import SyncStats
from chansync.types import (
    CatalogItem,
    ChannelState,
    DownloadResponse,
    DownloadStatus,
    Err,
    ErrorKind,
    Ok,
    VideoRecord,
)

CHANNEL = "Lectures"

# --- Fixtures ---


@pytest.fixture
def path_manager(tmp_path: Path) -> PathManager:
    """Provides a PathManager rooted at a temporary directory."""
    return PathManager(tmp_path / "data")


@pytest.fixture
def state_store(path_manager: PathManager) -> StateStore:
    """Provides a real StateStore."""
    return StateStore(path_manager, FileManager())


@pytest.fixture
def key_store(path_manager: PathManager) -> KeyStore:
    """Provides an empty key store."""
    return KeyStore(path_manager, FileManager())


@pytest.fixture
def mock_executor() -> MagicMock:
    """Provides a mock download executor."""
    mock = MagicMock(spec=DownloadExecutor)
    mock.fetch = AsyncMock()
    return mock


@pytest.fixture
def runner(
    mock_executor: MagicMock, state_store: StateStore, key_store: KeyStore
) -> DownloadRunner:
    """Provides a DownloadRunner with a mock executor."""
    return DownloadRunner(mock_executor, state_store, key_store)


@pytest.fixture
def channel(tmp_path: Path) -> ChannelConfig:
    """Provides a video channel."""
    return ChannelConfig(url="https://example.com/c", output_dir=tmp_path / "media")


@pytest.fixture
def records(channel: ChannelConfig) -> list[VideoRecord]:
    """Provides the catalog [v1, v2, v3]."""
    return [
        VideoRecord.from_catalog_item(
            CatalogItem(
                id=item_id, title=f"Title {item_id}", url=f"https://x/{item_id}"
            ),
            channel.output_dir,
            channel.file_format,
        )
        for item_id in ("v1", "v2", "v3")
    ]


# --- Tests for bookkeeping ---


@pytest.mark.unit
@pytest.mark.asyncio
async def test_end_to_end_bookkeeping(
    runner: DownloadRunner,
    mock_executor: MagicMock,
    state_store: StateStore,
    path_manager: PathManager,
    key_store: KeyStore,
    channel: ChannelConfig,
    records: list[VideoRecord],
):
    """Tests SUCCESS then ERROR with the third item still pending at its turn."""
    paths = path_manager.channel_state_paths(CHANNEL)
    persisted_before_v3: dict[str, str] = {}

    async def fetch(record: VideoRecord, _: ChannelConfig) -> DownloadResponse:
        match record.id:
            case "v1":
                return DownloadResponse(status=DownloadStatus.SUCCESS)
            case "v2":
                return DownloadResponse(status=DownloadStatus.ERROR, error="removed")
            case _:
                persisted_before_v3["save"] = paths.save_file.read_text()
                persisted_before_v3["blocked"] = paths.blocked_file.read_text()
                persisted_before_v3["queue"] = paths.queue_file.read_text()
                return DownloadResponse(status=DownloadStatus.FAILURE)

    mock_executor.fetch.side_effect = fetch
    state = ChannelState(channel_key=CHANNEL, queued={"v1", "v2", "v3"})
    stats = SyncStats()

    result = await runner.run(CHANNEL, channel, records, state, SyncPolicy(), stats)

    assert result == Ok(1)
    assert persisted_before_v3 == {"save": "v1\n", "blocked": "v2\n", "queue": "v3\n"}
    assert state.saved == {"v1"}
    assert state.blocked == {"v2"}
    assert state.queued == set()
    assert stats.downloaded == 1
    assert stats.download_errors == 1
    assert stats.download_failures == 1
    assert key_store.get_entry(CHANNEL, "v1") is not None
    assert key_store.get_entry(CHANNEL, "v2") is None
    assert [c.args[0].id for c in mock_executor.fetch.await_args_list] == [
        "v1",
        "v2",
        "v3",
    ]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_only_queued_items_are_attempted(
    runner: DownloadRunner,
    mock_executor: MagicMock,
    channel: ChannelConfig,
    records: list[VideoRecord],
):
    """Tests that crash resumption only processes what is still queued."""
    mock_executor.fetch.return_value = DownloadResponse(status=DownloadStatus.SUCCESS)
    state = ChannelState(channel_key=CHANNEL, queued={"v2", "v3"}, saved={"v1"})

    await runner.run(CHANNEL, channel, records, state, SyncPolicy(), SyncStats())

    assert [c.args[0].id for c in mock_executor.fetch.await_args_list] == ["v2", "v3"]
    assert state.saved == {"v1", "v2", "v3"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_success_adopts_reported_output_path(
    runner: DownloadRunner,
    mock_executor: MagicMock,
    key_store: KeyStore,
    channel: ChannelConfig,
    records: list[VideoRecord],
):
    """Tests that the executor's reported path becomes the record's path."""
    mock_executor.fetch.return_value = DownloadResponse(
        status=DownloadStatus.SUCCESS, output_path=Path("Title v1.webm")
    )
    state = ChannelState(channel_key=CHANNEL, queued={"v1"})

    await runner.run(CHANNEL, channel, records, state, SyncPolicy(), SyncStats())

    assert records[0].output_path == channel.output_dir / "Title v1.webm"
    entry = key_store.get_entry(CHANNEL, "v1")
    assert entry is not None
    assert entry.local_path == channel.output_dir / "Title v1.webm"


# --- Tests for failures mapped to FAILURE ---


@pytest.mark.unit
@pytest.mark.asyncio
async def test_executor_exception_is_transient_failure(
    runner: DownloadRunner,
    mock_executor: MagicMock,
    channel: ChannelConfig,
    records: list[VideoRecord],
):
    """Tests that an exception from the executor never blocks the item."""
    mock_executor.fetch.side_effect = DownloadExecutorError("no yt-dlp")
    state = ChannelState(channel_key=CHANNEL, queued={"v1"})

    result = await runner.run(
        CHANNEL, channel, records, state, SyncPolicy(), SyncStats()
    )

    assert result == Ok(0)
    assert state.blocked == set()
    assert state.queued == set()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_timeout_is_transient_failure(
    runner: DownloadRunner,
    mock_executor: MagicMock,
    channel: ChannelConfig,
    records: list[VideoRecord],
):
    """Tests that a download exceeding the timeout counts as FAILURE."""

    async def slow_fetch(record: VideoRecord, _: ChannelConfig) -> DownloadResponse:
        await asyncio.sleep(10)
        return DownloadResponse(status=DownloadStatus.SUCCESS)

    mock_executor.fetch.side_effect = slow_fetch
    state = ChannelState(channel_key=CHANNEL, queued={"v1"})
    stats = SyncStats()

    await runner.run(
        CHANNEL, channel, records, state, SyncPolicy(download_timeout=0.01), stats
    )

    assert stats.download_failures == 1
    assert state.blocked == set()
    assert state.saved == set()


# --- Tests for policy and checkpoint failure ---


@pytest.mark.unit
@pytest.mark.asyncio
async def test_prevent_download_is_dry_run(
    runner: DownloadRunner,
    mock_executor: MagicMock,
    channel: ChannelConfig,
    records: list[VideoRecord],
):
    """Tests that nothing is fetched and the queue is kept when downloads are off."""
    state = ChannelState(channel_key=CHANNEL, queued={"v1", "v3"})
    stats = SyncStats()

    await runner.run(
        CHANNEL, channel, records, state, SyncPolicy(prevent_download=True), stats
    )

    mock_executor.fetch.assert_not_called()
    assert state.queued == {"v1", "v3"}
    assert stats.would_download == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_checkpoint_failure_abandons_queue(
    mock_executor: MagicMock,
    key_store: KeyStore,
    channel: ChannelConfig,
    records: list[VideoRecord],
):
    """Tests that a failed save sets the error flag and stops the queue."""
    failing_store = MagicMock(spec=StateStore)
    save_error = Err(ErrorKind.FATAL, StateStoreError("disk full"))
    failing_store.save = AsyncMock(return_value=save_error)
    runner = DownloadRunner(mock_executor, failing_store, key_store)
    mock_executor.fetch.return_value = DownloadResponse(status=DownloadStatus.SUCCESS)
    state = ChannelState(channel_key=CHANNEL, queued={"v1", "v2"})

    result = await runner.run(
        CHANNEL, channel, records, state, SyncPolicy(), SyncStats()
    )

    assert result is save_error
    assert state.error_flag is True
    assert mock_executor.fetch.await_count == 1
