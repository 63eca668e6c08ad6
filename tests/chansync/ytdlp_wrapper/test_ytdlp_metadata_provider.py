"""Tests for catalog parsing and the YtdlpMetadataProvider."""

from datetime import UTC, datetime
import json
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from chansync.config import ChannelConfig
from chansync.exceptions import MetadataFetchError, YtdlpApiError
from chansync.ytdlp_wrapper import YtdlpMetadataProvider
from chansync.ytdlp_wrapper.core import YtdlpCore, YtdlpRunResult
from chansync.ytdlp_wrapper.metadata_provider import parse_catalog

CHANNEL_INFO: dict[str, Any] = {
    "_type": "playlist",
    "id": "UC123",
    "entries": [
        {
            "_type": "playlist",
            "title": "Videos",
            "entries": [
                {
                    "_type": "url",
                    "id": "a1",
                    "title": "First",
                    "url": "https://www.youtube.com/watch?v=a1",
                    "timestamp": 1700000000,
                },
                {
                    "_type": "url",
                    "id": "b2",
                    "title": None,
                    "url": "https://www.youtube.com/watch?v=b2",
                    "upload_date": "20240301",
                },
            ],
        },
        {"_type": "url", "id": "a1", "url": "https://www.youtube.com/watch?v=a1"},
        {"_type": "url", "id": "", "url": "https://www.youtube.com/watch?v=x"},
        {"_type": "url", "id": "c3", "title": "No URL"},
        None,
    ],
}

# --- Fixtures ---


@pytest.fixture
def channel() -> ChannelConfig:
    """Provides a channel with user yt-dlp arguments."""
    return ChannelConfig(
        url="https://www.youtube.com/@example",
        output_dir="/media/example",  # type: ignore[arg-type]
        yt_args="--playlist-end 5",  # type: ignore[arg-type]
    )


# --- Tests for parse_catalog ---


@pytest.mark.unit
def test_parse_catalog_flattens_and_filters():
    """Tests nested tabs, duplicate ids, and entries missing an id or URL."""
    items = parse_catalog(CHANNEL_INFO)

    assert [item.id for item in items] == ["a1", "b2"]
    assert items[0].title == "First"
    assert items[0].published == datetime.fromtimestamp(1700000000, UTC)
    assert items[1].title == "b2"
    assert items[1].published == datetime(2024, 3, 1, tzinfo=UTC)


@pytest.mark.unit
def test_parse_catalog_prefers_webpage_url():
    """Tests that webpage_url wins over url when both are present."""
    info = {
        "entries": [
            {"id": "a", "url": "https://cdn/a", "webpage_url": "https://site/a"},
        ]
    }

    assert parse_catalog(info)[0].url == "https://site/a"


# --- Tests for fetch_channel_items ---


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fetch_channel_items_success(channel: ChannelConfig):
    """Tests a successful listing and the arguments yt-dlp is called with."""
    run_result = YtdlpRunResult(
        exit_code=0, stdout=json.dumps(CHANNEL_INFO), stderr=""
    )
    with patch.object(YtdlpCore, "run", AsyncMock(return_value=run_result)) as mock_run:
        items = await YtdlpMetadataProvider("yt-dlp").fetch_channel_items(
            "Example", channel
        )

    assert [item.id for item in items] == ["a1", "b2"]
    args, url = mock_run.await_args.args
    assert url == channel.url
    assert args.to_list() == [
        "yt-dlp",
        "--playlist-end",
        "5",
        "--quiet",
        "--no-warnings",
        "--dump-single-json",
        "--flat-playlist",
    ]


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize(
    "run_result",
    [
        YtdlpRunResult(exit_code=1, stdout="", stderr="ERROR: not found"),
        YtdlpRunResult(exit_code=0, stdout="not json", stderr=""),
        YtdlpRunResult(exit_code=0, stdout="[]", stderr=""),
    ],
    ids=["exit-code", "bad-json", "not-object"],
)
async def test_fetch_channel_items_failures(
    channel: ChannelConfig, run_result: YtdlpRunResult
):
    """Tests that unusable yt-dlp output raises MetadataFetchError."""
    with (
        patch.object(YtdlpCore, "run", AsyncMock(return_value=run_result)),
        pytest.raises(MetadataFetchError) as exc_info,
    ):
        await YtdlpMetadataProvider().fetch_channel_items("Example", channel)

    assert exc_info.value.channel_key == "Example"
    assert exc_info.value.url == channel.url


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fetch_channel_items_missing_executable(channel: ChannelConfig):
    """Tests that a missing yt-dlp surfaces as MetadataFetchError."""
    with (
        patch.object(
            YtdlpCore, "run", AsyncMock(side_effect=YtdlpApiError("not found"))
        ),
        pytest.raises(MetadataFetchError) as exc_info,
    ):
        await YtdlpMetadataProvider().fetch_channel_items("Example", channel)

    assert isinstance(exc_info.value.__cause__, YtdlpApiError)
