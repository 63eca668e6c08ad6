"""Tests for VideoRecord construction and updates."""

from datetime import UTC, datetime
from pathlib import Path

import pytest

from chansync.types import CatalogItem, VideoRecord

OUTPUT_DIR = Path("/media/lectures")


@pytest.fixture
def record() -> VideoRecord:
    """Provides a record built from a catalog item with an unsafe title."""
    item = CatalogItem(
        id="v1",
        title="Lecture 1: Intro?",
        url="https://example.com/v1",
        published=datetime(2024, 3, 1, tzinfo=UTC),
    )
    return VideoRecord.from_catalog_item(item, OUTPUT_DIR, "mp4")


@pytest.mark.unit
def test_from_catalog_item_cleans_title(record: VideoRecord):
    """Tests that the expected path uses the cleaned title and channel format."""
    assert record.original_title == "Lecture 1: Intro?"
    assert record.title == "Lecture 1 - Intro"
    assert record.output_path == OUTPUT_DIR / "Lecture 1 - Intro.mp4"
    assert record.file_format == "mp4"


@pytest.mark.unit
def test_update_title_keeps_directory_and_format(record: VideoRecord):
    """Tests that a rewritten title is cleaned and keeps the extension."""
    record.update_title("Intro / Part 1")

    assert record.title == "Intro - Part 1"
    assert record.output_path == OUTPUT_DIR / "Intro - Part 1.mp4"


@pytest.mark.unit
def test_update_output_adopts_existing_file(record: VideoRecord):
    """Tests that pointing at an existing file takes over its name."""
    existing = Path("/elsewhere/Lecture One.mkv")

    record.update_output(existing)

    assert record.output_path == existing
    assert record.title == "Lecture One"
    assert record.file_format == "mkv"
