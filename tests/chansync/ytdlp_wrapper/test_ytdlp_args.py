"""Tests for the YtdlpArgs command builder."""

from pathlib import Path

import pytest

from chansync.ytdlp_wrapper.args import YtdlpArgs


@pytest.mark.unit
def test_user_args_come_first():
    """Tests that user arguments follow the executable and precede built-in flags."""
    args = YtdlpArgs("yt-dlp", ["--cookies", "c.txt"]).quiet().flat_playlist()

    assert args.to_list() == [
        "yt-dlp",
        "--cookies",
        "c.txt",
        "--quiet",
        "--flat-playlist",
    ]


@pytest.mark.unit
def test_output_template_escapes_percent():
    """Tests that literal percent signs in the path are escaped."""
    args = YtdlpArgs().output(Path("/media/100% Pure"))

    assert args.to_list()[-2:] == ["--output", "/media/100%% Pure.%(ext)s"]


@pytest.mark.unit
def test_audio_and_video_format_flags():
    """Tests audio extraction and merge container flags."""
    audio = YtdlpArgs().extract_audio("mp3").to_list()
    video = YtdlpArgs().merge_output_format("mkv").to_list()

    assert audio[1:] == ["--extract-audio", "--audio-format", "mp3"]
    assert video[1:] == ["--merge-output-format", "mkv"]


@pytest.mark.unit
def test_additional_args_is_a_copy():
    """Tests that callers cannot mutate the stored user arguments."""
    args = YtdlpArgs("yt-dlp", ["--a"])
    args.additional_args.append("--b")

    assert args.additional_args == ["--a"]
    assert str(args) == "yt-dlp --a"
