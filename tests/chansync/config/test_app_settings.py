"""Tests for loading AppSettings from YAML, environment, and init arguments."""

from pathlib import Path
from typing import Any

from pydantic import ValidationError
import pytest
import yaml

from chansync.config import AppSettings, SyncPolicy
from chansync.exceptions import ConfigLoadError

SAMPLE_CHANNELS_DATA: dict[str, Any] = {
    "channels": {
        "Lectures": {
            "url": "https://example.com/lectures",
            "output_dir": "/media/lectures",
            "playlist_file": "/media/lectures.m3u",
            "yt_args": "--format best --limit-rate 2M",
            "keep_clean": True,
        },
        "Podcast": {
            "url": "https://example.com/podcast",
            "output_dir": "/media/podcast",
            "save_as_mp3": True,
            "active": False,
        },
    }
}

# --- Fixtures ---


@pytest.fixture
def sample_config_file(tmp_path: Path) -> Path:
    """Creates a sample YAML config file in a temporary directory."""
    config_path = tmp_path / "channels.yaml"
    with Path.open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(SAMPLE_CHANNELS_DATA, f)
    return config_path


@pytest.fixture
def config_env(monkeypatch: pytest.MonkeyPatch, sample_config_file: Path) -> Path:
    """Points CONFIG_FILE at the sample config."""
    monkeypatch.setenv("CONFIG_FILE", str(sample_config_file))
    return sample_config_file


# --- Tests for YAML loading ---


@pytest.mark.unit
@pytest.mark.usefixtures("config_env")
def test_load_channels_from_yaml():
    """Tests that channels are loaded from the file named by CONFIG_FILE."""
    settings = AppSettings()

    assert set(settings.channels) == {"Lectures", "Podcast"}
    lectures = settings.channels["Lectures"]
    assert lectures.output_dir == Path("/media/lectures")
    assert lectures.playlist_file == Path("/media/lectures.m3u")
    assert lectures.yt_args == ["--format", "best", "--limit-rate", "2M"]
    assert lectures.keep_clean is True
    assert lectures.file_format == "mp4"

    podcast = settings.channels["Podcast"]
    assert podcast.active is False
    assert podcast.file_format == "mp3"
    assert podcast.is_audio


@pytest.mark.unit
@pytest.mark.usefixtures("config_env")
def test_defaults_and_policy(monkeypatch: pytest.MonkeyPatch):
    """Tests default policy flags and overriding them via the environment."""
    monkeypatch.setenv("PREVENT_DELETION", "true")
    monkeypatch.setenv("DOWNLOAD_TIMEOUT", "90")

    settings = AppSettings()
    policy = SyncPolicy.from_settings(settings)

    assert settings.log_format == "human"
    assert settings.ytdlp_path == "yt-dlp"
    assert policy == SyncPolicy(prevent_deletion=True, download_timeout=90.0)


@pytest.mark.unit
@pytest.mark.usefixtures("config_env")
def test_reset_channels_from_env(monkeypatch: pytest.MonkeyPatch):
    """Tests that RESET_CHANNELS is parsed as a list of channel keys."""
    monkeypatch.setenv("RESET_CHANNELS", '["Lectures"]')

    assert AppSettings().reset_channels == ["Lectures"]


@pytest.mark.unit
def test_empty_yaml_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Tests that an empty YAML file yields no channels."""
    config_path = tmp_path / "empty.yaml"
    config_path.write_text("")
    monkeypatch.setenv("CONFIG_FILE", str(config_path))

    assert AppSettings().channels == {}


@pytest.mark.unit
def test_missing_config_file_raises(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Tests that a missing config file raises ConfigLoadError."""
    monkeypatch.setenv("CONFIG_FILE", str(tmp_path / "missing.yaml"))

    with pytest.raises(
        ConfigLoadError, match="Failed to load or parse YAML configuration file"
    ) as exc_info:
        AppSettings()

    assert isinstance(exc_info.value.__cause__, FileNotFoundError)


@pytest.mark.unit
def test_non_mapping_yaml_raises(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Tests that a YAML list at the top level is rejected."""
    config_path = tmp_path / "list.yaml"
    config_path.write_text("- a\n- b\n")
    monkeypatch.setenv("CONFIG_FILE", str(config_path))

    with pytest.raises(ConfigLoadError):
        AppSettings()


@pytest.mark.unit
@pytest.mark.parametrize("bad_key", ["a/b", "..", " "])
def test_invalid_channel_key(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, bad_key: str
):
    """Tests that channel keys that cannot name a directory are rejected."""
    config_path = tmp_path / "bad.yaml"
    with Path.open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(
            {"channels": {bad_key: {"url": "https://x", "output_dir": "/media"}}}, f
        )
    monkeypatch.setenv("CONFIG_FILE", str(config_path))

    with pytest.raises(ValidationError):
        AppSettings()
