"""Channel configuration models for chansync.

This module provides the configuration model for a single channel: where its
catalog comes from, where its files are saved, how its playlist is written,
whether its output directory is kept clean, and which transform rules apply.
"""

from pathlib import Path
import re
import shlex
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from ..naming import (
    AUDIO_FORMATS,
    DEFAULT_AUDIO_FORMAT,
    DEFAULT_VIDEO_FORMAT,
    VIDEO_FORMATS,
)
from .types import FilterRuleSpec, ReplaceRuleSpec, TransformRuleSpec

_SUB_CHANNEL_SUFFIX = re.compile(r"_P\d+$")


def base_channel_key(channel_key: str) -> str:
    """Return the key shared by a channel and its per-playlist sub-channels.

    A sub-channel split from a parent catalog carries a ``_P<digits>`` suffix
    (``Parent_P01``); the parent and all of its sub-channels share ``Parent``.
    """
    return _SUB_CHANNEL_SUFFIX.sub("", channel_key)


class ChannelConfig(BaseModel):
    """Configuration for a single channel.

    Attributes:
        active: Whether the channel is processed at all.
        name: Display name used in logs.
        url: Catalog source URL (channel, playlist).
        output_dir: Directory the channel's media files are saved in.
        playlist_file: Manifest file to maintain, if any.
        save_as_mp3: Save audio instead of video.
        format: Explicit file extension overriding save_as_mp3.
        reverse_playlist: Write the manifest in reverse catalog order.
        keep_clean: Delete files in output_dir that are not saved items.
        yt_args: Extra command-line arguments for yt-dlp.
        pre_rules: Title rewriting rules applied before reconciliation.
        post_rules: Filtering rules applied after reconciliation.
    """

    active: bool = Field(
        default=True,
        description="Whether the channel is active. Inactive channels are not processed.",
    )
    name: str | None = Field(default=None, description="Display name used in logs")
    url: str = Field(..., min_length=1, description="Catalog source URL")
    output_dir: Path = Field(..., description="Directory media files are saved in")
    playlist_file: Path | None = Field(
        default=None, description="Playlist manifest to maintain, if any"
    )
    save_as_mp3: bool = Field(default=False, description="Save audio instead of video")
    format: str | None = Field(
        default=None, description="File extension overriding save_as_mp3 (e.g., 'm4a')"
    )
    reverse_playlist: bool = Field(
        default=False, description="Write the playlist in reverse catalog order"
    )
    keep_clean: bool = Field(
        default=False,
        description="Delete files in output_dir that do not belong to a saved item.",
    )
    yt_args: list[str] = Field(
        default_factory=list[str],
        description="Command-line arguments for yt-dlp, parsed from user-provided string in config.",
    )
    pre_rules: list[TransformRuleSpec] = Field(
        default_factory=list[TransformRuleSpec],
        description="Title rewriting rules applied before reconciliation",
    )
    post_rules: list[TransformRuleSpec] = Field(
        default_factory=list[TransformRuleSpec],
        description="Filtering rules applied after reconciliation",
    )

    @field_validator("yt_args", mode="before")
    @classmethod
    def parse_yt_args_string(cls, v: Any) -> list[str]:
        """Parse yt_args string into a list of command-line arguments.

        Args:
            v: Value to parse, can be string, list of strings, or None.

        Returns:
            List of command-line arguments for yt-dlp.

        Raises:
            TypeError: If the value is not a string or list of strings.
        """
        match v:
            case None:
                return []
            case str() as s:
                return shlex.split(s.strip())
            case list() as l if all(isinstance(arg, str) for arg in l):  # type: ignore
                return l  # type: ignore # confirmed that it is a list of strings
            case other:
                raise TypeError(
                    f"yt_args must be a string or list of strings, got {type(other).__name__}"
                )

    @field_validator("format", mode="before")
    @classmethod
    def validate_format(cls, v: Any) -> str | None:
        """Normalize and validate the file format override."""
        match v:
            case None:
                return None
            case str() as s if not s.strip():
                return None
            case str() as s:
                fmt = s.strip().lstrip(".").lower()
                if fmt not in VIDEO_FORMATS + AUDIO_FORMATS:
                    raise ValueError(
                        f"Unsupported format '{s}'. "
                        f"Valid values: {list(VIDEO_FORMATS + AUDIO_FORMATS)}"
                    )
                return fmt
            case _:
                raise TypeError(f"format must be a string, got {type(v).__name__}")

    @field_validator("output_dir", "playlist_file", mode="after")
    @classmethod
    def expand_path(cls, v: Path | None) -> Path | None:
        """Expand user directories and make the path absolute."""
        return v.expanduser().absolute() if v is not None else None

    @model_validator(mode="after")
    def validate_rule_phases(self) -> "ChannelConfig":
        """Keep title rewriting before reconciliation and filtering after it."""
        for rule in self.pre_rules:
            if isinstance(rule, FilterRuleSpec):
                raise ValueError("filter rules are only allowed in post_rules")
        for rule in self.post_rules:
            if isinstance(rule, ReplaceRuleSpec):
                raise ValueError("replace rules are only allowed in pre_rules")
        return self

    @property
    def file_format(self) -> str:
        """Return the extension media files of this channel are saved with."""
        if self.format:
            return self.format
        return DEFAULT_AUDIO_FORMAT if self.save_as_mp3 else DEFAULT_VIDEO_FORMAT

    @property
    def is_audio(self) -> bool:
        """Return True if the channel saves audio files."""
        return self.file_format in AUDIO_FORMATS
