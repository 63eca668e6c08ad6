"""Fluent builder for yt-dlp command lines."""

from pathlib import Path


class YtdlpArgs:
    """Accumulate yt-dlp flags and render them as an argv list.

    User-provided arguments are placed right after the executable so that
    the flags added by chansync take precedence.

    Example:
        args = (YtdlpArgs("yt-dlp", channel.yt_args)
                .quiet()
                .flat_playlist()
                .dump_single_json())
    """

    def __init__(
        self, executable: str = "yt-dlp", user_args: list[str] | None = None
    ):
        self._executable = executable
        self._additional_args = list(user_args or [])

        # Output control
        self._quiet = False
        self._no_warnings = False
        self._no_progress = False
        self._newline = False
        self._dump_single_json = False

        # Playlist control
        self._flat_playlist = False

        # Download control
        self._output: str | None = None
        self._extract_audio_format: str | None = None
        self._merge_output_format: str | None = None
        self._geo_bypass = False
        self._rm_cache_dir = False

    def quiet(self) -> "YtdlpArgs":
        """Only print what was asked for."""
        self._quiet = True
        return self

    def no_warnings(self) -> "YtdlpArgs":
        """Drop warnings from the output."""
        self._no_warnings = True
        return self

    def no_progress(self) -> "YtdlpArgs":
        """Suppress the progress bar."""
        self._no_progress = True
        return self

    def newline(self) -> "YtdlpArgs":
        """Print each progress update on its own line."""
        self._newline = True
        return self

    def dump_single_json(self) -> "YtdlpArgs":
        """Print the whole result as one JSON document without downloading."""
        self._dump_single_json = True
        return self

    def flat_playlist(self) -> "YtdlpArgs":
        """List playlist entries without resolving each of them."""
        self._flat_playlist = True
        return self

    def output(self, file_path: Path) -> "YtdlpArgs":
        """Save to this path, with yt-dlp choosing the extension."""
        escaped = str(file_path).replace("%", "%%")
        self._output = f"{escaped}.%(ext)s"
        return self

    def extract_audio(self, audio_format: str) -> "YtdlpArgs":
        """Extract the audio track and convert it to the given format."""
        self._extract_audio_format = audio_format
        return self

    def merge_output_format(self, video_format: str) -> "YtdlpArgs":
        """Merge separate video and audio streams into the given container."""
        self._merge_output_format = video_format
        return self

    def geo_bypass(self) -> "YtdlpArgs":
        """Bypass geographic restrictions where possible."""
        self._geo_bypass = True
        return self

    def rm_cache_dir(self) -> "YtdlpArgs":
        """Delete yt-dlp's cache before running."""
        self._rm_cache_dir = True
        return self

    @property
    def additional_args(self) -> list[str]:
        """The channel's own arguments, as a copy."""
        return self._additional_args.copy()

    def to_list(self) -> list[str]:
        """Render the full argv, executable first.

        Returns:
            Complete command list including the yt-dlp executable.
        """
        cmd = [self._executable, *self._additional_args]

        if self._quiet:
            cmd.append("--quiet")
        if self._no_warnings:
            cmd.append("--no-warnings")
        if self._no_progress:
            cmd.append("--no-progress")
        if self._newline:
            cmd.append("--newline")
        if self._dump_single_json:
            cmd.append("--dump-single-json")

        if self._flat_playlist:
            cmd.append("--flat-playlist")

        if self._output is not None:
            cmd.extend(["--output", self._output])
        if self._extract_audio_format is not None:
            cmd.extend(
                ["--extract-audio", "--audio-format", self._extract_audio_format]
            )
        if self._merge_output_format is not None:
            cmd.extend(["--merge-output-format", self._merge_output_format])
        if self._geo_bypass:
            cmd.append("--geo-bypass")
        if self._rm_cache_dir:
            cmd.append("--rm-cache-dir")

        return cmd

    def __str__(self) -> str:
        return " ".join(self.to_list())
