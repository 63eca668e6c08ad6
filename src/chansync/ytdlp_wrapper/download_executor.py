"""Downloads performed by yt-dlp, classified into SUCCESS, FAILURE, or ERROR."""

import logging
from pathlib import Path
import re

from ..config import ChannelConfig
from ..exceptions import DownloadExecutorError, YtdlpApiError
from ..types import DownloadResponse, DownloadStatus, VideoRecord
from .args import YtdlpArgs
from .core import YtdlpCore

logger = logging.getLogger(__name__)

# Errors worth retrying next run; anything else blocks the item.
TRANSIENT_ERRORS = (
    "giving up after 10",
    "urlopen error",
    "sign in to",
    "please install or provide the path",
)

_ERROR_MARKERS = ("ERROR: ", ".exe: error: ")

_OUTPUT_PATTERNS = (
    re.compile(r"^\[download\]\s*Destination:\s*(?P<path>.+)$"),
    re.compile(r"^\[download\]\s(?P<path>.+)\shas\salready\sbeen\sdownloaded$"),
    re.compile(r"^\[ExtractAudio\]\s*Destination:\s*(?P<path>.+)$"),
    re.compile(r'^\[Merger\]\s*Merging\s*formats\s*into\s*"(?P<path>.+)"$'),
)


def extract_error(output: str) -> str | None:
    """Return the last error reported in yt-dlp output, flattened to one line."""
    start = max(output.rfind(marker) for marker in _ERROR_MARKERS)
    if start < 0:
        return None
    return re.sub(r"\r?\n", " - ", output[start:].strip())


def classify_output(output: str) -> tuple[DownloadStatus, str | None]:
    """Classify yt-dlp output into a download status.

    Returns:
        The status and the reported error, if any. Output without an error
        is a SUCCESS; a transient error is a FAILURE; any other error is an
        ERROR.
    """
    error = extract_error(output)
    if error is None:
        return DownloadStatus.SUCCESS, None
    lowered = error.lower()
    if any(marker in lowered for marker in TRANSIENT_ERRORS):
        return DownloadStatus.FAILURE, error
    return DownloadStatus.ERROR, error


def extract_output_path(output: str) -> Path | None:
    """Return the last file yt-dlp reported writing, if any."""
    output_path: Path | None = None
    for line in output.splitlines():
        for pattern in _OUTPUT_PATTERNS:
            if matched := pattern.match(line.strip()):
                output_path = Path(matched.group("path"))
                break
    return output_path


class YtdlpDownloadExecutor:
    """Download one record with yt-dlp into its expected location.

    Attributes:
        _executable: yt-dlp executable name or path.
    """

    def __init__(self, executable: str = "yt-dlp"):
        self._executable = executable

    def _build_args(self, record: VideoRecord, channel: ChannelConfig) -> YtdlpArgs:
        args = (
            YtdlpArgs(self._executable, channel.yt_args)
            .no_warnings()
            .no_progress()
            .newline()
            .output(record.output_path.parent / record.output_path.stem)
            .geo_bypass()
            .rm_cache_dir()
        )
        if channel.is_audio:
            args.extract_audio(channel.file_format)
        else:
            args.merge_output_format(channel.file_format)
        return args

    async def fetch(
        self, record: VideoRecord, channel: ChannelConfig
    ) -> DownloadResponse:
        """Download a record and classify the outcome.

        Raises:
            DownloadExecutorError: If yt-dlp cannot be started.
        """
        args = self._build_args(record, channel)
        try:
            result = await YtdlpCore.run(args, record.url)
        except YtdlpApiError as e:
            raise DownloadExecutorError(
                "Failed to run yt-dlp for download.",
                item_id=record.id,
            ) from e

        output = f"{result.stdout}\n{result.stderr}".strip()
        status, error = classify_output(output)
        if status is DownloadStatus.SUCCESS and result.exit_code != 0:
            status = DownloadStatus.FAILURE
            error = f"yt-dlp exited with code {result.exit_code}"

        logger.debug(
            "yt-dlp download finished.",
            extra={
                "item_id": record.id,
                "status": status.value,
                "exit_code": result.exit_code,
            },
        )
        return DownloadResponse(
            status=status,
            output_path=extract_output_path(output),
            error=error,
            logs=result.logs,
        )
