"""Outcome of a single download attempt."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class DownloadStatus(str, Enum):
    """Tri-state result reported by a download executor.

    SUCCESS moves the item to saved, ERROR blocks it until failures are
    explicitly retried, and FAILURE drops it from the queue so the next run
    tries again.
    """

    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    ERROR = "ERROR"


@dataclass(frozen=True, slots=True)
class DownloadResponse:
    """Status plus whatever detail the executor could report.

    Attributes:
        status: The tri-state outcome.
        output_path: Final location of the file, when the executor knows it.
        error: Error text reported by the executor, if any.
        logs: Raw executor output, if captured.
    """

    status: DownloadStatus
    output_path: Path | None = None
    error: str | None = None
    logs: str | None = None
