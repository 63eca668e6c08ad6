"""Immutable run policy threaded through every synchronization step."""

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import AppSettings


@dataclass(frozen=True, slots=True)
class SyncPolicy:
    """Global flags that change what a run is allowed to do.

    The ``prevent_*`` flags turn the matching step into a dry run: the step
    logs what it would have done and mutates nothing.

    Attributes:
        prevent_download: Do not call the download executor.
        prevent_renaming: Do not move files whose name changed.
        prevent_deletion: Do not delete files during cleanup or filtering.
        prevent_playlist_edit: Do not write playlist manifests.
        prevent_channel_fetch: Reuse the cached catalog instead of fetching it.
        retry_previous_failures: Clear blocked items at the start of each channel.
        download_timeout: Seconds before a single download attempt is abandoned.
    """

    prevent_download: bool = False
    prevent_renaming: bool = False
    prevent_deletion: bool = False
    prevent_playlist_edit: bool = False
    prevent_channel_fetch: bool = False
    retry_previous_failures: bool = False
    download_timeout: float | None = None

    @classmethod
    def from_settings(cls, settings: "AppSettings") -> "SyncPolicy":
        """Build a policy from the loaded application settings."""
        return cls(
            prevent_download=settings.prevent_download,
            prevent_renaming=settings.prevent_renaming,
            prevent_deletion=settings.prevent_deletion,
            prevent_playlist_edit=settings.prevent_playlist_edit,
            prevent_channel_fetch=settings.prevent_channel_fetch,
            retry_previous_failures=settings.retry_previous_failures,
            download_timeout=settings.download_timeout,
        )
