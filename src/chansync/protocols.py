"""Interfaces of the collaborators the synchronizer depends on."""

from typing import Protocol

from .config import ChannelConfig
from .types import CatalogItem, DownloadResponse, VideoRecord


class MetadataProvider(Protocol):
    """Source of the ordered catalog of a channel."""

    async def fetch_channel_items(
        self, channel_key: str, channel: ChannelConfig
    ) -> list[CatalogItem]:
        """Return the channel's catalog in catalog order.

        Raises:
            MetadataFetchError: If the catalog cannot be retrieved.
        """
        ...


class DownloadExecutor(Protocol):
    """Fetches the file of one catalog item."""

    async def fetch(
        self, record: VideoRecord, channel: ChannelConfig
    ) -> DownloadResponse:
        """Download one item to (a variant of) ``record.output_path``.

        Implementations report transient problems as FAILURE and permanent
        ones as ERROR. Exceptions are tolerated and treated as FAILURE.
        """
        ...
