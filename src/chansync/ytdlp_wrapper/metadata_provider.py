"""Channel catalogs listed through yt-dlp."""

from datetime import UTC, datetime
import json
import logging
from typing import Any, cast

from ..config import ChannelConfig
from ..exceptions import MetadataFetchError, YtdlpApiError
from ..types import CatalogItem
from .args import YtdlpArgs
from .core import YtdlpCore

logger = logging.getLogger(__name__)

# yt-dlp exits with 101 when downloads were cut short by filters.
_FILTERED_EXIT_CODE = 101


def _parse_published(entry: dict[str, Any]) -> datetime | None:
    match entry.get("timestamp"), entry.get("upload_date"):
        case int() | float() as ts, _:
            return datetime.fromtimestamp(ts, UTC)
        case _, str() as upload_date:
            try:
                return datetime.strptime(upload_date, "%Y%m%d").replace(tzinfo=UTC)
            except ValueError:
                return None
        case _:
            return None


def _flatten_entries(info: dict[str, Any]) -> list[dict[str, Any]]:
    """Collect leaf entries, descending into nested playlists (channel tabs)."""
    flattened: list[dict[str, Any]] = []
    for entry in info.get("entries") or []:
        if not isinstance(entry, dict):
            continue
        entry = cast(dict[str, Any], entry)
        if entry.get("entries") is not None:
            flattened.extend(_flatten_entries(entry))
        elif entry.get("_type", "url") in ("url", "video"):
            flattened.append(entry)
    return flattened


def parse_catalog(info: dict[str, Any]) -> list[CatalogItem]:
    """Map a ``--dump-single-json`` document to catalog items.

    Entries without an id or a URL are skipped. Duplicate ids keep their
    first position.
    """
    items: list[CatalogItem] = []
    seen: set[str] = set()
    for entry in _flatten_entries(info):
        item_id = str(entry.get("id") or "").strip()
        url = entry.get("webpage_url") or entry.get("url")
        if not item_id or not url or item_id in seen:
            continue
        seen.add(item_id)
        items.append(
            CatalogItem(
                id=item_id,
                title=str(entry.get("title") or item_id),
                url=str(url),
                published=_parse_published(entry),
            )
        )
    return items


class YtdlpMetadataProvider:
    """List a channel's catalog with ``yt-dlp --flat-playlist``.

    Attributes:
        _executable: yt-dlp executable name or path.
    """

    def __init__(self, executable: str = "yt-dlp"):
        self._executable = executable

    async def fetch_channel_items(
        self, channel_key: str, channel: ChannelConfig
    ) -> list[CatalogItem]:
        """Return the channel's catalog in the order yt-dlp lists it.

        Raises:
            MetadataFetchError: If yt-dlp cannot run, fails, or prints
                something that is not a JSON object.
        """
        args = (
            YtdlpArgs(self._executable, channel.yt_args)
            .quiet()
            .no_warnings()
            .flat_playlist()
            .dump_single_json()
        )
        try:
            result = await YtdlpCore.run(args, channel.url)
        except YtdlpApiError as e:
            raise MetadataFetchError(
                "Failed to run yt-dlp for catalog listing.",
                channel_key=channel_key,
                url=channel.url,
            ) from e

        failed = result.exit_code not in (0, _FILTERED_EXIT_CODE)
        if failed or not result.stdout.strip():
            raise MetadataFetchError(
                f"yt-dlp catalog listing failed with exit code {result.exit_code}.",
                channel_key=channel_key,
                url=channel.url,
                logs=result.logs,
            )

        try:
            info = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise MetadataFetchError(
                "Failed to parse yt-dlp JSON output.",
                channel_key=channel_key,
                url=channel.url,
                logs=result.logs,
            ) from e
        if not isinstance(info, dict):
            raise MetadataFetchError(
                "Unexpected yt-dlp output: expected a JSON object, "
                f"got {type(info).__name__}.",
                channel_key=channel_key,
                url=channel.url,
            )

        items = parse_catalog(cast(dict[str, Any], info))
        logger.debug(
            "Catalog listed.",
            extra={
                "channel_key": channel_key,
                "url": channel.url,
                "items": len(items),
            },
        )
        return items
