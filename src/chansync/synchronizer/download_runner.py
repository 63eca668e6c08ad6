"""Fetch queued items one at a time and checkpoint state after each."""

import asyncio
import logging
from pathlib import Path

from ..config import ChannelConfig, SyncPolicy
from ..key_store import KeyStore
from ..protocols import DownloadExecutor
from ..state_store import StateStore
from ..types import (
    ChannelState,
    DownloadResponse,
    DownloadStatus,
    Err,
    IOResult,
    Ok,
    VideoRecord,
)
from .types import SyncStats

logger = logging.getLogger(__name__)


class DownloadRunner:
    """Drive the download executor over a channel's queue.

    Attributes:
        _executor: Fetches one item and reports SUCCESS, FAILURE, or ERROR.
        _state_store: Persists the channel state after every attempt.
        _key_store: Records where downloaded items were saved.
    """

    def __init__(
        self,
        executor: DownloadExecutor,
        state_store: StateStore,
        key_store: KeyStore,
    ):
        self._executor = executor
        self._state_store = state_store
        self._key_store = key_store

    async def _fetch(
        self,
        record: VideoRecord,
        channel: ChannelConfig,
        timeout: float | None,
        log_params: dict[str, str],
    ) -> DownloadResponse:
        """Call the executor, mapping exceptions and timeouts to FAILURE."""
        try:
            return await asyncio.wait_for(
                self._executor.fetch(record, channel), timeout=timeout
            )
        except TimeoutError:
            logger.warning(
                "Download timed out.", extra={**log_params, "timeout": timeout}
            )
            return DownloadResponse(
                status=DownloadStatus.FAILURE,
                error=f"Timed out after {timeout} seconds",
            )
        except Exception as e:
            logger.error("Download executor raised.", extra=log_params, exc_info=e)
            return DownloadResponse(status=DownloadStatus.FAILURE, error=str(e))

    @staticmethod
    def _resolve_output(record: VideoRecord, output_path: Path | None) -> None:
        if output_path is None:
            return
        if not output_path.is_absolute():
            output_path = record.output_dir / output_path
        record.update_output(output_path)

    async def run(
        self,
        channel_key: str,
        channel: ChannelConfig,
        records: list[VideoRecord],
        state: ChannelState,
        policy: SyncPolicy,
        stats: SyncStats,
    ) -> IOResult[int]:
        """Attempt every queued item, in catalog order.

        SUCCESS moves the item to saved, ERROR blocks it, and FAILURE only
        removes it from the queue so the next run retries it. The state is
        saved after every attempt; a failed save aborts the remaining queue.

        Returns:
            Ok with the number of successful downloads, or the FATAL Err of
            the failed save (the state's error flag is set).
        """
        downloaded = 0
        key_view = self._key_store.channel(channel_key)

        for record in records:
            if record.id not in state.queued:
                continue
            log_params = {
                "channel_key": channel_key,
                "item_id": record.id,
                "output_path": str(record.output_path),
            }

            if policy.prevent_download:
                logger.info(
                    "Would have downloaded item.",
                    extra={**log_params, "url": record.url},
                )
                stats.would_download += 1
                continue

            logger.info("Downloading item.", extra={**log_params, "url": record.url})
            response = await self._fetch(
                record, channel, policy.download_timeout, log_params
            )

            match response.status:
                case DownloadStatus.SUCCESS:
                    self._resolve_output(record, response.output_path)
                    state.mark_saved(record.id)
                    key_view.put(record)
                    downloaded += 1
                    stats.downloaded += 1
                    logger.info(
                        "Downloaded item.",
                        extra={
                            **log_params,
                            "url": record.url,
                            "output_path": str(record.output_path),
                        },
                    )
                case DownloadStatus.ERROR:
                    state.mark_blocked(record.id)
                    stats.download_errors += 1
                    logger.error(
                        "Download failed permanently; item blocked.",
                        extra={**log_params, "error": response.error},
                    )
                case DownloadStatus.FAILURE:
                    state.queued.discard(record.id)
                    stats.download_failures += 1
                    logger.warning(
                        "Download failed; will retry next run.",
                        extra={**log_params, "error": response.error},
                    )

            save_result = await self._state_store.save(state)
            if isinstance(save_result, Err):
                state.error_flag = True
                logger.error(
                    "Failed to checkpoint channel state; abandoning queue.",
                    extra=log_params,
                    exc_info=save_result.error,
                )
                return save_result

        return Ok(downloaded)
