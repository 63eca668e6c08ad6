"""Main orchestrator for channel synchronization.

This module defines the ChannelSynchronizer class, which drives one channel
through its pipeline (catalog fetch, pre rules, reconciliation, post rules,
downloads, playlist, cleanup) and runs every configured channel in turn.
"""

from datetime import UTC, datetime
import logging
import time

from pydantic import TypeAdapter, ValidationError

from ..config import ChannelConfig, SyncPolicy, base_channel_key
from ..exceptions import ChansyncError, MetadataFetchError, TransformRuleError
from ..key_store import KeyStore
from ..logging_config import log_context
from ..protocols import MetadataProvider
from ..state_store import StateStore
from ..transform_rules import ChannelRules, TransformContext, apply_rules
from ..types import CatalogItem, ChannelState, Err, Ok, VideoRecord
from .cleanup_sweeper import CleanupSweeper
from .download_runner import DownloadRunner
from .playlist_writer import PlaylistWriter
from .reconciler import Reconciler
from .types import ChannelSyncResult, PhaseResult, SyncStats

logger = logging.getLogger(__name__)

_CATALOG_ADAPTER = TypeAdapter(list[CatalogItem])


class ChannelSynchronizer:
    """Orchestrate the synchronization of every configured channel.

    Channels are processed one at a time. Within a channel a fatal error
    (state I/O, output directory listing, a failing rule) sets the error flag
    and stops the pipeline; non-fatal errors are logged and processing
    continues. The key store is persisted after every channel.

    Attributes:
        _metadata_provider: Source of channel catalogs.
        _state_store: Per-channel queued/saved/blocked persistence.
        _key_store: Last known locations of saved items.
        _reconciler: Computes the queued/saved/blocked partition.
        _download_runner: Fetches queued items.
        _playlist_writer: Maintains playlist manifests.
        _cleanup_sweeper: Deletes untracked and filtered files.
        _rules: Resolved transform rules per channel key.
        _policy: Run policy flags.
    """

    def __init__(
        self,
        metadata_provider: MetadataProvider,
        state_store: StateStore,
        key_store: KeyStore,
        reconciler: Reconciler,
        download_runner: DownloadRunner,
        playlist_writer: PlaylistWriter,
        cleanup_sweeper: CleanupSweeper,
        rules: dict[str, ChannelRules],
        policy: SyncPolicy,
    ):
        self._metadata_provider = metadata_provider
        self._state_store = state_store
        self._key_store = key_store
        self._reconciler = reconciler
        self._download_runner = download_runner
        self._playlist_writer = playlist_writer
        self._cleanup_sweeper = cleanup_sweeper
        self._rules = rules
        self._policy = policy
        self._key_store_loaded: bool | None = None
        logger.debug("ChannelSynchronizer initialized.")

    async def _read_cached_catalog(
        self, channel_key: str
    ) -> list[CatalogItem] | None:
        match await self._state_store.read_catalog_cache(channel_key):
            case Err() as err:
                logger.warning(
                    "Failed to read cached catalog.",
                    extra={"channel_key": channel_key},
                    exc_info=err.error,
                )
                return None
            case Ok(value=None):
                return None
            case Ok(value=str() as content):
                try:
                    return _CATALOG_ADAPTER.validate_json(content)
                except ValidationError as e:
                    logger.warning(
                        "Cached catalog is invalid; fetching instead.",
                        extra={"channel_key": channel_key},
                        exc_info=e,
                    )
                    return None

    async def _fetch_catalog(
        self, channel_key: str, channel: ChannelConfig
    ) -> list[CatalogItem]:
        """Return the channel's catalog, from cache when fetching is disabled.

        Raises:
            MetadataFetchError: If the catalog cannot be fetched.
        """
        if self._policy.prevent_channel_fetch:
            cached = await self._read_cached_catalog(channel_key)
            if cached is not None:
                logger.info(
                    "Using cached catalog.",
                    extra={"channel_key": channel_key, "items": len(cached)},
                )
                return cached
            logger.info(
                "No cached catalog; fetching despite prevent_channel_fetch.",
                extra={"channel_key": channel_key},
            )

        items = await self._metadata_provider.fetch_channel_items(channel_key, channel)

        for result in (
            await self._state_store.append_call_log(
                channel_key, f"fetch {channel.url} items={len(items)}"
            ),
            await self._state_store.write_catalog_cache(
                channel_key, _CATALOG_ADAPTER.dump_json(items, indent=2).decode()
            ),
        ):
            if isinstance(result, Err):
                logger.warning(
                    "Failed to record catalog fetch.",
                    extra={"channel_key": channel_key},
                    exc_info=result.error,
                )
        return items

    async def _execute_fetch_phase(
        self, channel_key: str, channel: ChannelConfig
    ) -> tuple[PhaseResult, list[CatalogItem]]:
        phase_start = time.time()
        log_params = {"channel_key": channel_key, "phase": "fetch"}

        cleanup = await self._state_store.cleanup_data(
            channel_key, self._policy.prevent_channel_fetch
        )
        if isinstance(cleanup, Err):
            logger.warning(
                "Failed to clean up cached data.",
                extra=log_params,
                exc_info=cleanup.error,
            )

        try:
            items = await self._fetch_catalog(channel_key, channel)
        except MetadataFetchError as e:
            duration = time.time() - phase_start
            logger.error(
                "Catalog fetch failed; skipping channel.",
                extra={**log_params, "duration_seconds": duration},
                exc_info=e,
            )
            failed = PhaseResult(success=False, errors=[e], duration_seconds=duration)
            return failed, []

        catalog = [item for item in items if item.id.strip()]
        if len(catalog) != len(items):
            logger.warning(
                "Dropped catalog items without an id.",
                extra={**log_params, "dropped": len(items) - len(catalog)},
            )
        duration = time.time() - phase_start
        logger.info(
            "Catalog fetched.",
            extra={**log_params, "items": len(catalog), "duration_seconds": duration},
        )
        return PhaseResult(
            success=True, count=len(catalog), duration_seconds=duration
        ), catalog

    async def _execute_reconcile_phase(
        self,
        channel_key: str,
        channel: ChannelConfig,
        records: list[VideoRecord],
        state: ChannelState,
        stats: SyncStats,
    ) -> PhaseResult:
        """Run pre rules, reconciliation, post rules, then checkpoint the state."""
        phase_start = time.time()
        log_params = {"channel_key": channel_key, "phase": "reconcile"}
        rules = self._rules.get(channel_key, ChannelRules())
        context = TransformContext(
            channel_key=channel_key, records=records, state=state
        )

        def failed(error: ChansyncError) -> PhaseResult:
            state.error_flag = True
            duration = time.time() - phase_start
            logger.error(
                "Reconcile phase failed.",
                extra={**log_params, "duration_seconds": duration},
                exc_info=error,
            )
            return PhaseResult(success=False, errors=[error], duration_seconds=duration)

        try:
            apply_rules(rules.pre, context)
        except TransformRuleError as e:
            return failed(e)

        reconciled = await self._reconciler.reconcile(
            channel_key, channel, records, state, self._policy, stats
        )
        if isinstance(reconciled, Err):
            return failed(reconciled.error)

        blocked_before = set(state.blocked)
        try:
            apply_rules(rules.post, context)
        except TransformRuleError as e:
            return failed(e)
        stats.filtered += len(state.blocked - blocked_before)

        if context.deletions:
            await self._cleanup_sweeper.delete_records(
                channel_key, context.deletions, self._policy, stats
            )

        saved = await self._state_store.save(state)
        if isinstance(saved, Err):
            return failed(saved.error)

        duration = time.time() - phase_start
        logger.info(
            "Reconcile phase completed.",
            extra={
                **log_params,
                "queued": len(state.queued),
                "duration_seconds": duration,
            },
        )
        return PhaseResult(
            success=True, count=len(state.queued), duration_seconds=duration
        )

    async def _execute_download_phase(
        self,
        channel_key: str,
        channel: ChannelConfig,
        records: list[VideoRecord],
        state: ChannelState,
        stats: SyncStats,
    ) -> PhaseResult:
        phase_start = time.time()
        log_params = {"channel_key": channel_key, "phase": "download"}

        if state.queued:
            logger.info(
                "Starting download phase.",
                extra={**log_params, "queued": len(state.queued)},
            )
        result = await self._download_runner.run(
            channel_key, channel, records, state, self._policy, stats
        )
        duration = time.time() - phase_start
        match result:
            case Err(error=error):
                return PhaseResult(
                    success=False, errors=[error], duration_seconds=duration
                )
            case Ok(value=downloaded):
                if downloaded:
                    logger.info(
                        "Download phase completed.",
                        extra={
                            **log_params,
                            "downloaded": downloaded,
                            "duration_seconds": duration,
                        },
                    )
                return PhaseResult(
                    success=True, count=downloaded, duration_seconds=duration
                )

    async def _execute_playlist_phase(
        self,
        channel_key: str,
        channel: ChannelConfig,
        records: list[VideoRecord],
        state: ChannelState,
        stats: SyncStats,
    ) -> PhaseResult:
        phase_start = time.time()
        if channel.playlist_file is None:
            return PhaseResult(success=True, skipped=True)

        result = await self._playlist_writer.write(
            channel_key, channel, records, state, self._policy
        )
        duration = time.time() - phase_start
        match result:
            case Err(error=error):
                logger.error(
                    "Playlist phase failed.",
                    extra={"channel_key": channel_key, "phase": "playlist"},
                    exc_info=error,
                )
                return PhaseResult(
                    success=False, errors=[error], duration_seconds=duration
                )
            case Ok(value=written):
                if written:
                    stats.playlists_updated += 1
                return PhaseResult(
                    success=True, count=int(written), duration_seconds=duration
                )

    async def _execute_cleanup_phase(
        self,
        channel_key: str,
        channel: ChannelConfig,
        records: list[VideoRecord],
        state: ChannelState,
        siblings: dict[str, ChannelConfig],
        stats: SyncStats,
    ) -> PhaseResult:
        phase_start = time.time()
        if not channel.keep_clean:
            return PhaseResult(success=True, skipped=True)
        if not self._key_store_loaded:
            logger.warning(
                "Skipping cleanup because the key store could not be loaded.",
                extra={"channel_key": channel_key, "phase": "cleanup"},
            )
            return PhaseResult(success=True, skipped=True)

        result = await self._cleanup_sweeper.sweep(
            channel_key, channel, records, state, siblings, self._policy, stats
        )
        duration = time.time() - phase_start
        match result:
            case Err(error=error):
                return PhaseResult(
                    success=False, errors=[error], duration_seconds=duration
                )
            case Ok(value=deleted):
                return PhaseResult(
                    success=True, count=deleted, duration_seconds=duration
                )

    async def _save_key_store(self, channel_key: str) -> None:
        saved = await self._key_store.save()
        if isinstance(saved, Err):
            logger.error(
                "Failed to save key store.",
                extra={"channel_key": channel_key},
                exc_info=saved.error,
            )

    async def sync_channel(
        self,
        channel_key: str,
        channel: ChannelConfig,
        siblings: dict[str, ChannelConfig] | None = None,
    ) -> ChannelSyncResult:
        """Run one channel through the whole pipeline.

        Args:
            channel_key: The channel to process.
            channel: Its configuration.
            siblings: Channels sharing its base key, for cleanup. Defaults to
                the channel alone.

        Returns:
            The per-phase results and counters of the run.
        """
        start = time.time()
        result = ChannelSyncResult(
            channel_key=channel_key, start_time=datetime.now(UTC)
        )
        siblings = siblings if siblings is not None else {channel_key: channel}
        if self._key_store_loaded is None:
            await self.load_key_store()

        with log_context(channel_key):
            logger.info(
                "Starting channel synchronization.",
                extra={"channel_key": channel_key, "channel_name": channel.name},
            )
            try:
                await self._run_pipeline(channel_key, channel, siblings, result)
            finally:
                await self._save_key_store(channel_key)
                result.total_duration_seconds = time.time() - start
                log = logger.error if result.is_fatal else logger.info
                log("Channel synchronization finished.", extra=result.summary_dict())
        return result

    async def _run_pipeline(
        self,
        channel_key: str,
        channel: ChannelConfig,
        siblings: dict[str, ChannelConfig],
        result: ChannelSyncResult,
    ) -> None:
        stats = result.stats

        result.fetch_result, catalog = await self._execute_fetch_phase(
            channel_key, channel
        )
        if not result.fetch_result.success:
            result.fatal_error = result.fetch_result.errors[0]
            return

        loaded = await self._state_store.load(channel_key)
        if isinstance(loaded, Err):
            logger.error(
                "Failed to load channel state.",
                extra={"channel_key": channel_key},
                exc_info=loaded.error,
            )
            result.fatal_error = loaded.error
            return
        state = loaded.value

        records = [
            VideoRecord.from_catalog_item(item, channel.output_dir, channel.file_format)
            for item in catalog
        ]

        result.reconcile_result = await self._execute_reconcile_phase(
            channel_key, channel, records, state, stats
        )
        if not result.reconcile_result.success:
            result.fatal_error = result.reconcile_result.errors[0]
            return

        result.download_result = await self._execute_download_phase(
            channel_key, channel, records, state, stats
        )
        if not result.download_result.success:
            result.fatal_error = result.download_result.errors[0]
            return

        result.playlist_result = await self._execute_playlist_phase(
            channel_key, channel, records, state, stats
        )
        result.cleanup_result = await self._execute_cleanup_phase(
            channel_key, channel, records, state, siblings, stats
        )

    async def reset_channels(self, channel_keys: list[str]) -> bool:
        """Delete the persisted state of the given channels.

        Returns:
            True if every reset succeeded.
        """
        ok = True
        for channel_key in channel_keys:
            result = await self._state_store.reset(channel_key)
            if isinstance(result, Err):
                logger.error(
                    "Failed to reset channel state.",
                    extra={"channel_key": channel_key},
                    exc_info=result.error,
                )
                ok = False
        return ok

    async def load_key_store(self) -> bool:
        """Load the key store; cleanup stays disabled if this fails.

        Returns:
            Whether the key store was loaded.
        """
        loaded = await self._key_store.load()
        self._key_store_loaded = isinstance(loaded, Ok)
        if isinstance(loaded, Err):
            logger.error("Failed to load key store.", exc_info=loaded.error)
        return self._key_store_loaded

    async def run_all(
        self, channels: dict[str, ChannelConfig]
    ) -> list[ChannelSyncResult]:
        """Synchronize every active channel, one at a time.

        A fatal error in one channel does not stop the others.

        Returns:
            One result per active channel, in configuration order.
        """
        await self.load_key_store()

        results: list[ChannelSyncResult] = []
        total = SyncStats()
        for channel_key, channel in channels.items():
            if not channel.active:
                logger.debug(
                    "Skipping inactive channel.", extra={"channel_key": channel_key}
                )
                continue
            base = base_channel_key(channel_key)
            siblings = {
                key: config
                for key, config in channels.items()
                if base_channel_key(key) == base
            }
            result = await self.sync_channel(channel_key, channel, siblings)
            total.merge(result.stats)
            results.append(result)

        failed = [r.channel_key for r in results if r.is_fatal]
        logger.info(
            "Run finished.",
            extra={
                "channels": len(results),
                "failed_channels": failed,
                "stats": total.summary_dict(),
            },
        )
        return results
