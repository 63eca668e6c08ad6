"""Command-line interface entry point for chansync.

This module provides the main CLI function that loads settings, sets up
logging, wires the synchronizer together, and runs every active channel once.
"""

import logging

from pydantic import ValidationError

from ..config import AppSettings, SyncPolicy
from ..exceptions import ConfigLoadError, TransformRuleError
from ..file_manager import FileManager
from ..key_store import KeyStore
from ..logging_config import setup_logging
from ..path_manager import PathManager
from ..state_store import StateStore
from ..synchronizer import (
    ChannelSynchronizer,
    CleanupSweeper,
    DownloadRunner,
    PlaylistWriter,
    Reconciler,
)
from ..transform_rules import resolve_rules
from ..ytdlp_wrapper import YtdlpDownloadExecutor, YtdlpMetadataProvider

logger = logging.getLogger(__name__)


def build_synchronizer(settings: AppSettings) -> ChannelSynchronizer:
    """Wire the synchronizer and its collaborators from settings.

    Raises:
        TransformRuleError: If a channel references an unknown rule.
    """
    paths = PathManager(settings.data_dir)
    file_manager = FileManager()
    state_store = StateStore(paths, file_manager)
    key_store = KeyStore(paths, file_manager)

    return ChannelSynchronizer(
        metadata_provider=YtdlpMetadataProvider(settings.ytdlp_path),
        state_store=state_store,
        key_store=key_store,
        reconciler=Reconciler(file_manager, key_store),
        download_runner=DownloadRunner(
            YtdlpDownloadExecutor(settings.ytdlp_path), state_store, key_store
        ),
        playlist_writer=PlaylistWriter(file_manager),
        cleanup_sweeper=CleanupSweeper(file_manager, state_store, key_store),
        rules=resolve_rules(settings.channels),
        policy=SyncPolicy.from_settings(settings),
    )


async def main_cli() -> int:
    """Load configuration and synchronize every active channel once.

    Returns:
        Process exit code: 0 if every channel completed, 1 if any channel
        ended with a fatal error or the configuration could not be loaded.
    """
    try:
        settings = AppSettings(_cli_parse_args=True)  # type: ignore
    except (ConfigLoadError, ValidationError) as e:
        setup_logging(
            log_format_type="human",
            app_log_level_name="INFO",
            include_stacktrace=False,
        )
        logger.error("Failed to load configuration.", exc_info=e)
        return 1

    setup_logging(
        log_format_type=settings.log_format,
        app_log_level_name=settings.log_level,
        include_stacktrace=settings.log_include_stacktrace,
    )
    logger.debug(
        "Application settings loaded.",
        extra={
            "config_file": str(settings.config_file),
            "data_dir": str(settings.data_dir),
            "channels": len(settings.channels),
        },
    )

    try:
        synchronizer = build_synchronizer(settings)
    except TransformRuleError as e:
        logger.error("Invalid transform rule configuration.", exc_info=e)
        return 1

    if settings.reset_channels:
        if not await synchronizer.reset_channels(settings.reset_channels):
            return 1

    if not any(channel.active for channel in settings.channels.values()):
        logger.warning(
            "No active channels configured.",
            extra={"config_file": str(settings.config_file)},
        )
        return 0

    results = await synchronizer.run_all(settings.channels)
    return 1 if any(result.is_fatal for result in results) else 0
