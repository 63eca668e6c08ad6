"""Write a channel's playlist manifest from its saved items."""

import logging
from pathlib import Path

from ..config import ChannelConfig, SyncPolicy
from ..exceptions import FileOperationError, PlaylistError
from ..file_manager import FileManager
from ..types import ChannelState, Err, ErrorKind, IOResult, Ok, VideoRecord

logger = logging.getLogger(__name__)


def playlist_entry(media_path: Path, playlist_dir: Path) -> str:
    """Return a media path as written in a playlist.

    Paths under the playlist's directory are written relative to it; others
    stay absolute. Separators are always forward slashes.
    """
    try:
        return media_path.relative_to(playlist_dir).as_posix()
    except ValueError:
        return media_path.as_posix()


class PlaylistWriter:
    """Keep a channel's playlist in step with what is saved.

    Attributes:
        _file_manager: Reads the current manifest and writes the new one.
    """

    def __init__(self, file_manager: FileManager):
        self._file_manager = file_manager

    async def build_entries(
        self,
        channel: ChannelConfig,
        playlist_dir: Path,
        records: list[VideoRecord],
        state: ChannelState,
    ) -> list[str]:
        """Return the manifest lines for a channel's saved, existing files."""
        ordered = reversed(records) if channel.reverse_playlist else records

        entries: list[str] = []
        for record in ordered:
            if record.id not in state.saved:
                continue
            if not await self._file_manager.file_exists(record.output_path):
                continue
            entries.append(playlist_entry(record.output_path, playlist_dir))
        return entries

    async def write(
        self,
        channel_key: str,
        channel: ChannelConfig,
        records: list[VideoRecord],
        state: ChannelState,
        policy: SyncPolicy,
    ) -> IOResult[bool]:
        """Rewrite the playlist if its content changed.

        Channels without a playlist file and runs with the error flag set
        leave the manifest alone.

        Returns:
            Ok(True) if the manifest was written, Ok(False) if nothing was
            written, or a NON_FATAL Err if it could not be read or written.
        """
        playlist_file = channel.playlist_file
        if playlist_file is None:
            return Ok(False)
        log_params = {"channel_key": channel_key, "playlist_file": str(playlist_file)}

        if state.error_flag:
            logger.warning(
                "Skipping playlist update after an error this run.", extra=log_params
            )
            return Ok(False)

        entries = await self.build_entries(
            channel, playlist_file.parent, records, state
        )
        try:
            existing = await self._file_manager.read_lines(playlist_file)
        except FileOperationError as e:
            error = PlaylistError(
                "Failed to read existing playlist.",
                channel_key=channel_key,
                file_path=str(playlist_file),
            )
            error.__cause__ = e
            return Err(ErrorKind.NON_FATAL, error)

        if entries == existing and await self._file_manager.file_exists(playlist_file):
            logger.debug("Playlist unchanged.", extra=log_params)
            return Ok(False)

        if policy.prevent_playlist_edit:
            logger.info(
                "Would have updated playlist.",
                extra={**log_params, "entries": len(entries)},
            )
            return Ok(False)

        try:
            await self._file_manager.write_lines_atomic(playlist_file, entries)
        except FileOperationError as e:
            error = PlaylistError(
                "Failed to write playlist.",
                channel_key=channel_key,
                file_path=str(playlist_file),
            )
            error.__cause__ = e
            return Err(ErrorKind.NON_FATAL, error)

        logger.info("Updated playlist.", extra={**log_params, "entries": len(entries)})
        return Ok(True)
