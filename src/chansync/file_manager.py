"""File system management for chansync.

This module provides the FileManager class for the file operations the
synchronizer performs: reading and atomically rewriting line-oriented state
files, resolving canonical paths, scanning output directories, and moving or
deleting media files. Notably does not create media files, as that is done by
the download executor.
"""

import asyncio
import logging
import os
from pathlib import Path
import uuid

import aiofiles
import aiofiles.os

from .exceptions import FileOperationError

logger = logging.getLogger(__name__)

FILE_ENCODING = "utf-8"


class FileManager:
    """Perform file system operations on state files and media files.

    Every write of a state file or manifest goes through a temporary file in
    the same directory followed by a replace, so a crash leaves either the old
    or the new version on disk.
    """

    async def read_lines(self, file_path: Path) -> list[str]:
        """Read the non-empty lines of a text file.

        Args:
            file_path: The file to read.

        Returns:
            The stripped, non-empty lines; an empty list if the file is missing.

        Raises:
            FileOperationError: If the file exists but cannot be read.
        """
        try:
            async with aiofiles.open(file_path, encoding=FILE_ENCODING) as f:
                content = await f.read()
        except FileNotFoundError:
            return []
        except (OSError, UnicodeDecodeError) as e:
            raise FileOperationError(
                "Failed to read file.", file_path=str(file_path)
            ) from e
        return [line.strip() for line in content.splitlines() if line.strip()]

    async def write_lines_atomic(self, file_path: Path, lines: list[str]) -> None:
        """Replace a text file with one line per entry, newline-terminated.

        Args:
            file_path: The file to write.
            lines: The lines to write, without line endings.

        Raises:
            FileOperationError: If the file cannot be written.
        """
        content = "".join(f"{line}\n" for line in lines)
        await self.write_text_atomic(file_path, content)

    async def write_text_atomic(self, file_path: Path, content: str) -> None:
        """Replace a text file through a temporary sibling file.

        Args:
            file_path: The file to write.
            content: The full file content.

        Raises:
            FileOperationError: If the file cannot be written.
        """
        tmp_path = file_path.with_name(f".{file_path.name}.{uuid.uuid4().hex}.tmp")
        try:
            await aiofiles.os.makedirs(file_path.parent, exist_ok=True)
            async with aiofiles.open(
                tmp_path, "w", encoding=FILE_ENCODING, newline="\n"
            ) as f:
                await f.write(content)
                await f.flush()
                os.fsync(f.fileno())
            await aiofiles.os.replace(tmp_path, file_path)
        except OSError as e:
            raise FileOperationError(
                "Failed to write file.", file_path=str(file_path)
            ) from e
        finally:
            if await aiofiles.os.path.exists(tmp_path):
                try:
                    await aiofiles.os.remove(tmp_path)
                except OSError:
                    logger.warning(
                        "Failed to remove temporary file.",
                        extra={"file_path": str(tmp_path)},
                    )

    async def read_text(self, file_path: Path) -> str | None:
        """Read a whole text file.

        Returns:
            The content, or None if the file is missing.

        Raises:
            FileOperationError: If the file exists but cannot be read.
        """
        try:
            async with aiofiles.open(file_path, encoding=FILE_ENCODING) as f:
                return await f.read()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise FileOperationError(
                "Failed to read file.", file_path=str(file_path)
            ) from e

    async def append_line(self, file_path: Path, line: str) -> None:
        """Append one line to a text file, creating it if needed.

        Raises:
            FileOperationError: If the file cannot be written.
        """
        try:
            await aiofiles.os.makedirs(file_path.parent, exist_ok=True)
            async with aiofiles.open(
                file_path, "a", encoding=FILE_ENCODING, newline="\n"
            ) as f:
                await f.write(f"{line}\n")
        except OSError as e:
            raise FileOperationError(
                "Failed to append to file.", file_path=str(file_path)
            ) from e

    async def copy_file(self, source: Path, dest: Path) -> None:
        """Copy a file's bytes to another path through an atomic replace.

        Raises:
            FileOperationError: If either file cannot be accessed.
        """
        tmp_path = dest.with_name(f".{dest.name}.{uuid.uuid4().hex}.tmp")
        try:
            async with aiofiles.open(source, "rb") as src:
                data = await src.read()
            async with aiofiles.open(tmp_path, "wb") as dst:
                await dst.write(data)
            await aiofiles.os.replace(tmp_path, dest)
        except OSError as e:
            raise FileOperationError(
                "Failed to copy file.", file_path=str(source)
            ) from e
        finally:
            if await aiofiles.os.path.exists(tmp_path):
                await aiofiles.os.remove(tmp_path)

    async def file_exists(self, file_path: Path) -> bool:
        """Return True if the path exists and is a regular file."""
        return await aiofiles.os.path.isfile(file_path)

    async def file_size(self, file_path: Path) -> int:
        """Return the size of a file in bytes, or 0 if it cannot be read."""
        try:
            return await aiofiles.os.path.getsize(file_path)
        except OSError:
            return 0

    async def canonical_path(self, file_path: Path) -> Path:
        """Resolve a path to its canonical on-disk form.

        Symlinks in the parent chain are resolved, and the final component is
        replaced by the name the directory actually stores, so that a lookup on
        a case-insensitive file system reports the real casing.

        Args:
            file_path: The path to resolve.

        Returns:
            The canonical absolute path; for a missing file, the resolved path.
        """
        resolved = Path(await asyncio.to_thread(os.path.realpath, file_path))
        try:
            entries = await aiofiles.os.listdir(resolved.parent)
        except OSError:
            return resolved

        if resolved.name in entries:
            return resolved
        folded = resolved.name.casefold()
        for entry in entries:
            if entry.casefold() == folded:
                return resolved.parent / entry
        return resolved

    async def is_exact_file(self, file_path: Path) -> bool:
        """Return True if a file exists at exactly this path.

        A file that only matches through case-insensitive aliasing of its
        name does not count.
        """
        if not await self.file_exists(file_path):
            return False
        try:
            entries = await aiofiles.os.listdir(file_path.parent)
        except OSError:
            return False
        return file_path.name in entries

    async def list_files(self, directory: Path) -> list[Path]:
        """List the regular files directly inside a directory, sorted by name.

        Args:
            directory: The directory to scan.

        Returns:
            The files found; an empty list if the directory does not exist.

        Raises:
            FileOperationError: If the directory exists but cannot be listed.
        """
        try:
            entries = await aiofiles.os.listdir(directory)
        except FileNotFoundError:
            return []
        except OSError as e:
            raise FileOperationError(
                "Failed to list directory.", file_path=str(directory)
            ) from e

        files: list[Path] = []
        for entry in sorted(entries):
            path = directory / entry
            if await aiofiles.os.path.isfile(path):
                files.append(path)
        return files

    async def move_file(self, source: Path, dest: Path) -> None:
        """Move a file, refusing to overwrite an existing destination.

        Args:
            source: The file to move.
            dest: The new location.

        Raises:
            FileExistsError: If a different file already exists at dest.
            FileOperationError: If the move fails at the OS level.
        """
        if await aiofiles.os.path.exists(dest) and not await aiofiles.os.path.samefile(
            source, dest
        ):
            raise FileExistsError(f"Destination already exists: {dest}")
        try:
            await aiofiles.os.makedirs(dest.parent, exist_ok=True)
            await aiofiles.os.rename(source, dest)
        except OSError as e:
            raise FileOperationError(
                "Failed to move file.", file_path=str(source)
            ) from e
        logger.debug(
            "File moved.", extra={"source": str(source), "dest": str(dest)}
        )

    async def delete_file(self, file_path: Path) -> None:
        """Delete a regular file.

        Raises:
            FileNotFoundError: If the file does not exist or is not a regular file.
            FileOperationError: If an OS-level error occurs during deletion.
        """
        if not await aiofiles.os.path.isfile(file_path):
            raise FileNotFoundError(f"File not found: {file_path}")
        try:
            await aiofiles.os.remove(file_path)
        except OSError as e:
            raise FileOperationError(
                "Failed to delete file.", file_path=str(file_path)
            ) from e
        logger.debug("File unlinked successfully.", extra={"file_path": str(file_path)})
