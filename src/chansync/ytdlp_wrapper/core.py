"""Subprocess execution of yt-dlp."""

import asyncio
from dataclasses import dataclass
import logging

from ..exceptions import YtdlpApiError
from .args import YtdlpArgs

logger = logging.getLogger(__name__)


def _decode(output: bytes | None) -> str:
    return output.decode("utf-8", errors="replace") if output else ""


@dataclass(frozen=True, slots=True)
class YtdlpRunResult:
    """Exit code and decoded output of one yt-dlp run."""

    exit_code: int
    stdout: str
    stderr: str

    @property
    def logs(self) -> str:
        """Return stdout and stderr under ``STDOUT:``/``STDERR:`` headers."""
        sections = [
            f"{header}:\n{text}"
            for header, text in (("STDOUT", self.stdout), ("STDERR", self.stderr))
            if text
        ]
        return "\n\n".join(sections)


class YtdlpCore:
    """Run the yt-dlp executable and capture what it prints."""

    @staticmethod
    async def run(args: YtdlpArgs, url: str) -> YtdlpRunResult:
        """Run yt-dlp against one URL.

        Cancelling the awaiting task kills the process, which is how a
        download timeout stops it. A non-zero exit code is returned, not
        raised; callers decide what it means.

        Raises:
            YtdlpApiError: If the executable cannot be started.
        """
        argv = [*args.to_list(), url]
        logger.debug("Starting yt-dlp.", extra={"argv": argv})

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise YtdlpApiError(
                message=f"Cannot start yt-dlp executable '{argv[0]}'.",
                url=url,
            ) from e

        try:
            raw_stdout, raw_stderr = await proc.communicate()
        except asyncio.CancelledError:
            proc.kill()
            raise
        finally:
            await proc.wait()

        result = YtdlpRunResult(
            exit_code=proc.returncode if proc.returncode is not None else -1,
            stdout=_decode(raw_stdout),
            stderr=_decode(raw_stderr),
        )
        logger.debug(
            "yt-dlp exited.",
            extra={
                "url": url,
                "exit_code": result.exit_code,
                "stdout_chars": len(result.stdout),
                "stderr_chars": len(result.stderr),
            },
        )
        return result
