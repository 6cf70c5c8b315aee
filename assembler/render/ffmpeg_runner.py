"""FFmpeg invocation off the event loop on a dedicated, bounded worker pool."""

import asyncio
import logging
import shlex
import subprocess
from concurrent.futures import ThreadPoolExecutor
from functools import partial

from assembler.config import get_settings
from assembler.exceptions import TranscodeError
from assembler.utils.media_info import probe_duration

logger = logging.getLogger(__name__)


class FFmpegRunner:
    """
    Runs ffmpeg/ffprobe in worker threads.

    The pool size is independent of the render admission ceiling, so a long
    transcode never stalls downloads of other jobs on the event loop.
    """

    def __init__(
        self,
        max_workers: int | None = None,
        ffmpeg_path: str | None = None,
        timeout_seconds: float | None = None,
    ):
        settings = get_settings()
        self.ffmpeg_path = ffmpeg_path or settings.ffmpeg_path
        self.timeout_seconds = timeout_seconds or settings.ffmpeg_timeout_seconds
        self.stderr_tail_chars = settings.ffmpeg_stderr_tail_chars
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.render_ffmpeg_workers,
            thread_name_prefix="ffmpeg",
        )

    def build_command(self, args: list[str]) -> list[str]:
        return [self.ffmpeg_path, *args]

    def _run_sync(self, cmd: list[str], label: str) -> None:
        try:
            result = subprocess.run(cmd, capture_output=True, timeout=self.timeout_seconds)
        except subprocess.TimeoutExpired:
            raise TranscodeError(
                label, f"timed out after {self.timeout_seconds:.0f}s", command=shlex.join(cmd)
            )
        except FileNotFoundError:
            raise TranscodeError(label, f"executable not found: {cmd[0]}")

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace") if result.stderr else ""
            logger.error(f"[FFMPEG] {label} exited with {result.returncode}")
            raise TranscodeError(label, stderr[-self.stderr_tail_chars:], command=shlex.join(cmd))

    async def run(self, args: list[str], label: str) -> str:
        """
        Run ffmpeg with the given arguments and wait for it to exit.

        Returns:
            The executed command line, shell-quoted, for the render log

        Raises:
            TranscodeError: On non-zero exit, timeout or missing executable
        """
        cmd = self.build_command(args)
        logger.info(f"[FFMPEG] {label}")
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(self._executor, partial(self._run_sync, cmd, label))
        return shlex.join(cmd)

    async def probe_duration(self, file_path: str) -> float:
        """Probe duration in seconds on the worker pool; 0.0 if probing fails."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, probe_duration, file_path)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
