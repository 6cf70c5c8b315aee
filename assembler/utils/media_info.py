"""Media file information utilities using FFprobe."""

import json
import logging
import subprocess

from assembler.config import get_settings

logger = logging.getLogger(__name__)


def _get_settings():
    """Get settings lazily to avoid import issues in tests."""
    return get_settings()


def _run_ffprobe(file_path: str, *args) -> dict:
    """Run ffprobe and return parsed JSON."""
    settings = _get_settings()
    cmd = [
        settings.ffprobe_path,
        "-v", "error",
        "-print_format", "json",
        *args,
        file_path,
    ]

    try:
        result = subprocess.run(
            cmd, capture_output=True, text=True, timeout=settings.ffprobe_timeout_seconds
        )
    except subprocess.TimeoutExpired:
        raise RuntimeError(f"ffprobe timed out: {file_path}")
    if result.returncode != 0:
        raise RuntimeError(f"ffprobe failed: {result.stderr}")

    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise RuntimeError(f"Failed to parse ffprobe output: {e}")


def get_media_duration(file_path: str) -> float:
    """
    Get media file duration in seconds.

    Args:
        file_path: Path to media file

    Returns:
        Duration in seconds

    Raises:
        RuntimeError: If ffprobe fails or duration not found
    """
    data = _run_ffprobe(file_path, "-show_format")
    format_info = data.get("format", {})

    if "duration" not in format_info:
        raise RuntimeError(f"Duration not found in: {file_path}")

    return float(format_info["duration"])


def probe_duration(file_path: str) -> float:
    """
    Get media duration in seconds, returning 0.0 when probing fails.

    A zero duration makes the normalizer treat the clip as too short, so the
    clip is freeze-padded instead of aborting the job at probe time.
    """
    try:
        return get_media_duration(file_path)
    except (RuntimeError, ValueError, OSError) as e:
        logger.warning(f"[PROBE] Could not read duration of {file_path}: {e}")
        return 0.0
