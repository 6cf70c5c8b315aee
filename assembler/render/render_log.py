"""Structured per-job execution log, persisted once as JSON."""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from assembler.config import get_settings
from assembler.render.workspace import path_key, unique_suffix

logger = logging.getLogger(__name__)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class RenderLog:
    """Append-only record of one render job."""

    generation_id: str
    request: dict[str, Any]
    started_at: str = field(default_factory=utc_now_iso)
    steps: list[dict[str, Any]] = field(default_factory=list)
    ffmpeg_commands: list[dict[str, str]] = field(default_factory=list)
    result: dict[str, Any] | None = None
    completed_at: str | None = None

    def add_step(self, step: str, status: str = "ok", **details: Any) -> None:
        self.steps.append({"step": step, "status": status, **details})

    def add_command(self, step: str, command: str) -> None:
        self.ffmpeg_commands.append({"step": step, "command": command})

    def step_names(self) -> list[str]:
        return [s["step"] for s in self.steps]

    def finish(self, result: dict[str, Any]) -> None:
        self.result = result
        self.completed_at = utc_now_iso()

    def to_dict(self) -> dict[str, Any]:
        return {
            "generation_id": self.generation_id,
            "started_at": self.started_at,
            "request": self.request,
            "steps": self.steps,
            "ffmpeg_commands": self.ffmpeg_commands,
            "result": self.result,
            "completed_at": self.completed_at,
        }


class RenderLogStore:
    """
    Writes ``renderlog_{generation_id}.json`` files that are kept indefinitely.

    Each job creates its own file exclusively. When a log for the same id
    already exists (a resubmission, or two jobs sharing an id), the new log
    gets a ``~suffix`` instead of replacing the earlier one.
    """

    def __init__(self, logs_dir: str | Path | None = None):
        self.logs_dir = Path(logs_dir or get_settings().render_logs_dir)

    def path_for(self, generation_id: str) -> Path:
        return self.logs_dir / f"renderlog_{path_key(generation_id)}.json"

    def paths_for(self, generation_id: str) -> list[Path]:
        """All logs written for an id, oldest first."""
        key = path_key(generation_id)
        paths = [p for p in [self.path_for(generation_id)] if p.exists()]
        paths.extend(self.logs_dir.glob(f"renderlog_{key}~*.json"))
        return sorted(paths, key=lambda p: p.stat().st_mtime_ns)

    def write(self, render_log: RenderLog) -> Path:
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(render_log.to_dict(), indent=2, ensure_ascii=False)
        path = self.path_for(render_log.generation_id)
        while True:
            try:
                with open(path, "x", encoding="utf-8") as f:
                    f.write(payload)
                break
            except FileExistsError:
                path = self.logs_dir / f"renderlog_{path_key(render_log.generation_id)}{unique_suffix()}.json"
        logger.info(f"[RENDER] Log written: {path}")
        return path

    def read(self, generation_id: str) -> dict[str, Any] | None:
        """Return the most recent log for an id."""
        paths = self.paths_for(generation_id)
        if not paths:
            return None
        return json.loads(paths[-1].read_text(encoding="utf-8"))
