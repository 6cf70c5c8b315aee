"""
Scene clip normalization.

Each downloaded scene clip is brought to exactly its requested duration and
to the canonical output frame:
1. Probe the source duration
2. Fit into WxH at the output frame rate, letterboxed with black padding
3. Freeze the last frame when the source is shorter than the target
4. Hard-trim to the target duration and drop the clip's own audio
"""

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Sequence

from assembler.config import get_settings
from assembler.render.ffmpeg_runner import FFmpegRunner
from assembler.render.filter_graph import Filter, FilterChain, format_value
from assembler.render.workspace import Workspace, scene_filename
from assembler.schemas.render import Scene

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SceneClipPlan:
    """Duration reconciliation for one scene."""

    scene: int  # 1-based scene number
    source_duration: float
    target_duration: float

    @property
    def needs_padding(self) -> bool:
        return self.source_duration < self.target_duration

    @property
    def pad_seconds(self) -> int:
        """Seconds of frozen last frame; always overshoots so the trim lands on target."""
        if not self.needs_padding:
            return 0
        return math.ceil(self.target_duration - self.source_duration) + 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "scene": self.scene,
            "source_duration": self.source_duration,
            "target_duration": self.target_duration,
            "padded": self.needs_padding,
        }


@dataclass(frozen=True)
class NormalizedClip:
    plan: SceneClipPlan
    output_path: Path
    step: str
    command: str


class DurationNormalizer:
    """Per-scene trim/freeze-pad and letterbox, run one clip at a time."""

    def __init__(self, runner: FFmpegRunner):
        settings = get_settings()
        self.runner = runner
        self.width = settings.render_output_width
        self.height = settings.render_output_height
        self.fps = settings.render_fps
        self.preset = settings.render_clip_preset
        self.crf = settings.render_clip_crf

    def build_video_filter(self, plan: SceneClipPlan) -> FilterChain:
        filters = [
            Filter.build("fps", self.fps),
            Filter.build("scale", self.width, self.height, force_original_aspect_ratio="decrease"),
            Filter.build("pad", self.width, self.height, "(ow-iw)/2", "(oh-ih)/2", "black"),
        ]
        if plan.needs_padding:
            filters.append(Filter.build("tpad", stop_mode="clone", stop_duration=plan.pad_seconds))
        return FilterChain(filters=tuple(filters))

    def build_args(self, input_path: Path, output_path: Path, plan: SceneClipPlan) -> list[str]:
        return [
            "-y",
            "-i", str(input_path),
            "-vf", self.build_video_filter(plan).serialize(),
            "-t", format_value(float(plan.target_duration)),
            "-c:v", "libx264",
            "-preset", self.preset,
            "-crf", str(self.crf),
            "-an",
            str(output_path),
        ]

    async def normalize(
        self,
        index: int,
        input_path: Path,
        output_path: Path,
        target_duration: float,
    ) -> NormalizedClip:
        source_duration = await self.runner.probe_duration(str(input_path))
        plan = SceneClipPlan(
            scene=index + 1,
            source_duration=source_duration,
            target_duration=target_duration,
        )
        padded = scene_filename(index).removesuffix(".mp4")
        label = f"clip {padded} ({source_duration:.1f}s -> {target_duration}s)"
        command = await self.runner.run(self.build_args(input_path, output_path, plan), label)
        return NormalizedClip(plan=plan, output_path=output_path, step=f"clip_{padded}", command=command)

    async def normalize_all(
        self,
        workspace: Workspace,
        scenes: Sequence[Scene],
        on_clip: Callable[[NormalizedClip], None] | None = None,
    ) -> list[NormalizedClip]:
        """Normalize every scene in order. The first failure aborts the rest."""
        results: list[NormalizedClip] = []
        for i, scene in enumerate(scenes):
            clip = await self.normalize(
                i,
                workspace.clip_path(i),
                workspace.processed_path(i),
                scene.duration,
            )
            results.append(clip)
            if on_clip is not None:
                on_clip(clip)
        padded_count = sum(1 for r in results if r.plan.needs_padding)
        logger.info(f"[NORMALIZE] {len(results)} clips normalized ({padded_count} freeze-padded)")
        return results
