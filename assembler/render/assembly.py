"""
Final assembly: concatenate normalized clips, mix audio, burn captions, encode.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from assembler.config import get_settings
from assembler.exceptions import OutputValidationError
from assembler.render.audio_mixer import AudioMix
from assembler.render.ffmpeg_runner import FFmpegRunner
from assembler.render.filter_graph import Filter, FilterChain, FilterGraph

logger = logging.getLogger(__name__)

VIDEO_OUTPUT_LABEL = "video"


def escape_concat_path(path: str) -> str:
    """Escape a path for a quoted ``file '...'`` line of the concat demuxer."""
    return path.replace("'", "'\\''")


def write_concat_list(clip_paths: Sequence[Path], list_path: Path) -> Path:
    lines = [f"file '{escape_concat_path(str(p.resolve()))}'\n" for p in clip_paths]
    list_path.write_text("".join(lines), encoding="utf-8")
    return list_path


@dataclass(frozen=True)
class AssemblyResult:
    output_path: Path
    file_size: int
    duration: float
    command: str


class AssemblyEngine:
    """Builds and runs the single final ffmpeg invocation, then checks its output."""

    def __init__(self, runner: FFmpegRunner):
        settings = get_settings()
        self.runner = runner
        self.preset = settings.render_final_preset
        self.crf = settings.render_final_crf
        self.audio_bitrate = settings.render_audio_bitrate
        self.min_output_bytes = settings.render_min_output_bytes

    def build_filter_graph(self, audio_mix: AudioMix, caption_filter: Filter | None) -> FilterGraph:
        graph = FilterGraph(chains=list(audio_mix.graph.chains))
        if caption_filter is not None:
            # Captions go on the concatenated stream, never on a single scene
            graph.add(
                FilterChain(
                    filters=(caption_filter,),
                    inputs=("0:v",),
                    outputs=(VIDEO_OUTPUT_LABEL,),
                )
            )
        return graph

    def build_args(
        self,
        concat_list_path: Path,
        narration_path: Path,
        music_paths: Sequence[Path],
        audio_mix: AudioMix,
        caption_filter: Filter | None,
        output_path: Path,
    ) -> list[str]:
        inputs = [
            "-f", "concat", "-safe", "0", "-i", str(concat_list_path),
            "-i", str(narration_path),
        ]
        for music_path in music_paths:
            inputs.extend(["-i", str(music_path)])

        graph = self.build_filter_graph(audio_mix, caption_filter)
        video_map = f"[{VIDEO_OUTPUT_LABEL}]" if caption_filter is not None else "0:v"

        return [
            "-y",
            *inputs,
            "-filter_complex", graph.serialize(),
            "-map", video_map,
            "-map", f"[{audio_mix.output_label}]",
            "-c:v", "libx264",
            "-preset", self.preset,
            "-crf", str(self.crf),
            "-c:a", "aac",
            "-b:a", self.audio_bitrate,
            "-movflags", "+faststart",
            "-shortest",
            str(output_path),
        ]

    async def validate_output(self, output_path: Path) -> tuple[int, float]:
        """Return (size_bytes, duration_seconds) or raise OutputValidationError."""
        if not output_path.exists():
            raise OutputValidationError("FFmpeg produced no output file")
        size = output_path.stat().st_size
        if size < self.min_output_bytes:
            raise OutputValidationError(f"Output file suspiciously small: {size} bytes")
        duration = await self.runner.probe_duration(str(output_path))
        return size, duration

    async def assemble(
        self,
        clip_paths: Sequence[Path],
        concat_list_path: Path,
        narration_path: Path,
        music_paths: Sequence[Path],
        audio_mix: AudioMix,
        caption_filter: Filter | None,
        output_path: Path,
    ) -> AssemblyResult:
        write_concat_list(clip_paths, concat_list_path)
        args = self.build_args(
            concat_list_path, narration_path, music_paths, audio_mix, caption_filter, output_path
        )
        command = await self.runner.run(args, "final assembly")
        size, duration = await self.validate_output(output_path)
        logger.info(f"[ASSEMBLY] Output {output_path}: {size} bytes, {duration:.1f}s")
        return AssemblyResult(output_path=output_path, file_size=size, duration=duration, command=command)
