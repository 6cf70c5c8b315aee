"""
Audio mixing graph builder.

This module handles:
- Formatting narration and music to a common sample format/rate/layout
- Shared background-music gain
- Per-segment fade in/out
- Positioning music segments on the timeline with adelay
- Mixing everything down so the narration governs the output length

Nothing here runs FFmpeg; the result is a ``FilterGraph`` that the assembly
step passes to ``-filter_complex``.
"""

import math
from dataclasses import dataclass, field
from typing import Sequence

from assembler.config import get_settings
from assembler.render.filter_graph import Filter, FilterChain, FilterGraph
from assembler.schemas.render import MusicSegment

NARRATION_LABEL = "nar"
AUDIO_OUTPUT_LABEL = "audio"
MIX_DROPOUT_TRANSITION = 2


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass
class MusicBranch:
    """Computed parameters for one background-music segment."""

    index: int
    input_index: int
    fade_in: float
    fade_out: float
    fade_out_start: float
    delay_ms: int

    @property
    def label(self) -> str:
        return f"m{self.index}"


@dataclass
class AudioMixPlan:
    """Narration branch plus zero or more music branches, in mix order."""

    narration_input: int
    music_volume: float
    music_branches: list[MusicBranch] = field(default_factory=list)

    @property
    def branch_labels(self) -> list[str]:
        return [NARRATION_LABEL] + [b.label for b in self.music_branches]

    @property
    def needs_mix(self) -> bool:
        return len(self.branch_labels) > 1


@dataclass
class AudioMix:
    """Built audio graph and the label of its final output."""

    plan: AudioMixPlan
    graph: FilterGraph
    output_label: str = AUDIO_OUTPUT_LABEL

    @property
    def filter_complex(self) -> str:
        return self.graph.serialize()


class AudioMixer:
    """
    Builds the narration + background-music mixing graph.

    Input indices follow the assembly command layout: input 0 is the
    concatenated video, input 1 the narration, inputs 2.. the music files.
    """

    def __init__(self, sample_rate: int | None = None):
        self.sample_rate = sample_rate or get_settings().render_audio_sample_rate

    def _aformat(self) -> Filter:
        return Filter.build(
            "aformat",
            sample_fmts="fltp",
            sample_rates=self.sample_rate,
            channel_layouts="stereo",
        )

    def plan(
        self,
        music_segments: Sequence[MusicSegment] | None,
        music_volume: float,
        narration_input: int = 1,
    ) -> AudioMixPlan:
        plan = AudioMixPlan(narration_input=narration_input, music_volume=music_volume)
        for i, seg in enumerate(music_segments or []):
            plan.music_branches.append(
                MusicBranch(
                    index=i,
                    input_index=narration_input + 1 + i,
                    fade_in=seg.fade_in,
                    fade_out=seg.fade_out,
                    fade_out_start=max(0.0, seg.duration - seg.fade_out),
                    delay_ms=round_half_up(seg.start_time * 1000),
                )
            )
        return plan

    def build_graph(self, plan: AudioMixPlan) -> FilterGraph:
        graph = FilterGraph()

        narration = FilterChain(
            filters=(self._aformat(),),
            inputs=(f"{plan.narration_input}:a",),
            outputs=(NARRATION_LABEL,),
        )

        # Narration only: no amix, the formatted narration is the output
        if not plan.needs_mix:
            graph.add(narration.relabel_output(AUDIO_OUTPUT_LABEL))
            return graph

        graph.add(narration)
        for branch in plan.music_branches:
            filters = [
                self._aformat(),
                Filter.build("volume", plan.music_volume),
                Filter.build("afade", t="in", d=branch.fade_in),
                Filter.build("afade", t="out", st=branch.fade_out_start, d=branch.fade_out),
            ]
            if branch.delay_ms > 0:
                filters.append(Filter.build("adelay", f"{branch.delay_ms}|{branch.delay_ms}"))
            graph.add(
                FilterChain(
                    filters=tuple(filters),
                    inputs=(f"{branch.input_index}:a",),
                    outputs=(branch.label,),
                )
            )

        # duration=first: the narration (first input) sets the mix length
        labels = plan.branch_labels
        graph.add(
            FilterChain(
                filters=(
                    Filter.build(
                        "amix",
                        inputs=len(labels),
                        duration="first",
                        dropout_transition=MIX_DROPOUT_TRANSITION,
                    ),
                ),
                inputs=tuple(labels),
                outputs=(AUDIO_OUTPUT_LABEL,),
            )
        )
        return graph

    def build(
        self,
        music_segments: Sequence[MusicSegment] | None,
        music_volume: float,
        narration_input: int = 1,
    ) -> AudioMix:
        plan = self.plan(music_segments, music_volume, narration_input)
        return AudioMix(plan=plan, graph=self.build_graph(plan))
