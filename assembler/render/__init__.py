from assembler.render.audio_mixer import AudioMixer
from assembler.render.pipeline import (
    AdmissionGate,
    RenderOrchestrator,
    RenderOutcome,
    RenderPipeline,
    RenderStage,
)

__all__ = [
    "AdmissionGate",
    "AudioMixer",
    "RenderOrchestrator",
    "RenderOutcome",
    "RenderPipeline",
    "RenderStage",
]
