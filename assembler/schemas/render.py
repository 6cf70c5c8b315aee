from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Scene(BaseModel):
    model_config = ConfigDict(frozen=True)

    video_url: str
    duration: float = Field(gt=0)  # Target duration in seconds


class MusicSegment(BaseModel):
    model_config = ConfigDict(frozen=True)

    music_url: str
    start_time: float = Field(default=0.0, ge=0)  # Offset into the final video (seconds)
    duration: float = Field(default=30.0, gt=0)  # Segment length used for the fade-out position
    fade_in: float = Field(default=2.0, ge=0)
    fade_out: float = Field(default=1.5, ge=0)


class RenderRequest(BaseModel):
    """Fully specified render job. Immutable once accepted."""

    model_config = ConfigDict(frozen=True)

    generation_id: str | None = None
    scenes: tuple[Scene, ...] = ()
    narration_url: str | None = None
    music_segments: tuple[MusicSegment, ...] = ()
    music_volume: float | None = Field(default=None, ge=0)
    caption_file_url: str | None = None
    caption_style: str | None = None  # just_text | line_box | word_box | none; unknown names fall back to line_box
    b2_path: str | None = None
    b2_bucket: str | None = None  # Informational only

    @field_validator("generation_id", mode="before")
    @classmethod
    def _coerce_generation_id(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(int(v))
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def has_captions(self) -> bool:
        return bool(self.caption_file_url and self.caption_style and self.caption_style != "none")


class RenderSuccessResponse(BaseModel):
    status: Literal["complete"] = "complete"
    success: Literal[True] = True
    b2_url: str
    duration: float
    processing_time_seconds: float
    file_size: int


class RenderErrorResponse(BaseModel):
    status: Literal["error"] = "error"
    success: Literal[False] = False
    error: str
    processing_time_seconds: float | None = None


class HealthResponse(BaseModel):
    status: str
    version: str
    git_hash: str
    active_renders: int
    max_concurrent_renders: int
    uptime_seconds: float
