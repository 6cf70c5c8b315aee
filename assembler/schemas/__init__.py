from assembler.schemas.render import (
    HealthResponse,
    MusicSegment,
    RenderErrorResponse,
    RenderRequest,
    RenderSuccessResponse,
    Scene,
)

__all__ = [
    "HealthResponse",
    "MusicSegment",
    "RenderErrorResponse",
    "RenderRequest",
    "RenderSuccessResponse",
    "Scene",
]
