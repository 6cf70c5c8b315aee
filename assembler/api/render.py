"""Render API endpoints - synchronous rendering.

The request blocks until the job completes or fails; the caller (a workflow
engine) waits for the final result. No request timeout is applied here.
"""

import logging

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import JSONResponse

from assembler.api.deps import Orchestrator
from assembler.exceptions import RenderValidationError, ServerBusyError
from assembler.schemas.render import RenderErrorResponse, RenderRequest, RenderSuccessResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "/render",
    response_model=RenderSuccessResponse,
    responses={
        400: {"model": RenderErrorResponse},
        500: {"model": RenderErrorResponse},
        503: {"model": RenderErrorResponse},
    },
)
async def render(render_request: RenderRequest, orchestrator: Orchestrator) -> JSONResponse:
    """
    Assemble a video from scene clips, narration, music and captions.

    Returns 200 with the storage URL on success, 500 with the failure cause
    (the render log is still written), 400 when required fields are missing
    and 503 when the concurrent render ceiling is reached.
    """
    try:
        outcome = await orchestrator.submit(render_request)
    except (RenderValidationError, ServerBusyError) as e:
        logger.warning(f"[RENDER] Rejected: {e.message}")
        return JSONResponse(status_code=e.status_code, content=e.to_dict())

    return JSONResponse(status_code=outcome.status_code, content=outcome.body)


@router.get("/render/logs/{generation_id}")
async def get_render_log(generation_id: str, orchestrator: Orchestrator) -> dict:
    """Return the persisted render log of a finished job."""
    log = orchestrator.log_store.read(generation_id)
    if log is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Render log not found: {generation_id}",
        )
    return log
