import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from assembler.api import render, storage
from assembler.api.deps import Orchestrator, get_orchestrator
from assembler.config import get_settings
from assembler.exceptions import AssemblerError
from assembler.schemas.render import HealthResponse

settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

_started_at = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    orchestrator = get_orchestrator()
    logger.info(
        f"{settings.app_name} {settings.app_version} starting "
        f"(max concurrent renders: {orchestrator.max_concurrent_renders})"
    )
    yield
    # Shutdown
    orchestrator.shutdown()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed request bodies in the same shape as render errors."""
    errors = exc.errors()
    if errors:
        first_error = errors[0]
        loc = " -> ".join(str(x) for x in first_error.get("loc", []))
        msg = first_error.get("msg", "Validation error")
        message = f"{loc}: {msg}" if loc else msg
    else:
        message = "Request validation failed"

    return JSONResponse(
        status_code=422,
        content={"status": "error", "success": False, "error": message, "detail": jsonable_encoder(errors)},
    )


@app.exception_handler(AssemblerError)
async def assembler_exception_handler(request: Request, exc: AssemblerError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Global exception handler to ensure errors return proper JSON
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"status": "error", "success": False, "error": "Internal server error"},
    )


# Routers
app.include_router(render.router, tags=["render"])
app.include_router(storage.router, prefix="/storage", tags=["storage"])


@app.get("/health", response_model=HealthResponse)
async def health_check(orchestrator: Orchestrator) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=settings.app_version,
        git_hash=settings.git_hash,
        active_renders=orchestrator.active_renders,
        max_concurrent_renders=orchestrator.max_concurrent_renders,
        uptime_seconds=round(time.monotonic() - _started_at, 1),
    )
