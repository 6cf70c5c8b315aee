from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from assembler.render.pipeline import RenderOrchestrator


@lru_cache
def get_orchestrator() -> RenderOrchestrator:
    """Process-wide orchestrator; its admission gate is shared by every request."""
    return RenderOrchestrator()


Orchestrator = Annotated[RenderOrchestrator, Depends(get_orchestrator)]
