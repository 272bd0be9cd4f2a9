"""Runtime status route."""

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException

from ...app import IApplication


class StatusResponse(BaseModel):
    """Response model for status."""

    status: str
    provider: str
    display_name: str
    workspace: str
    processing: list[str]


def create_control_router(app: IApplication) -> APIRouter:
    """Create control router."""
    router = APIRouter(prefix="/api", tags=["control"])

    @router.get("/status", response_model=StatusResponse)
    async def get_status() -> dict:
        """Report the active provider and the conversations being processed."""
        try:
            orchestrator = app.orchestrator
            return {
                "status": "ok",
                "provider": orchestrator.provider_name,
                "display_name": orchestrator.display_name,
                "workspace": app.settings.workspace,
                "processing": orchestrator.active_conversations(),
            }
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    return router
