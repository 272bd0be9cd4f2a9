"""Feishu event webhook."""

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from ...app import IApplication
from ...feishu import InvalidTokenError
from ...logging_config import get_logger

logger = get_logger(__name__)


def create_feishu_router(app: IApplication) -> APIRouter:
    """Create the Feishu webhook router."""
    router = APIRouter(prefix="/feishu", tags=["feishu"])

    @router.post("/events")
    async def receive_event(request: Request) -> dict[str, Any]:
        """Receive a Feishu event subscription callback."""
        try:
            payload = await request.json()
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid JSON body")
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Expected a JSON object")

        try:
            return await app.gateway.dispatch(payload)
        except InvalidTokenError as e:
            logger.warning(f"Rejected Feishu event: {e}")
            raise HTTPException(status_code=401, detail=str(e))
        except Exception as e:
            logger.error(f"Feishu event handling failed: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

    return router
