"""HTTP API: Feishu webhook, observability and status routes."""

from .app import create_fastapi_app

__all__ = ["create_fastapi_app"]
