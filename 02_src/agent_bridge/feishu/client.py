"""Feishu Open API client over httpx: cards, text and file messages."""

import json
import time
from pathlib import Path
from typing import Any, Callable

import httpx

from ..config import DEFAULT_FEISHU_BASE_URL
from ..logging_config import get_logger
from ..presenter import RenderError, build_card
from ..providers.file_tools import file_type

logger = get_logger(__name__)

TOKEN_PATH = "auth/v3/tenant_access_token/internal"
MESSAGES_PATH = "im/v1/messages"
IMAGES_PATH = "im/v1/images"
FILES_PATH = "im/v1/files"

# Refresh the tenant token this many seconds before it expires
TOKEN_REFRESH_MARGIN = 60
REQUEST_TIMEOUT = 30.0


class FeishuApiError(RenderError):
    """Feishu rejected a request or could not be reached."""


def receive_id_type(receive_id: str) -> str:
    """open_id for user ids (``ou_``), chat_id otherwise."""
    return "open_id" if receive_id.startswith("ou_") else "chat_id"


class FeishuClient:
    """Render sink and file sender backed by the Feishu Open API.

    Tenant access tokens are cached and refreshed shortly before expiry.
    Pass `http_client` to share a connection pool or to inject a transport.
    """

    def __init__(
        self,
        app_id: str,
        app_secret: str,
        base_url: str = DEFAULT_FEISHU_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._app_id = app_id
        self._app_secret = app_secret
        self._base_url = base_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=REQUEST_TIMEOUT)
        self._owns_http = http_client is None
        self._clock = clock
        self._token: str | None = None
        self._token_expires_at = 0.0

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def create_card(self, receive_id: str, title: str, body: str) -> str:
        data = await self._send_message(
            receive_id, "interactive", build_card(title, body)
        )
        message_id = data.get("message_id")
        if not message_id:
            raise FeishuApiError("Feishu did not return a message_id")
        logger.info(f"Card sent to {receive_id}, message_id: {message_id}")
        return message_id

    async def update_card(
        self,
        handle: str,
        title: str,
        body: str,
        copy_text: str | None = None,
    ) -> None:
        await self._request(
            "PATCH",
            f"{MESSAGES_PATH}/{handle}",
            json={"content": build_card(title, body, copy_text)},
        )

    async def send_text(self, receive_id: str, text: str) -> None:
        await self._send_message(
            receive_id, "text", json.dumps({"text": text}, ensure_ascii=False)
        )

    async def send_file(self, receive_id: str, path: Path, category: str) -> None:
        """Upload a local file and post it as an image, audio or file message."""
        if category == "image":
            data = await self._upload(
                IMAGES_PATH, {"image_type": "message"}, "image", path
            )
            key = data.get("image_key")
            if not key:
                raise FeishuApiError("Image upload returned no image_key")
            await self._send_message(receive_id, "image", json.dumps({"image_key": key}))
            return

        upload_type = "opus" if category == "audio" else file_type(path)
        data = await self._upload(
            FILES_PATH, {"file_type": upload_type, "file_name": path.name}, "file", path
        )
        key = data.get("file_key")
        if not key:
            raise FeishuApiError("File upload returned no file_key")
        msg_type = "audio" if category == "audio" else "file"
        await self._send_message(receive_id, msg_type, json.dumps({"file_key": key}))

    async def _send_message(self, receive_id: str, msg_type: str, content: str) -> dict:
        return await self._request(
            "POST",
            MESSAGES_PATH,
            params={"receive_id_type": receive_id_type(receive_id)},
            json={"receive_id": receive_id, "msg_type": msg_type, "content": content},
        )

    async def _upload(
        self, path: str, form: dict[str, str], field: str, file_path: Path
    ) -> dict:
        with file_path.open("rb") as fh:
            return await self._request(
                "POST", path, data=form, files={field: (file_path.name, fh)}
            )

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict:
        token = await self._tenant_token()
        headers = {"Authorization": f"Bearer {token}"}
        return await self._call(method, path, headers=headers, **kwargs)

    async def _tenant_token(self) -> str:
        if self._token and self._clock() < self._token_expires_at:
            return self._token

        payload = await self._call(
            "POST",
            TOKEN_PATH,
            json={"app_id": self._app_id, "app_secret": self._app_secret},
        )
        token = payload.get("tenant_access_token")
        if not token:
            raise FeishuApiError("Feishu returned no tenant_access_token")
        expire = int(payload.get("expire", 0) or 0)
        self._token = token
        self._token_expires_at = self._clock() + max(expire - TOKEN_REFRESH_MARGIN, 0)
        logger.info(f"Tenant access token refreshed, expires in {expire}s")
        return token

    async def _call(self, method: str, path: str, **kwargs: Any) -> dict:
        """Send a request and unwrap the Feishu envelope.

        Token responses carry their fields at the top level; every other
        response nests its payload under ``data``.
        """
        url = f"{self._base_url}/{path}"
        try:
            response = await self._http.request(method, url, **kwargs)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            raise FeishuApiError(f"{method} {path} failed: {e}") from e
        except ValueError as e:
            raise FeishuApiError(f"{method} {path} returned invalid JSON") from e

        code = payload.get("code", 0)
        if code != 0:
            raise FeishuApiError(
                f"{method} {path} failed with code {code}: {payload.get('msg', '')}"
            )
        if path == TOKEN_PATH:
            return payload
        return payload.get("data") or {}
