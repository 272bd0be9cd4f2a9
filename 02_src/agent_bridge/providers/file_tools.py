"""`send_file_to_user` agent tool exposed to Claude as an in-process MCP server."""

from pathlib import Path
from typing import Any, Literal

from ..logging_config import get_logger
from .base import IFileSender

logger = get_logger(__name__)

FILE_TOOLS_SERVER_NAME = "feishu-tools"

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp", ".bmp", ".ico", ".tiff"}
AUDIO_EXTENSIONS = {".mp3", ".wav", ".m4a", ".ogg", ".opus", ".amr"}
FILE_TYPE_MAP = {
    ".pdf": "pdf",
    ".doc": "doc",
    ".docx": "docx",
    ".xls": "xls",
    ".xlsx": "xlsx",
    ".ppt": "ppt",
    ".pptx": "pptx",
    ".mp4": "mp4",
}

# Feishu upload limits
IMAGE_LIMIT_MB = 10
FILE_LIMIT_MB = 30

FileCategory = Literal["image", "audio", "file"]

SEND_FILE_DESCRIPTION = (
    "Send a local file to the user. Supports images (PNG/JPG/GIF...), documents "
    "(PDF/DOC/XLS/PPT...) and audio (MP3/WAV...). Use this when the user asks to "
    "see or receive a file, or when you produced a file worth showing."
)

SEND_FILE_SCHEMA = {
    "type": "object",
    "properties": {
        "file_path": {"type": "string", "description": "Absolute path of the file"},
        "message": {"type": "string", "description": "Optional note to go with it"},
    },
    "required": ["file_path"],
}


def file_category(path: str | Path) -> FileCategory:
    """Classify a file by extension."""
    ext = Path(path).suffix.lower()
    if ext in IMAGE_EXTENSIONS:
        return "image"
    if ext in AUDIO_EXTENSIONS:
        return "audio"
    return "file"


def file_type(path: str | Path) -> str:
    """Feishu upload file_type for a non-image file."""
    return FILE_TYPE_MAP.get(Path(path).suffix.lower(), "stream")


async def send_file_to_user(
    sender: IFileSender,
    receive_id: str,
    file_path: str,
    message: str | None = None,
) -> str:
    """Validate and deliver a file; return the text reported back to the agent."""
    path = Path(file_path)
    if not path.is_file():
        return f"Error: file does not exist - {file_path}"

    size_mb = path.stat().st_size / (1024 * 1024)
    category = file_category(path)
    if category == "image" and size_mb > IMAGE_LIMIT_MB:
        return f"Error: image exceeds the {IMAGE_LIMIT_MB}MB limit ({size_mb:.2f}MB)"
    if size_mb > FILE_LIMIT_MB:
        return f"Error: file exceeds the {FILE_LIMIT_MB}MB limit ({size_mb:.2f}MB)"

    try:
        await sender.send_file(receive_id, path, category)
    except Exception as e:
        logger.error(f"Sending file {path.name} failed: {e}", exc_info=True)
        return f"Error: failed to send file - {e}"

    logger.info(f"Sent {category} {path.name} to {receive_id}")
    note = f", note: {message}" if message else ""
    return f'{category.capitalize()} "{path.name}" was sent to the user{note}'


def create_file_tools_server(sender: IFileSender, receive_id: str) -> Any:
    """Build the in-process MCP server bound to one conversation."""
    from claude_agent_sdk import create_sdk_mcp_server, tool

    @tool("send_file_to_user", SEND_FILE_DESCRIPTION, SEND_FILE_SCHEMA)
    async def send_file(args: dict[str, Any]) -> dict[str, Any]:
        text = await send_file_to_user(
            sender, receive_id, args["file_path"], args.get("message")
        )
        return {"content": [{"type": "text", "text": text}]}

    return create_sdk_mcp_server(
        name=FILE_TOOLS_SERVER_NAME, version="1.0.0", tools=[send_file]
    )
