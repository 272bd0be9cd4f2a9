"""Feishu module: Open API client, inbound parsing and event gateway."""

from .client import FeishuApiError, FeishuClient, receive_id_type
from .gateway import FeishuGateway, InvalidTokenError
from .messages import extract_text, parse_message_event, strip_mentions

__all__ = [
    "FeishuApiError",
    "FeishuClient",
    "FeishuGateway",
    "InvalidTokenError",
    "extract_text",
    "parse_message_event",
    "receive_id_type",
    "strip_mentions",
]
