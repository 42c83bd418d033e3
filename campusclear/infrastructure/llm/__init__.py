"""Gemini clients: one-shot REST generation and the realtime live stream."""

from .client import GeminiRestClient, parse_json_text, fetch_access_token
from .live import LiveConnector, LiveSessionHandle, LiveSessionState, ServerEvent

__all__ = [
    "GeminiRestClient", "parse_json_text", "fetch_access_token",
    "LiveConnector", "LiveSessionHandle", "LiveSessionState", "ServerEvent",
]
