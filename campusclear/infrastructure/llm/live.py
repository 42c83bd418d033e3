"""
Gemini Live (BidiGenerateContent) session over a raw JSON WebSocket.

The handle only accepts outbound media while it is ``open``: after the
setup handshake completes and before ``close``. Anything sent outside that
window is dropped and counted, never raised.
"""
import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from ...config import (
    Config, GENAI_LIVE_URL, VERTEX_LIVE_URL_TEMPLATE,
    LIVE_MAX_MESSAGE_BYTES, LIVE_PING_INTERVAL,
)
from ...errors import StreamError
from .client import fetch_access_token

logger = logging.getLogger("live_session")


class LiveSessionState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


@dataclass
class ServerEvent:
    """One decoded server message: audio chunks, transcript fragments, flags."""
    audio: List[str] = field(default_factory=list)
    input_transcription: Optional[str] = None
    output_transcription: Optional[str] = None
    interrupted: bool = False
    turn_complete: bool = False

    @classmethod
    def from_message(cls, data: Dict[str, Any]) -> Optional['ServerEvent']:
        """Translate a ``serverContent`` message; other message kinds yield None."""
        content = data.get("serverContent")
        if not isinstance(content, dict):
            return None

        audio = []
        model_turn = content.get("modelTurn") or {}
        for part in model_turn.get("parts") or []:
            inline = part.get("inlineData") if isinstance(part, dict) else None
            if inline and inline.get("data") and str(inline.get("mimeType", "audio")).startswith("audio"):
                audio.append(inline["data"])

        input_text = (content.get("inputTranscription") or {}).get("text")
        output_text = (content.get("outputTranscription") or {}).get("text")

        return cls(
            audio=audio,
            input_transcription=input_text or None,
            output_transcription=output_text or None,
            interrupted=bool(content.get("interrupted")),
            turn_complete=bool(content.get("turnComplete")),
        )


EventHandler = Callable[[ServerEvent], None]
ErrorHandler = Callable[[StreamError], None]


class LiveSessionHandle:
    """Open bidirectional stream to the speech model, owned by one interview session."""

    def __init__(self, websocket, on_event: EventHandler, on_error: Optional[ErrorHandler] = None):
        self._ws = websocket
        self._on_event = on_event
        self._on_error = on_error
        self.state = LiveSessionState.CONNECTING
        self.sent_count = 0
        self.dropped_count = 0
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._send_task: Optional[asyncio.Task] = None
        self._receive_task: Optional[asyncio.Task] = None
        self._close_task: Optional[asyncio.Task] = None

    @property
    def is_open(self) -> bool:
        return self.state == LiveSessionState.OPEN

    async def open(self, setup_message: Dict[str, Any]) -> None:
        """Send the setup payload and wait for ``setupComplete``."""
        await self._ws.send(json.dumps(setup_message))
        while True:
            data = _decode(await self._ws.recv())
            if "setupComplete" in data:
                break
            logger.debug(f"Ignoring pre-setup message: {list(data)}")

        if self.state == LiveSessionState.CLOSED:
            return
        self.state = LiveSessionState.OPEN
        self._send_task = asyncio.create_task(self._send_loop())
        self._receive_task = asyncio.create_task(self._receive_loop())
        logger.info("Live session open")

    def send_realtime_input(self, data: str, mime_type: str) -> bool:
        """Queue one realtime media chunk. Returns False if it was dropped."""
        if self.state != LiveSessionState.OPEN:
            self.dropped_count += 1
            return False
        kind = "audio" if mime_type.startswith("audio/") else "video"
        message = {"realtimeInput": {kind: {"data": data, "mimeType": mime_type}}}
        self._outbox.put_nowait(json.dumps(message))
        return True

    async def _send_loop(self) -> None:
        while True:
            message = await self._outbox.get()
            try:
                await self._ws.send(message)
                self.sent_count += 1
            except ConnectionClosed as e:
                self._fail(StreamError(f"Live stream closed while sending: {e}"))
                return

    async def _receive_loop(self) -> None:
        try:
            async for raw in self._ws:
                data = _decode(raw)
                if "goAway" in data:
                    logger.warning(f"Server will close the stream in {data['goAway'].get('timeLeft', 'unknown')}")
                event = ServerEvent.from_message(data)
                if event is None:
                    continue
                try:
                    self._on_event(event)
                except Exception as e:
                    logger.error(f"Error in server event handler: {e}")
        except ConnectionClosed as e:
            self._fail(StreamError(f"Live stream dropped: {e}"))
            return
        except (WebSocketException, ValueError) as e:
            self._fail(StreamError(f"Live stream failure: {e}"))
            return
        self._fail(StreamError("Live stream closed by server"))

    def _fail(self, error: StreamError) -> None:
        if self.state == LiveSessionState.CLOSED:
            return
        logger.error(str(error))
        self.close()
        if self._on_error is not None:
            self._on_error(error)

    def close(self) -> None:
        """Close the stream. Safe to call any number of times."""
        if self.state == LiveSessionState.CLOSED:
            return
        self.state = LiveSessionState.CLOSED
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        current = asyncio.current_task() if loop else None
        for task in (self._send_task, self._receive_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        if loop is not None:
            self._close_task = loop.create_task(self._ws.close())
        else:
            logger.warning("No running event loop; WebSocket left for garbage collection")
        logger.info(f"Live session closed (sent={self.sent_count}, dropped={self.dropped_count})")


def _decode(raw) -> Dict[str, Any]:
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"Unexpected live message: {raw!r}")
    return data


class LiveConnector:
    """Builds the setup payload and opens ``LiveSessionHandle`` instances."""

    def __init__(self, config: Config):
        self.config = config

    def model_resource(self) -> str:
        if self.config.use_vertex:
            return (f"projects/{self.config.google_cloud_project}/locations/{self.config.vertex_location}"
                    f"/publishers/google/models/{self.config.live_model}")
        return f"models/{self.config.live_model}"

    def build_setup(self, system_instruction: str) -> Dict[str, Any]:
        return {
            "setup": {
                "model": self.model_resource(),
                "generationConfig": {
                    "responseModalities": ["AUDIO"],
                    "speechConfig": {
                        "voiceConfig": {
                            "prebuiltVoiceConfig": {"voiceName": self.config.voice_name}
                        }
                    },
                },
                "systemInstruction": {"parts": [{"text": system_instruction}]},
                "inputAudioTranscription": {},
                "outputAudioTranscription": {},
            }
        }

    async def _endpoint(self):
        if self.config.use_vertex:
            token = await asyncio.to_thread(fetch_access_token, self.config.google_application_credentials)
            url = VERTEX_LIVE_URL_TEMPLATE.format(location=self.config.vertex_location)
            return url, {"Authorization": f"Bearer {token}"}
        return f"{GENAI_LIVE_URL}?key={quote(self.config.api_key or '')}", {}

    async def connect(self, system_instruction: str, on_event: EventHandler,
                      on_error: Optional[ErrorHandler] = None) -> LiveSessionHandle:
        """
        Open the stream and complete the setup handshake.

        Raises:
            StreamError: If the connection or handshake fails
        """
        try:
            url, headers = await self._endpoint()
            websocket = await connect(
                url,
                additional_headers=headers,
                max_size=LIVE_MAX_MESSAGE_BYTES,
                ping_interval=LIVE_PING_INTERVAL,
            )
        except Exception as e:
            logger.error(f"Live connect failed: {e}")
            raise StreamError(f"Could not connect to live model: {e}") from e

        handle = LiveSessionHandle(websocket, on_event, on_error)
        try:
            await handle.open(self.build_setup(system_instruction))
        except Exception as e:
            logger.error(f"Live setup handshake failed: {e}")
            handle.close()
            raise StreamError(f"Live session setup failed: {e}") from e
        return handle
