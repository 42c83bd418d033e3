"""
Testing infrastructure: fake devices, audio contexts, live stream and LLM client.

None of these touch PyAudio, OpenCV capture or the network, so a full
session can run inside ``asyncio.run`` in a unit test.
"""
import base64
import json
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import Mock

import numpy as np

from ..config import Config, INPUT_SAMPLE_RATE, OUTPUT_SAMPLE_RATE
from ..errors import DeviceAccessError, StreamError
from .events import SessionEventBus
from .session import SessionLifecycleManager
from .transcript import TranscriptCoordinator


class FakeTrack:
    """Capture track that counts ``stop`` calls and lets tests push samples."""

    def __init__(self, kind: str, sample_rate: int = INPUT_SAMPLE_RATE):
        self.kind = kind
        self.label = f"fake-{kind}"
        self.sample_rate = sample_rate
        self.stop_calls = 0
        self.listeners: List[Callable] = []

    @property
    def ended(self) -> bool:
        return self.stop_calls > 0

    def add_listener(self, listener) -> None:
        self.listeners.append(listener)

    def remove_listener(self, listener) -> None:
        if listener in self.listeners:
            self.listeners.remove(listener)

    def stop(self) -> None:
        self.stop_calls += 1


class FakeDeviceStream:
    def __init__(self, frame: Optional[np.ndarray] = None):
        self.microphone = FakeTrack("audio")
        self.camera = FakeTrack("video")
        self.frame = frame
        self.frames_read = 0

    def get_tracks(self) -> List[FakeTrack]:
        return [self.microphone, self.camera]

    def read_frame(self) -> Optional[np.ndarray]:
        self.frames_read += 1
        if self.camera.ended:
            return None
        return self.frame

    def stop(self) -> None:
        for track in self.get_tracks():
            if not track.ended:
                track.stop()


class FakeDeviceProvider:
    """Hands out ``FakeDeviceStream`` objects; ``acquire`` is a Mock for call counting."""

    def __init__(self, frame: Optional[np.ndarray] = None, deny: bool = False):
        self.frame = frame if frame is not None else np.zeros((480, 640, 3), dtype=np.uint8)
        self.deny = deny
        self.streams: List[FakeDeviceStream] = []
        self.acquire = Mock(side_effect=self._acquire)

    def _acquire(self) -> FakeDeviceStream:
        if self.deny:
            raise DeviceAccessError("Permission denied (fake)")
        stream = FakeDeviceStream(self.frame)
        self.streams.append(stream)
        return stream


class FakeProcessor:
    def __init__(self, track, on_block, block_size: int):
        self.track = track
        self.on_block = on_block
        self.block_size = block_size
        self.connected = True

    def disconnect(self) -> None:
        self.connected = False


class FakeInputContext:
    def __init__(self, sample_rate: int = INPUT_SAMPLE_RATE):
        self.sample_rate = sample_rate
        self.state = "running"
        self.close_calls = 0
        self.processors: List[FakeProcessor] = []

    def create_script_processor(self, track, on_block, block_size: int = 4096) -> FakeProcessor:
        if self.state == "closed":
            raise RuntimeError("InputAudioContext is closed")
        processor = FakeProcessor(track, on_block, block_size)
        self.processors.append(processor)
        return processor

    def push_block(self, block: np.ndarray) -> None:
        """Deliver one block to every connected processor, like the driver callback would."""
        if self.state == "closed":
            return
        for processor in self.processors:
            if processor.connected:
                processor.on_block(block)

    def close(self) -> None:
        self.close_calls += 1
        self.state = "closed"


class FakeAudioBuffer:
    def __init__(self, samples: np.ndarray, sample_rate: int):
        self.samples = np.asarray(samples, dtype=np.float32).reshape(len(samples), -1)
        self.sample_rate = sample_rate

    @property
    def length(self) -> int:
        return self.samples.shape[0]

    @property
    def duration(self) -> float:
        return self.length / float(self.sample_rate)


class FakeSource:
    """Playback source recording when it was started and how often it was stopped."""

    def __init__(self, buffer: FakeAudioBuffer):
        self.buffer = buffer
        self.on_ended = None
        self.start_time: Optional[float] = None
        self.stop_calls = 0
        self.ended = False

    def start(self, when: float = 0.0) -> None:
        if self.start_time is not None:
            raise RuntimeError("start() may only be called once per source")
        self.start_time = when

    def stop(self) -> None:
        self.stop_calls += 1
        self._end()

    def finish(self) -> None:
        """Simulate the buffer playing to completion."""
        self._end()

    def _end(self) -> None:
        if self.ended:
            return
        self.ended = True
        if self.on_ended is not None:
            self.on_ended(self)


class FakeOutputContext:
    """Output graph whose clock only moves when the test sets ``current_time``."""

    def __init__(self, sample_rate: int = OUTPUT_SAMPLE_RATE):
        self.sample_rate = sample_rate
        self.current_time = 0.0
        self.state = "running"
        self.close_calls = 0
        self.sources: List[FakeSource] = []

    def create_buffer(self, samples: np.ndarray) -> FakeAudioBuffer:
        return FakeAudioBuffer(samples, self.sample_rate)

    def create_buffer_source(self, buffer: FakeAudioBuffer) -> FakeSource:
        source = FakeSource(buffer)
        self.sources.append(source)
        return source

    def close(self) -> None:
        self.close_calls += 1
        self.state = "closed"


class FakeLiveSession:
    """Stands in for ``LiveSessionHandle``; records sends and forwards injected server events."""

    def __init__(self, system_instruction: str, on_event, on_error=None):
        self.system_instruction = system_instruction
        self.on_event = on_event
        self.on_error = on_error
        self.state = "open"
        self.sent: List[Dict[str, str]] = []
        self.dropped_count = 0
        self.close_calls = 0

    @property
    def is_open(self) -> bool:
        return self.state == "open"

    def send_realtime_input(self, data: str, mime_type: str) -> bool:
        if self.state != "open":
            self.dropped_count += 1
            return False
        self.sent.append({"data": data, "mimeType": mime_type})
        return True

    def sent_of_type(self, prefix: str) -> List[Dict[str, str]]:
        return [m for m in self.sent if m["mimeType"].startswith(prefix)]

    def deliver(self, event) -> None:
        self.on_event(event)

    def fail(self, message: str = "connection reset (fake)") -> None:
        self.state = "closed"
        if self.on_error is not None:
            self.on_error(StreamError(message))

    def close(self) -> None:
        self.close_calls += 1
        self.state = "closed"


class FakeLiveConnector:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sessions: List[FakeLiveSession] = []
        self.connect_calls = 0

    async def connect(self, system_instruction: str, on_event, on_error=None) -> FakeLiveSession:
        self.connect_calls += 1
        if self.fail:
            raise StreamError("Could not connect to live model (fake)")
        session = FakeLiveSession(system_instruction, on_event, on_error)
        self.sessions.append(session)
        return session

    @property
    def last_session(self) -> Optional[FakeLiveSession]:
        return self.sessions[-1] if self.sessions else None


class MockLLMClient:
    """Mock LLM client returning queued responses (dicts, lists, strings or exceptions)."""

    def __init__(self, mock_responses: Optional[List[Any]] = None):
        self.mock_responses = list(mock_responses or [])
        self.current_response_idx = 0
        self.request_history: List[Dict[str, Any]] = []

    def _next(self) -> Any:
        if self.current_response_idx < len(self.mock_responses):
            response = self.mock_responses[self.current_response_idx]
            self.current_response_idx += 1
        else:
            response = DEFAULT_FEEDBACK
        if isinstance(response, Exception):
            raise response
        return response

    def generate_json(self, prompt: str, response_schema=None, system_instruction=None,
                      images=None, model=None) -> Any:
        self.request_history.append({
            "prompt": prompt,
            "response_schema": response_schema,
            "system_instruction": system_instruction,
            "images": list(images or []),
            "model": model,
        })
        response = self._next()
        return json.loads(response) if isinstance(response, str) else response

    def generate_text(self, prompt: str, system_instruction=None, model=None) -> str:
        self.request_history.append({"prompt": prompt, "system_instruction": system_instruction, "model": model})
        response = self._next()
        return response if isinstance(response, str) else json.dumps(response)


DEFAULT_FEEDBACK = {
    "technicalAccuracy": "Solid grasp of REST design.",
    "communicationStyle": "Clear and structured.",
    "postureAndTechnique": "Upright posture, good eye contact.",
    "confidence": "Confident throughout.",
    "overallScore": 8,
}


def fake_frame_encoder(frame, width: int, height: int, quality: int) -> Optional[str]:
    """Cheap stand-in for JPEG encoding that records the requested geometry."""
    if frame is None:
        return None
    return base64.b64encode(f"jpeg:{width}x{height}:q{quality}".encode("ascii")).decode("ascii")


def pcm_payload(num_samples: int, value: int = 1000) -> str:
    """Base64 int16 PCM chunk of ``num_samples`` identical samples."""
    return base64.b64encode(np.full(num_samples, value, dtype='<i2').tobytes()).decode("ascii")


def create_mock_session_setup(config: Optional[Config] = None,
                              deny_devices: bool = False,
                              fail_connect: bool = False,
                              frame_interval: float = 3600.0) -> Dict[str, Any]:
    """
    Build a ``SessionLifecycleManager`` wired entirely to fakes.

    The default frame interval is long enough that no timed frame fires
    during a test unless the test asks for one.
    """
    config = config or Config(api_key="test-key")
    event_bus = SessionEventBus()
    coordinator = TranscriptCoordinator(event_bus)
    devices = FakeDeviceProvider(deny=deny_devices)
    connector = FakeLiveConnector(fail=fail_connect)
    input_contexts: List[FakeInputContext] = []
    output_contexts: List[FakeOutputContext] = []

    def make_input():
        ctx = FakeInputContext()
        input_contexts.append(ctx)
        return ctx

    def make_output():
        ctx = FakeOutputContext()
        output_contexts.append(ctx)
        return ctx

    lifecycle = SessionLifecycleManager(
        config,
        coordinator=coordinator,
        event_bus=event_bus,
        device_provider=devices,
        connector=connector,
        input_context_factory=make_input,
        output_context_factory=make_output,
        frame_encoder=fake_frame_encoder,
        frame_interval=frame_interval,
    )
    return {
        "config": config,
        "event_bus": event_bus,
        "coordinator": coordinator,
        "devices": devices,
        "connector": connector,
        "input_contexts": input_contexts,
        "output_contexts": output_contexts,
        "lifecycle": lifecycle,
    }
