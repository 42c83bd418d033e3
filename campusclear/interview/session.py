"""
Session lifecycle: acquire devices, open the live stream, guarantee teardown.
"""
import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..config import Config, VIDEO_FRAME_INTERVAL, INPUT_SAMPLE_RATE, OUTPUT_SAMPLE_RATE
from ..errors import (
    InterviewError, ConfigurationError, DeviceAccessError, MissingContextError,
    SessionStateError, StreamError,
)
from ..infrastructure.video.frames import encode_frame_base64
from .capture import CapturePipeline
from .events import (
    SessionEventBus, SessionStartedEvent, SessionEndedEvent, SessionTornDownEvent,
    PlaybackInterruptedEvent, ErrorOccurredEvent,
)
from .models import CandidateProfile, Difficulty, TranscriptSnapshot
from .playback import PlaybackScheduler
from .prompts import InterviewPrompts
from .transcript import TranscriptCoordinator

logger = logging.getLogger("session")

StreamErrorCallback = Callable[[StreamError], None]


def _default_input_context():
    from ..infrastructure.audio.input import InputAudioContext
    return InputAudioContext(sample_rate=INPUT_SAMPLE_RATE)


def _default_device_provider(config: Config):
    # Imported lazily so pyaudio/cv2 device code only loads when a real session starts
    from ..infrastructure.devices import DeviceProvider
    return DeviceProvider(input_device=config.input_device, camera_index=config.camera_index)


def _default_connector(config: Config):
    from ..infrastructure.llm.live import LiveConnector
    return LiveConnector(config)


@dataclass
class InterviewSession:
    """Every resource handle one interview owns. Built by ``start``, emptied by teardown."""
    session_id: str
    input_context: Any = None
    output_context: Any = None
    device_stream: Any = None
    handle: Any = None
    capture: Optional[CapturePipeline] = None
    playback: Optional[PlaybackScheduler] = None
    torn_down: bool = False


class SessionLifecycleManager:
    """
    Owns at most one live ``InterviewSession``.

    Collaborators are injected so tests can substitute fakes: a device
    provider with ``acquire()``, a live connector with ``connect()``, and
    factories for the input and output audio contexts.
    """

    def __init__(self,
                 config: Config,
                 coordinator: Optional[TranscriptCoordinator] = None,
                 event_bus: Optional[SessionEventBus] = None,
                 device_provider=None,
                 connector=None,
                 input_context_factory: Optional[Callable[[], Any]] = None,
                 output_context_factory: Optional[Callable[[], Any]] = None,
                 frame_encoder=encode_frame_base64,
                 frame_interval: Optional[float] = None,
                 on_stream_error: Optional[StreamErrorCallback] = None):
        self.config = config
        self.event_bus = event_bus or SessionEventBus()
        self.coordinator = coordinator or TranscriptCoordinator(self.event_bus)
        self._device_provider = device_provider
        self._connector = connector
        self.input_context_factory = input_context_factory or _default_input_context
        self.output_context_factory = output_context_factory or self._default_output_context
        self.frame_encoder = frame_encoder
        self.frame_interval = frame_interval if frame_interval is not None else (
            config.video_frame_interval or VIDEO_FRAME_INTERVAL
        )
        self.on_stream_error = on_stream_error
        self.session: Optional[InterviewSession] = None

    def _default_output_context(self):
        from ..infrastructure.audio.output import OutputAudioContext
        return OutputAudioContext(sample_rate=OUTPUT_SAMPLE_RATE, output_device=self.config.output_device)

    @property
    def device_provider(self):
        if self._device_provider is None:
            self._device_provider = _default_device_provider(self.config)
        return self._device_provider

    @property
    def connector(self):
        if self._connector is None:
            self._connector = _default_connector(self.config)
        return self._connector

    @property
    def is_live(self) -> bool:
        return self.session is not None and not self.session.torn_down

    async def start(self,
                    resume_text: str,
                    difficulty: Difficulty = Difficulty.MEDIUM,
                    candidate: Optional[CandidateProfile] = None) -> InterviewSession:
        """
        Start a realtime interview.

        Args:
            resume_text: Resume context embedded in the interviewer instruction
            difficulty: Question difficulty
            candidate: Name, branch and prep level of the candidate

        Returns:
            The open session

        Raises:
            SessionStateError: If a session is already live or feedback is showing
            MissingContextError: If the resume text is blank (nothing acquired)
            ConfigurationError: If no API credential is configured (nothing acquired)
            DeviceAccessError: If an audio device, microphone or camera is unavailable
            StreamError: If the live stream could not be opened
        """
        if self.is_live:
            raise SessionStateError("An interview session is already running")
        if not self.coordinator.can_start(resume_text):
            raise MissingContextError(self.coordinator.warning)
        if not self.config.has_credentials:
            raise ConfigurationError(
                "No Gemini credential configured. Set GEMINI_API_KEY, or GOOGLE_CLOUD_PROJECT for Vertex AI."
            )

        candidate = candidate or CandidateProfile()
        session = InterviewSession(session_id=uuid.uuid4().hex[:12])
        self.session = session
        self.coordinator.session_id = session.session_id
        logger.info(f"Starting session {session.session_id} ({difficulty.value}, {candidate.display_name})")

        started = False
        try:
            session.input_context = self._open_audio_context(self.input_context_factory, "input")
            session.output_context = self._open_audio_context(self.output_context_factory, "output")
            session.playback = PlaybackScheduler(session.output_context)

            session.device_stream = await asyncio.to_thread(self._acquire_devices)
            self._ensure_not_torn_down(session)

            instruction = InterviewPrompts.live_interviewer(resume_text, difficulty, candidate)
            session.handle = await self.connector.connect(
                instruction,
                on_event=lambda event: self._on_server_event(session, event),
                on_error=lambda error: self._on_stream_error(session, error),
            )
            self._ensure_not_torn_down(session)

            session.capture = CapturePipeline(
                session.handle,
                session.device_stream,
                session.input_context,
                frame_interval=self.frame_interval,
                frame_encoder=self.frame_encoder,
            )
            session.capture.start()
            self.coordinator.begin()
            started = True
        except InterviewError as e:
            self.event_bus.emit(ErrorOccurredEvent(
                session.session_id, time.time(), type(e).__name__, str(e), "start"
            ))
            raise
        finally:
            if not started:
                self._release(session, "start failed")

        self.event_bus.emit(SessionStartedEvent(
            session.session_id, time.time(), difficulty.value, candidate.display_name
        ))
        return session

    def _open_audio_context(self, factory, label: str):
        try:
            return factory()
        except InterviewError:
            raise
        except Exception as e:
            logger.error(f"Could not open {label} audio context: {e}")
            raise DeviceAccessError(f"Audio {label} unavailable: {e}") from e

    def _acquire_devices(self):
        try:
            provider = self.device_provider
        except ImportError as e:
            raise DeviceAccessError(f"Device support is not installed (pip install campusclear[audio]): {e}") from e
        return provider.acquire()

    def _ensure_not_torn_down(self, session: InterviewSession) -> None:
        if session.torn_down or session is not self.session:
            raise StreamError("Session was torn down while starting")

    def _on_server_event(self, session: InterviewSession, event) -> None:
        """Route one server message: audio first, then transcripts, then interruption."""
        if session.torn_down or session.playback is None:
            return
        for chunk in event.audio:
            try:
                session.playback.handle_audio(chunk)
            except ValueError as e:
                logger.warning(f"Undecodable audio chunk dropped: {e}")
        self.coordinator.record_server_event(event)
        if event.interrupted:
            cancelled = session.playback.interrupt()
            self.event_bus.emit(PlaybackInterruptedEvent(session.session_id, time.time(), cancelled))

    def _on_stream_error(self, session: InterviewSession, error: StreamError) -> None:
        if session.torn_down:
            return
        logger.error(f"Stream error in session {session.session_id}: {error}")
        self.event_bus.emit(ErrorOccurredEvent(
            session.session_id, time.time(), type(error).__name__, str(error), "live_stream"
        ))
        if session is self.session:
            self.force_teardown()
        if self.on_stream_error is not None:
            self.on_stream_error(error)

    async def end(self) -> TranscriptSnapshot:
        """
        Stop capture, take the final snapshot, release everything.

        Returns:
            The frozen transcript and the base64 JPEG snapshot ("" if none)

        Raises:
            SessionStateError: If no session is live
        """
        session = self.session
        if session is None or session.torn_down:
            raise SessionStateError("No interview session is running")

        if session.capture is not None:
            session.capture.stop()
            snapshot_b64 = await session.capture.capture_snapshot()
        else:
            snapshot_b64 = ""

        snapshot = self.coordinator.freeze(snapshot_b64)
        self._release(session, "ended")
        self.event_bus.emit(SessionEndedEvent(
            session.session_id, time.time(), len(snapshot), bool(snapshot_b64)
        ))
        logger.info(f"Session {session.session_id} ended with {len(snapshot)} transcript entries")
        return snapshot

    def force_teardown(self) -> None:
        """Release whatever the current session holds. Safe from any state, any number of times."""
        session = self.session
        if session is None:
            return
        self._release(session, "forced teardown")
        self.coordinator.abort("forced teardown")

    def _release(self, session: InterviewSession, reason: str) -> None:
        """
        Ordered teardown: capture, stream, device tracks, audio contexts, playback.

        Each step is guarded on its own; the first failure never skips the rest.
        Released handles are dropped, so a repeat call only touches resources
        that were attached after the previous one.
        """
        first_release = not session.torn_down
        session.torn_down = True

        steps = [
            ("capture", session.capture, lambda c: c.stop()),
            ("live session", session.handle, lambda h: h.close()),
            ("device tracks", session.device_stream, lambda d: d.stop()),
            ("input audio context", session.input_context, lambda c: c.close()),
            ("output audio context", session.output_context, lambda c: c.close()),
            ("pending playback", session.playback, lambda p: p.stop_all()),
        ]
        for name, resource, release in steps:
            if resource is None:
                continue
            try:
                release(resource)
            except Exception as e:
                logger.warning(f"Error releasing {name}: {e}")

        session.capture = None
        session.handle = None
        session.device_stream = None
        session.input_context = None
        session.output_context = None
        if session is self.session:
            self.session = None
        if first_release:
            self.event_bus.emit(SessionTornDownEvent(session.session_id, time.time(), reason))
            logger.info(f"Session {session.session_id} released ({reason})")
