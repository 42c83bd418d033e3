"""
Event-driven notifications for interview sessions.

The UI (or CLI) subscribes to the bus to render the live transcript and
stage changes without reaching into session internals.
"""
import logging
from typing import Dict, Any, List, Callable, Optional
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger("events")


class EventType(str, Enum):
    """Types of session events."""
    SESSION_STARTED = "session_started"
    START_BLOCKED = "start_blocked"
    TRANSCRIPT_APPENDED = "transcript_appended"
    PLAYBACK_INTERRUPTED = "playback_interrupted"
    SESSION_ENDED = "session_ended"
    SESSION_TORN_DOWN = "session_torn_down"
    FEEDBACK_READY = "feedback_ready"
    ERROR_OCCURRED = "error_occurred"


@dataclass
class SessionEvent:
    """Base class for all session events."""
    event_type: EventType
    session_id: str
    timestamp: float
    data: Dict[str, Any]


@dataclass
class SessionStartedEvent(SessionEvent):
    def __init__(self, session_id: str, timestamp: float, difficulty: str, candidate: str):
        super().__init__(
            event_type=EventType.SESSION_STARTED,
            session_id=session_id,
            timestamp=timestamp,
            data={"difficulty": difficulty, "candidate": candidate}
        )


@dataclass
class StartBlockedEvent(SessionEvent):
    """Fired when start is refused with user-correctable guidance."""
    def __init__(self, session_id: str, timestamp: float, warning: str):
        super().__init__(
            event_type=EventType.START_BLOCKED,
            session_id=session_id,
            timestamp=timestamp,
            data={"warning": warning}
        )


@dataclass
class TranscriptAppendedEvent(SessionEvent):
    def __init__(self, session_id: str, timestamp: float, index: int, speaker: str, text: str):
        super().__init__(
            event_type=EventType.TRANSCRIPT_APPENDED,
            session_id=session_id,
            timestamp=timestamp,
            data={"index": index, "speaker": speaker, "text": text}
        )


@dataclass
class PlaybackInterruptedEvent(SessionEvent):
    def __init__(self, session_id: str, timestamp: float, cancelled_sources: int):
        super().__init__(
            event_type=EventType.PLAYBACK_INTERRUPTED,
            session_id=session_id,
            timestamp=timestamp,
            data={"cancelled_sources": cancelled_sources}
        )


@dataclass
class SessionEndedEvent(SessionEvent):
    def __init__(self, session_id: str, timestamp: float, transcript_length: int, has_snapshot: bool):
        super().__init__(
            event_type=EventType.SESSION_ENDED,
            session_id=session_id,
            timestamp=timestamp,
            data={"transcript_length": transcript_length, "has_snapshot": has_snapshot}
        )


@dataclass
class SessionTornDownEvent(SessionEvent):
    def __init__(self, session_id: str, timestamp: float, reason: str):
        super().__init__(
            event_type=EventType.SESSION_TORN_DOWN,
            session_id=session_id,
            timestamp=timestamp,
            data={"reason": reason}
        )


@dataclass
class FeedbackReadyEvent(SessionEvent):
    def __init__(self, session_id: str, timestamp: float, overall_score: int):
        super().__init__(
            event_type=EventType.FEEDBACK_READY,
            session_id=session_id,
            timestamp=timestamp,
            data={"overall_score": overall_score}
        )


@dataclass
class ErrorOccurredEvent(SessionEvent):
    def __init__(self, session_id: str, timestamp: float, error_type: str,
                 error_message: str, component: str):
        super().__init__(
            event_type=EventType.ERROR_OCCURRED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "error_type": error_type,
                "error_message": error_message,
                "component": component
            }
        )


EventHandler = Callable[[SessionEvent], None]


class SessionEventBus:
    """Event bus connecting the session to its observers."""

    def __init__(self):
        self._handlers: Dict[EventType, List[EventHandler]] = {}
        self._global_handlers: List[EventHandler] = []

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """
        Subscribe to specific event type.

        Args:
            event_type: Type of event to listen for
            handler: Function to call when event occurs
        """
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Subscribed handler to {event_type}")

    def subscribe_all(self, handler: EventHandler) -> None:
        self._global_handlers.append(handler)
        logger.debug("Subscribed global handler")

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        if event_type in self._handlers:
            try:
                self._handlers[event_type].remove(handler)
                logger.debug(f"Unsubscribed handler from {event_type}")
            except ValueError:
                logger.warning(f"Handler not found for {event_type}")

    def emit(self, event: SessionEvent) -> None:
        """Deliver an event to every subscriber. Handler errors are logged, not raised."""
        logger.debug(f"Emitting event: {event.event_type} for session {event.session_id}")

        for handler in self._handlers.get(event.event_type, []):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in event handler for {event.event_type}: {e}")

        for handler in self._global_handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in global event handler: {e}")

    def clear_handlers(self) -> None:
        self._handlers.clear()
        self._global_handlers.clear()
        logger.debug("Cleared all event handlers")


class EventLogger:
    """Logs all events for debugging and analysis."""

    def __init__(self, log_level: int = logging.INFO):
        self.logger = logging.getLogger("event_logger")
        self.log_level = log_level

    def handle_event(self, event: SessionEvent) -> None:
        # Transcript text can be long; keep it at debug
        level = logging.DEBUG if event.event_type == EventType.TRANSCRIPT_APPENDED else self.log_level
        self.logger.log(level, f"Event: {event.event_type.value} | Session: {event.session_id} | Data: {event.data}")


class SessionMetrics:
    """Collects counters from session events."""

    _COUNTERS = {
        EventType.SESSION_STARTED: "sessions_started",
        EventType.START_BLOCKED: "starts_blocked",
        EventType.TRANSCRIPT_APPENDED: "transcript_entries",
        EventType.PLAYBACK_INTERRUPTED: "interruptions",
        EventType.SESSION_ENDED: "sessions_ended",
        EventType.SESSION_TORN_DOWN: "sessions_torn_down",
        EventType.FEEDBACK_READY: "feedback_reports",
        EventType.ERROR_OCCURRED: "errors_occurred",
    }

    def __init__(self):
        self.reset()

    def handle_event(self, event: SessionEvent) -> None:
        name: Optional[str] = self._COUNTERS.get(event.event_type)
        if name:
            self._counts[name] += 1

    def get_metrics(self) -> Dict[str, int]:
        return dict(self._counts)

    def reset(self) -> None:
        self._counts = {name: 0 for name in self._COUNTERS.values()}
