"""
Transcript log and the Idle -> Interviewing -> Feedback stage machine.
"""
import logging
import time
from typing import List, Optional

from ..errors import SessionStateError
from .events import (
    SessionEventBus, StartBlockedEvent, TranscriptAppendedEvent,
    FeedbackReadyEvent, ErrorOccurredEvent,
)
from .models import SessionStage, Speaker, TranscriptEntry, TranscriptSnapshot

logger = logging.getLogger("transcript")

MISSING_RESUME_WARNING = "Please upload your resume in the 'Resume Review' section first!"


class TranscriptCoordinator:
    """
    Owns the live transcript and the stage the UI renders.

    Stage rules:
        IDLE         -> INTERVIEWING  on a successful start (resume required)
        INTERVIEWING -> FEEDBACK      once the evaluation returns
        INTERVIEWING -> IDLE          on teardown, stream error or failed evaluation
        FEEDBACK     -> IDLE          on ``reset`` (clears the transcript)
    """

    def __init__(self, event_bus: Optional[SessionEventBus] = None, session_id: str = "session"):
        self.event_bus = event_bus or SessionEventBus()
        self.session_id = session_id
        self.stage = SessionStage.IDLE
        self.entries: List[TranscriptEntry] = []
        self.snapshot: Optional[TranscriptSnapshot] = None
        self.feedback = None
        self.warning: Optional[str] = None
        self.last_error: Optional[str] = None

    def can_start(self, resume_text: Optional[str]) -> bool:
        """
        Gate for ``start``. A blank resume sets ``warning`` and returns False.

        Raises:
            SessionStateError: If the stage is not IDLE
        """
        if self.stage != SessionStage.IDLE:
            raise SessionStateError(f"Cannot start an interview while {self.stage.value}")
        if not (resume_text or "").strip():
            self.warning = MISSING_RESUME_WARNING
            logger.warning("Start blocked: no resume text")
            self.event_bus.emit(StartBlockedEvent(self.session_id, time.time(), self.warning))
            return False
        self.warning = None
        return True

    def begin(self) -> None:
        self.entries = []
        self.snapshot = None
        self.feedback = None
        self.last_error = None
        self.stage = SessionStage.INTERVIEWING
        logger.info(f"Stage -> {self.stage.value}")

    def record(self, speaker: Speaker, text: str) -> Optional[TranscriptEntry]:
        """Append one fragment in arrival order. Ignored outside INTERVIEWING."""
        if self.stage != SessionStage.INTERVIEWING:
            logger.debug(f"Dropping {speaker.value} fragment received while {self.stage.value}")
            return None
        entry = TranscriptEntry(speaker, text)
        self.entries.append(entry)
        self.event_bus.emit(TranscriptAppendedEvent(
            self.session_id, time.time(), len(self.entries) - 1, speaker.value, text
        ))
        return entry

    def record_server_event(self, event) -> None:
        """Append the input then output transcription of a ``ServerEvent``, if any."""
        if event.input_transcription:
            self.record(Speaker.USER, event.input_transcription)
        if event.output_transcription:
            self.record(Speaker.ASSISTANT, event.output_transcription)

    def freeze(self, snapshot_jpeg_b64: str = "") -> TranscriptSnapshot:
        """Copy the log into an immutable snapshot for the evaluator."""
        self.snapshot = TranscriptSnapshot(tuple(self.entries), snapshot_jpeg_b64)
        return self.snapshot

    def abort(self, reason: str) -> None:
        """Leave INTERVIEWING without feedback (teardown or stream error)."""
        if self.stage == SessionStage.INTERVIEWING:
            self.stage = SessionStage.IDLE
            logger.info(f"Stage -> idle ({reason})")

    def complete(self, feedback) -> None:
        """
        Record successful evaluation feedback and move to FEEDBACK.

        Raises:
            SessionStateError: If no frozen transcript exists
        """
        if self.snapshot is None:
            raise SessionStateError("No finished interview to attach feedback to")
        self.feedback = feedback
        self.last_error = None
        self.stage = SessionStage.FEEDBACK
        logger.info(f"Stage -> feedback (score {feedback.overallScore})")
        self.event_bus.emit(FeedbackReadyEvent(self.session_id, time.time(), feedback.overallScore))

    def fail_evaluation(self, error: Exception) -> None:
        """Surface an evaluation failure; the frozen snapshot stays available for a retry."""
        self.stage = SessionStage.IDLE
        self.last_error = str(error)
        logger.error(f"Evaluation failed: {error}")
        self.event_bus.emit(ErrorOccurredEvent(
            self.session_id, time.time(), type(error).__name__, str(error), "evaluation"
        ))

    @property
    def can_retry_evaluation(self) -> bool:
        return self.stage == SessionStage.IDLE and self.snapshot is not None and self.feedback is None

    def reset(self) -> None:
        """
        Back to IDLE with an empty transcript.

        Raises:
            SessionStateError: While an interview is running
        """
        if self.stage == SessionStage.INTERVIEWING:
            raise SessionStateError("End the running interview before starting a new session")
        self.entries = []
        self.snapshot = None
        self.feedback = None
        self.warning = None
        self.last_error = None
        self.stage = SessionStage.IDLE
        logger.info("Transcript cleared; stage -> idle")
