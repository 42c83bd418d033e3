"""
Mock interview orchestrator: wires the session, coordinator, coaching service
and event bus together for the CLI (or any other front end).
"""
import asyncio
import logging
from typing import Callable, List, Optional

from google.auth.exceptions import GoogleAuthError

from ..config import Config, get_config, TEXT_INTERVIEW_QUESTIONS
from ..errors import (
    ConfigurationError, DeviceAccessError, EvaluationError, MissingContextError,
    SessionStateError, StreamError,
)
from ..utils import setup_logging
from .events import SessionEventBus, EventLogger, SessionMetrics, EventType
from .models import CandidateProfile, Difficulty, SessionStage, Speaker
from .schemas import InterviewFeedback
from .services import CoachingService, build_coaching_service
from .session import SessionLifecycleManager
from .transcript import TranscriptCoordinator

logger = logging.getLogger("orchestrator")


class MockInterviewOrchestrator:
    """
    Realtime mock interview from start to scored feedback.

    Handles the user-facing side of each transition: blocking warnings,
    error messages, and the feedback report.
    """

    def __init__(self,
                 config: Optional[Config] = None,
                 coaching: Optional[CoachingService] = None,
                 lifecycle: Optional[SessionLifecycleManager] = None,
                 event_bus: Optional[SessionEventBus] = None,
                 enable_logging: bool = True):
        self.config = config or get_config()
        if enable_logging:
            self.log_file = setup_logging(self.config.log_file, self.config.log_level)
        else:
            self.log_file = None

        # Event system
        self.event_bus = event_bus or SessionEventBus()
        self.event_logger = EventLogger()
        self.metrics = SessionMetrics()
        self.event_bus.subscribe_all(self.event_logger.handle_event)
        self.event_bus.subscribe_all(self.metrics.handle_event)

        if lifecycle is None:
            coordinator = TranscriptCoordinator(self.event_bus)
            lifecycle = SessionLifecycleManager(self.config, coordinator, self.event_bus)
        self.lifecycle = lifecycle
        self.coordinator = lifecycle.coordinator
        self.lifecycle.on_stream_error = self._on_stream_error

        self._coaching = coaching

    @property
    def coaching(self) -> CoachingService:
        if self._coaching is None:
            self._coaching = build_coaching_service(self.config)
        return self._coaching

    @property
    def stage(self) -> SessionStage:
        return self.coordinator.stage

    def show_transcript_live(self) -> None:
        """Print each transcript fragment as it arrives."""
        def _print_entry(event):
            label = "🧑 You" if event.data["speaker"] == "user" else "🤖 AI"
            print(f"{label}: {event.data['text']}")
        self.event_bus.subscribe(EventType.TRANSCRIPT_APPENDED, _print_entry)

    async def start_interview(self,
                              resume_text: str,
                              difficulty: Difficulty = Difficulty.MEDIUM,
                              candidate: Optional[CandidateProfile] = None) -> bool:
        """
        Start a live interview. Returns False (after telling the user why) on failure.

        Raises:
            SessionStateError: If called while an interview or its feedback is showing
        """
        try:
            await self.lifecycle.start(resume_text, difficulty, candidate)
        except MissingContextError as e:
            print(f"⚠️  {e}")
            return False
        except ConfigurationError as e:
            print(f"❌ Configuration Error: {e}")
            return False
        except DeviceAccessError as e:
            print(f"🎥 Failed to start session: {e}")
            return False
        except StreamError as e:
            print(f"📡 Failed to start session: {e}")
            return False

        print("🎙️  Interview live - speak naturally, the interviewer can see and hear you")
        if self.log_file:
            print(f"📝 Detailed logs: {self.log_file}")
        return True

    async def end_interview(self) -> Optional[InterviewFeedback]:
        """
        End the live interview and request feedback.

        Returns the feedback, or None if the evaluation failed (retry with
        ``retry_evaluation``).
        """
        snapshot = await self.lifecycle.end()
        print(f"🛑 Interview ended - {len(snapshot)} transcript entries captured")
        return await self._evaluate(snapshot)

    async def run_text_interview(self,
                                 resume_text: str,
                                 difficulty: Difficulty = Difficulty.MEDIUM,
                                 candidate: Optional[CandidateProfile] = None,
                                 read_answer: Callable[[str], str] = input,
                                 max_questions: int = TEXT_INTERVIEW_QUESTIONS) -> Optional[InterviewFeedback]:
        """
        Typed, turn-based interview for machines without a microphone or camera.

        Questions come one at a time from the coaching service; a blank answer
        ends the interview early. The transcript is evaluated without an image.

        Returns:
            The feedback, or None if the interview was blocked, had no answers,
            or its evaluation failed (retry with ``retry_evaluation``)

        Raises:
            SessionStateError: If a live interview or its feedback is showing
        """
        if self.lifecycle.is_live:
            raise SessionStateError("An interview session is already running")
        if not self.coordinator.can_start(resume_text):
            print(f"⚠️  {self.coordinator.warning}")
            return None
        try:
            coaching = self.coaching
        except ConfigurationError as e:
            print(f"❌ Configuration Error: {e}")
            return None

        candidate = candidate or CandidateProfile()
        self.coordinator.begin()
        history: List[str] = []
        for _ in range(max_questions):
            try:
                question = await asyncio.to_thread(
                    coaching.next_interview_question, candidate, history, resume_text, difficulty
                )
            except (RuntimeError, ValueError, OSError, GoogleAuthError) as e:
                logger.error(f"Question generation failed: {e}")
                print(f"❌ Could not get the next question: {e}")
                break
            self.coordinator.record(Speaker.ASSISTANT, question)
            print(f"🤖 AI: {question}")

            answer = (await asyncio.to_thread(read_answer, "🧑 You: ")).strip()
            if not answer:
                break
            self.coordinator.record(Speaker.USER, answer)
            history.append(f"Q: {question} | A: {answer}")

        if not history:
            self.coordinator.abort("no answers")
            print("🛑 Interview ended before any answer was given")
            return None

        snapshot = self.coordinator.freeze("")
        print(f"🛑 Interview ended - {len(snapshot)} transcript entries captured")
        return await self._evaluate(snapshot)

    async def retry_evaluation(self) -> Optional[InterviewFeedback]:
        """Re-run the evaluation on the retained transcript without a new interview."""
        if not self.coordinator.can_retry_evaluation:
            raise SessionStateError("There is no failed evaluation to retry")
        return await self._evaluate(self.coordinator.snapshot)

    async def _evaluate(self, snapshot) -> Optional[InterviewFeedback]:
        print("🧠 Generating feedback...")
        try:
            feedback = await self.coaching.evaluate_interview_async(snapshot)
        except EvaluationError as e:
            self.coordinator.fail_evaluation(e)
            print("❌ Feedback generation failed. Check your connection.")
            return None
        self.coordinator.complete(feedback)
        return feedback

    def new_session(self) -> None:
        """Leave the feedback screen (or a failed evaluation) and clear the transcript."""
        self.coordinator.reset()

    def _on_stream_error(self, error: StreamError) -> None:
        print(f"📡 Connection to the interviewer was lost: {error}")

    def shutdown(self) -> None:
        """Release every resource; safe to call at any time."""
        self.lifecycle.force_teardown()
        logger.info(f"Metrics: {self.metrics.get_metrics()}")

    def print_feedback(self, feedback: InterviewFeedback) -> None:
        print("\n" + "=" * 50)
        print(f"🏆 Overall score: {feedback.overallScore}/10")
        print("=" * 50)
        print(f"🔧 Technical accuracy: {feedback.technicalAccuracy}")
        print(f"🗣️  Communication: {feedback.communicationStyle}")
        print(f"🪑 Posture & technique: {feedback.postureAndTechnique}")
        print(f"💪 Confidence: {feedback.confidence}")
