"""
Service classes for the one-shot coaching calls.

Each call is a blocking REST request, so the async wrappers push it onto a
worker thread and keep the event loop (and live playback) responsive.
"""
import asyncio
import logging
from typing import List, Optional

from google.auth.exceptions import GoogleAuthError

from ..config import Config, EVALUATION_MODEL, TEXT_MODEL, LLM_TIMEOUT
from ..errors import ConfigurationError, EvaluationError
from ..infrastructure.llm import GeminiRestClient
from .models import CandidateProfile, Difficulty, TranscriptSnapshot
from .prompts import COACH_SYSTEM_INSTRUCTION, EVALUATION_IMAGE_GUIDANCE, InterviewPrompts
from .schemas import (
    InterviewFeedback, ResumeCritique, QuizQuestion, CompanyOverview,
    FEEDBACK_SCHEMA, CRITIQUE_SCHEMA, QUIZ_SCHEMA, OVERVIEW_SCHEMA,
    parse_model, parse_model_list,
)

logger = logging.getLogger("services")


def create_llm_client(config: Config) -> GeminiRestClient:
    """
    Build the REST client for whichever credential is configured.

    Raises:
        ConfigurationError: If neither an API key nor a Vertex project is set
    """
    if not config.has_credentials:
        raise ConfigurationError("No Gemini credential configured for coaching calls")
    return GeminiRestClient(
        api_key=config.api_key,
        project=None if config.api_key else config.google_cloud_project,
        location=config.vertex_location,
        model=config.text_model or TEXT_MODEL,
        credentials_json=config.google_application_credentials,
        timeout=LLM_TIMEOUT,
    )


class CoachingService:
    """Resume critique, quiz, company overview, interview evaluation."""

    def __init__(self, llm_client, evaluation_model: str = EVALUATION_MODEL):
        self.llm_client = llm_client
        self.evaluation_model = evaluation_model

    def evaluate_interview(self, snapshot: TranscriptSnapshot) -> InterviewFeedback:
        """
        Score a finished interview from its transcript and final camera frame.

        Args:
            snapshot: Frozen transcript plus base64 JPEG (may be empty)

        Returns:
            InterviewFeedback with overallScore in 1..10

        Raises:
            EvaluationError: If the call fails or returns an unusable structure
        """
        images = [snapshot.snapshot_jpeg_b64] if snapshot.snapshot_jpeg_b64 else []
        logger.info(f"Evaluating interview ({len(snapshot)} entries, {len(images)} image(s))")
        try:
            data = self.llm_client.generate_json(
                InterviewPrompts.evaluation(snapshot.lines()),
                response_schema=FEEDBACK_SCHEMA,
                system_instruction=f"{COACH_SYSTEM_INSTRUCTION}\n\n{EVALUATION_IMAGE_GUIDANCE}",
                images=images,
                model=self.evaluation_model,
            )
            feedback = parse_model(InterviewFeedback, data)
        except (RuntimeError, ValueError, OSError, GoogleAuthError) as e:
            logger.error(f"Interview evaluation failed: {e}")
            raise EvaluationError(f"Feedback generation failed: {e}") from e

        logger.info(f"Interview scored {feedback.overallScore}/10")
        return feedback

    async def evaluate_interview_async(self, snapshot: TranscriptSnapshot) -> InterviewFeedback:
        return await asyncio.to_thread(self.evaluate_interview, snapshot)

    def review_resume(self, resume_text: str) -> ResumeCritique:
        """Critique & Fix review of the resume text."""
        data = self.llm_client.generate_json(
            InterviewPrompts.resume_critique(resume_text),
            response_schema=CRITIQUE_SCHEMA,
            system_instruction=COACH_SYSTEM_INSTRUCTION,
        )
        return parse_model(ResumeCritique, data)

    def generate_quiz(self, resume_text: str) -> List[QuizQuestion]:
        data = self.llm_client.generate_json(
            InterviewPrompts.resume_quiz(resume_text),
            response_schema=QUIZ_SCHEMA,
            system_instruction=COACH_SYSTEM_INSTRUCTION,
        )
        questions = parse_model_list(QuizQuestion, data)
        valid = [q for q in questions if 0 <= q.correctAnswer < len(q.options)]
        if len(valid) < len(questions):
            logger.warning(f"Dropped {len(questions) - len(valid)} quiz question(s) with an out-of-range answer")
        return valid

    def company_overview(self, company_name: str, branch: str) -> CompanyOverview:
        data = self.llm_client.generate_json(
            InterviewPrompts.company_overview(company_name, branch),
            response_schema=OVERVIEW_SCHEMA,
            system_instruction=COACH_SYSTEM_INSTRUCTION,
        )
        return parse_model(CompanyOverview, data)

    def next_interview_question(self,
                                candidate: CandidateProfile,
                                history: List[str],
                                resume_text: str,
                                difficulty: Difficulty = Difficulty.MEDIUM) -> str:
        """Next question of the typed interview used when no microphone or camera is available."""
        text = self.llm_client.generate_text(
            InterviewPrompts.next_question(candidate, history, resume_text, difficulty),
            system_instruction=COACH_SYSTEM_INSTRUCTION,
        )
        return text or "Tell me about a project from your resume you are most proud of."


def build_coaching_service(config: Config, llm_client: Optional[GeminiRestClient] = None) -> CoachingService:
    return CoachingService(llm_client or create_llm_client(config),
                           evaluation_model=config.evaluation_model or EVALUATION_MODEL)
