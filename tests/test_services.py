import pytest

from campusclear.config import Config, EVALUATION_MODEL
from campusclear.errors import ConfigurationError, EvaluationError
from campusclear.infrastructure.llm import GeminiRestClient
from campusclear.interview.models import (
    CandidateProfile, Difficulty, Speaker, TranscriptEntry, TranscriptSnapshot,
)
from campusclear.interview.prompts import EVALUATION_IMAGE_GUIDANCE
from campusclear.interview.schemas import CRITIQUE_SCHEMA, QUIZ_SCHEMA
from campusclear.interview.services import CoachingService, create_llm_client
from campusclear.interview.testing import DEFAULT_FEEDBACK, MockLLMClient

SNAPSHOT = TranscriptSnapshot([TranscriptEntry(Speaker.ASSISTANT, "Why Flask?")], "aW1n")


def test_evaluation_sends_transcript_and_image():
    llm = MockLLMClient([DEFAULT_FEEDBACK])
    feedback = CoachingService(llm).evaluate_interview(SNAPSHOT)

    request = llm.request_history[0]
    assert "AI: Why Flask?" in request["prompt"]
    assert request["images"] == ["aW1n"]
    assert request["model"] == EVALUATION_MODEL
    assert EVALUATION_IMAGE_GUIDANCE in request["system_instruction"]
    assert feedback.overallScore == DEFAULT_FEEDBACK["overallScore"]


def test_evaluation_without_snapshot_sends_no_image():
    llm = MockLLMClient([DEFAULT_FEEDBACK])
    CoachingService(llm).evaluate_interview(TranscriptSnapshot([], ""))
    assert llm.request_history[0]["images"] == []


@pytest.mark.parametrize("failure", [
    RuntimeError("Gemini REST error 500"),
    ValueError("LLM did not return valid JSON"),
    OSError("connection refused"),
])
def test_evaluation_failures_become_evaluation_errors(failure):
    with pytest.raises(EvaluationError):
        CoachingService(MockLLMClient([failure])).evaluate_interview(SNAPSHOT)


def test_malformed_feedback_is_an_evaluation_error():
    with pytest.raises(EvaluationError):
        CoachingService(MockLLMClient([{"overallScore": 5}])).evaluate_interview(SNAPSHOT)


def test_resume_review():
    llm = MockLLMClient([{"score": 64, "good": ["Projects"], "bad": ["No metrics"], "summary": "Decent"}])
    critique = CoachingService(llm).review_resume("Python, Flask")
    assert critique.score == 64
    assert critique.bad == ["No metrics"]
    assert llm.request_history[0]["response_schema"] == CRITIQUE_SCHEMA


def test_quiz_drops_questions_with_invalid_answer_index():
    llm = MockLLMClient([[
        {"question": "Q1", "options": ["a", "b"], "correctAnswer": 1, "explanation": "b"},
        {"question": "Q2", "options": ["a", "b"], "correctAnswer": 5, "explanation": ""},
    ]])
    questions = CoachingService(llm).generate_quiz("Python")
    assert [q.question for q in questions] == ["Q1"]
    assert llm.request_history[0]["response_schema"] == QUIZ_SCHEMA


def test_company_overview_prompt_mentions_company_and_branch():
    llm = MockLLMClient([{"stages": ["OA"], "mustKnowTopics": ["DSA"], "hiringTrends": "Up"}])
    overview = CoachingService(llm).company_overview("Acme", "ECE")
    assert overview.stages == ["OA"]
    assert "Acme" in llm.request_history[0]["prompt"]
    assert "ECE" in llm.request_history[0]["prompt"]


def test_next_question_numbers_the_turn():
    llm = MockLLMClient(["How did you secure the API?"])
    question = CoachingService(llm).next_interview_question(
        CandidateProfile("Asha", "CSE", "Advanced"), ["AI: Hi", "User: Hello"], "Flask", Difficulty.HARD,
    )
    assert question == "How did you secure the API?"
    prompt = llm.request_history[0]["prompt"]
    assert "question #3" in prompt
    assert "(Hard)" in prompt


def test_llm_client_needs_a_credential():
    with pytest.raises(ConfigurationError):
        create_llm_client(Config())


def test_llm_client_prefers_api_key():
    client = create_llm_client(Config(api_key="k", google_cloud_project="p"))
    assert isinstance(client, GeminiRestClient)
    assert client.api_key == "k"
    assert client.project is None
