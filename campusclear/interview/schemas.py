"""
Structured response models for the one-shot coaching calls.

Each model has a matching OpenAPI-style schema that is sent to Gemini as
``responseSchema``; the parsed reply is validated back into the model.
"""
import math
from typing import Any, Dict, List, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator


class InterviewFeedback(BaseModel):
    """Post-interview scoring."""
    technicalAccuracy: str
    communicationStyle: str
    postureAndTechnique: str
    confidence: str
    overallScore: int = Field(ge=1, le=10)

    @field_validator("overallScore", mode="before")
    @classmethod
    def _round_and_clamp(cls, value: Any) -> int:
        try:
            score = float(value)
        except (TypeError, ValueError):
            raise ValueError(f"overallScore must be numeric, got {value!r}")
        if not math.isfinite(score):
            raise ValueError("overallScore is not a number")
        return int(min(10, max(1, round(score))))


class ResumeCritique(BaseModel):
    score: float
    good: List[str] = Field(default_factory=list)
    bad: List[str] = Field(default_factory=list)
    summary: str = ""


class QuizQuestion(BaseModel):
    question: str
    options: List[str]
    correctAnswer: int
    explanation: str = ""

    @field_validator("correctAnswer", mode="before")
    @classmethod
    def _integral_index(cls, value: Any) -> int:
        try:
            return int(round(float(value)))
        except (TypeError, ValueError):
            raise ValueError(f"correctAnswer must be an option index, got {value!r}")


class CompanyOverview(BaseModel):
    stages: List[str] = Field(default_factory=list)
    mustKnowTopics: List[str] = Field(default_factory=list)
    hiringTrends: str = ""


def _string():
    return {"type": "STRING"}


def _number():
    return {"type": "NUMBER"}


def _string_array():
    return {"type": "ARRAY", "items": _string()}


def _object(properties: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": "OBJECT", "properties": properties, "required": list(properties)}


FEEDBACK_SCHEMA = _object({
    "technicalAccuracy": _string(),
    "communicationStyle": _string(),
    "postureAndTechnique": _string(),
    "confidence": _string(),
    "overallScore": _number(),
})

CRITIQUE_SCHEMA = _object({
    "score": _number(),
    "good": _string_array(),
    "bad": _string_array(),
    "summary": _string(),
})

QUIZ_SCHEMA = {
    "type": "ARRAY",
    "items": _object({
        "question": _string(),
        "options": _string_array(),
        "correctAnswer": _number(),
        "explanation": _string(),
    }),
}

OVERVIEW_SCHEMA = _object({
    "stages": _string_array(),
    "mustKnowTopics": _string_array(),
    "hiringTrends": _string(),
})


ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_model(model: Type[ModelT], data: Any) -> ModelT:
    """
    Validate parsed JSON into ``model``.

    Raises:
        ValueError: If the data does not match the model
    """
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid {model.__name__} structure: {e}") from e


def parse_model_list(model: Type[ModelT], data: Any) -> List[ModelT]:
    if not isinstance(data, list):
        raise ValueError(f"Expected a list of {model.__name__}, got {type(data).__name__}")
    return [parse_model(model, item) for item in data]
