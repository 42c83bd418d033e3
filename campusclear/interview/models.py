"""
Data models for mock interview sessions.
"""
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple


class Difficulty(str, Enum):
    """Tone and complexity of the interview questions."""
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"

    @classmethod
    def parse(cls, value: str) -> 'Difficulty':
        """Case-insensitive lookup; raises ValueError for unknown names."""
        for member in cls:
            if member.value.lower() == str(value).strip().lower():
                return member
        raise ValueError(f"Unknown difficulty: {value!r} (expected Easy, Medium or Hard)")

    @classmethod
    def for_prep_level(cls, prep_level: Optional[str]) -> 'Difficulty':
        """Default difficulty for a candidate's preparation level."""
        mapping = {
            "Beginner": cls.EASY,
            "Intermediate": cls.MEDIUM,
            "Advanced": cls.HARD,
            "Pro": cls.HARD,
        }
        return mapping.get(str(prep_level), cls.MEDIUM)


class Speaker(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class SessionStage(str, Enum):
    """Which screen the interview UI shows and which operations are valid."""
    IDLE = "idle"
    INTERVIEWING = "interviewing"
    FEEDBACK = "feedback"


@dataclass(frozen=True)
class TranscriptEntry:
    """A single speaker-tagged utterance fragment."""
    speaker: Speaker
    text: str

    def as_line(self) -> str:
        label = "User" if self.speaker == Speaker.USER else "AI"
        return f"{label}: {self.text}"


@dataclass(frozen=True)
class CandidateProfile:
    """The slice of a user profile the interview reads."""
    display_name: str = "Candidate"
    branch: str = ""
    prep_level: Optional[str] = None

    @classmethod
    def from_user_profile(cls, profile) -> 'CandidateProfile':
        """Read the fields the interview needs from a stored ``UserProfile``."""
        return cls(
            display_name=profile.displayName or "Candidate",
            branch=profile.branch,
            prep_level=profile.prepLevel,
        )


@dataclass(frozen=True)
class TranscriptSnapshot:
    """Frozen transcript plus the final camera frame, handed to the evaluator."""
    entries: Tuple[TranscriptEntry, ...] = ()
    snapshot_jpeg_b64: str = ""

    def __post_init__(self):
        object.__setattr__(self, "entries", tuple(self.entries))

    def __len__(self) -> int:
        return len(self.entries)

    def lines(self) -> List[str]:
        return [entry.as_line() for entry in self.entries]
