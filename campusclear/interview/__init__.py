"""Interview system components.

This module contains the realtime mock interview: session lifecycle,
capture and playback, transcript state, and the one-shot coaching calls.
"""

# Core orchestrator class
from .orchestrator import MockInterviewOrchestrator

# Session core
from .session import SessionLifecycleManager, InterviewSession
from .capture import CapturePipeline
from .playback import PlaybackScheduler
from .transcript import TranscriptCoordinator

# Data models
from .models import (
    Difficulty, Speaker, SessionStage, TranscriptEntry,
    CandidateProfile, TranscriptSnapshot,
)

# Structured schemas
from .schemas import InterviewFeedback, ResumeCritique, QuizQuestion, CompanyOverview

# Service classes
from .services import CoachingService, build_coaching_service, create_llm_client

# Event system
from .events import (
    SessionEventBus, EventLogger, SessionMetrics,
    EventType, SessionEvent, SessionStartedEvent, StartBlockedEvent,
    TranscriptAppendedEvent, PlaybackInterruptedEvent, SessionEndedEvent,
    SessionTornDownEvent, FeedbackReadyEvent, ErrorOccurredEvent,
)

__all__ = [
    # Orchestrator
    "MockInterviewOrchestrator",

    # Session core
    "SessionLifecycleManager", "InterviewSession", "CapturePipeline",
    "PlaybackScheduler", "TranscriptCoordinator",

    # Data models
    "Difficulty", "Speaker", "SessionStage", "TranscriptEntry",
    "CandidateProfile", "TranscriptSnapshot",

    # Schemas
    "InterviewFeedback", "ResumeCritique", "QuizQuestion", "CompanyOverview",

    # Services
    "CoachingService", "build_coaching_service", "create_llm_client",

    # Events
    "SessionEventBus", "EventLogger", "SessionMetrics",
    "EventType", "SessionEvent", "SessionStartedEvent", "StartBlockedEvent",
    "TranscriptAppendedEvent", "PlaybackInterruptedEvent", "SessionEndedEvent",
    "SessionTornDownEvent", "FeedbackReadyEvent", "ErrorOccurredEvent",
]
