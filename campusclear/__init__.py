"""
CampusCLEAR: placement-prep coaching with a realtime voice and video mock interviewer.

Streams microphone audio and webcam frames to a Gemini Live model, plays back
its spoken questions, keeps a live transcript, and scores the finished
interview.
"""

__version__ = "1.0.0"

# Main entry points
from .interview.orchestrator import MockInterviewOrchestrator
from .interview.models import Difficulty, CandidateProfile, TranscriptSnapshot

__all__ = ["MockInterviewOrchestrator", "Difficulty", "CandidateProfile", "TranscriptSnapshot"]
