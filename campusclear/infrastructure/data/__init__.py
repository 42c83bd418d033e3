"""
Local data storage: candidate profiles and resume text.
"""

from .profiles import PrepLevel, UserProfile, ProfileStore, prep_level_for_streak
from .resume import load_resume_text

__all__ = [
    'PrepLevel',
    'UserProfile',
    'ProfileStore',
    'prep_level_for_streak',
    'load_resume_text',
]
