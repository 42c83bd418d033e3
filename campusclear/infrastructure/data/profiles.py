"""
Candidate profiles persisted as one JSON file per user.
"""
import os
import json
import logging
from dataclasses import dataclass, asdict, fields
from enum import Enum
from typing import Dict, List, Optional

logger = logging.getLogger("profiles")


class PrepLevel(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"
    PRO = "Pro"


def prep_level_for_streak(streak_weeks: int) -> PrepLevel:
    """Preparation level earned by consecutive weeks of practice."""
    if streak_weeks >= 4:
        return PrepLevel.PRO
    if streak_weeks >= 2:
        return PrepLevel.ADVANCED
    if streak_weeks >= 1:
        return PrepLevel.INTERMEDIATE
    return PrepLevel.BEGINNER


@dataclass
class UserProfile:
    """A placement candidate. Field names follow the stored JSON documents."""
    uid: str
    displayName: str
    branch: str = ""
    college: str = ""
    cgpa: float = 0.0
    gradYear: int = 0
    streakDays: int = 0
    streakWeeks: int = 0
    prepLevel: str = PrepLevel.BEGINNER.value

    @classmethod
    def from_dict(cls, data: Dict) -> 'UserProfile':
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> Dict:
        return asdict(self)


class ProfileStore:
    """Loads and saves ``UserProfile`` records under ``profiles_dir``."""

    def __init__(self, profiles_dir: str):
        self.profiles_dir = profiles_dir
        os.makedirs(self.profiles_dir, exist_ok=True)

    def _get_profile_path(self, uid: str) -> str:
        return os.path.join(self.profiles_dir, f"{uid}.json")

    def load(self, uid: str) -> Optional[UserProfile]:
        path = self._get_profile_path(uid)
        if not os.path.exists(path):
            return None
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return UserProfile.from_dict(json.load(f))
        except (OSError, ValueError, TypeError) as e:
            logger.error(f"Failed to load profile {uid}: {e}")
            return None

    def save(self, profile: UserProfile) -> None:
        """Write the profile, refreshing its prep level from the streak first."""
        profile.prepLevel = prep_level_for_streak(profile.streakWeeks).value
        path = self._get_profile_path(profile.uid)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(profile.to_dict(), f, indent=2)
        logger.info(f"Saved profile {profile.uid} ({profile.prepLevel})")

    def list_uids(self) -> List[str]:
        return sorted(name[:-5] for name in os.listdir(self.profiles_dir) if name.endswith('.json'))
