"""
모델 패키지
"""

from .series import StorySeries
from .story import Story
from .theme import Theme, StoryTheme
from .story_version import StoryVersion, StoryVersionTheme
from .illustration import Illustration
from .weekly_theme import WeeklyTheme

__all__ = [
    "StorySeries",
    "Story",
    "Theme",
    "StoryTheme",
    "StoryVersion",
    "StoryVersionTheme",
    "Illustration",
    "WeeklyTheme",
]
