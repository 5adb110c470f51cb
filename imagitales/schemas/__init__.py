"""
Pydantic 스키마 패키지
"""

from .story import (
    StoryThemeRef,
    IllustrationIn,
    StoryCreate,
    StoryUpdate,
    StoryResponse,
    StoryListResponse,
    StoryNeighbors,
    StoryVersionResponse,
)
from .theme import (
    ThemeDescriptor,
    ThemeCreate,
    ThemeUpdate,
    ThemeResponse,
    ThemeWithCount,
)
from .series import SeriesCreate, SeriesUpdate, SeriesResponse, SeriesBatchUpdate
from .weekly_theme import WeeklyThemeItem
from .generation import GenerateRequest, GenerateResponse, BatchSelection, BatchStory, BatchResponse

__all__ = [
    "StoryThemeRef",
    "IllustrationIn",
    "StoryCreate",
    "StoryUpdate",
    "StoryResponse",
    "StoryListResponse",
    "StoryNeighbors",
    "StoryVersionResponse",
    "ThemeDescriptor",
    "ThemeCreate",
    "ThemeUpdate",
    "ThemeResponse",
    "ThemeWithCount",
    "SeriesCreate",
    "SeriesUpdate",
    "SeriesResponse",
    "SeriesBatchUpdate",
    "WeeklyThemeItem",
    "GenerateRequest",
    "GenerateResponse",
    "BatchSelection",
    "BatchStory",
    "BatchResponse",
]
