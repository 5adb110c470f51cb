from pydantic import BaseModel, Field, ConfigDict
from typing import List, Literal, Optional
from datetime import datetime
import uuid


class SeriesCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None


class SeriesUpdate(SeriesCreate):
    pass


class SeriesResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    story_count: int = 0


class SeriesBatchUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    story_ids: List[uuid.UUID] = Field(default_factory=list, alias="storyIds")
    action: Literal["add", "remove"]
