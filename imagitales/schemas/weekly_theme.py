from pydantic import BaseModel, Field, ConfigDict
from typing import Optional


class WeeklyThemeItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    week_number: int = Field(..., ge=1)
    theme_name: str = Field(..., min_length=1, max_length=255)
    theme_description: Optional[str] = None
