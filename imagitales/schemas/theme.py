from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional
from datetime import datetime
import re
import uuid

_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")


class ThemeDescriptor(BaseModel):
    """생성 텍스트에서 추출한 미저장 테마 (name, description, color, icon)"""
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = Field(None, max_length=16)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("테마 이름이 비어 있습니다")
        return v

    @field_validator("color")
    @classmethod
    def _valid_color(cls, v: Optional[str]) -> Optional[str]:
        # 형식이 잘못된 색상은 버린다 (생성 텍스트는 신뢰할 수 없음)
        if v is None:
            return None
        v = v.strip()
        return v if _HEX_COLOR.match(v) else None


class ThemeCreate(ThemeDescriptor):
    pass


class ThemeUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    color: Optional[str] = Field(None, pattern=_HEX_COLOR.pattern)
    icon: Optional[str] = Field(None, max_length=16)


class ThemeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    created_at: Optional[datetime] = None


class ThemeWithCount(ThemeResponse):
    story_count: int = 0
