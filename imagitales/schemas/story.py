"""
스토리 관련 Pydantic 스키마
"""

from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from typing import Optional, List
from datetime import datetime
import uuid

from imagitales.core.constants import normalize_age_group


class StoryThemeRef(BaseModel):
    """스토리에 연결할 테마 (id + 대표 여부)"""
    model_config = ConfigDict(populate_by_name=True)

    id: uuid.UUID
    is_primary: bool = Field(False, alias="isPrimary")


class IllustrationIn(BaseModel):
    """업로드 흐름에서 이미 저장된 삽화 참조"""
    model_config = ConfigDict(populate_by_name=True)

    image_path: str = Field(..., min_length=1, max_length=500, alias="imagePath")
    filename: Optional[str] = None
    file_type: Optional[str] = Field(None, alias="fileType")
    position: int = Field(0, ge=0)


class StoryWrite(BaseModel):
    """스토리 생성/수정 공통 입력"""
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    themes: List[StoryThemeRef] = Field(..., min_length=1)
    age_group: str = Field(..., alias="ageGroup")
    locale: str = Field("fr", max_length=10)
    day_of_week: str = Field(..., alias="dayOfWeek")
    week_number: int = Field(1, ge=1, alias="weekNumber")

    @field_validator("age_group")
    @classmethod
    def _normalize_age(cls, v: str) -> str:
        return normalize_age_group(v)

    @field_validator("themes")
    @classmethod
    def _single_primary(cls, v: List[StoryThemeRef]) -> List[StoryThemeRef]:
        # 대표 테마는 스토리당 최대 1개. 지정이 없으면 첫 테마를 대표로 삼는다
        primaries = [t for t in v if t.is_primary]
        if len(primaries) > 1:
            raise ValueError("대표 테마(isPrimary)는 하나만 지정할 수 있습니다")
        if not primaries and v:
            v[0] = v[0].model_copy(update={"is_primary": True})
        seen = set()
        for t in v:
            if t.id in seen:
                raise ValueError(f"중복된 테마입니다: {t.id}")
            seen.add(t.id)
        return v


class StoryCreate(StoryWrite):
    """스토리 생성 스키마"""
    series_id: Optional[uuid.UUID] = Field(None, alias="seriesId")
    series_name: Optional[str] = Field(None, max_length=255, alias="seriesName")
    illustrations: List[IllustrationIn] = Field(default_factory=list)


class StoryUpdate(StoryWrite):
    """스토리 수정 스키마 (version은 호출측이 알고 있는 현재 버전, 검증하지 않음)"""
    version: Optional[int] = Field(None, ge=1)


class ThemeBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    is_primary: bool = False


class IllustrationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    story_id: uuid.UUID
    image_path: str
    filename: Optional[str] = None
    file_type: Optional[str] = None
    position: int = 0
    created_at: Optional[datetime] = None


class StoryResponse(BaseModel):
    """스토리 응답 스키마"""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    content: str
    age_group: str
    locale: str
    week_number: int
    day_order: int
    series_id: Optional[uuid.UUID] = None
    series_name: Optional[str] = None
    version: int
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None
    themes: List[ThemeBrief] = Field(default_factory=list)
    illustrations: List[IllustrationResponse] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _from_orm_story(cls, data):
        # ORM Story → 연결 테이블을 펼친 themes / series_name
        links = getattr(data, "theme_links", None)
        if links is None or isinstance(data, dict):
            return data
        series = getattr(data, "series", None)
        return {
            "id": data.id,
            "title": data.title,
            "content": data.content,
            "age_group": data.age_group,
            "locale": data.locale,
            "week_number": data.week_number,
            "day_order": data.day_order,
            "series_id": data.series_id,
            "series_name": series.name if series is not None else None,
            "version": data.version,
            "created_at": data.created_at,
            "modified_at": data.modified_at,
            "themes": [
                ThemeBrief(
                    id=link.theme.id,
                    name=link.theme.name,
                    description=link.theme.description,
                    color=link.theme.color,
                    icon=link.theme.icon,
                    is_primary=bool(link.is_primary),
                )
                for link in links
            ],
            "illustrations": [
                IllustrationResponse.model_validate(ill)
                for ill in (getattr(data, "illustrations", None) or [])
            ],
        }


class StoryListResponse(BaseModel):
    """스토리 목록 컨테이너 응답"""
    data: List[StoryResponse]
    total: int
    page: int
    limit: int


class StoryLink(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str


class StoryNeighbors(BaseModel):
    prev: Optional[StoryLink] = None
    next: Optional[StoryLink] = None


class StoryVersionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    story_id: uuid.UUID
    title: str
    content: str
    age_group: str
    version: int
    created_at: Optional[datetime] = None
    theme_ids: List[uuid.UUID] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _collect_theme_ids(cls, data):
        links = getattr(data, "theme_links", None)
        if links is None or isinstance(data, dict):
            return data
        return {
            "id": data.id,
            "story_id": data.story_id,
            "title": data.title,
            "content": data.content,
            "age_group": data.age_group,
            "version": data.version,
            "created_at": data.created_at,
            "theme_ids": [link.theme_id for link in links],
        }
