"""
생성 파이프라인 요청/응답 스키마
"""

from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from typing import List, Optional
import uuid

from imagitales.core.constants import is_whole_week, match_day_label, normalize_age_group


class GenerateRequest(BaseModel):
    """단일 생성 요청 (프롬프트 입력)"""
    model_config = ConfigDict(populate_by_name=True)

    theme: str = Field(..., min_length=1, max_length=255)
    age: str
    day: str
    num_characters: Optional[int] = Field(None, ge=1, le=10, alias="numCharacters")
    char_names: Optional[str] = Field(None, max_length=500, alias="charNames")
    series_name: Optional[str] = Field(None, max_length=255, alias="seriesName")

    @field_validator("age")
    @classmethod
    def _normalize_age(cls, v: str) -> str:
        return normalize_age_group(v)

    @field_validator("day")
    @classmethod
    def _known_day(cls, v: str) -> str:
        if is_whole_week(v):
            return v.strip()
        canonical = match_day_label(v)
        if canonical is None:
            raise ValueError(f"알 수 없는 요일입니다: {v}")
        return canonical


class GenerateResponse(BaseModel):
    text: str


class BatchSelection(BaseModel):
    """배치 실행 입력: 연령대 집합 + 주제 + 요일 선택자 (+ 등장인물 제약)"""
    model_config = ConfigDict(populate_by_name=True)

    age_groups: List[str] = Field(..., min_length=1, alias="ageGroups")
    theme: Optional[str] = Field(None, max_length=255)
    day: str
    week_number: int = Field(1, ge=1, alias="weekNumber")
    num_characters: Optional[int] = Field(None, ge=1, le=10, alias="numCharacters")
    char_names: Optional[str] = Field(None, max_length=500, alias="charNames")
    series_name: Optional[str] = Field(None, max_length=255, alias="seriesName")
    locale: Optional[str] = Field(None, max_length=10)

    @field_validator("age_groups")
    @classmethod
    def _normalize_ages(cls, v: List[str]) -> List[str]:
        ages: List[str] = []
        for age in v:
            norm = normalize_age_group(age)
            if norm not in ages:
                ages.append(norm)
        return ages

    @field_validator("day")
    @classmethod
    def _known_day(cls, v: str) -> str:
        if is_whole_week(v):
            return v.strip()
        canonical = match_day_label(v)
        if canonical is None:
            raise ValueError(f"알 수 없는 요일입니다: {v}")
        return canonical

    @model_validator(mode="after")
    def _theme_present(self):
        if self.theme is not None:
            self.theme = self.theme.strip() or None
        return self


class BatchStory(BaseModel):
    id: uuid.UUID
    title: str
    age_group: str
    day_order: int


class BatchResponse(BaseModel):
    run_id: Optional[str] = None
    log: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    stories: List[BatchStory] = Field(default_factory=list)
    error: Optional[str] = None
    failed_step: Optional[str] = None
    cancelled: bool = False
