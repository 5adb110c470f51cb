"""
스토리 API 라우터
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from imagitales.api.dependencies import get_theme_cache
from imagitales.core.constants import normalize_age_group
from imagitales.core.database import get_db
from imagitales.core.exceptions import InvalidDayLabel, NotFound, PersistenceError
from imagitales.schemas.story import (
    StoryCreate,
    StoryLink,
    StoryListResponse,
    StoryNeighbors,
    StoryResponse,
    StoryUpdate,
    StoryVersionResponse,
)
from imagitales.services import story_service
from imagitales.services.story_service import StoryPersister
from imagitales.services.theme_service import ThemeCache

router = APIRouter()


@router.get("/", response_model=StoryListResponse)
async def list_stories(
    locale: Optional[str] = Query(None),
    theme_id: Optional[uuid.UUID] = Query(None, alias="themeId"),
    age_group: Optional[str] = Query(None, alias="ageGroup"),
    week_number: Optional[int] = Query(None, ge=1, alias="weekNumber"),
    day_order: Optional[int] = Query(None, ge=1, le=7, alias="dayOrder"),
    series_id: Optional[uuid.UUID] = Query(None, alias="seriesId"),
    search: Optional[str] = Query(None, max_length=200),
    has_image: Optional[bool] = Query(None, alias="hasImage"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """스토리 목록 (필터 + 페이지네이션)"""
    if age_group:
        try:
            age_group = normalize_age_group(age_group)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
    stories, total = await story_service.list_stories(
        db,
        locale=locale,
        theme_id=theme_id,
        age_group=age_group,
        week_number=week_number,
        day_order=day_order,
        series_id=series_id,
        search=search,
        has_image=has_image,
        page=page,
        limit=limit,
    )
    return StoryListResponse(
        data=[StoryResponse.model_validate(s) for s in stories],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/weeks", response_model=List[int])
async def list_weeks(
    locale: Optional[str] = Query(None),
    theme_id: Optional[uuid.UUID] = Query(None, alias="themeId"),
    age_group: Optional[str] = Query(None, alias="ageGroup"),
    series_id: Optional[uuid.UUID] = Query(None, alias="seriesId"),
    db: AsyncSession = Depends(get_db),
):
    if age_group:
        try:
            age_group = normalize_age_group(age_group)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
    return await story_service.list_weeks(
        db, locale=locale, theme_id=theme_id, age_group=age_group, series_id=series_id
    )


@router.post("/", response_model=StoryResponse, status_code=status.HTTP_201_CREATED)
async def create_story(
    story_data: StoryCreate,
    db: AsyncSession = Depends(get_db),
    cache: ThemeCache = Depends(get_theme_cache),
):
    """스토리 생성 (version=1)"""
    try:
        story = await StoryPersister(cache=cache).create(db, story_data)
    except InvalidDayLabel as e:
        raise HTTPException(status_code=422, detail=str(e))
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return StoryResponse.model_validate(story)


@router.get("/{story_id}", response_model=StoryResponse)
async def get_story(story_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    try:
        story = await story_service.get_story(db, story_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="스토리를 찾을 수 없습니다")
    return StoryResponse.model_validate(story)


@router.put("/{story_id}", response_model=StoryResponse)
async def update_story(
    story_id: uuid.UUID,
    story_data: StoryUpdate,
    db: AsyncSession = Depends(get_db),
    cache: ThemeCache = Depends(get_theme_cache),
):
    """스토리 수정 (직전 상태는 버전으로 남고 version + 1)"""
    try:
        story = await StoryPersister(cache=cache).update(db, story_id, story_data)
    except NotFound:
        raise HTTPException(status_code=404, detail="스토리를 찾을 수 없습니다")
    except InvalidDayLabel as e:
        raise HTTPException(status_code=422, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return StoryResponse.model_validate(story)


@router.delete("/{story_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_story(
    story_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    cache: ThemeCache = Depends(get_theme_cache),
):
    try:
        await story_service.delete_story(db, story_id, cache=cache)
    except NotFound:
        raise HTTPException(status_code=404, detail="스토리를 찾을 수 없습니다")


@router.get("/{story_id}/neighbors", response_model=StoryNeighbors)
async def get_neighbors(story_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    """같은 주차·연령대의 이전/다음 스토리"""
    try:
        prev, nxt = await story_service.get_neighbors(db, story_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="스토리를 찾을 수 없습니다")
    return StoryNeighbors(
        prev=StoryLink.model_validate(prev) if prev else None,
        next=StoryLink.model_validate(nxt) if nxt else None,
    )


@router.get("/{story_id}/versions", response_model=List[StoryVersionResponse])
async def list_versions(story_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    try:
        versions = await story_service.list_versions(db, story_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="스토리를 찾을 수 없습니다")
    return [StoryVersionResponse.model_validate(v) for v in versions]


@router.post("/{story_id}/versions/{version_id}/restore", response_model=StoryResponse)
async def restore_version(
    story_id: uuid.UUID,
    version_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    cache: ThemeCache = Depends(get_theme_cache),
):
    """버전 복원 (현재 상태도 새 버전으로 남는다)"""
    try:
        story = await story_service.restore_version(
            db, story_id, version_id, persister=StoryPersister(cache=cache)
        )
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return StoryResponse.model_validate(story)
