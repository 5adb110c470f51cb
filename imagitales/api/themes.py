"""
테마 API 라우터
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from imagitales.api.dependencies import get_theme_cache
from imagitales.core.database import get_db
from imagitales.core.exceptions import NotFound, PersistenceError, ThemeInUse
from imagitales.schemas.story import StoryResponse
from imagitales.schemas.theme import ThemeCreate, ThemeResponse, ThemeUpdate, ThemeWithCount
from imagitales.services import theme_service
from imagitales.services.theme_service import ThemeCache

router = APIRouter()


@router.get("/", response_model=List[ThemeWithCount])
async def list_themes(db: AsyncSession = Depends(get_db)):
    """테마 목록 (스토리 수 포함)"""
    return await theme_service.list_themes_with_counts(db)


@router.get("/catalog", response_model=List[ThemeResponse])
async def theme_catalog(
    db: AsyncSession = Depends(get_db),
    cache: ThemeCache = Depends(get_theme_cache),
):
    """캐시된 테마 카탈로그 (비어 있으면 다시 채운다)"""
    if not cache.is_warm:
        cache.fill(await theme_service.list_themes(db))
    return cache.all()


@router.post("/", response_model=ThemeResponse)
async def create_theme(
    theme: ThemeCreate,
    db: AsyncSession = Depends(get_db),
    cache: ThemeCache = Depends(get_theme_cache),
):
    """테마 조회 또는 생성 (같은 이름이 있으면 기존 테마 반환)"""
    try:
        return await theme_service.get_or_create_theme(db, theme, cache=cache)
    except PersistenceError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/merge-duplicates")
async def merge_duplicates(
    db: AsyncSession = Depends(get_db),
    cache: ThemeCache = Depends(get_theme_cache),
):
    removed = await theme_service.merge_duplicate_themes(db, cache=cache)
    return {"merged": removed}


@router.put("/{theme_id}", response_model=ThemeResponse)
async def update_theme(
    theme_id: uuid.UUID,
    theme: ThemeUpdate,
    db: AsyncSession = Depends(get_db),
    cache: ThemeCache = Depends(get_theme_cache),
):
    try:
        return await theme_service.update_theme(db, theme_id, theme, cache=cache)
    except NotFound:
        raise HTTPException(status_code=404, detail="테마를 찾을 수 없습니다")
    except PersistenceError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.delete("/{theme_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_theme(
    theme_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    cache: ThemeCache = Depends(get_theme_cache),
):
    """사용 중이 아닌 테마 삭제"""
    try:
        await theme_service.delete_theme(db, theme_id, cache=cache)
    except NotFound:
        raise HTTPException(status_code=404, detail="테마를 찾을 수 없습니다")
    except ThemeInUse as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("/{theme_id}/stories", response_model=List[StoryResponse])
async def get_theme_stories(theme_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    try:
        stories = await theme_service.get_theme_stories(db, theme_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="테마를 찾을 수 없습니다")
    return [StoryResponse.model_validate(s) for s in stories]
