"""
주간 테마 API 라우터
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from imagitales.core.database import get_db
from imagitales.schemas.weekly_theme import WeeklyThemeItem
from imagitales.services import weekly_theme_service

router = APIRouter()


@router.get("/", response_model=List[WeeklyThemeItem])
async def list_weekly_themes(db: AsyncSession = Depends(get_db)):
    return await weekly_theme_service.list_weekly_themes(db)


@router.put("/", response_model=List[WeeklyThemeItem])
async def save_weekly_themes(items: List[WeeklyThemeItem], db: AsyncSession = Depends(get_db)):
    """주차별 주제 일괄 저장"""
    return await weekly_theme_service.upsert_weekly_themes(db, items)
