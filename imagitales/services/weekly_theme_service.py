"""
주간 테마 서비스 (week_number → 주제 이름)
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from imagitales.models.weekly_theme import WeeklyTheme
from imagitales.schemas.weekly_theme import WeeklyThemeItem


async def list_weekly_themes(db: AsyncSession) -> List[WeeklyTheme]:
    result = await db.execute(select(WeeklyTheme).order_by(WeeklyTheme.week_number))
    return list(result.scalars().all())


async def get_weekly_theme(db: AsyncSession, week_number: int) -> Optional[WeeklyTheme]:
    return await db.get(WeeklyTheme, week_number)


async def upsert_weekly_themes(db: AsyncSession, items: List[WeeklyThemeItem]) -> List[WeeklyTheme]:
    """주차별 주제를 일괄 저장 (있으면 갱신)"""
    for item in items:
        row = await db.get(WeeklyTheme, item.week_number)
        if row is None:
            db.add(WeeklyTheme(
                week_number=item.week_number,
                theme_name=item.theme_name.strip(),
                theme_description=item.theme_description,
            ))
        else:
            row.theme_name = item.theme_name.strip()
            row.theme_description = item.theme_description
    await db.commit()
    return await list_weekly_themes(db)
