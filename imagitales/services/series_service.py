"""
시리즈 서비스
"""

import logging
import uuid
from typing import List

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from imagitales.core.exceptions import NotFound, PersistenceError
from imagitales.models.series import StorySeries
from imagitales.models.story import Story
from imagitales.schemas.series import SeriesBatchUpdate, SeriesCreate, SeriesResponse, SeriesUpdate

logger = logging.getLogger(__name__)


async def _with_count(db: AsyncSession, series: StorySeries) -> SeriesResponse:
    count = await db.scalar(select(func.count(Story.id)).where(Story.series_id == series.id))
    return SeriesResponse(
        id=series.id,
        name=series.name,
        description=series.description,
        created_at=series.created_at,
        story_count=int(count or 0),
    )


async def list_series(db: AsyncSession) -> List[SeriesResponse]:
    """시리즈 목록 (스토리 수 포함)"""
    stmt = (
        select(StorySeries, func.count(Story.id))
        .outerjoin(Story, Story.series_id == StorySeries.id)
        .group_by(StorySeries.id)
        .order_by(StorySeries.name)
    )
    rows = (await db.execute(stmt)).all()
    return [
        SeriesResponse(
            id=s.id,
            name=s.name,
            description=s.description,
            created_at=s.created_at,
            story_count=int(cnt),
        )
        for s, cnt in rows
    ]


async def get_series(db: AsyncSession, series_id: uuid.UUID) -> StorySeries:
    series = await db.get(StorySeries, series_id)
    if series is None:
        raise NotFound("StorySeries", series_id)
    return series


async def create_series(db: AsyncSession, data: SeriesCreate) -> SeriesResponse:
    series = StorySeries(name=data.name.strip(), description=data.description)
    db.add(series)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise PersistenceError(f"이미 존재하는 시리즈입니다: {data.name}") from e
    await db.refresh(series)
    return await _with_count(db, series)


async def update_series(db: AsyncSession, series_id: uuid.UUID, data: SeriesUpdate) -> SeriesResponse:
    series = await get_series(db, series_id)
    series.name = data.name.strip()
    series.description = data.description
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise PersistenceError(f"이미 존재하는 시리즈입니다: {data.name}") from e
    await db.refresh(series)
    return await _with_count(db, series)


async def delete_series(db: AsyncSession, series_id: uuid.UUID) -> None:
    """시리즈 삭제 (소속 스토리는 남고 series_id만 비워진다)"""
    series = await get_series(db, series_id)
    await db.execute(update(Story).where(Story.series_id == series_id).values(series_id=None))
    await db.delete(series)
    await db.commit()


async def update_series_stories(db: AsyncSession, series_id: uuid.UUID, data: SeriesBatchUpdate) -> SeriesResponse:
    """스토리 묶음을 시리즈에 추가/제거"""
    series = await get_series(db, series_id)
    if data.story_ids:
        if data.action == "add":
            stmt = update(Story).where(Story.id.in_(data.story_ids)).values(series_id=series_id)
        else:
            stmt = (
                update(Story)
                .where(Story.id.in_(data.story_ids), Story.series_id == series_id)
                .values(series_id=None)
            )
        await db.execute(stmt)
        await db.commit()
        logger.info(f"시리즈 {series.name}: {data.action} {len(data.story_ids)}건")
    return await _with_count(db, series)
