"""
스토리 저장 서비스
- StoryPersister: 스토리 + 테마 연결 + 삽화를 한 트랜잭션으로 생성/수정
- 수정 시 직전 상태를 StoryVersion으로 남긴다 (append-only)
- 카탈로그 조회 (목록/주차/이웃/버전)
"""

from __future__ import annotations

import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from imagitales.core.constants import FRENCH_DAYS, day_order_for, name_key
from imagitales.core.exceptions import NotFound, PersistenceError
from imagitales.models.illustration import Illustration
from imagitales.models.series import StorySeries
from imagitales.models.story import Story
from imagitales.models.story_version import StoryVersion, StoryVersionTheme
from imagitales.models.theme import StoryTheme
from imagitales.schemas.story import StoryCreate, StoryThemeRef, StoryUpdate
from imagitales.services.theme_service import ThemeCache, theme_cache

logger = logging.getLogger(__name__)


def _story_query():
    return select(Story).options(
        selectinload(Story.theme_links),
        selectinload(Story.illustrations),
        selectinload(Story.series),
    )


async def get_story(db: AsyncSession, story_id: uuid.UUID) -> Story:
    """관계까지 새로 읽은 스토리. 없으면 NotFound"""
    stmt = _story_query().where(Story.id == story_id).execution_options(populate_existing=True)
    story = (await db.execute(stmt)).scalars().first()
    if story is None:
        raise NotFound("Story", story_id)
    return story


async def get_series_by_name(db: AsyncSession, name: str) -> Optional[StorySeries]:
    stmt = select(StorySeries).where(StorySeries.name_key == name_key(name)).limit(1)
    return (await db.execute(stmt)).scalars().first()


class StoryPersister:
    """스토리 생성/수정 트랜잭션"""

    def __init__(self, cache: Optional[ThemeCache] = None):
        self.cache = cache if cache is not None else theme_cache

    async def _resolve_series(
        self,
        db: AsyncSession,
        series_id: Optional[uuid.UUID],
        series_name: Optional[str],
    ) -> Optional[uuid.UUID]:
        """id 우선, 없으면 이름으로 찾고 없으면 생성 (트랜잭션 안에서 호출)"""
        if series_id is not None:
            series = await db.get(StorySeries, series_id)
            if series is None:
                raise NotFound("StorySeries", series_id)
            return series.id
        if series_name and series_name.strip():
            series = await get_series_by_name(db, series_name)
            if series is None:
                series = StorySeries(name=series_name.strip())
                db.add(series)
                await db.flush()
                logger.info(f"시리즈 생성: {series.name}")
            return series.id
        return None

    async def create(self, db: AsyncSession, data: StoryCreate) -> Story:
        """스토리 생성 (version=1). 실패하면 롤백 후 예외 전달"""
        day_order = day_order_for(data.day_of_week)
        try:
            series_id = await self._resolve_series(db, data.series_id, data.series_name)
            story = Story(
                title=data.title,
                content=data.content,
                age_group=data.age_group,
                locale=data.locale,
                week_number=data.week_number,
                day_order=day_order,
                series_id=series_id,
                version=1,
            )
            db.add(story)
            await db.flush()

            for ref in data.themes:
                db.add(StoryTheme(story_id=story.id, theme_id=ref.id, is_primary=ref.is_primary))
            for ill in data.illustrations:
                db.add(Illustration(
                    story_id=story.id,
                    image_path=ill.image_path,
                    filename=ill.filename,
                    file_type=ill.file_type,
                    position=ill.position,
                ))
            await db.commit()
        except NotFound:
            await db.rollback()
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceError(f"스토리 생성 실패: {data.title}") from e

        self.cache.invalidate()
        logger.info(f"스토리 생성: {story.title} ({story.id}, {data.age_group}, day={day_order})")
        return await get_story(db, story.id)

    async def update(self, db: AsyncSession, story_id: uuid.UUID, data: StoryUpdate) -> Story:
        """직전 상태를 스냅샷한 뒤 수정 (version = 이전 + 1)"""
        story = await get_story(db, story_id)
        day_order = day_order_for(data.day_of_week)
        previous_version = story.version
        try:
            snapshot = StoryVersion(
                story_id=story.id,
                title=story.title,
                content=story.content,
                age_group=story.age_group,
                version=previous_version,
                created_at=story.modified_at or story.created_at,
            )
            db.add(snapshot)
            await db.flush()
            for link in story.theme_links:
                db.add(StoryVersionTheme(
                    story_version_id=snapshot.id,
                    theme_id=link.theme_id,
                    is_primary=link.is_primary,
                ))

            story.title = data.title
            story.content = data.content
            story.age_group = data.age_group
            story.locale = data.locale
            story.week_number = data.week_number
            story.day_order = day_order
            story.version = previous_version + 1

            # 기존 연결을 먼저 지워야 같은 테마를 다시 넣을 수 있다
            story.theme_links.clear()
            await db.flush()
            for ref in data.themes:
                db.add(StoryTheme(story_id=story.id, theme_id=ref.id, is_primary=ref.is_primary))
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceError(f"스토리 수정 실패: {story_id}") from e

        self.cache.invalidate()
        logger.info(f"스토리 수정: {story_id} v{previous_version} → v{previous_version + 1}")
        return await get_story(db, story_id)


story_persister = StoryPersister()


async def list_stories(
    db: AsyncSession,
    locale: Optional[str] = None,
    theme_id: Optional[uuid.UUID] = None,
    age_group: Optional[str] = None,
    week_number: Optional[int] = None,
    day_order: Optional[int] = None,
    series_id: Optional[uuid.UUID] = None,
    search: Optional[str] = None,
    has_image: Optional[bool] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[Story], int]:
    """필터 + 페이지네이션 목록과 전체 개수"""
    conditions = []
    if locale:
        conditions.append(Story.locale == locale)
    if age_group:
        conditions.append(Story.age_group == age_group)
    if week_number is not None:
        conditions.append(Story.week_number == week_number)
    if day_order is not None:
        conditions.append(Story.day_order == day_order)
    if series_id is not None:
        conditions.append(Story.series_id == series_id)
    if theme_id is not None:
        conditions.append(
            Story.id.in_(select(StoryTheme.story_id).where(StoryTheme.theme_id == theme_id))
        )
    if search:
        pattern = f"%{search.strip()}%"
        conditions.append(or_(Story.title.ilike(pattern), Story.content.ilike(pattern)))
    if has_image is not None:
        with_image = select(Illustration.id).where(Illustration.story_id == Story.id).exists()
        conditions.append(with_image if has_image else ~with_image)

    total = await db.scalar(select(func.count(Story.id)).where(*conditions)) or 0
    stmt = (
        _story_query()
        .where(*conditions)
        .order_by(Story.week_number.desc(), Story.day_order, Story.age_group, Story.created_at)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list((await db.execute(stmt)).scalars().all()), int(total)


async def list_weeks(
    db: AsyncSession,
    locale: Optional[str] = None,
    theme_id: Optional[uuid.UUID] = None,
    age_group: Optional[str] = None,
    series_id: Optional[uuid.UUID] = None,
) -> List[int]:
    """스토리가 있는 주차 목록 (필터 적용)"""
    stmt = select(Story.week_number).distinct().order_by(Story.week_number)
    if locale:
        stmt = stmt.where(Story.locale == locale)
    if age_group:
        stmt = stmt.where(Story.age_group == age_group)
    if series_id is not None:
        stmt = stmt.where(Story.series_id == series_id)
    if theme_id is not None:
        stmt = stmt.where(Story.id.in_(select(StoryTheme.story_id).where(StoryTheme.theme_id == theme_id)))
    return [w for w in (await db.execute(stmt)).scalars().all()]


async def get_neighbors(db: AsyncSession, story_id: uuid.UUID) -> Tuple[Optional[Story], Optional[Story]]:
    """같은 주차/연령대/로케일 안에서 day_order 기준 이전/다음 스토리"""
    story = await get_story(db, story_id)
    same_group = (
        Story.week_number == story.week_number,
        Story.age_group == story.age_group,
        Story.locale == story.locale,
    )
    prev_stmt = (
        select(Story)
        .where(*same_group, Story.day_order < story.day_order)
        .order_by(Story.day_order.desc())
        .limit(1)
    )
    next_stmt = (
        select(Story)
        .where(*same_group, Story.day_order > story.day_order)
        .order_by(Story.day_order)
        .limit(1)
    )
    prev = (await db.execute(prev_stmt)).scalars().first()
    nxt = (await db.execute(next_stmt)).scalars().first()
    return prev, nxt


async def list_versions(db: AsyncSession, story_id: uuid.UUID) -> List[StoryVersion]:
    await get_story(db, story_id)
    stmt = (
        select(StoryVersion)
        .where(StoryVersion.story_id == story_id)
        .options(selectinload(StoryVersion.theme_links))
        .order_by(StoryVersion.version.desc())
    )
    return list((await db.execute(stmt)).scalars().all())


async def restore_version(
    db: AsyncSession,
    story_id: uuid.UUID,
    version_id: uuid.UUID,
    persister: Optional[StoryPersister] = None,
) -> Story:
    """스냅샷 내용으로 되돌린다. 일반 수정 경로를 거치므로 현재 상태도 버전으로 남는다"""
    story = await get_story(db, story_id)
    stmt = (
        select(StoryVersion)
        .where(StoryVersion.id == version_id, StoryVersion.story_id == story_id)
        .options(selectinload(StoryVersion.theme_links))
    )
    snapshot = (await db.execute(stmt)).scalars().first()
    if snapshot is None:
        raise NotFound("StoryVersion", version_id)

    links = snapshot.theme_links or story.theme_links
    data = StoryUpdate(
        title=snapshot.title,
        content=snapshot.content,
        themes=[StoryThemeRef(id=link.theme_id, is_primary=link.is_primary) for link in links],
        age_group=snapshot.age_group,
        locale=story.locale,
        day_of_week=FRENCH_DAYS[story.day_order - 1],
        week_number=story.week_number,
        version=story.version,
    )
    return await (persister or story_persister).update(db, story_id, data)


async def delete_story(db: AsyncSession, story_id: uuid.UUID, cache: Optional[ThemeCache] = None) -> None:
    story = await get_story(db, story_id)
    try:
        await db.delete(story)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise PersistenceError(f"스토리 삭제 실패: {story_id}") from e
    (cache or theme_cache).invalidate()
    logger.info(f"스토리 삭제: {story_id}")
