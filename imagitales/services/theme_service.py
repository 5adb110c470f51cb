"""
테마 서비스
- ThemeCache: 프로세스 단위 테마 목록 캐시 (이름 대소문자 무시)
- ThemeResolver: 테마 디스크립터 → 저장된 테마 (없으면 생성)
- 테마 카탈로그 CRUD / 중복 병합
"""

from __future__ import annotations

import logging
import uuid
from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from imagitales.core.constants import name_key
from imagitales.core.exceptions import NotFound, PersistenceError, ThemeInUse
from imagitales.models.story import Story
from imagitales.models.story_version import StoryVersionTheme
from imagitales.models.theme import StoryTheme, Theme
from imagitales.schemas.theme import ThemeDescriptor, ThemeResponse, ThemeUpdate, ThemeWithCount

logger = logging.getLogger(__name__)


class ThemeCache:
    """테마 목록 캐시. invalidate 이후 첫 조회는 반드시 비어 있는 상태를 본다"""

    def __init__(self) -> None:
        self._by_name: Dict[str, ThemeResponse] = {}
        self._warm = False

    @property
    def is_warm(self) -> bool:
        return self._warm

    def get(self, name: str) -> Optional[ThemeResponse]:
        return self._by_name.get(name_key(name))

    def put(self, theme: ThemeResponse) -> None:
        self._by_name[name_key(theme.name)] = theme

    def fill(self, themes: Iterable[ThemeResponse]) -> None:
        self._by_name = {}
        for theme in themes:
            # 대소문자만 다른 중복이 있으면 먼저 만들어진 쪽을 유지
            self._by_name.setdefault(name_key(theme.name), theme)
        self._warm = True

    def all(self) -> List[ThemeResponse]:
        return sorted(self._by_name.values(), key=lambda t: name_key(t.name))

    def invalidate(self) -> None:
        self._by_name = {}
        self._warm = False


# 프로세스 기본 캐시
theme_cache = ThemeCache()


async def list_themes(db: AsyncSession) -> List[ThemeResponse]:
    """전체 테마 (생성 순)"""
    result = await db.execute(select(Theme).order_by(Theme.created_at, Theme.name))
    return [ThemeResponse.model_validate(t) for t in result.scalars().all()]


async def list_themes_with_counts(db: AsyncSession) -> List[ThemeWithCount]:
    """테마별 연결 스토리 수 포함 목록 (이름 순)"""
    count_sq = (
        select(StoryTheme.theme_id, func.count(StoryTheme.id).label("cnt"))
        .group_by(StoryTheme.theme_id)
        .subquery()
    )
    stmt = (
        select(Theme, func.coalesce(count_sq.c.cnt, 0))
        .outerjoin(count_sq, count_sq.c.theme_id == Theme.id)
        .order_by(Theme.name)
    )
    rows = (await db.execute(stmt)).all()
    return [
        ThemeWithCount(**ThemeResponse.model_validate(theme).model_dump(), story_count=int(cnt))
        for theme, cnt in rows
    ]


async def find_theme_by_name(db: AsyncSession, name: str) -> Optional[Theme]:
    stmt = (
        select(Theme)
        .where(Theme.name_key == name_key(name))
        .order_by(Theme.created_at)
        .limit(1)
    )
    return (await db.execute(stmt)).scalars().first()


async def get_theme(db: AsyncSession, theme_id: uuid.UUID) -> Theme:
    theme = await db.get(Theme, theme_id)
    if theme is None:
        raise NotFound("Theme", theme_id)
    return theme


async def get_or_create_theme(
    db: AsyncSession,
    descriptor: ThemeDescriptor,
    cache: Optional[ThemeCache] = None,
) -> ThemeResponse:
    """이름이 같은 테마가 있으면 그대로 반환, 없으면 생성 후 캐시 무효화"""
    existing = await find_theme_by_name(db, descriptor.name)
    if existing is not None:
        return ThemeResponse.model_validate(existing)

    theme = Theme(
        name=descriptor.name,
        description=descriptor.description,
        color=descriptor.color,
        icon=descriptor.icon,
    )
    db.add(theme)
    try:
        await db.commit()
    except IntegrityError:
        # 동시에 같은 이름이 먼저 저장된 경우
        await db.rollback()
        existing = await find_theme_by_name(db, descriptor.name)
        if existing is None:
            raise
        return ThemeResponse.model_validate(existing)
    except SQLAlchemyError as e:
        await db.rollback()
        raise PersistenceError(f"테마 생성 실패: {descriptor.name}") from e

    await db.refresh(theme)
    logger.info(f"테마 생성: {theme.name} ({theme.id})")
    (cache or theme_cache).invalidate()
    return ThemeResponse.model_validate(theme)


class ThemeResolver:
    """테마 디스크립터를 저장된 테마로 해석한다 (캐시 우선)"""

    def __init__(self, cache: Optional[ThemeCache] = None):
        self.cache = cache if cache is not None else theme_cache

    async def warm(self, db: AsyncSession) -> None:
        self.cache.fill(await list_themes(db))

    async def resolve(self, db: AsyncSession, descriptor: ThemeDescriptor) -> ThemeResponse:
        if not self.cache.is_warm:
            await self.warm(db)
        cached = self.cache.get(descriptor.name)
        if cached is not None:
            return cached
        return await get_or_create_theme(db, descriptor, cache=self.cache)

    async def resolve_all(self, db: AsyncSession, descriptors: Iterable[ThemeDescriptor]) -> List[ThemeResponse]:
        """디스크립터 목록 → 테마 목록 (같은 테마는 한 번만)"""
        resolved: List[ThemeResponse] = []
        seen = set()
        for descriptor in descriptors:
            theme = await self.resolve(db, descriptor)
            if theme.id not in seen:
                seen.add(theme.id)
                resolved.append(theme)
        return resolved


async def update_theme(
    db: AsyncSession,
    theme_id: uuid.UUID,
    data: ThemeUpdate,
    cache: Optional[ThemeCache] = None,
) -> ThemeResponse:
    theme = await get_theme(db, theme_id)
    clash = await find_theme_by_name(db, data.name)
    if clash is not None and clash.id != theme.id:
        raise PersistenceError(f"이미 존재하는 테마 이름입니다: {data.name}")

    theme.name = data.name.strip()
    theme.description = data.description
    theme.color = data.color
    theme.icon = data.icon
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise PersistenceError(f"테마 수정 실패: {theme_id}") from e
    await db.refresh(theme)
    (cache or theme_cache).invalidate()
    return ThemeResponse.model_validate(theme)


async def delete_theme(db: AsyncSession, theme_id: uuid.UUID, cache: Optional[ThemeCache] = None) -> None:
    """스토리에 연결되지 않은 테마만 삭제"""
    theme = await get_theme(db, theme_id)
    used = await db.scalar(select(func.count(StoryTheme.id)).where(StoryTheme.theme_id == theme_id))
    if used:
        raise ThemeInUse(f"{used}개의 스토리가 사용 중인 테마입니다: {theme.name}")
    snapshots = await db.scalar(
        select(func.count(StoryVersionTheme.id)).where(StoryVersionTheme.theme_id == theme_id)
    )
    if snapshots:
        raise ThemeInUse(f"버전 기록이 참조하는 테마입니다: {theme.name}")

    await db.delete(theme)
    await db.commit()
    (cache or theme_cache).invalidate()


async def merge_duplicate_themes(db: AsyncSession, cache: Optional[ThemeCache] = None) -> int:
    """이름(대소문자 무시)이 같은 테마를 가장 오래된 행으로 합친다. 삭제된 행 수를 반환"""
    themes = (await db.execute(select(Theme).order_by(Theme.created_at, Theme.id))).scalars().all()
    groups: Dict[str, List[Theme]] = {}
    for theme in themes:
        groups.setdefault(name_key(theme.name), []).append(theme)

    removed = 0
    try:
        for group in groups.values():
            if len(group) < 2:
                continue
            keep, duplicates = group[0], group[1:]
            for dup in duplicates:
                # 이미 keep과 연결된 스토리는 중복 연결을 지우고, 나머지는 keep으로 옮긴다
                linked = select(StoryTheme.story_id).where(StoryTheme.theme_id == keep.id)
                await db.execute(
                    delete(StoryTheme).where(
                        StoryTheme.theme_id == dup.id,
                        StoryTheme.story_id.in_(linked),
                    )
                )
                await db.execute(
                    update(StoryTheme).where(StoryTheme.theme_id == dup.id).values(theme_id=keep.id)
                )
                await db.execute(
                    update(StoryVersionTheme)
                    .where(StoryVersionTheme.theme_id == dup.id)
                    .values(theme_id=keep.id)
                )
                await db.execute(delete(Theme).where(Theme.id == dup.id))
                removed += 1
                logger.info(f"중복 테마 병합: {dup.name} ({dup.id}) → {keep.name} ({keep.id})")
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise PersistenceError("중복 테마 병합 실패") from e

    if removed:
        (cache or theme_cache).invalidate()
    return removed


async def get_theme_stories(db: AsyncSession, theme_id: uuid.UUID) -> List[Story]:
    await get_theme(db, theme_id)
    stmt = (
        select(Story)
        .join(StoryTheme, StoryTheme.story_id == Story.id)
        .where(StoryTheme.theme_id == theme_id)
        .options(
            selectinload(Story.theme_links),
            selectinload(Story.illustrations),
            selectinload(Story.series),
        )
        .order_by(Story.week_number, Story.day_order, Story.age_group)
    )
    return list((await db.execute(stmt)).scalars().unique().all())
