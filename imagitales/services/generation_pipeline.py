"""
배치 생성 파이프라인
연령대마다: 프롬프트 → 생성 → 파싱 → 테마 해석 → 스토리 저장

- 연령대는 SerialTaskQueue로 하나씩 실행 (작업 사이 고정 대기)
- 첫 치명적 오류에서 전체 중단, 이미 저장된 스토리는 되돌리지 않는다
- 진행 로그(사람이 읽는 문장)는 호출측에 반환/스트리밍된다
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from imagitales.core.config import settings
from imagitales.core.constants import age_group_label
from imagitales.core.exceptions import GenerationCancelled, GenerationRunError, ThemeResolutionFailure
from imagitales.core.task_queue import CancellationToken, SerialTaskQueue
from imagitales.schemas.generation import BatchSelection, BatchStory
from imagitales.schemas.story import StoryCreate, StoryThemeRef
from imagitales.schemas.theme import ThemeDescriptor, ThemeResponse
from imagitales.services.gemini_client import GeminiClient
from imagitales.services.prompt_builder import build_story_prompt
from imagitales.services.story_parser import StoryParser, StoryRecord, story_parser
from imagitales.services.story_service import StoryPersister
from imagitales.services.theme_service import ThemeResolver
from imagitales.services.weekly_theme_service import get_weekly_theme

logger = logging.getLogger(__name__)

EventCallback = Callable[[str, Dict[str, Any]], Awaitable[None]]

STEP_THEME_LOOKUP = "theme lookup"
STEP_GENERATION = "generation"
STEP_PARSING = "parsing"
STEP_THEME_RESOLUTION = "theme resolution"
STEP_PERSISTENCE = "persistence"
STEP_CANCELLED = "cancellation"


@dataclass
class RunResult:
    """배치 실행 결과"""
    log: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    stories: List[BatchStory] = field(default_factory=list)
    step: str = STEP_GENERATION


class GenerationPipeline:
    """연령대 집합 × 요일 선택자에 대한 생성/저장 실행기"""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        client: Optional[GeminiClient] = None,
        parser: Optional[StoryParser] = None,
        resolver: Optional[ThemeResolver] = None,
        persister: Optional[StoryPersister] = None,
        inter_task_delay: Optional[float] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        self.session_factory = session_factory
        self.client = client or GeminiClient()
        self.parser = parser or story_parser
        self.resolver = resolver or ThemeResolver()
        self.persister = persister or StoryPersister(cache=self.resolver.cache)
        self.inter_task_delay = (
            settings.BATCH_INTER_TASK_DELAY_SECONDS if inter_task_delay is None else inter_task_delay
        )
        self._sleep = sleep

    async def run(
        self,
        selection: BatchSelection,
        token: Optional[CancellationToken] = None,
        on_event: Optional[EventCallback] = None,
    ) -> RunResult:
        """배치 실행. 실패/취소 시 GenerationRunError(step, cause, log)"""
        result = RunResult()

        async def emit(event: str, data: Dict[str, Any]) -> None:
            if on_event is not None:
                await on_event(event, data)

        async def say(message: str) -> None:
            result.log.append(message)
            await emit("progress", {"message": message})

        try:
            await say("🚀 Démarrage de la génération...")
            result.step = STEP_THEME_LOOKUP
            theme = await self._batch_theme(selection)

            queue = SerialTaskQueue(inter_task_delay=self.inter_task_delay, sleep=self._sleep)
            for age in selection.age_groups:
                queue.enqueue(
                    age,
                    lambda age=age: self._run_age(selection, theme, age, result, say, emit, token),
                )
            await queue.run(token)
        except Exception as e:
            if not isinstance(e, GenerationRunError):
                step = STEP_CANCELLED if isinstance(e, GenerationCancelled) else result.step
                message = "🛑 Génération annulée." if step == STEP_CANCELLED else f"❌ Erreur: {e}"
                result.log.append(message)
                await emit("error", {"message": message, "step": step})
                logger.error(f"배치 중단 ({step}): {e}")
                raise GenerationRunError(step, e, list(result.log)) from e
            raise

        await say("✨ Génération terminée avec succès !")
        logger.info(f"배치 완료: 스토리 {len(result.stories)}건, 경고 {len(result.warnings)}건")
        return result

    async def _batch_theme(self, selection: BatchSelection) -> str:
        """선택 주제, 없으면 week_number의 주간 테마 이름"""
        if selection.theme:
            return selection.theme
        async with self.session_factory() as db:
            weekly = await get_weekly_theme(db, selection.week_number)
        if weekly is None or not (weekly.theme_name or "").strip():
            raise ThemeResolutionFailure(f"주제가 없고 {selection.week_number}주차 주간 테마도 없습니다")
        return weekly.theme_name.strip()

    async def _run_age(
        self,
        selection: BatchSelection,
        theme: str,
        age: str,
        result: RunResult,
        say: Callable[[str], Awaitable[None]],
        emit: EventCallback,
        token: Optional[CancellationToken],
    ) -> None:
        label = age_group_label(age)
        result.step = STEP_GENERATION
        await say(f"⏳ Génération pour {label}...")
        prompt = build_story_prompt(
            theme,
            age,
            selection.day,
            num_characters=selection.num_characters,
            char_names=selection.char_names,
            series_name=selection.series_name,
        )
        raw_text = await self.client.generate(prompt)

        result.step = STEP_PARSING
        report = self.parser.parse_report(raw_text, selection.day, weekly_theme=theme)
        for dropped in report.dropped:
            warning = f"⚠️ Segment ignoré ({label}) : \"{dropped.title}\" - {dropped.reason}"
            result.warnings.append(warning)
            result.log.append(warning)
            await emit("warning", {"message": warning})
        if not report.records:
            warning = f"⚠️ Aucune histoire extraite pour {label}."
            result.warnings.append(warning)
            result.log.append(warning)
            await emit("warning", {"message": warning})
            return

        async with self.session_factory() as db:
            for record in report.records:
                if token is not None:
                    token.raise_if_cancelled()
                result.step = STEP_THEME_RESOLUTION
                themes = await self._resolve_themes(db, record, theme)

                result.step = STEP_PERSISTENCE
                story = await self.persister.create(db, self._story_input(selection, age, record, themes))
                brief = BatchStory(id=story.id, title=story.title, age_group=story.age_group, day_order=story.day_order)
                result.stories.append(brief)
                await say(f"✅ Histoire créée : \"{story.title}\" ({label} - {record.day_label})")
                await emit("story", brief.model_dump(mode="json"))

    async def _resolve_themes(self, db: AsyncSession, record: StoryRecord, batch_theme: str) -> List[ThemeResponse]:
        """레코드 테마 해석. 하나도 없으면 주간 테마로 대체, 그래도 없으면 ThemeResolutionFailure"""
        themes = await self.resolver.resolve_all(db, record.theme_descriptors)
        if themes:
            return themes

        fallback_name = record.weekly_theme_name or batch_theme
        try:
            fallback = ThemeDescriptor(
                name=fallback_name or "",
                description=settings.FALLBACK_THEME_DESCRIPTION,
                color=settings.FALLBACK_THEME_COLOR,
            )
        except ValidationError as e:
            raise ThemeResolutionFailure(f"테마를 확보하지 못했습니다: '{record.title}'") from e
        logger.info(f"테마 없음, 주간 테마로 대체: '{record.title}' → {fallback.name}")
        themes = await self.resolver.resolve_all(db, [fallback])
        if not themes:
            raise ThemeResolutionFailure(f"테마를 확보하지 못했습니다: '{record.title}'")
        return themes

    def _story_input(
        self,
        selection: BatchSelection,
        age: str,
        record: StoryRecord,
        themes: List[ThemeResponse],
    ) -> StoryCreate:
        return StoryCreate(
            title=record.title,
            content=record.body,
            themes=[StoryThemeRef(id=t.id, is_primary=(i == 0)) for i, t in enumerate(themes)],
            age_group=age,
            locale=selection.locale or settings.DEFAULT_LOCALE,
            day_of_week=record.day_label,
            week_number=selection.week_number,
            series_name=selection.series_name,
        )
