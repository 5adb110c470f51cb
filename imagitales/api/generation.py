"""
스토리 생성 API 라우터
- /generate/story: 프롬프트 1건 → 원시 생성 텍스트
- /generate/batch: 연령대 배치 실행 (생성 → 파싱 → 테마 → 저장)
- /generate/batch/stream: 같은 배치를 SSE 진행 이벤트로 스트리밍
"""

import asyncio
import json
import logging
import uuid
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sse_starlette.sse import EventSourceResponse

from imagitales.api.dependencies import get_gemini_client, get_session_factory, get_theme_cache
from imagitales.core.exceptions import (
    EmptyGenerationResult,
    GenerationCancelled,
    GenerationRunError,
    OverloadExhausted,
    TransportError,
)
from imagitales.core.task_queue import CancellationToken
from imagitales.schemas.generation import BatchResponse, BatchSelection, GenerateRequest, GenerateResponse
from imagitales.services.gemini_client import GeminiClient
from imagitales.services.generation_pipeline import GenerationPipeline
from imagitales.services.prompt_builder import build_story_prompt
from imagitales.services.theme_service import ThemeCache, ThemeResolver

logger = logging.getLogger(__name__)

router = APIRouter()

# 실행 중인 스트리밍 배치 (run_id → 취소 토큰)
_active_runs: Dict[str, CancellationToken] = {}


def _pipeline(
    session_factory: async_sessionmaker[AsyncSession],
    client: GeminiClient,
    cache: ThemeCache,
) -> GenerationPipeline:
    return GenerationPipeline(session_factory, client=client, resolver=ThemeResolver(cache=cache))


@router.post("/story", response_model=GenerateResponse)
async def generate_story(
    request: GenerateRequest,
    client: GeminiClient = Depends(get_gemini_client),
):
    """생성 요청 → 원시 텍스트"""
    prompt = build_story_prompt(
        request.theme,
        request.age,
        request.day,
        num_characters=request.num_characters,
        char_names=request.char_names,
        series_name=request.series_name,
    )
    try:
        text = await client.generate(prompt)
    except (TransportError, OverloadExhausted, EmptyGenerationResult) as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return GenerateResponse(text=text)


@router.post("/batch", response_model=BatchResponse)
async def run_batch(
    selection: BatchSelection,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    client: GeminiClient = Depends(get_gemini_client),
    cache: ThemeCache = Depends(get_theme_cache),
):
    """배치를 끝까지 실행하고 진행 로그와 저장된 스토리를 반환"""
    pipeline = _pipeline(session_factory, client, cache)
    try:
        result = await pipeline.run(selection)
    except GenerationRunError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"step": e.step, "message": str(e.cause), "log": e.log},
        )
    return BatchResponse(log=result.log, warnings=result.warnings, stories=result.stories)


@router.post("/batch/stream")
async def stream_batch(
    selection: BatchSelection,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    client: GeminiClient = Depends(get_gemini_client),
    cache: ThemeCache = Depends(get_theme_cache),
):
    """배치 진행 상황을 SSE로 전달 (progress / story / warning / error / done)"""
    run_id = str(uuid.uuid4())
    token = CancellationToken()
    _active_runs[run_id] = token
    pipeline = _pipeline(session_factory, client, cache)
    events: asyncio.Queue = asyncio.Queue()

    async def on_event(event: str, data: dict) -> None:
        await events.put({"event": event, "data": json.dumps(data, ensure_ascii=False)})

    async def worker() -> None:
        summary = BatchResponse(run_id=run_id)
        try:
            result = await pipeline.run(selection, token=token, on_event=on_event)
            summary = BatchResponse(run_id=run_id, log=result.log, warnings=result.warnings, stories=result.stories)
        except GenerationRunError as e:
            summary = BatchResponse(
                run_id=run_id,
                log=e.log,
                error=str(e.cause),
                failed_step=e.step,
                cancelled=isinstance(e.cause, GenerationCancelled),
            )
        finally:
            _active_runs.pop(run_id, None)
            await events.put({"event": "done", "data": summary.model_dump_json()})
            await events.put(None)

    async def event_generator():
        yield {"event": "start", "data": json.dumps({"run_id": run_id})}
        task = asyncio.create_task(worker())
        try:
            while True:
                item = await events.get()
                if item is None:
                    break
                yield item
        except asyncio.CancelledError:
            # 클라이언트 연결 종료 시 배치도 멈춘다
            token.cancel()
            raise
        finally:
            if task.done() and not task.cancelled() and task.exception() is not None:
                logger.error(f"배치 스트림 작업 실패: {task.exception()}")

    return EventSourceResponse(event_generator())


@router.post("/batch/{run_id}/cancel")
async def cancel_batch(run_id: str):
    """실행 중인 스트리밍 배치 취소"""
    token = _active_runs.get(run_id)
    if token is None:
        raise HTTPException(status_code=404, detail="실행 중인 배치를 찾을 수 없습니다")
    token.cancel()
    logger.info(f"배치 취소 요청: {run_id}")
    return {"run_id": run_id, "cancelled": True}
