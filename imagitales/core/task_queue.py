"""
단일 동시성 작업 큐 (외부 서비스 레이트 리밋 보호용)
- 작업은 등록 순서대로 하나씩 실행된다
- 작업 사이에 고정 대기를 두며, 마지막 작업 뒤에는 대기하지 않는다
- CancellationToken으로 실행 중인 배치를 중단할 수 있다
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

from imagitales.core.exceptions import GenerationCancelled

logger = logging.getLogger(__name__)


class CancellationToken:
    """배치 취소 신호"""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise GenerationCancelled("배치 실행이 취소되었습니다")

    async def wait(self, timeout: float) -> bool:
        """timeout 동안 취소를 기다린다. 취소되면 True"""
        if timeout <= 0:
            return self.cancelled
        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False


@dataclass
class QueuedTask:
    label: str
    factory: Callable[[], Awaitable[Any]]


class SerialTaskQueue:
    """동시성 1, 작업 간 고정 지연을 두는 큐"""

    def __init__(
        self,
        inter_task_delay: float = 2.0,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        self.inter_task_delay = inter_task_delay
        self._sleep = sleep
        self._tasks: List[QueuedTask] = []

    def enqueue(self, label: str, factory: Callable[[], Awaitable[Any]]) -> None:
        self._tasks.append(QueuedTask(label=label, factory=factory))

    def __len__(self) -> int:
        return len(self._tasks)

    async def _pause(self, token: Optional[CancellationToken]) -> None:
        if self.inter_task_delay <= 0:
            return
        # 주입된 sleep이 있으면 그대로 사용 (테스트에서 시간 기록용)
        if self._sleep is not None:
            await self._sleep(self.inter_task_delay)
            return
        if token is not None:
            await token.wait(self.inter_task_delay)
        else:
            await asyncio.sleep(self.inter_task_delay)

    async def run(self, token: Optional[CancellationToken] = None) -> List[Any]:
        """등록된 작업을 순차 실행하고 결과 목록을 반환한다.

        작업 하나가 실패하면 남은 작업은 실행하지 않고 예외를 그대로 전달한다.
        """
        results: List[Any] = []
        total = len(self._tasks)
        for index, task in enumerate(self._tasks):
            if token is not None:
                token.raise_if_cancelled()
            logger.debug(f"작업 시작 [{index + 1}/{total}] {task.label}")
            results.append(await task.factory())
            if index < total - 1:
                await self._pause(token)
        return results
