"""
지수 백오프 재시도 유틸리티
- 재시도 정책(최대 재시도, 첫 대기, 재시도 가능 여부)을 설정값으로 받는다
- 예외를 호출 스택 밖으로 던지지 않고 RetryOutcome으로 결과를 돌려준다
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, List, Optional, TypeVar

import backoff

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[Any]]


def _always_retry(error: BaseException) -> bool:
    return True


@dataclass(frozen=True)
class RetryPolicy:
    """재시도 정책. 총 시도 횟수 = 1 + max_retries"""
    max_retries: int = 5
    base_delay: float = 2.0
    is_retryable: Callable[[BaseException], bool] = _always_retry

    def wait_schedule(self):
        """대기 시간 제너레이터 (jitter 없음: base_delay, 2x, 4x, ...)"""
        waits = backoff.expo(base=2, factor=self.base_delay)
        # backoff 2.x 제너레이터는 첫 send(None)을 소비해야 값을 낸다
        waits.send(None)
        return waits


@dataclass
class RetryOutcome(Generic[T]):
    """재시도 결과"""
    ok: bool
    value: Optional[T] = None
    error: Optional[BaseException] = None
    attempts: int = 0
    waits: List[float] = field(default_factory=list)

    @property
    def retries(self) -> int:
        return max(0, self.attempts - 1)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    sleep: Optional[SleepFn] = None,
    label: str = "operation",
) -> RetryOutcome[T]:
    """operation을 정책에 따라 호출한다.

    재시도 불가능한 예외는 즉시 실패 결과로 반환하고, 재시도 가능한 예외는
    대기 후 다시 호출한다. 한도를 넘기면 마지막 예외를 담은 실패 결과를 반환한다.
    """
    sleep_fn = sleep or asyncio.sleep
    waits = policy.wait_schedule()
    outcome: RetryOutcome[T] = RetryOutcome(ok=False)

    while True:
        outcome.attempts += 1
        try:
            outcome.value = await operation()
            outcome.ok = True
            outcome.error = None
            return outcome
        except Exception as e:
            outcome.error = e
            if not policy.is_retryable(e):
                return outcome
            if outcome.retries >= policy.max_retries:
                logger.warning(f"{label}: 재시도 한도 도달 (attempts={outcome.attempts})")
                return outcome
            delay = next(waits)
            outcome.waits.append(delay)
            logger.warning(f"{label}: 재시도 {outcome.attempts}/{policy.max_retries} - {delay:.1f}s 대기 ({e})")
            await sleep_fn(delay)
