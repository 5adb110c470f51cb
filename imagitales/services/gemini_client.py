"""
Gemini generateContent REST 클라이언트
- 프롬프트 1건을 보내고 생성 텍스트를 돌려준다
- 503(과부하)만 지수 백오프로 재시도, 그 외 실패는 즉시 TransportError
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import aiohttp

from imagitales.core.config import settings
from imagitales.core.exceptions import EmptyGenerationResult, OverloadExhausted, TransportError
from imagitales.core.retry import RetryPolicy, retry_with_backoff

logger = logging.getLogger(__name__)

OVERLOAD_STATUS = 503


@dataclass
class HttpReply:
    """원시 HTTP 응답 (상태 코드 + 본문 텍스트)"""
    status: int
    body: str


class _Overloaded(Exception):
    """내부용: 503 응답 표시 (재시도 대상)"""

    def __init__(self, body: str):
        self.body = body
        super().__init__(f"HTTP {OVERLOAD_STATUS}")


def _is_overload(error: BaseException) -> bool:
    return isinstance(error, _Overloaded)


def _extract_text(data: Any) -> Optional[str]:
    """candidates[0].content.parts[0].text 추출 (없으면 None)"""
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) else None


def _error_message(body: str) -> str:
    # Google API 오류 본문: {"error": {"code":..., "message":..., "status":...}}
    try:
        data = json.loads(body)
        if isinstance(data, dict) and isinstance(data.get("error"), dict):
            return str(data["error"].get("message") or body)
    except ValueError:
        pass
    return (body or "").strip()[:500]


class GeminiClient:
    """생성형 텍스트 서비스 클라이언트"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.model = model or settings.GEMINI_MODEL
        self.base_url = (base_url or settings.GEMINI_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.GEMINI_TIMEOUT_SECONDS
        self.retry_policy = retry_policy or RetryPolicy(
            max_retries=settings.GENERATION_MAX_RETRIES,
            base_delay=settings.GENERATION_BASE_DELAY_SECONDS,
            is_retryable=_is_overload,
        )
        self._sleep = sleep

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/{self.model}:generateContent"

    @staticmethod
    def build_payload(prompt: str) -> dict:
        return {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}

    async def _post(self, payload: dict) -> HttpReply:
        """실제 HTTP POST. 네트워크 오류는 TransportError로 변환"""
        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": self.api_key or "",
        }
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self.endpoint,
                    headers=headers,
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as resp:
                    return HttpReply(status=resp.status, body=await resp.text())
        except asyncio.TimeoutError as e:
            raise TransportError(None, f"Request timeout after {self.timeout:.0f}s") from e
        except aiohttp.ClientError as e:
            raise TransportError(None, f"Connection failed: {e}") from e

    async def _attempt(self, payload: dict) -> str:
        reply = await self._post(payload)
        if reply.status == OVERLOAD_STATUS:
            logger.warning(f"Gemini {self.model} 과부하(503)")
            raise _Overloaded(reply.body)
        if reply.status >= 400 or reply.status < 200:
            message = _error_message(reply.body)
            logger.error(f"Gemini API error {reply.status}: {message}")
            raise TransportError(reply.status, message)
        try:
            data = json.loads(reply.body) if reply.body else {}
        except ValueError as e:
            raise TransportError(reply.status, "Invalid JSON in generation response") from e
        text = _extract_text(data)
        if not text or not text.strip():
            raise EmptyGenerationResult("Empty response from generation service")
        return text

    async def generate(self, prompt: str) -> str:
        """프롬프트 → 생성 텍스트. 실패 시 TransportError/OverloadExhausted/EmptyGenerationResult"""
        if not self.api_key:
            raise TransportError(None, "GEMINI_API_KEY is not configured")

        payload = self.build_payload(prompt)
        outcome = await retry_with_backoff(
            lambda: self._attempt(payload),
            self.retry_policy,
            sleep=self._sleep,
            label=f"gemini:{self.model}",
        )
        if outcome.ok:
            logger.info(f"Gemini 생성 완료 (model={self.model}, attempts={outcome.attempts}, len={len(outcome.value)})")
            return outcome.value
        if isinstance(outcome.error, _Overloaded):
            raise OverloadExhausted(outcome.attempts) from outcome.error
        raise outcome.error
