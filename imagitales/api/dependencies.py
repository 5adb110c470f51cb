"""
라우터 공통 의존성 (테스트에서 dependency_overrides로 교체)
"""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from imagitales.core.database import AsyncSessionLocal
from imagitales.services.gemini_client import GeminiClient
from imagitales.services.theme_service import ThemeCache, theme_cache


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """파이프라인이 연령대별로 세션을 여는 팩토리"""
    return AsyncSessionLocal


def get_gemini_client() -> GeminiClient:
    return GeminiClient()


def get_theme_cache() -> ThemeCache:
    return theme_cache
