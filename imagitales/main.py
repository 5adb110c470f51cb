"""
Imagitales - 그림 동화 생성/적재 서비스 FastAPI 메인 애플리케이션
"""

from contextlib import asynccontextmanager
from pathlib import Path
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from imagitales.core.config import settings
from imagitales.core.database import check_db_connection, init_models

from imagitales.api.generation import router as generation_router
from imagitales.api.stories import router as stories_router
from imagitales.api.themes import router as themes_router
from imagitales.api.series import router as series_router
from imagitales.api.weekly_themes import router as weekly_themes_router

# 로깅 설정
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """애플리케이션 시작/종료 시 실행되는 이벤트"""
    logger.info("🚀 Imagitales 시작")

    # SQLite 파일 경로의 디렉터리 준비
    if settings.DATABASE_URL.startswith("sqlite") and ":memory:" not in settings.DATABASE_URL:
        db_path = settings.DATABASE_URL.split("///", 1)[-1]
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    # 데이터베이스 테이블 생성 (개발용)
    if settings.ENVIRONMENT == "development":
        await init_models()
        logger.info("📊 데이터베이스 테이블 생성 완료")

    yield

    logger.info("👋 Imagitales 종료")


app = FastAPI(
    title="Imagitales API",
    description="주간 테마 기반 그림 동화 생성 및 카탈로그 API",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS 설정
ALLOWED_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:3000",
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(generation_router, prefix="/generate", tags=["✨ 생성"])
app.include_router(stories_router, prefix="/stories", tags=["📚 스토리"])
app.include_router(themes_router, prefix="/themes", tags=["🏷️ 테마"])
app.include_router(series_router, prefix="/series", tags=["📖 시리즈"])
app.include_router(weekly_themes_router, prefix="/weekly-themes", tags=["🗓️ 주간 테마"])


@app.get("/")
async def root():
    """루트 엔드포인트"""
    return {
        "message": "Imagitales API",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
    }


@app.get("/health")
async def health_check():
    """헬스 체크 엔드포인트"""
    database = await check_db_connection()
    return {
        "status": "healthy" if database else "degraded",
        "database": database,
        "generation_configured": bool(settings.GEMINI_API_KEY),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "imagitales.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
