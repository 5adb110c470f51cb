"""
애플리케이션 설정
"""

from pydantic_settings import BaseSettings
from typing import Optional
from pathlib import Path
from dotenv import load_dotenv


"""env 로딩 우선순위
1) OS 환경변수
2) 프로젝트 루트의 .env (repo/.env)
"""

# .env 사전 로드 (OS 환경변수 우선, override=False)
_here = Path(__file__).resolve()
_repo_root_env = _here.parents[2] / ".env"  # repo/.env
if _repo_root_env.exists():
    load_dotenv(dotenv_path=str(_repo_root_env), override=False)


class Settings(BaseSettings):
    """애플리케이션 설정"""
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    DATABASE_URL: str = "sqlite+aiosqlite:///./data/imagitales.db"

    # 생성형 텍스트 서비스 (없어도 부팅 가능하도록 Optional)
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemma-3-27b-it"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta/models"
    GEMINI_TIMEOUT_SECONDS: float = 120.0

    # 과부하(503) 재시도 정책: 첫 시도 이후 최대 재시도 횟수, 첫 대기(초)
    GENERATION_MAX_RETRIES: int = 5
    GENERATION_BASE_DELAY_SECONDS: float = 2.0

    # 연령대별 배치 사이 대기(초)
    BATCH_INTER_TASK_DELAY_SECONDS: float = 2.0

    DEFAULT_LOCALE: str = "fr"
    FALLBACK_THEME_COLOR: str = "#6366f1"
    FALLBACK_THEME_DESCRIPTION: str = "Thème hebdomadaire auto-généré"

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'
        extra = 'ignore'


settings = Settings()


# 환경별 설정 검증
def validate_settings(current: Settings = settings) -> bool:
    """설정 검증"""
    if current.ENVIRONMENT == "production":
        if not current.GEMINI_API_KEY:
            raise ValueError("프로덕션 환경에서는 GEMINI_API_KEY가 필요합니다.")
    return True


validate_settings()
