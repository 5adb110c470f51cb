"""
데이터베이스 설정 및 연결
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import MetaData, event, types
from sqlalchemy.dialects.postgresql import UUID as PostgresUUID
from typing import AsyncGenerator
import logging
import uuid
import ssl
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

from imagitales.core.config import settings

logger = logging.getLogger(__name__)


# SQLite와 PostgreSQL 모두 지원하는 UUID 타입
class UUID(types.TypeDecorator):
    """Platform-independent UUID type.

    Uses PostgreSQL's UUID type when available, otherwise uses
    CHAR(36), storing as stringified hex values.
    """
    impl = types.CHAR(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(PostgresUUID(as_uuid=True))
        else:
            return dialect.type_descriptor(types.CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        elif dialect.name == 'postgresql':
            return value
        else:
            if isinstance(value, uuid.UUID):
                return str(value)
            else:
                return str(uuid.UUID(str(value)))

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        elif dialect.name == 'postgresql':
            return value
        else:
            if isinstance(value, uuid.UUID):
                return value
            else:
                return uuid.UUID(value)


def _asyncpg_url_and_args(database_url: str) -> tuple[str, dict]:
    """postgresql:// URL을 asyncpg용으로 바꾸고 sslmode를 connect_args로 옮긴다.

    asyncpg는 URL query의 sslmode를 받지 못하므로("unexpected keyword argument")
    sslmode/ssl 파라미터를 제거하고 SSLContext를 connect_args로 전달한다.
    """
    raw_url = database_url
    if raw_url.startswith("postgresql://"):
        raw_url = raw_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    parts = urlsplit(raw_url)
    query_items = parse_qsl(parts.query, keep_blank_values=True)
    sslmode = next((v for (k, v) in query_items if k.lower() == "sslmode"), None)
    ssl_param = next((v for (k, v) in query_items if k.lower() == "ssl"), None)
    query_filtered = [(k, v) for (k, v) in query_items if k.lower() not in ("sslmode", "ssl")]
    engine_url = urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query_filtered), parts.fragment))

    ssl_required = False
    ssl_verify = False
    if ssl_param is not None:
        v = str(ssl_param).strip().lower()
        if v in ("1", "true", "yes", "on", "require"):
            ssl_required = True
        elif v in ("0", "false", "no", "off", "disable"):
            ssl_required = False
    if sslmode is not None:
        v = str(sslmode).strip().lower()
        # libpq sslmode semantics:
        # - require/prefer: encrypt but DO NOT verify server cert by default
        # - verify-ca/verify-full: verify
        if v in ("require", "prefer"):
            ssl_required = True
            ssl_verify = False
        elif v in ("verify-ca", "verify-full"):
            ssl_required = True
            ssl_verify = True
        elif v in ("disable", "allow"):
            ssl_required = False

    connect_args: dict = {}
    if ssl_required:
        ctx = ssl.create_default_context()
        if not ssl_verify:
            ctx.check_hostname = False
            ctx.verify_mode = ssl.CERT_NONE
        connect_args["ssl"] = ctx
    return engine_url, connect_args


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """URL 종류(SQLite/PostgreSQL)에 맞는 비동기 엔진 생성"""
    if database_url.startswith("sqlite"):
        if "+aiosqlite" not in database_url:
            database_url = database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
        new_engine = create_async_engine(database_url, echo=echo, future=True)

        # SQLite는 외래키 제약이 기본 비활성화되어 있음
        @event.listens_for(new_engine.sync_engine, "connect")
        def _enable_sqlite_fk(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return new_engine

    engine_url, connect_args = _asyncpg_url_and_args(database_url)
    return create_async_engine(
        engine_url,
        echo=echo,
        future=True,
        pool_pre_ping=True,
        pool_recycle=300,
        connect_args=connect_args,
    )


# SQLAlchemy 비동기 엔진 생성
engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)


def build_sessionmaker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
        autocommit=False,
    )


# 세션 팩토리 생성
AsyncSessionLocal = build_sessionmaker(engine)


# Base 클래스 정의
class Base(DeclarativeBase):
    """SQLAlchemy Base 클래스"""
    metadata = MetaData(
        naming_convention={
            "ix": "ix_%(column_0_label)s",
            "uq": "uq_%(table_name)s_%(column_0_name)s",
            "ck": "ck_%(table_name)s_%(constraint_name)s",
            "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
            "pk": "pk_%(table_name)s"
        }
    )


# 데이터베이스 세션 의존성
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """데이터베이스 세션 의존성"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_models(bind: AsyncEngine = engine) -> None:
    """모든 테이블 생성 (개발용, idempotent)"""
    # 모델 등록을 위해 패키지를 임포트해 둔다
    import imagitales.models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# 데이터베이스 연결 테스트
async def check_db_connection() -> bool:
    """데이터베이스 연결 테스트"""
    try:
        async with engine.begin() as conn:
            await conn.exec_driver_sql("SELECT 1")
        return True
    except Exception as e:
        logger.error(f"데이터베이스 연결 실패: {e}")
        return False
