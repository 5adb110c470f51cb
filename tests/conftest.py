import uuid

import pytest
import pytest_asyncio

from imagitales.core.database import build_engine, build_sessionmaker, init_models
from imagitales.schemas.theme import ThemeDescriptor
from imagitales.services.theme_service import ThemeCache, get_or_create_theme


class SleepRecorder:
    """asyncio.sleep 대신 주입해 대기 시간만 기록한다."""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


class FakeGeminiClient:
    """미리 정해 둔 응답(문자열 또는 예외)을 순서대로 돌려준다."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.prompts = []

    async def generate(self, prompt):
        self.prompts.append(prompt)
        reply = self.responses.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


def story_text(title, theme_name="Nature", day=None, body="Il était une fois..."):
    lines = [f"**Titre de l'Histoire :** {title}"]
    if day:
        lines.append(f"**Jour de la Semaine :** {day}")
    if theme_name:
        lines.append(
            f'**Thèmes Associés (JSON):** [{{"name": "{theme_name}", "description": "d", '
            f'"icon": "🌿", "color": "#4CAF50"}}]')
    lines.append("[Illustration: une forêt au matin]")
    lines.append(body)
    return "\n".join(lines)


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def cache():
    return ThemeCache()


@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_models(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def theme(db, cache):
    return await get_or_create_theme(db, ThemeDescriptor(name="Nature", color="#4CAF50"), cache=cache)


@pytest.fixture
def missing_id():
    return uuid.uuid4()
