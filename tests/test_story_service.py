import uuid

import pytest
from sqlalchemy import func, select

from imagitales.core.exceptions import InvalidDayLabel, NotFound, PersistenceError
from imagitales.models.series import StorySeries
from imagitales.models.story import Story
from imagitales.models.story_version import StoryVersion, StoryVersionTheme
from imagitales.schemas.story import StoryCreate, StoryResponse, StoryUpdate
from imagitales.schemas.theme import ThemeDescriptor
from imagitales.services import story_service
from imagitales.services.story_service import StoryPersister
from imagitales.services.theme_service import get_or_create_theme


def _create_input(theme_ids, **overrides):
    data = {
        "title": "Le Petit Escargot",
        "content": "Il était une fois...",
        "themes": [{"id": str(tid)} for tid in theme_ids],
        "ageGroup": "4-6 ans",
        "locale": "fr",
        "dayOfWeek": "Dimanche",
        "weekNumber": 3,
    }
    data.update(overrides)
    return StoryCreate.model_validate(data)


def _update_input(theme_ids, **overrides):
    data = {
        "title": "Le Grand Escargot",
        "content": "Il était deux fois...",
        "themes": [{"id": str(tid), "isPrimary": i == 0} for i, tid in enumerate(theme_ids)],
        "ageGroup": "7-9",
        "dayOfWeek": "Monday",
        "weekNumber": 3,
        "version": 1,
    }
    data.update(overrides)
    return StoryUpdate.model_validate(data)


@pytest.fixture
def persister(cache):
    return StoryPersister(cache=cache)


@pytest.mark.asyncio
async def test_create_inserts_version_one_with_themes(db, theme, persister):
    story = await persister.create(db, _create_input([theme.id]))

    assert story.version == 1
    assert story.day_order == 7
    assert story.age_group == "4-6"
    assert [(link.theme_id, link.is_primary) for link in story.theme_links] == [(theme.id, True)]
    assert await db.scalar(select(func.count(StoryVersion.id))) == 0

    response = StoryResponse.model_validate(story)
    assert response.themes[0].name == "Nature"


@pytest.mark.asyncio
async def test_create_resolves_series_by_name_once(db, theme, persister):
    first = await persister.create(db, _create_input([theme.id], seriesName="Les Aventures"))
    second = await persister.create(db, _create_input([theme.id], seriesName="les aventures", dayOfWeek="Lundi"))

    assert first.series_id is not None
    assert first.series_id == second.series_id
    assert await db.scalar(select(func.count(StorySeries.id))) == 1


@pytest.mark.asyncio
async def test_create_resolves_accented_series_name_once(db, theme, persister):
    first = await persister.create(db, _create_input([theme.id], seriesName="Été en forêt"))
    second = await persister.create(db, _create_input([theme.id], seriesName="Été en forêt", dayOfWeek="Lundi"))
    third = await persister.create(db, _create_input([theme.id], seriesName="été en forêt", dayOfWeek="Mardi"))

    assert first.series_id == second.series_id == third.series_id
    assert await db.scalar(select(func.count(StorySeries.id))) == 1


@pytest.mark.asyncio
async def test_create_with_illustrations(db, theme, persister):
    story = await persister.create(db, _create_input(
        [theme.id],
        illustrations=[{"imagePath": "uploads/b.png", "position": 1}, {"imagePath": "uploads/a.png"}],
    ))

    assert [i.image_path for i in story.illustrations] == ["uploads/a.png", "uploads/b.png"]


@pytest.mark.asyncio
async def test_create_invalidates_theme_cache(db, theme, cache, persister):
    cache.fill([theme])

    await persister.create(db, _create_input([theme.id]))

    assert not cache.is_warm


@pytest.mark.asyncio
async def test_create_rejects_unknown_day(db, theme, persister):
    with pytest.raises(InvalidDayLabel):
        await persister.create(db, _create_input([theme.id], dayOfWeek="Funday"))

    assert await db.scalar(select(func.count(Story.id))) == 0


@pytest.mark.asyncio
async def test_create_rolls_back_on_failure(db, persister, missing_id):
    with pytest.raises(PersistenceError):
        await persister.create(db, _create_input([missing_id], seriesName="Orpheline"))

    assert await db.scalar(select(func.count(Story.id))) == 0
    assert await db.scalar(select(func.count(StorySeries.id))) == 0


@pytest.mark.asyncio
async def test_create_with_unknown_series_id(db, theme, persister, missing_id):
    with pytest.raises(NotFound):
        await persister.create(db, _create_input([theme.id], seriesId=str(missing_id)))


@pytest.mark.asyncio
async def test_update_snapshots_previous_state(db, theme, persister):
    other = await get_or_create_theme(db, ThemeDescriptor(name="Courage"))
    story = await persister.create(db, _create_input([theme.id]))

    updated = await persister.update(db, story.id, _update_input([other.id]))

    assert updated.version == 2
    assert updated.title == "Le Grand Escargot"
    assert updated.day_order == 1
    assert [link.theme_id for link in updated.theme_links] == [other.id]

    versions = (await db.execute(select(StoryVersion))).scalars().all()
    assert len(versions) == 1
    assert versions[0].version == 1
    assert versions[0].title == "Le Petit Escargot"
    assert versions[0].age_group == "4-6"
    snapshot_themes = (await db.execute(select(StoryVersionTheme.theme_id))).scalars().all()
    assert snapshot_themes == [theme.id]


@pytest.mark.asyncio
async def test_update_can_keep_same_themes(db, theme, persister):
    story = await persister.create(db, _create_input([theme.id]))

    updated = await persister.update(db, story.id, _update_input([theme.id]))

    assert [link.theme_id for link in updated.theme_links] == [theme.id]


@pytest.mark.asyncio
async def test_each_update_adds_exactly_one_version(db, theme, persister):
    story = await persister.create(db, _create_input([theme.id]))
    await persister.update(db, story.id, _update_input([theme.id]))
    latest = await persister.update(db, story.id, _update_input([theme.id], title="Troisième"))

    versions = await story_service.list_versions(db, story.id)

    assert latest.version == 3
    assert [v.version for v in versions] == [2, 1]


@pytest.mark.asyncio
async def test_update_missing_story(db, theme, persister, missing_id):
    with pytest.raises(NotFound):
        await persister.update(db, missing_id, _update_input([theme.id]))

    assert await db.scalar(select(func.count(StoryVersion.id))) == 0


@pytest.mark.asyncio
async def test_restore_version_goes_through_update(db, theme, persister):
    story = await persister.create(db, _create_input([theme.id]))
    await persister.update(db, story.id, _update_input([theme.id]))
    first = (await story_service.list_versions(db, story.id))[-1]

    restored = await story_service.restore_version(db, story.id, first.id, persister=persister)

    assert restored.title == "Le Petit Escargot"
    assert restored.version == 3
    assert len(await story_service.list_versions(db, story.id)) == 2


@pytest.mark.asyncio
async def test_neighbors_follow_day_order(db, theme, persister):
    monday = await persister.create(db, _create_input([theme.id], title="Lundi", dayOfWeek="Lundi"))
    tuesday = await persister.create(db, _create_input([theme.id], title="Mardi", dayOfWeek="Mardi"))
    await persister.create(db, _create_input([theme.id], title="Autre âge", dayOfWeek="Mercredi", ageGroup="7-9"))

    prev, nxt = await story_service.get_neighbors(db, monday.id)
    assert prev is None
    assert nxt.id == tuesday.id

    prev, nxt = await story_service.get_neighbors(db, tuesday.id)
    assert prev.id == monday.id
    assert nxt is None


@pytest.mark.asyncio
async def test_list_filters_and_weeks(db, theme, persister):
    await persister.create(db, _create_input([theme.id], title="Semaine 1", weekNumber=1))
    await persister.create(db, _create_input([theme.id], title="Semaine 2", weekNumber=2, ageGroup="7-9"))

    stories, total = await story_service.list_stories(db, week_number=2)
    assert total == 1
    assert stories[0].title == "Semaine 2"

    stories, total = await story_service.list_stories(db, theme_id=theme.id, search="semaine")
    assert total == 2

    assert await story_service.list_weeks(db) == [1, 2]
    assert await story_service.list_weeks(db, age_group="7-9") == [2]
    assert await story_service.list_weeks(db, theme_id=theme.id) == [1, 2]
    assert await story_service.list_weeks(db, theme_id=uuid.uuid4()) == []


@pytest.mark.asyncio
async def test_list_filters_by_illustration(db, theme, persister):
    await persister.create(db, _create_input([theme.id], title="Sans image"))
    await persister.create(db, _create_input(
        [theme.id], title="Avec image", dayOfWeek="Lundi", illustrations=[{"imagePath": "uploads/a.png"}],
    ))

    stories, total = await story_service.list_stories(db, has_image=True)
    assert total == 1
    assert stories[0].title == "Avec image"

    stories, total = await story_service.list_stories(db, has_image=False)
    assert [s.title for s in stories] == ["Sans image"]


@pytest.mark.asyncio
async def test_list_weeks_by_series(db, theme, persister):
    story = await persister.create(db, _create_input([theme.id], weekNumber=4, seriesName="Les Saisons"))
    await persister.create(db, _create_input([theme.id], weekNumber=5, dayOfWeek="Lundi"))

    assert await story_service.list_weeks(db, series_id=story.series_id) == [4]


@pytest.mark.asyncio
async def test_delete_story_removes_versions(db, theme, persister):
    story = await persister.create(db, _create_input([theme.id]))
    await persister.update(db, story.id, _update_input([theme.id]))

    await story_service.delete_story(db, story.id)

    assert await db.scalar(select(func.count(Story.id))) == 0
    assert await db.scalar(select(func.count(StoryVersion.id))) == 0
    with pytest.raises(NotFound):
        await story_service.get_story(db, story.id)
