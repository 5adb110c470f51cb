import pytest

from imagitales.core.constants import FRENCH_DAYS, WHOLE_WEEK
from imagitales.services.prompt_builder import build_story_prompt
from imagitales.services.story_parser import DEFAULT_TITLE, Marker, StoryParser, tokenize

from conftest import story_text


@pytest.fixture
def parser():
    return StoryParser()


def test_single_day_story_with_json_themes_and_illustration(parser):
    raw = (
        "**Titre de l'Histoire :** Le Petit Escargot\n"
        '**Thèmes Associés (JSON):** [{"name":"Nature","description":"d","icon":"🌿","color":"#4CAF50"}]\n'
        "[Illustration: a snail on a leaf]\n"
        "Once upon a time..."
    )

    records = parser.parse(raw, "Lundi")

    assert len(records) == 1
    record = records[0]
    assert record.title == "Le Petit Escargot"
    assert record.day_label == "Lundi"
    assert [d.name for d in record.theme_descriptors] == ["Nature"]
    assert record.theme_descriptors[0].description == "d"
    assert record.theme_descriptors[0].icon == "🌿"
    assert record.theme_descriptors[0].color == "#4CAF50"
    assert record.body == "Once upon a time...\n\n> Illustration: a snail on a leaf"
    assert record.illustration_caption == "a snail on a leaf"


def test_weekly_text_yields_one_record_per_day_segment(parser):
    raw = "\n\n---\n\n".join(story_text(f"Histoire {day}", day=day) for day in FRENCH_DAYS)

    records = parser.parse(raw, WHOLE_WEEK, weekly_theme="Les Océans")

    assert len(records) == 7
    assert [r.day_label for r in records] == list(FRENCH_DAYS)
    assert all(r.title for r in records)
    assert all(r.weekly_theme_name == "Les Océans" for r in records)
    # 구분선은 본문에 남지 않는다
    assert all(not r.body.startswith("---") and "---" not in r.body for r in records)


def test_weekly_segment_without_day_is_dropped_and_reported(parser):
    raw = "\n".join([
        story_text("Lundi matin", day="Lundi"),
        story_text("Sans jour"),
        story_text("Mardi soir", day="mardi"),
    ])

    report = parser.parse_report(raw, WHOLE_WEEK)

    assert [r.title for r in report.records] == ["Lundi matin", "Mardi soir"]
    assert [r.day_label for r in report.records] == ["Lundi", "Mardi"]
    assert len(report.dropped) == 1
    assert report.dropped[0].title == "Sans jour"


def test_weekly_mode_accepts_english_day_names(parser):
    raw = story_text("Sunday story", day="Sunday")

    records = parser.parse(raw, WHOLE_WEEK)

    assert records[0].day_label == "Sunday"


def test_unrecognized_day_is_dropped(parser):
    report = parser.parse_report(story_text("Jour bizarre", day="Funday"), WHOLE_WEEK)

    assert report.records == []
    assert "Funday" in report.dropped[0].reason


def test_blank_weekly_text_has_no_segments(parser):
    assert parser.parse("\n\n   \n", WHOLE_WEEK) == []
    assert parser.parse("", "Lundi") == []


def test_malformed_json_falls_back_to_plain_themes_line(parser):
    raw = (
        "**Titre de l'Histoire :** Le Renard\n"
        "**Thèmes Associés (JSON):** [{name: Amitié}]\n"
        "**Thèmes Associés :** Amitié, Courage\n"
        "Le renard courait."
    )

    record = parser.parse(raw, "Mardi")[0]

    assert [d.name for d in record.theme_descriptors] == ["Amitié", "Courage"]
    assert record.body == "Le renard courait."


def test_unclosed_json_array_falls_back_without_error(parser):
    raw = (
        "**Titre de l'Histoire :** Le Hibou\n"
        '**Thèmes Associés (JSON):** [{"name": "Nuit"\n'
        "**Thèmes Associés :** Nuit\n"
        "Le hibou veillait."
    )

    record = parser.parse(raw, "Mardi")[0]

    assert [d.name for d in record.theme_descriptors] == ["Nuit"]


def test_json_array_spanning_several_lines(parser):
    raw = (
        "**Titre de l'Histoire :** La Baleine\n"
        "**Thèmes Associés (JSON):**\n"
        "[\n"
        '  {"name": "Océan", "color": "#0077be"},\n'
        '  {"name": "Famille [élargie]", "color": "pas une couleur"}\n'
        "]\n"
        "La baleine chantait."
    )

    record = parser.parse(raw, "Jeudi")[0]

    assert [d.name for d in record.theme_descriptors] == ["Océan", "Famille [élargie]"]
    assert record.theme_descriptors[1].color is None
    assert record.body == "La baleine chantait."


def test_missing_title_and_themes_use_defaults(parser):
    record = parser.parse("Une histoire sans marqueurs.", "Vendredi")[0]

    assert record.title == DEFAULT_TITLE
    assert record.theme_descriptors == []
    assert record.body == "Une histoire sans marqueurs."


def test_unknown_marker_is_kept_in_body(parser):
    raw = (
        "**Titre de l'Histoire :** Le Partage\n"
        "**Morale :** Partager rend heureux\n"
        "Fin."
    )

    tokens = tokenize(raw).tokens
    record = parser.parse(raw, "Samedi")[0]

    assert [t.kind for t in tokens] == [Marker.TITLE, Marker.UNKNOWN]
    assert tokens[1].label == "Morale"
    assert record.body == "**Morale :** Partager rend heureux\nFin."


def test_marker_lines_are_removed_from_body(parser):
    raw = (
        "**Titre de l'Histoire :** La Lune\n"
        "**Thème Hebdomadaire :** L'espace\n"
        "**Tranche d'Âge :** 4-6 ans\n"
        "**Jour de la Semaine :** Dimanche\n"
        "La lune brillait.\n"
        "[Illustration: une lune\n"
        "ronde et dorée]\n"
    )

    record = parser.parse(raw, "Lundi")[0]

    # 단일 요일 모드에서는 선택된 요일이 우선한다
    assert record.day_label == "Lundi"
    assert record.weekly_theme_name == "L'espace"
    assert record.age_label == "4-6 ans"
    assert record.body == "La lune brillait.\n\n> Illustration: une lune ronde et dorée"


def test_only_first_illustration_is_extracted(parser):
    raw = "Début.\n[Illustration: premier]\nMilieu.\n[Illustration: second]"

    record = parser.parse(raw, "Lundi")[0]

    assert record.illustration_caption == "premier"
    assert "[Illustration: second]" in record.body


def test_prompt_announces_the_markers_the_parser_reads():
    prompt = build_story_prompt("Les Océans", "4-6 ans", WHOLE_WEEK, num_characters=2, char_names="Léa, Tom")

    for marker in (Marker.TITLE, Marker.DAY, Marker.THEMES_JSON):
        assert marker.value in prompt
    assert "Léa, Tom" in prompt
    assert "4-6 ans" in prompt
