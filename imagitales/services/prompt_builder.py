"""
스토리 생성 프롬프트 빌더
- 문구 자체는 비즈니스 텍스트이며, 출력 형식 마커만 파서와 계약 관계에 있다
"""

from __future__ import annotations

from typing import Optional

from imagitales.core.constants import age_group_label, is_whole_week, normalize_age_group
from imagitales.services.story_parser import Marker

# 연령대별 (문체, 삽화 스타일, 분량)
_AGE_STYLES = {
    "2-3": (
        "Langage très simple, phrases courtes, ton enjoué adapté aux tout-petits.",
        "Très colorée et joyeuse, personnages mignons, scènes simples.",
        "environ 250-300 mots",
    ),
    "4-6": (
        "Langage très simple, phrases courtes, ton enjoué, concepts basiques.",
        "Très colorée et joyeuse, personnages mignons, scènes simples.",
        "environ 300-400 mots",
    ),
    "7-9": (
        "Langage plus riche, phrases plus complexes, ton narratif et descriptif.",
        "Plus détaillée, réaliste mais imaginative, textures et lumières.",
        "environ 500-700 mots",
    ),
    "10-12": (
        "Langage plus riche, concepts plus élaborés, ton narratif et descriptif.",
        "Plus détaillée, réaliste mais imaginative, textures et lumières.",
        "environ 800-1000 mots",
    ),
    "13-15": (
        "Langage riche, phrases complexes, concepts élaborés.",
        "Très détaillée et réaliste, ambiance et concepts plus complexes.",
        "environ 1000-1200 mots",
    ),
    "16-18": (
        "Langage riche pour jeunes adultes, ton descriptif et narratif sans être édulcoré.",
        "Très détaillée, réaliste et scientifique, avec profondeur.",
        "environ 1200-1400 mots",
    ),
}

_THEMES_JSON_EXAMPLE = (
    '[{"name": "Nature", "description": "Exploration du monde naturel", "icon": "🌿", "color": "#4CAF50"}]'
)


def _output_format(day: Optional[str]) -> str:
    lines = [
        f"{Marker.TITLE.value} [Titre de l'histoire]",
        f"{Marker.WEEKLY_THEME.value} [Thème de la semaine]",
        f"{Marker.AGE_RANGE.value} [Tranche d'âge ciblée]",
        f"{Marker.DAY.value} [Lundi, Mardi, Mercredi, Jeudi, Vendredi, Samedi, Dimanche]",
        f"{Marker.THEMES_JSON.value} tableau JSON de 1 ou 2 objets "
        f'avec "name", "description", "icon" et "color" (hexadécimal). Exemple : {_THEMES_JSON_EXAMPLE}',
        "",
        "[Paragraphes de l'histoire]",
        "[Illustration: description unique et très détaillée de la scène]",
    ]
    if day and not is_whole_week(day):
        lines.append("")
        lines.append(f"Jour de la Semaine : {day}")
    return "\n".join(lines)


def build_story_prompt(
    theme: str,
    age: str,
    day: str,
    num_characters: Optional[int] = None,
    char_names: Optional[str] = None,
    series_name: Optional[str] = None,
) -> str:
    """생성 요청 파라미터 → 프롬프트 문자열"""
    age_group = normalize_age_group(age)
    story_style, illustration_style, word_count = _AGE_STYLES[age_group]
    weekly = is_whole_week(day)

    parts = []
    if weekly:
        parts.append(
            "Génère une série d'histoires éducatives pour enfants pour toute une semaine "
            "(Lundi à Dimanche), avec une continuité narrative et visuelle d'un jour à l'autre."
        )
    else:
        parts.append(f"Génère une histoire éducative pour enfants pour le jour suivant : {day}.")

    parts.append(f'Thème hebdomadaire : "{theme}".')
    parts.append(f'Tranche d\'âge : "{age_group_label(age_group)}". Style du texte : {story_style}')
    if num_characters:
        parts.append(f"Le nombre de personnages principaux doit être de {num_characters}.")
    if char_names:
        parts.append(f"Les noms des personnages principaux sont : {char_names}.")
    if series_name:
        parts.append(f'Cette histoire fait partie de la série "{series_name}".')
    parts.append(f"Longueur : {word_count} par histoire.")
    parts.append(f"Illustration : une seule description par histoire. {illustration_style}")
    parts.append(
        "Du lundi au jeudi, termine par un cliffhanger. Le vendredi, propose une activité "
        "pour le week-end. Le samedi et le dimanche concluent le thème de la semaine."
    )
    if weekly:
        parts.append("Pour chaque histoire, respecte le format suivant et concatène toutes les histoires :")
    else:
        parts.append("Respecte le format suivant :")
    parts.append(_output_format(day))
    return "\n".join(parts)
