"""
연령대/요일 등 도메인 상수와 정규화 함수
"""

from __future__ import annotations

import re
from typing import Optional

from imagitales.core.exceptions import InvalidDayLabel

# 대상 연령대 (저장 값)
AGE_GROUPS = ("2-3", "4-6", "7-9", "10-12", "13-15", "16-18")

# 요일 선택자: 주 전체
WHOLE_WEEK = "Toute la semaine"

FRENCH_DAYS = ("Lundi", "Mardi", "Mercredi", "Jeudi", "Vendredi", "Samedi", "Dimanche")
ENGLISH_DAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

# 요일 이름 → day_order (월=1 ... 일=7)
_DAY_ORDER = {name.lower(): i + 1 for i, name in enumerate(FRENCH_DAYS)}
_DAY_ORDER.update({name.lower(): i + 1 for i, name in enumerate(ENGLISH_DAYS)})

_AGE_RE = re.compile(r"^\s*(\d{1,2})\s*-\s*(\d{1,2})")


def is_whole_week(day_selector: Optional[str]) -> bool:
    return (day_selector or "").strip().lower() == WHOLE_WEEK.lower()


def match_day_label(label: Optional[str]) -> Optional[str]:
    """인식 가능한 요일 이름이면 표준 표기(프랑스어/영어 원형)를 반환, 아니면 None"""
    key = (label or "").strip().strip("*").strip().rstrip(".").lower()
    if key not in _DAY_ORDER:
        return None
    order = _DAY_ORDER[key]
    if key in (d.lower() for d in FRENCH_DAYS):
        return FRENCH_DAYS[order - 1]
    return ENGLISH_DAYS[order - 1]


def day_order_for(label: Optional[str]) -> int:
    """요일 이름 → 1..7. 인식 불가 시 InvalidDayLabel"""
    canonical = match_day_label(label)
    if canonical is None:
        raise InvalidDayLabel(label)
    return _DAY_ORDER[canonical.lower()]


def normalize_age_group(value: Optional[str]) -> str:
    """'4-6 ans' 같은 표기를 '4-6'으로 정규화한다"""
    m = _AGE_RE.match(value or "")
    if not m:
        raise ValueError(f"지원하지 않는 연령대입니다: {value!r}")
    age = f"{int(m.group(1))}-{int(m.group(2))}"
    if age not in AGE_GROUPS:
        raise ValueError(f"지원하지 않는 연령대입니다: {value!r}")
    return age


def age_group_label(age_group: str) -> str:
    """프롬프트/로그용 표기 ('4-6' → '4-6 ans')"""
    return f"{normalize_age_group(age_group)} ans"


def name_key(name: Optional[str]) -> str:
    """이름 비교용 정규화 키 (공백 제거 + casefold, 악센트 대문자 포함)"""
    return (name or "").strip().casefold()
