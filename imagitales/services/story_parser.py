"""
생성 텍스트 → 스토리 레코드 파서
줄 머리 마커를 토큰화한 뒤 필드로 매핑한다

    **Titre de l'Histoire :** 제목
    **Thème Hebdomadaire :** 주간 주제
    **Tranche d'Âge :** 연령대
    **Jour de la Semaine :** 요일 (주 전체 모드에서만 사용)
    **Thèmes Associés (JSON):** [{"name": ..., "description": ..., "icon": ..., "color": ...}]
    **Thèmes Associés :** 쉼표 구분 테마 (JSON 실패 시 폴백)
    [Illustration: 삽화 설명]
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import ValidationError

from imagitales.core.constants import is_whole_week, match_day_label
from imagitales.core.exceptions import ParseAmbiguity
from imagitales.schemas.theme import ThemeDescriptor

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Histoire Générée"
ILLUSTRATION_NOTE_PREFIX = "> Illustration: "


class Marker(Enum):
    """인식하는 줄 머리 마커 (값은 프롬프트에 그대로 쓰이는 표기)"""
    TITLE = "**Titre de l'Histoire :**"
    WEEKLY_THEME = "**Thème Hebdomadaire :**"
    AGE_RANGE = "**Tranche d'Âge :**"
    DAY = "**Jour de la Semaine :**"
    THEMES_JSON = "**Thèmes Associés (JSON):**"
    THEMES_TEXT = "**Thèmes Associés :**"
    UNKNOWN = "**…:**"

    @property
    def label(self) -> str:
        return self.value.strip("*").rstrip(":").strip()


def _marker_pattern(marker: Marker) -> re.Pattern:
    # 굵게 표시(**)는 있어도 없어도 되고, 아포스트로피는 ' 와 ’ 모두 허용
    label = re.escape(marker.label).replace("'", "['’]")
    return re.compile(
        rf"^\s*(?:\*\*)?\s*{label}\s*:\s*(?:\*\*)?\s*(?P<rest>.*?)\s*$",
        re.IGNORECASE,
    )


# THEMES_JSON은 THEMES_TEXT보다 먼저 검사해야 한다
_KNOWN_MARKERS: List[Tuple[Marker, re.Pattern]] = [
    (m, _marker_pattern(m))
    for m in (
        Marker.TITLE,
        Marker.WEEKLY_THEME,
        Marker.AGE_RANGE,
        Marker.DAY,
        Marker.THEMES_JSON,
        Marker.THEMES_TEXT,
    )
]
_UNKNOWN_MARKER = re.compile(r"^\s*\*\*(?P<label>[^*\n]{1,60}?)\s*:\s*\*\*\s*(?P<rest>.*?)\s*$")
_ILLUSTRATION = re.compile(r"\[\s*Illustration\s*:\s*(?P<caption>.*?)\s*\]", re.IGNORECASE | re.DOTALL)
_BLANK_RUNS = re.compile(r"\n{3,}")
_RULE = re.compile(r"^\s*(?:-{3,}|\*{3,}|_{3,})\s*$")


@dataclass
class Token:
    kind: Marker
    content: str
    line: int
    label: Optional[str] = None  # UNKNOWN 마커의 원래 라벨


@dataclass
class TokenizedSegment:
    tokens: List[Token] = field(default_factory=list)
    body_lines: List[str] = field(default_factory=list)

    def first(self, kind: Marker) -> Optional[Token]:
        return next((t for t in self.tokens if t.kind == kind), None)

    def unknown(self) -> List[Token]:
        return [t for t in self.tokens if t.kind == Marker.UNKNOWN]


@dataclass
class StoryRecord:
    """파싱된 스토리 1건 (아직 저장되지 않음)"""
    title: str
    body: str
    theme_descriptors: List[ThemeDescriptor]
    day_label: str
    weekly_theme_name: Optional[str] = None
    illustration_caption: Optional[str] = None
    age_label: Optional[str] = None


@dataclass
class ParseReport:
    records: List[StoryRecord] = field(default_factory=list)
    dropped: List[ParseAmbiguity] = field(default_factory=list)


def _scan_json_array(lines: List[str], start_line: int, start_col: int) -> Tuple[Optional[str], int, str]:
    """lines[start_line][start_col]의 '['부터 짝이 맞는 ']'까지 잘라낸다.

    반환: (배열 텍스트 또는 None, 마지막으로 소비한 줄 번호, 같은 줄의 ']' 뒤 나머지)
    문자열 리터럴 안의 괄호는 무시한다.
    """
    depth = 0
    in_string = False
    escaped = False
    collected: List[str] = []
    for li in range(start_line, len(lines)):
        line = lines[li]
        col0 = start_col if li == start_line else 0
        for ci in range(col0, len(line)):
            ch = line[ci]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "[":
                depth += 1
            elif ch == "]":
                depth -= 1
                if depth == 0:
                    collected.append(line[col0:ci + 1])
                    return "\n".join(collected), li, line[ci + 1:]
        collected.append(line[col0:])
    return None, start_line, ""


def tokenize(segment: str) -> TokenizedSegment:
    """세그먼트를 (마커 종류, 내용) 토큰과 나머지 본문 줄로 나눈다"""
    lines = segment.splitlines()
    out = TokenizedSegment()
    i = 0
    while i < len(lines):
        line = lines[i]
        kind: Optional[Marker] = None
        rest, rest_start = "", 0
        for marker, pattern in _KNOWN_MARKERS:
            m = pattern.match(line)
            if m:
                kind, rest, rest_start = marker, m.group("rest"), m.start("rest")
                break

        if kind is None:
            um = _UNKNOWN_MARKER.match(line)
            if um:
                # 알 수 없는 마커: 토큰으로 기록하되 본문에는 남긴다
                out.tokens.append(Token(Marker.UNKNOWN, um.group("rest"), i, label=um.group("label").strip()))
            out.body_lines.append(line)
            i += 1
            continue

        if kind == Marker.THEMES_JSON:
            i = _consume_themes_json(lines, i, rest, rest_start, out)
            continue

        out.tokens.append(Token(kind, rest.strip(), i))
        i += 1
    return out


def _consume_themes_json(lines: List[str], i: int, rest: str, rest_start: int, out: TokenizedSegment) -> int:
    """THEMES_JSON 마커 뒤의 JSON 배열(여러 줄 가능)을 토큰으로 소비하고 다음 줄 번호를 반환"""
    line = lines[i]
    bracket = line.find("[", rest_start) if rest else -1
    start_line, start_col = i, bracket
    if bracket < 0 and not rest.strip():
        # 마커 줄에 배열이 없으면 다음 비어있지 않은 줄에서 시작하는지 확인
        j = i + 1
        while j < len(lines) and not lines[j].strip():
            j += 1
        if j < len(lines) and lines[j].lstrip().startswith("["):
            start_line, start_col = j, lines[j].find("[")

    if start_col < 0:
        out.tokens.append(Token(Marker.THEMES_JSON, rest.strip(), i))
        return i + 1

    array_text, last_line, trailing = _scan_json_array(lines, start_line, start_col)
    if array_text is None:
        # 닫히지 않은 배열: 마커 줄만 소비하고 나머지는 본문으로 둔다
        out.tokens.append(Token(Marker.THEMES_JSON, rest.strip(), i))
        return i + 1

    out.tokens.append(Token(Marker.THEMES_JSON, array_text, i))
    if trailing.strip():
        out.body_lines.append(trailing.strip())
    return last_line + 1


def _descriptors_from_json(text: str) -> Optional[List[ThemeDescriptor]]:
    """JSON 배열 → 테마 디스크립터. JSON 자체가 깨졌으면 None"""
    try:
        data = json.loads(text)
    except ValueError:
        return None
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        return None
    descriptors: List[ThemeDescriptor] = []
    for item in data:
        if isinstance(item, str):
            item = {"name": item}
        if not isinstance(item, dict):
            continue
        try:
            descriptors.append(ThemeDescriptor.model_validate(item))
        except ValidationError:
            logger.debug(f"테마 항목 무시: {item!r}")
    return descriptors


def _descriptors_from_text(text: str) -> List[ThemeDescriptor]:
    descriptors: List[ThemeDescriptor] = []
    for name in (text or "").split(","):
        name = name.strip().strip("*").strip()
        if not name:
            continue
        try:
            descriptors.append(ThemeDescriptor(name=name))
        except ValidationError:
            logger.debug(f"테마 이름 무시: {name!r}")
    return descriptors


class StoryParser:
    """생성 텍스트를 스토리 레코드 목록으로 변환"""

    def split_segments(self, raw_text: str, day_selector: str) -> List[str]:
        """주 전체 모드면 제목 마커 앞에서 자르고, 아니면 전체를 하나의 세그먼트로"""
        text = raw_text or ""
        if not is_whole_week(day_selector):
            return [text] if text.strip() else []

        title_pattern = dict(_KNOWN_MARKERS)[Marker.TITLE]
        lines = text.splitlines()
        segments: List[List[str]] = [[]]
        for line in lines:
            if title_pattern.match(line) and any(l.strip() for l in segments[-1]):
                segments.append([])
            segments[-1].append(line)
        return ["\n".join(seg) for seg in segments if any(l.strip() for l in seg)]

    def parse_segment(
        self,
        segment: str,
        day_selector: str,
        weekly_theme: Optional[str] = None,
    ) -> StoryRecord:
        """세그먼트 1개 → StoryRecord. 주 전체 모드에서 요일이 없으면 ParseAmbiguity"""
        tokenized = tokenize(segment)

        title_tok = tokenized.first(Marker.TITLE)
        title = (title_tok.content if title_tok else "").strip() or DEFAULT_TITLE

        descriptors: Optional[List[ThemeDescriptor]] = None
        json_tok = tokenized.first(Marker.THEMES_JSON)
        if json_tok is not None and json_tok.content:
            descriptors = _descriptors_from_json(json_tok.content)
            if descriptors is None:
                logger.warning(f"테마 JSON 파싱 실패, 텍스트 폴백 시도: '{title}'")
        if not descriptors:
            text_tok = tokenized.first(Marker.THEMES_TEXT)
            descriptors = _descriptors_from_text(text_tok.content) if text_tok else []

        body = "\n".join(tokenized.body_lines)
        caption: Optional[str] = None
        ill = _ILLUSTRATION.search(body)
        if ill:
            caption = " ".join(ill.group("caption").split()) or None
            body = body[:ill.start()] + body[ill.end():]

        if is_whole_week(day_selector):
            day_tok = tokenized.first(Marker.DAY)
            day_label = match_day_label(day_tok.content) if day_tok else None
            if day_label is None:
                reason = "missing day-of-week marker" if day_tok is None else f"unrecognized day '{day_tok.content}'"
                raise ParseAmbiguity(title, reason)
        else:
            day_label = match_day_label(day_selector) or day_selector

        for tok in tokenized.unknown():
            logger.debug(f"알 수 없는 마커 유지: '{tok.label}' in '{title}'")

        weekly_tok = tokenized.first(Marker.WEEKLY_THEME)
        age_tok = tokenized.first(Marker.AGE_RANGE)
        return StoryRecord(
            title=title,
            body=self._assemble_body(body, caption),
            theme_descriptors=descriptors,
            day_label=day_label,
            weekly_theme_name=weekly_theme or (weekly_tok.content if weekly_tok and weekly_tok.content else None),
            illustration_caption=caption,
            age_label=age_tok.content if age_tok else None,
        )

    @staticmethod
    def _assemble_body(body: str, caption: Optional[str]) -> str:
        lines = [line.rstrip() for line in body.splitlines()]
        # 스토리 사이 구분선은 본문에 남기지 않는다
        while lines and (not lines[-1] or _RULE.match(lines[-1])):
            lines.pop()
        while lines and (not lines[0] or _RULE.match(lines[0])):
            lines.pop(0)
        text = _BLANK_RUNS.sub("\n\n", "\n".join(lines)).strip()
        if caption:
            note = f"{ILLUSTRATION_NOTE_PREFIX}{caption}"
            text = f"{text}\n\n{note}" if text else note
        return text

    def parse_report(
        self,
        raw_text: str,
        day_selector: str,
        weekly_theme: Optional[str] = None,
    ) -> ParseReport:
        report = ParseReport()
        for segment in self.split_segments(raw_text, day_selector):
            try:
                report.records.append(self.parse_segment(segment, day_selector, weekly_theme))
            except ParseAmbiguity as e:
                logger.warning(f"세그먼트 제외: {e}")
                report.dropped.append(e)
        return report

    def parse(
        self,
        raw_text: str,
        day_selector: str,
        weekly_theme: Optional[str] = None,
    ) -> List[StoryRecord]:
        """생성 텍스트 → 스토리 레코드 목록 (요일 없는 주간 세그먼트는 경고 후 제외)"""
        return self.parse_report(raw_text, day_selector, weekly_theme).records


story_parser = StoryParser()
