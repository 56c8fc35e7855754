"""속성 경로 모델 / 챕터 파서

"소설 → 챕터 N: 제목 → 속성 → ..." 형태의 계층 문자열을 만들고 해석한다.
경로 문자열이 원본이며 ChapterRef는 매번 경로에서 다시 계산되는 파생 값이다.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Union
from novel_ai_client.utils.logger import get_logger

logger = get_logger(__name__)

PATH_SEPARATOR = " → "
CHAPTER_WORD = "챕터"
STRUCTURE_ATTRIBUTE = "챕터 구성"
PAST_SUMMARY_ATTRIBUTE = "과거 줄거리"

_SPLIT_RE = re.compile(r"\s*→\s*")

# 엄격한 문법: "챕터" 공백+ 숫자 (":" 제목)?  (세그먼트 전체와 일치해야 함)
_STRICT_CHAPTER_RE = re.compile(r"^챕터\s+(\d+)(?:\s*[:：]\s*(.*))?$")
# 느슨한 규칙: 세그먼트 안 어디서든 "챕터N" (공백 없음 허용)
_LOOSE_CHAPTER_RE = re.compile(r"챕터\s*(\d+)(?:\s*[:：]\s*(.+))?")
_PLACEHOLDER_RE = re.compile(r"^제\s*\d+\s*장$")


def default_chapter_title(number: Union[str, int]) -> str:
    """기본 챕터 제목 (제N장)"""
    return f"제{number}장"


def is_placeholder_title(title: Optional[str]) -> bool:
    """제목이 없거나 '제N장' 자리표시자인지 확인"""
    if not title or not title.strip():
        return True
    return bool(_PLACEHOLDER_RE.match(title.strip()))


def merge_title(existing: Optional[str], incoming: Optional[str]) -> Optional[str]:
    """제목 병합: 기존 제목이 우선, 단 자리표시자면 실제 제목으로 교체"""
    if is_placeholder_title(existing) and not is_placeholder_title(incoming):
        return incoming.strip()
    return existing if existing else incoming


@dataclass(frozen=True)
class ChapterRef:
    """챕터 참조 (번호는 정수 문자열)"""
    number: str
    title: str

    @classmethod
    def default(cls, number: Union[str, int]) -> "ChapterRef":
        return cls(str(number), default_chapter_title(number))

    @property
    def label(self) -> str:
        """경로 세그먼트 표기 ("챕터 N: 제목")"""
        return f"{CHAPTER_WORD} {self.number}: {self.title}"

    @property
    def key(self) -> str:
        return chapter_key(self.number)

    @property
    def has_real_title(self) -> bool:
        return not is_placeholder_title(self.title)


@dataclass
class ParsedPath:
    """경로 해석 결과"""
    novel: str
    chapter: Optional[ChapterRef] = None
    attributes: List[str] = field(default_factory=list)

    @property
    def scene(self) -> Optional[str]:
        """마지막 속성 세그먼트 (장면 이름)"""
        return self.attributes[-1] if self.attributes else None


@dataclass
class NormalizedAttribute:
    """속성 입력 정규화 결과"""
    attribute: str
    full_path: str
    multiline: bool = False


def chapter_key(number: Union[str, int]) -> str:
    return f"{CHAPTER_WORD} {number}"


def split_path(path: Optional[str]) -> List[str]:
    """경로를 세그먼트로 분리 (빈 세그먼트 제거)"""
    if not path:
        return []
    return [part.strip() for part in _SPLIT_RE.split(path.strip()) if part.strip()]


def build_path(novel: str, chapter: Union[ChapterRef, str, None] = None, attribute: Optional[str] = None) -> str:
    """세그먼트를 구분자로 결합 (빈 세그먼트는 생략)

    Args:
        novel: 소설 제목
        chapter: ChapterRef 또는 이미 만들어진 챕터 세그먼트
        attribute: 속성 이름 (하위 경로 포함 가능)

    Returns:
        속성 경로 문자열

    Example:
        >>> build_path("다크 판타지", ChapterRef("3", "제3장"), "등장인물")
        '다크 판타지 → 챕터 3: 제3장 → 등장인물'
    """
    chapter_segment = chapter.label if isinstance(chapter, ChapterRef) else chapter
    segments = [(s or "").strip() for s in (novel, chapter_segment, attribute)]
    return PATH_SEPARATOR.join(s for s in segments if s)


def _to_ref(number: str, title: Optional[str]) -> ChapterRef:
    number = str(int(number))
    title = (title or "").strip()
    return ChapterRef(number, title if title else default_chapter_title(number))


def parse_chapter(segment: Optional[str]) -> Optional[ChapterRef]:
    """엄격한 문법으로 챕터 세그먼트 해석

    Args:
        segment: 경로 세그먼트 하나

    Returns:
        ChapterRef, 챕터 세그먼트가 아니면 None

    Example:
        >>> parse_chapter("챕터 2")
        ChapterRef(number='2', title='제2장')
    """
    if not segment:
        return None
    match = _STRICT_CHAPTER_RE.match(segment.strip())
    if not match:
        return None
    return _to_ref(match.group(1), match.group(2))


def extract_chapter_from_path(path: Optional[str]) -> Optional[ChapterRef]:
    """경로에서 챕터 정보 추출

    1차: 소설 제목 바로 다음 세그먼트를 엄격한 문법으로 해석.
    2차: 나머지 세그먼트를 순서대로 엄격한 문법으로 해석.
    3차: 그래도 없으면 소설 제목을 제외한 세그먼트를 느슨한 규칙으로 검사.
    엄격한 문법에 맞는 세그먼트가 하나라도 있으면 느슨한 규칙은 쓰지 않는다.
    """
    parts = split_path(path)
    if len(parts) < 2:
        return None

    for segment in parts[1:]:
        strict = parse_chapter(segment)
        if strict:
            return strict

    for segment in parts[1:]:
        match = _LOOSE_CHAPTER_RE.search(segment)
        if match:
            ref = _to_ref(match.group(1), match.group(2))
            logger.warning(f"⚠️ 챕터 보조 파싱 사용: '{segment}' → {ref.label} (path={path})")
            return ref
    return None


def parse_path(path: Optional[str]) -> Optional[ParsedPath]:
    """경로 전체 해석 (소설 / 챕터 / 하위 속성)"""
    parts = split_path(path)
    if not parts:
        return None

    chapter = parse_chapter(parts[1]) if len(parts) > 1 else None
    attributes = parts[2:] if chapter else parts[1:]
    return ParsedPath(novel=parts[0], chapter=chapter, attributes=attributes)


def strip_novel_prefix(text: str, novel: str) -> str:
    """속성 입력 앞에 반복된 소설 제목 접두어 제거"""
    text = (text or "").strip()
    novel = (novel or "").strip()
    if not novel:
        return text
    prefix_re = re.compile(rf"^(?:{re.escape(novel)}\s*→\s*)+")
    text = prefix_re.sub("", text).strip()
    if text == novel:
        return ""
    return text


def normalize_attribute_input(raw: Optional[str], novel: str) -> NormalizedAttribute:
    """속성 입력 정규화

    속성은 경로 세그먼트 하나를 뜻하므로 여러 줄이면 첫 번째 비어 있지 않은
    줄만 사용한다. 첫 줄이 소설 제목뿐이면 다음 줄을 사용한다.

    Args:
        raw: 사용자가 입력한 속성 텍스트
        novel: 소설 제목

    Returns:
        NormalizedAttribute (attribute가 비어 있으면 저장 불가)
    """
    lines = [line.strip() for line in (raw or "").splitlines() if line.strip()]
    novel = (novel or "").strip()
    if not lines:
        return NormalizedAttribute(attribute="", full_path=novel)

    attribute = strip_novel_prefix(lines[0], novel)
    if not attribute and len(lines) > 1:
        attribute = strip_novel_prefix(lines[1], novel)

    full_path = build_path(novel, attribute=attribute) if attribute else novel
    return NormalizedAttribute(attribute=attribute, full_path=full_path, multiline=len(lines) > 1)
