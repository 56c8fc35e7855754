"""텍스트 정리 유틸리티

요약 응답 정리 (메타 설명/마크다운 제거), 오류 메시지 자르기
"""

import re
from typing import List, Optional, Pattern
from novel_ai_client.utils.logger import get_logger

logger = get_logger(__name__)

MAX_ERROR_MESSAGE = 200

# 줄 끝까지 지우는 메타 설명 문구
_META_PHRASES = [
    r"이렇게\s+수정해\s+보았습니다",
    r"이\s+장면은",
    r"이렇게\s+입력되는데",
    r"이\s+부분만",
    r"필요한\s+부분이\s+더\s+있다면",
    r"말씀해\s+주세요",
    r"작용할\s+것이다",
    r"요소로\s+작용할",
    r"고민하게\s+만드는",
    r"이어갈지를",
    r"앞으로의\s+여정을",
    r"내면의\s+갈등과",
    r"중요한\s+전환점이\s+된다",
    r"독자에게\s+강한\s+감정적\s+여운을",
    r"이야기의\s+깊이를\s+더하며",
    r"복잡한\s+감정을\s+통해",
]

_META_PATTERNS: List[Pattern] = [re.compile(p + r"[^\n]*", re.IGNORECASE) for p in _META_PHRASES]

# 프롬프트 지시문이 응답에 섞여 나온 경우
_INSTRUCTION_PATTERNS: List[Pattern] = [
    re.compile(r'먼저\s*"[^"]*"\s*섹션을[^\n]*', re.IGNORECASE),
    re.compile(r'그\s+다음\s*"[^"]*"\s*섹션을[^\n]*', re.IGNORECASE),
    re.compile(r"작성하고[^\n]*"),
    re.compile(r"작성해주세요[^\n]*"),
]

# 응답 끝에 붙는 해설 (끝까지 제거)
_TAIL_PATTERNS: List[Pattern] = [
    re.compile(r"이\s+장면은.*$", re.DOTALL),
    re.compile(r"이렇게\s+수정해.*$", re.DOTALL),
    re.compile(r"필요한\s+부분이.*$", re.DOTALL),
    re.compile(r"작용할\s+것이다.*$", re.DOTALL),
    re.compile(r"요소로\s+작용할.*$", re.DOTALL),
]


def clean_summary_text(text: Optional[str]) -> str:
    """요약 응답에서 메타 설명과 마크다운 흔적 제거

    Args:
        text: 요약 서비스 원본 응답

    Returns:
        정리된 텍스트 (None/빈 값이면 빈 문자열)

    Examples:
        >>> clean_summary_text("**1. 이야기 끝나는 장면**\\n그녀는 문을 닫았다.")
        '1. 이야기 끝나는 장면\\n그녀는 문을 닫았다.'
    """
    if not text:
        return ""

    original_length = len(text)

    # 1. 굵게 표시 기호 제거
    text = text.replace("*", "")

    # 2. // 주석 제거
    text = re.sub(r"//[^\n]*", "", text)

    # 3. 메타 설명 문구 제거
    for pattern in _META_PATTERNS:
        text = pattern.sub("", text)

    # 4. 마크다운 헤더 제거
    text = re.sub(r"^#{1,6}\s+", "", text, flags=re.MULTILINE)

    # 5. 지시문 제거
    for pattern in _INSTRUCTION_PATTERNS:
        text = pattern.sub("", text)

    # 6. 연속 빈 줄 정리
    text = re.sub(r"\n{3,}", "\n\n", text).strip()

    # 7. 끝부분 해설 제거
    for pattern in _TAIL_PATTERNS:
        text = pattern.sub("", text).strip()

    logger.debug(f"Summary cleaned: {original_length} → {len(text)} chars")
    return text.strip()


def truncate(text: Optional[str], limit: int = MAX_ERROR_MESSAGE) -> str:
    """긴 메시지 자르기 (서버 오류 메시지 표시용)"""
    if not text:
        return ""
    text = str(text)
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
