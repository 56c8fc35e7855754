"""BIT 지문 엔진

텍스트 → (bit_max, bit_min) 두 개의 실수 쌍.
속성 경로와 데이터 텍스트의 식별 키이자 유사도 검색용 좌표로 쓰인다.
암호학적 해시가 아니므로 서로 다른 텍스트가 같은 지문을 가질 수 있다.
"""

import asyncio
import math
from bisect import bisect_left
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from novel_ai_client.utils.logger import get_logger

logger = get_logger(__name__)

BIT_COUNT = 50
BIT_BASE_VALUE = 5.5
BIT_DEFAULT_PREFIX = "안 녕 한 국 인 터 넷 . 한 국"
BIT_LIMIT = 100.0

# (시작, 끝) 코드 포인트 → 언어 접두값
LANGUAGE_RANGES: List[Tuple[int, int, int]] = [
    (0xAC00, 0xD7AF, 1000000),  # 한글
    (0x3040, 0x309F, 2000000),  # 히라가나
    (0x30A0, 0x30FF, 3000000),  # 가타카나
    (0x4E00, 0x9FFF, 4000000),  # 한자
    (0x0410, 0x044F, 5000000),  # 키릴
    (0x0041, 0x007A, 6000000),  # 라틴
    (0x0590, 0x05FF, 7000000),  # 히브리
    (0x00C0, 0x00FD, 8000000),  # 라틴-1
    (0x0E00, 0x0E7F, 9000000),  # 태국
]


@dataclass(frozen=True)
class Fingerprint:
    """텍스트 지문 (중복 판정은 정확한 수치 일치)"""
    bit_max: float
    bit_min: float

    def distance(self, other: "Fingerprint") -> Tuple[float, float]:
        """성분별 절대 거리"""
        return abs(self.bit_max - other.bit_max), abs(self.bit_min - other.bit_min)

    def to_params(self) -> Dict[str, float]:
        """조회용 쿼리 파라미터"""
        return {"bitMax": self.bit_max, "bitMin": self.bit_min}

    @classmethod
    def from_values(cls, bit_max, bit_min) -> Optional["Fingerprint"]:
        """서버 응답 값에서 생성 (숫자가 아니거나 무한대면 None)"""
        try:
            bit_max = float(bit_max)
            bit_min = float(bit_min)
        except (TypeError, ValueError):
            return None
        if not (math.isfinite(bit_max) and math.isfinite(bit_min)):
            return None
        return cls(bit_max, bit_min)


def word_nb_unicode_format(text: str = "") -> List[int]:
    """텍스트를 도메인 접두어와 결합한 뒤 문자별 수치 배열로 변환

    Args:
        text: 원본 텍스트

    Returns:
        (언어 접두값 + 코드 포인트) 리스트
    """
    domain = f"{BIT_DEFAULT_PREFIX}:{text}" if text else BIT_DEFAULT_PREFIX
    values = []
    for char in domain:
        code_point = ord(char)
        prefix = 0
        for start, end, lang_prefix in LANGUAGE_RANGES:
            if start <= code_point <= end:
                prefix = lang_prefix
                break
        values.append(prefix + code_point)
    return values


def calculate_bit(nb: List[float], bit: float = BIT_BASE_VALUE, reverse: bool = False) -> float:
    """BIT 윈도우 변환

    값 범위를 (BIT_COUNT × 길이) 개의 구간으로 나누고 각 값이 처음 속하는
    구간의 가중치를 누적한다. reverse=True면 가중치 벡터를 뒤집는다.

    Args:
        nb: 수치 배열
        bit: 기준 값
        reverse: 가중치 역순 여부 (bit_min 계산용)

    Returns:
        누적 값 (무한대/NaN일 수 있음)
    """
    length = len(nb)
    if length < 2:
        return bit / 100

    hi = max(nb)
    lo = min(nb)
    denom = (BIT_COUNT * length - 1) or 1
    neg_inc = (abs(lo) if lo < 0 else 0) / denom
    pos_inc = (hi if hi > 0 else 0) / denom

    b50: List[float] = []
    b100: List[float] = []
    weights: List[float] = []
    count = 0
    for value in nb:
        inc = neg_inc if value < 0 else pos_inc
        for _ in range(BIT_COUNT):
            a50 = lo + inc * (count + 1)
            a100 = (count + 1) * bit / (BIT_COUNT * length)
            b50.append(a50 - inc * 2)
            b100.append(a50 + inc)
            weights.append(a100 / (length - 1))
            count += 1

    if reverse:
        weights.reverse()

    # 부호가 섞이지 않으면 구간 경계가 단조 증가하므로 이진 탐색
    monotonic = lo >= 0 or hi < 0
    total = 0.0
    for value in nb:
        if monotonic:
            a = bisect_left(b100, value)
            if a < len(b100) and b50[a] <= value:
                total += weights[a]
            continue
        for a in range(len(weights)):
            if b50[a] <= value <= b100[a]:
                total += weights[a]
                break

    if length == 2:
        return bit - total
    return total


def _valid(value: float) -> bool:
    return math.isfinite(value) and -BIT_LIMIT <= value <= BIT_LIMIT


class FingerprintEngine:
    """텍스트 지문 계산기 (순수 함수 래퍼, 내부 상태 없음)"""

    def __init__(self, bit: float = BIT_BASE_VALUE):
        self.bit = bit

    def fingerprint(self, text: Optional[str]) -> Optional[Fingerprint]:
        """텍스트 지문 계산

        Args:
            text: 대상 텍스트 (앞뒤 공백은 호출자가 정리)

        Returns:
            Fingerprint, 빈 텍스트이거나 결과가 유효 범위를 벗어나면 None
        """
        if not text or not text.strip():
            return None

        nb = word_nb_unicode_format(text)
        bit_max = calculate_bit(nb, self.bit, reverse=False)
        bit_min = calculate_bit(nb, self.bit, reverse=True)

        if not (_valid(bit_max) and _valid(bit_min)):
            logger.warning(f"⚠️ 지문 계산 결과가 유효하지 않음: max={bit_max}, min={bit_min} (len={len(text)})")
            return None
        return Fingerprint(bit_max, bit_min)

    async def fingerprint_async(self, text: Optional[str], executor: Optional[Executor] = None) -> Optional[Fingerprint]:
        """백그라운드 실행기에서 지문 계산 (요청마다 독립, 배압 없음)"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(executor, self.fingerprint, text)


_engine = FingerprintEngine()


def fingerprint(text: Optional[str]) -> Optional[Fingerprint]:
    """모듈 수준 단축 함수"""
    return _engine.fingerprint(text)
