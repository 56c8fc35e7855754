"""속성 유사도 점수 계산

필터 텍스트 + 추가 키워드로 저장된 속성 경로를 순위화한다.
텍스트 포함 여부가 주 신호이고 지문 근접도는 보조 신호다.
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence
from novel_ai_client.core.fingerprint import Fingerprint, FingerprintEngine
from novel_ai_client.core.path_model import PATH_SEPARATOR, split_path
from novel_ai_client.store.records import AttributeRecord
from novel_ai_client.utils.logger import get_logger

logger = get_logger(__name__)

DISCARD_THRESHOLD = 0.05
FINGERPRINT_NORM = 2.0
COMBO_FLOOR = 0.85


@dataclass
class ScoredAttribute:
    """점수가 매겨진 속성"""
    record: AttributeRecord
    score: float

    @property
    def path(self) -> str:
        return self.record.path


def _clip(value: float) -> float:
    return max(0.0, min(1.0, value))


def parse_keywords(keywords) -> List[str]:
    """쉼표 구분 키워드 → 소문자 리스트 (빈 항목 제거)"""
    if not keywords:
        return []
    if isinstance(keywords, str):
        keywords = keywords.split(",")
    return [k.strip().lower() for k in keywords if k and k.strip()]


def query_text_for_fingerprint(filter_text: str) -> str:
    """지문 계산용 질의 텍스트 (소설 제목 세그먼트 제외)"""
    parts = split_path(filter_text)
    if PATH_SEPARATOR.strip() in (filter_text or "") and len(parts) >= 2:
        return PATH_SEPARATOR.join(parts[1:])
    return (filter_text or "").strip()


def fingerprint_similarity(query: Optional[Fingerprint], candidate: Optional[Fingerprint]) -> float:
    """지문 근접도 (max 60%, min 40%)"""
    if query is None or candidate is None:
        return 0.0
    d_max, d_min = query.distance(candidate)
    sim_max = max(0.0, 1 - d_max / FINGERPRINT_NORM)
    sim_min = max(0.0, 1 - d_min / FINGERPRINT_NORM)
    return _clip(sim_max * 0.6 + sim_min * 0.4)


def text_similarity(query: str, candidate: str) -> float:
    """텍스트 포함 점수

    일치 1.0, 앞부분 일치 0.95, 포함 0.80 + 위치 보너스(최대 0.15),
    그 외에는 질의 단어 중 포함된 비율 × 0.6
    """
    query = (query or "").lower().strip()
    candidate = (candidate or "").lower().strip()
    if not query or not candidate:
        return 0.0
    if candidate == query:
        return 1.0
    if candidate.startswith(query):
        return 0.95
    index = candidate.find(query)
    if index >= 0:
        position_ratio = 1 - index / max(len(candidate), 1)
        return 0.8 + position_ratio * 0.15

    words = query.split()
    if not words:
        return 0.0
    matched = [w for w in words if w in candidate]
    return len(matched) / len(words) * 0.6


def keyword_bonus(keywords: Sequence[str], candidate: str) -> float:
    """키워드 보너스 (경계 일치 0.20, 단순 포함 0.15, 전부 일치 시 +0.15)"""
    candidate = (candidate or "").lower().strip()
    if not keywords or not candidate:
        return 0.0

    bonus = 0.0
    matched = 0
    for keyword in keywords:
        if keyword not in candidate:
            continue
        matched += 1
        if f" {keyword} " in candidate or candidate.startswith(keyword) or candidate.endswith(keyword):
            bonus += 0.2
        else:
            bonus += 0.15
    if matched == len(keywords):
        bonus += 0.15
    return bonus


def combo_bonus(query: str, keywords: Sequence[str], candidate: str) -> float:
    """필터와 모든 키워드가 함께 포함되면 0.5 (앞부분) / 0.35, 아니면 0"""
    query = (query or "").lower().strip()
    candidate = (candidate or "").lower().strip()
    if not query or not keywords or not candidate:
        return 0.0
    if query not in candidate or not all(k in candidate for k in keywords):
        return 0.0
    return 0.5 if candidate.startswith(query) else 0.35


class SimilarityScorer:
    """필터 텍스트 기반 속성 순위화"""

    def __init__(self, engine: Optional[FingerprintEngine] = None):
        self.engine = engine or FingerprintEngine()

    def query_fingerprint(self, filter_text: str) -> Optional[Fingerprint]:
        return self.engine.fingerprint(query_text_for_fingerprint(filter_text))

    def score(self, query: str, candidate_path: str, keywords=None,
              query_fp: Optional[Fingerprint] = None,
              candidate_fp: Optional[Fingerprint] = None) -> float:
        """후보 하나의 최종 점수 [0, 1]

        Args:
            query: 필터 텍스트
            candidate_path: 후보 속성 경로
            keywords: 쉼표 구분 문자열 또는 리스트
            query_fp: 질의 지문 (없으면 계산)
            candidate_fp: 후보 지문 (없으면 계산)
        """
        keyword_list = parse_keywords(keywords)
        if query_fp is None:
            query_fp = self.query_fingerprint(query)
        if candidate_fp is None:
            candidate_fp = self.engine.fingerprint(candidate_path)

        fp_sim = fingerprint_similarity(query_fp, candidate_fp)
        text_sim = text_similarity(query, candidate_path)
        combo = combo_bonus(query, keyword_list, candidate_path)

        if combo > 0:
            return max(COMBO_FLOOR, min(1.0, fp_sim * 0.2 + text_sim * 0.3 + combo * 0.5))

        bonus = keyword_bonus(keyword_list, candidate_path)
        return _clip(fp_sim * 0.3 + text_sim * 0.4 + min(bonus, 0.3) * 0.3)

    def rank(self, query: str, candidates: Iterable[AttributeRecord], keywords=None,
             require_match: bool = False) -> List[ScoredAttribute]:
        """후보 속성 순위화

        Args:
            query: 필터 텍스트
            candidates: 속성 레코드들
            keywords: 추가 검색 키워드
            require_match: True면 필터 텍스트와 키워드 하나 이상을 포함한 후보만 남김

        Returns:
            점수 내림차순 (동점이면 짧은 경로 우선)
        """
        keyword_list = parse_keywords(keywords)
        query_fp = self.query_fingerprint(query) if query and query.strip() else None
        if query and query.strip() and query_fp is None:
            logger.warning(f"⚠️ 필터 지문 계산 실패, 텍스트 점수만 사용: '{query}'")

        scored = []
        for record in candidates:
            if not record.path:
                continue
            value = self.score(query, record.path, keyword_list, query_fp=query_fp,
                               candidate_fp=record.fingerprint or self.engine.fingerprint(record.path))
            if value > DISCARD_THRESHOLD:
                scored.append(ScoredAttribute(record, value))

        if require_match:
            query_lower = (query or "").lower().strip()
            scored = [
                s for s in scored
                if (not keyword_list or any(k in s.path.lower() for k in keyword_list))
                and (not query_lower or query_lower in s.path.lower())
            ]

        scored.sort(key=lambda s: (-s.score, len(s.path)))
        logger.debug(f"Ranked {len(scored)} attributes for '{query}' (keywords={keyword_list})")
        return scored


def distance_similarity(a: Optional[Fingerprint], b: Optional[Fingerprint]) -> float:
    """유클리드 거리 역수 유사도 1 / (1 + d)"""
    if a is None or b is None:
        return 0.0
    d_max, d_min = a.distance(b)
    return 1 / (1 + math.sqrt(d_max * d_max + d_min * d_min))


def find_similar_attributes(search_text: str, search_fp: Optional[Fingerprint],
                            attributes: Iterable[AttributeRecord],
                            threshold: float = 0.1, limit: int = 10) -> List[ScoredAttribute]:
    """지문 기반 유사 속성 검색

    텍스트 완전 일치 1.0, 지문 일치 + 포함 관계 0.99, 지문만 일치 0.95,
    나머지는 거리 역수. 완전 일치 항목이 항상 먼저 온다.
    """
    search_text = (search_text or "").strip()
    results = []
    for record in attributes:
        path = (record.path or "").strip()
        if not path:
            continue
        if path == search_text:
            similarity = 1.0
        elif search_fp is not None and record.fingerprint == search_fp:
            contained = search_text in path or path in search_text
            similarity = 0.99 if contained else 0.95
        else:
            similarity = distance_similarity(search_fp, record.fingerprint)
        if similarity > threshold:
            results.append(ScoredAttribute(record, similarity))

    results.sort(key=lambda s: (s.score != 1.0, -s.score))
    return results[:limit]
