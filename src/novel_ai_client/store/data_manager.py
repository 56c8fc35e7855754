"""속성/데이터 조회 및 삭제

필터 텍스트로 속성 순위화, 속성별 데이터 목록, 원문 확인 후 삭제
"""

from typing import List, Optional
from novel_ai_client.core.fingerprint import FingerprintEngine
from novel_ai_client.core.similarity import ScoredAttribute, SimilarityScorer, find_similar_attributes
from novel_ai_client.store.records import AttributeRecord, DataRecord
from novel_ai_client.store.remote_store import RemoteStore
from novel_ai_client.utils.logger import get_logger

logger = get_logger(__name__)


class DataManager:
    """원격 저장소 위의 조회/삭제 흐름"""

    def __init__(self, store: RemoteStore, engine: Optional[FingerprintEngine] = None,
                 scorer: Optional[SimilarityScorer] = None, query_limit: int = 100):
        self.store = store
        self.engine = engine or FingerprintEngine()
        self.scorer = scorer or SimilarityScorer(self.engine)
        self.query_limit = query_limit

    def search(self, filter_text: str, keywords=None, require_match: bool = False,
               limit: Optional[int] = None) -> List[ScoredAttribute]:
        """모든 속성을 가져와 필터 텍스트 기준으로 순위화

        Args:
            filter_text: 필터 텍스트 (예: "다크 판타지 → 챕터 1")
            keywords: 추가 검색 키워드 (쉼표 구분)
            require_match: 필터/키워드를 실제로 포함한 속성만 남김
            limit: 최대 개수

        Returns:
            ScoredAttribute 리스트
        """
        attributes = self.store.list_attributes()
        ranked = self.scorer.rank(filter_text, attributes, keywords, require_match=require_match)
        logger.info(f"🔍 속성 검색: '{filter_text}' → {len(ranked)}/{len(attributes)}개")
        return ranked[:limit] if limit else ranked

    def similar(self, text: str, threshold: float = 0.1, limit: int = 10) -> List[ScoredAttribute]:
        """지문 거리 기준 유사 속성"""
        attributes = self.store.list_attributes()
        return find_similar_attributes(text, self.engine.fingerprint(text), attributes, threshold, limit)

    def list_data(self, attribute_path: str, limit: Optional[int] = None) -> List[DataRecord]:
        """속성 경로의 데이터 목록 (최신순, 속성 원문이 다른 충돌 레코드 제외)"""
        fp = self.engine.fingerprint(attribute_path.strip())
        if fp is None:
            logger.warning(f"⚠️ 지문 계산 실패: '{attribute_path}'")
            return []
        items = self.store.query_data(fp, limit or self.query_limit)
        return [i for i in items if not i.attribute_text or i.attribute_text == attribute_path.strip()]

    def find_attribute(self, attribute_path: str) -> Optional[AttributeRecord]:
        attribute_path = attribute_path.strip()
        for record in self.store.list_attributes():
            if record.path == attribute_path:
                return record
        return None

    def delete_data(self, attribute_path: str, data_text: str) -> int:
        """데이터 삭제 (속성 경로 + 데이터 원문이 모두 일치하는 레코드만)

        Returns:
            삭제된 개수 (일치하는 레코드가 없으면 0)
        """
        attribute_path = attribute_path.strip()
        attribute_fp = self.engine.fingerprint(attribute_path)
        if attribute_fp is None:
            logger.warning(f"⚠️ 지문 계산 실패: '{attribute_path}'")
            return 0

        matches = [
            item for item in self.store.query_data(attribute_fp, self.query_limit)
            if item.attribute_text == attribute_path and item.text == data_text
        ]
        if not matches:
            logger.warning(f"⚠️ 삭제할 데이터를 찾을 수 없음: '{attribute_path}'")
            return 0

        data_fp = matches[0].fingerprint or self.engine.fingerprint(data_text)
        if data_fp is None:
            logger.warning(f"⚠️ 데이터 지문이 없어 삭제 불가: '{attribute_path}'")
            return 0

        deleted = self.store.delete_data(attribute_fp, data_fp, data_text)
        logger.info(f"✅ 데이터 삭제: '{attribute_path}' ({deleted}개)")
        return deleted

    def delete_attribute(self, attribute_path: str) -> int:
        """속성 삭제 (목록에 정확히 같은 경로가 있을 때만)"""
        record = self.find_attribute(attribute_path)
        if record is None:
            logger.warning(f"⚠️ 삭제할 속성을 찾을 수 없음: '{attribute_path}'")
            return 0

        fp = record.fingerprint or self.engine.fingerprint(record.path)
        if fp is None:
            return 0
        deleted = self.store.delete_attribute(fp)
        logger.info(f"✅ 속성 삭제: '{record.path}' ({deleted}개)")
        return deleted
