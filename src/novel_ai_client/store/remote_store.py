"""원격 속성/데이터 저장소 클라이언트 (HTTP + JSON)

지문으로 키잉되는 불투명한 키-값 서비스.
속성 목록 조회, 지문 기준 데이터 조회, 레코드 저장, 데이터/속성 삭제
"""

from typing import Any, Dict, List, Optional
from urllib.parse import quote
import requests
from novel_ai_client.core.fingerprint import Fingerprint
from novel_ai_client.store.records import AttributeRecord, DataRecord
from novel_ai_client.utils.logger import get_logger
from novel_ai_client.utils.text_cleaner import truncate

logger = get_logger(__name__)

MAX_QUERY_LIMIT = 1000


class RemoteStoreError(Exception):
    """저장소 요청 실패 (전송 오류, 2xx 외 응답, ok=false 응답)"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = truncate(message)
        self.status_code = status_code
        super().__init__(self.message)


class RemoteStore:
    """원격 저장소 클라이언트 (requests 기반, 동기)"""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[int] = None,
                 session: Optional[requests.Session] = None):
        """
        Args:
            base_url: 서버 주소 (없으면 설정 파일 값)
            timeout: 요청 타임아웃 (초)
            session: 재사용할 requests.Session (테스트에서 주입)
        """
        if base_url is None or timeout is None:
            from novel_ai_client.config.loader import get_config
            store_config = get_config().store
            base_url = base_url or store_config.base_url
            timeout = timeout or store_config.timeout

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        logger.debug(f"RemoteStore created: {self.base_url} (timeout={self.timeout}s)")

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        """요청 + 응답 검증

        Raises:
            RemoteStoreError: 전송 실패, 2xx 외 상태, ok=false 본문
        """
        url = self._url(path)
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"❌ {method} {path} 전송 실패: {e}")
            raise RemoteStoreError(f"전송 실패: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if not response.ok:
            message = self._error_message(body) or response.text or f"HTTP {response.status_code}"
            raise RemoteStoreError(f"HTTP {response.status_code}: {message}", response.status_code)

        if not isinstance(body, dict):
            raise RemoteStoreError(f"JSON 응답이 아님: {truncate(response.text)}", response.status_code)

        if body.get("ok") is False:
            raise RemoteStoreError(self._error_message(body) or "ok=false", response.status_code)

        return body

    @staticmethod
    def _error_message(body: Any) -> Optional[str]:
        if isinstance(body, dict):
            return body.get("error") or body.get("message")
        return None

    def list_attributes(self) -> List[AttributeRecord]:
        """모든 속성 경로 + 지문 조회"""
        body = self._request("GET", "/api/attributes/all")
        records = [AttributeRecord.from_json(item) for item in body.get("attributes") or []]
        records = [r for r in records if r.path]
        logger.debug(f"Attributes fetched: {len(records)}")
        return records

    def query_data(self, fingerprint: Fingerprint, limit: int = 100) -> List[DataRecord]:
        """속성 지문으로 데이터 조회 (최신순)

        Args:
            fingerprint: 속성 경로 지문
            limit: 최대 개수 (1~1000)

        Returns:
            DataRecord 리스트
        """
        params = fingerprint.to_params()
        params["limit"] = max(1, min(int(limit), MAX_QUERY_LIMIT))
        body = self._request("GET", "/api/attributes/data", params=params)
        return [DataRecord.from_json(item) for item in body.get("items") or []]

    def write_record(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """레코드 저장

        Returns:
            서버 응답 본문 (서버 측 중복이면 duplicate=True)
        """
        body = self._request("POST", "/api/attributes/data", json=payload)
        if body.get("duplicate"):
            logger.info(f"서버 측 중복 판정: {body.get('message', '')}")
        return body

    def delete_data(self, attribute_fp: Fingerprint, data_fp: Fingerprint, data_text: Optional[str] = None) -> int:
        """데이터 레코드 삭제

        Args:
            attribute_fp: 속성 지문
            data_fp: 데이터 지문
            data_text: 지문 충돌 구분용 원문

        Returns:
            삭제된 개수
        """
        payload: Dict[str, Any] = {
            "attributeBitMax": attribute_fp.bit_max,
            "attributeBitMin": attribute_fp.bit_min,
            "dataBitMax": data_fp.bit_max,
            "dataBitMin": data_fp.bit_min,
        }
        if data_text is not None:
            # 서버가 decodeURIComponent로 복원
            payload["dataText"] = quote(data_text, safe="!~*'()")
        body = self._request("POST", "/api/attributes/data/delete", json=payload)
        return int(body.get("deletedCount") or 0)

    def delete_attribute(self, attribute_fp: Fingerprint) -> int:
        """속성 삭제 (소속 데이터 포함)"""
        payload = {"attributeBitMax": attribute_fp.bit_max, "attributeBitMin": attribute_fp.bit_min}
        body = self._request("POST", "/api/attributes/delete", json=payload)
        return int(body.get("deletedCount") or 0)
