"""테스트용 메모리 저장소

RemoteStore와 같은 메서드를 제공하며 서버와 같은 레코드 형태를 최신순으로 반환한다.
서버 측 중복 판정은 하지 않는다 (클라이언트 중복 방지를 검증하기 위해).
"""

from datetime import datetime
from typing import Any, Dict, List
from novel_ai_client.core.fingerprint import Fingerprint
from novel_ai_client.store.records import AttributeRecord, DataRecord
from novel_ai_client.store.remote_store import RemoteStoreError


class InMemoryStore:
    def __init__(self):
        self.items: List[Dict[str, Any]] = []
        self.writes: List[Dict[str, Any]] = []
        self.queries: List[Fingerprint] = []
        self.fail_writes = False
        self.fail_queries = False

    def _attr_fp(self, item) -> Fingerprint:
        attribute = item["attribute"]
        return Fingerprint.from_values(attribute["bitMax"], attribute["bitMin"])

    def list_attributes(self) -> List[AttributeRecord]:
        seen = {}
        for item in self.items:
            attribute = item["attribute"]
            seen.setdefault(attribute["text"], attribute)
        return [AttributeRecord.from_json(a) for a in seen.values()]

    def query_data(self, fingerprint: Fingerprint, limit: int = 100) -> List[DataRecord]:
        if self.fail_queries:
            raise RemoteStoreError("query failed", 500)
        self.queries.append(fingerprint)
        matched = [item for item in reversed(self.items) if self._attr_fp(item) == fingerprint]
        return [DataRecord.from_json(item) for item in matched[:limit]]

    def write_record(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if self.fail_writes:
            raise RemoteStoreError("HTTP 500: disk full", 500)
        self.writes.append(payload)
        item = {
            "timestamp": datetime.now().isoformat(),
            "s": payload["text"],
            "max": payload["dataBitMax"],
            "min": payload["dataBitMin"],
            "attribute": {
                "text": payload["attributeText"],
                "bitMax": payload["attributeBitMax"],
                "bitMin": payload["attributeBitMin"],
            },
            "data": {
                "text": payload["text"],
                "bitMax": payload["dataBitMax"],
                "bitMin": payload["dataBitMin"],
            },
            "novel": {"title": payload.get("novelTitle")},
        }
        if payload.get("chapter"):
            item["chapter"] = dict(payload["chapter"])
        self.items.append(item)
        return {"ok": True, "record": item}

    def delete_data(self, attribute_fp, data_fp, data_text=None) -> int:
        before = len(self.items)
        self.items = [
            item for item in self.items
            if not (self._attr_fp(item) == attribute_fp
                    and Fingerprint.from_values(item["max"], item["min"]) == data_fp
                    and (data_text is None or item["s"] == data_text))
        ]
        return before - len(self.items)

    def delete_attribute(self, attribute_fp) -> int:
        before = len(self.items)
        self.items = [item for item in self.items if self._attr_fp(item) != attribute_fp]
        return before - len(self.items)

    def data_texts(self, attribute_text: str) -> List[str]:
        return [item["s"] for item in self.items if item["attribute"]["text"] == attribute_text]
