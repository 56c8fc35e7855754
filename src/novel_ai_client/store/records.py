"""원격 저장소 레코드 모델

서버 JSON 응답을 dataclass로 변환한다.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from novel_ai_client.core.fingerprint import Fingerprint
from novel_ai_client.core.path_model import ChapterRef, default_chapter_title


@dataclass
class AttributeRecord:
    """속성 레코드 (경로 + 지문)"""
    path: str
    fingerprint: Optional[Fingerprint]
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, item: Dict[str, Any]) -> "AttributeRecord":
        path = str(item.get("text") or "").strip()
        fp = Fingerprint.from_values(item.get("bitMax"), item.get("bitMin"))
        extra = {k: v for k, v in item.items() if k not in ("text", "bitMax", "bitMin")}
        return cls(path=path, fingerprint=fp, extra=extra)


@dataclass
class DataRecord:
    """데이터 레코드 (하나의 속성에 종속, 지문으로 역참조)"""
    text: str
    fingerprint: Optional[Fingerprint]
    attribute_text: str
    attribute_fingerprint: Optional[Fingerprint]
    chapter: Optional[ChapterRef] = None
    novel_title: Optional[str] = None
    timestamp: Optional[str] = None

    @classmethod
    def from_json(cls, item: Dict[str, Any]) -> "DataRecord":
        """서버 항목 변환

        데이터 텍스트는 s → text → data.text 순서로 찾는다.
        """
        data = item.get("data") or {}
        attribute = item.get("attribute") or {}
        novel = item.get("novel") or {}
        chapter_json = item.get("chapter") or {}

        text = item.get("s")
        if text is None:
            text = item.get("text")
        if text is None:
            text = data.get("text")

        data_fp = Fingerprint.from_values(data.get("bitMax", item.get("max")), data.get("bitMin", item.get("min")))
        attr_fp = Fingerprint.from_values(attribute.get("bitMax"), attribute.get("bitMin"))

        chapter = None
        number = chapter_json.get("number")
        if number not in (None, ""):
            number = str(number)
            chapter = ChapterRef(number, chapter_json.get("title") or default_chapter_title(number))

        return cls(
            text=text or "",
            fingerprint=data_fp,
            attribute_text=(attribute.get("text") or "").strip(),
            attribute_fingerprint=attr_fp,
            chapter=chapter,
            novel_title=novel.get("title"),
            timestamp=item.get("timestamp")
        )
