"""챕터 구성 관리

소설별 챕터 목록(장면 포함)을 "챕터 구성" 레코드 + 속성 경로 추론으로 재구성하고,
커서 이동(이전/다음), 새 챕터 생성, 챕터 요약 및 과거 줄거리 저장을 처리한다.
"""

import asyncio
import functools
import json
from concurrent.futures import Executor
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional
from novel_ai_client.chapters.prompt import ChapterMaterial, SYSTEM_MESSAGE, build_summary_prompt
from novel_ai_client.core.fingerprint import FingerprintEngine
from novel_ai_client.core.path_model import (
    PAST_SUMMARY_ATTRIBUTE, PATH_SEPARATOR, STRUCTURE_ATTRIBUTE, ChapterRef,
    build_path, chapter_key, default_chapter_title, merge_title, parse_path, split_path
)
from novel_ai_client.save.coordinator import SaveCoordinator, SaveCoordinatorContext, SaveResult
from novel_ai_client.store.local_cache import InputCache, chapter_count_key, chapter_index_key
from novel_ai_client.store.records import AttributeRecord
from novel_ai_client.store.remote_store import RemoteStoreError
from novel_ai_client.utils.logger import get_logger
from novel_ai_client.utils.text_cleaner import clean_summary_text

logger = get_logger(__name__)

DEFAULT_SCENES = ["배경 설정", "감정/분위기", "테마/주제", "스타일/톤", "주요 사건", "등장인물", "스토리"]
NEW_CHAPTER_SCENES = [PAST_SUMMARY_ATTRIBUTE] + DEFAULT_SCENES
CHARACTER_MARKERS = ("등장인물", "character")
DATA_QUERY_LIMIT = 1000


@dataclass
class Chapter:
    """챕터 (장면 목록 포함)"""
    number: str
    title: str
    scenes: List[str] = field(default_factory=list)

    @property
    def ref(self) -> ChapterRef:
        return ChapterRef(self.number, self.title)

    @property
    def key(self) -> str:
        return chapter_key(self.number)

    @property
    def label(self) -> str:
        return self.ref.label

    def add_scene(self, scene: Optional[str]) -> None:
        scene = (scene or "").strip()
        if scene and scene not in self.scenes:
            self.scenes.append(scene)

    def to_json(self) -> Dict[str, Any]:
        return {"number": self.number, "title": self.title, "scenes": list(self.scenes)}


@dataclass
class Novel:
    """소설 뷰 (저장되지 않는 파생 값)"""
    title: str
    chapters: Dict[str, Chapter] = field(default_factory=dict)

    def ordered(self) -> List[Chapter]:
        return sorted(self.chapters.values(), key=lambda c: int(c.number))

    def add(self, chapter: Chapter) -> None:
        self.chapters[chapter.key] = chapter


def structure_attribute(novel_title: str) -> str:
    """챕터 구성 레코드의 속성 경로"""
    return build_path(novel_title, attribute=STRUCTURE_ATTRIBUTE)


def serialize_structure(chapters: Iterable[Chapter]) -> str:
    return json.dumps({"chapters": [c.to_json() for c in chapters]}, ensure_ascii=False, indent=2)


def parse_structure(text: Optional[str]) -> List[Dict[str, Any]]:
    """챕터 구성 JSON 해석 (형식이 틀리면 빈 리스트)"""
    if not text:
        return []
    try:
        data = json.loads(text)
    except ValueError as e:
        logger.warning(f"⚠️ 챕터 구성 JSON 파싱 실패: {e}")
        return []
    chapters = data.get("chapters") if isinstance(data, dict) else data
    return [c for c in chapters or [] if isinstance(c, dict)]


def merge_chapters(novel_title: str, structure: List[Dict[str, Any]], paths: Iterable[str]) -> List[Chapter]:
    """챕터 구성 레코드 + 속성 경로 추론 병합

    제목은 기존 값이 우선이며 '제N장' 자리표시자만 실제 제목으로 교체된다.

    Args:
        novel_title: 소설 제목
        structure: 챕터 구성 레코드의 chapters 항목
        paths: 모든 속성 경로

    Returns:
        번호순 Chapter 리스트
    """
    novel = Novel(novel_title)

    for item in structure:
        number = str(item.get("number", "")).strip()
        if not number.isdigit():
            continue
        number = str(int(number))
        title = (item.get("title") or "").strip() or default_chapter_title(number)
        chapter = novel.chapters.get(chapter_key(number))
        if chapter is None:
            chapter = Chapter(number, title)
            novel.add(chapter)
        else:
            chapter.title = merge_title(chapter.title, title)
        for scene in item.get("scenes") or []:
            chapter.add_scene(str(scene))

    skip = structure_attribute(novel_title)
    for path in paths:
        if path == skip:
            continue
        parsed = parse_path(path)
        if parsed is None or parsed.novel != novel_title or parsed.chapter is None:
            continue
        ref = parsed.chapter
        chapter = novel.chapters.get(ref.key)
        if chapter is None:
            chapter = Chapter(ref.number, ref.title)
            novel.add(chapter)
        else:
            chapter.title = merge_title(chapter.title, ref.title)
        chapter.add_scene(parsed.scene)

    return novel.ordered()


class ChapterStructureManager:
    """소설별 챕터 목록 + 커서"""

    def __init__(self, store, coordinator: SaveCoordinator, cache: Optional[InputCache] = None,
                 summary_client=None, engine: Optional[FingerprintEngine] = None,
                 executor: Optional[Executor] = None,
                 temperature: float = 0.7, max_output_tokens: int = 2500,
                 structure_coordinator: Optional[SaveCoordinator] = None):
        """
        Args:
            store: RemoteStore 호환 객체
            coordinator: 사용자 입력(과거 줄거리 포함) 저장 코디네이터
            cache: 커서 저장용 로컬 캐시 (없으면 메모리)
            summary_client: generate(prompt, system_message, temperature, max_output_tokens) 제공 객체
            engine: 지문 엔진
            executor: HTTP/요약 호출 실행기
            structure_coordinator: 챕터 구성 레코드 전용 코디네이터 (없으면 별도 상태로 생성)
        """
        self.store = store
        self.coordinator = coordinator
        self.cache = cache
        self.summary_client = summary_client
        self.engine = engine or FingerprintEngine()
        self.executor = executor
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        # 구성 저장은 사용자 입력 저장과 단일 진행 가드를 공유하지 않음
        self.structure_coordinator = structure_coordinator or SaveCoordinator(
            store,
            engine=self.engine,
            context=SaveCoordinatorContext(),
            verify_delay=coordinator.verify_delay,
            query_limit=coordinator.query_limit,
            verify_limit=coordinator.verify_limit,
            executor=executor,
            sleep=coordinator.sleep
        )
        self._structure_lock: Optional[asyncio.Lock] = None
        self._novels: Dict[str, Novel] = {}
        self._cursors: Dict[str, int] = {}

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, functools.partial(fn, *args))

    async def _list_attributes(self) -> List[AttributeRecord]:
        try:
            return await self._run(self.store.list_attributes)
        except RemoteStoreError as e:
            logger.warning(f"⚠️ 속성 목록 조회 실패: {e.message}")
            return []

    async def _query_texts(self, record: AttributeRecord) -> List[str]:
        """속성 하나의 데이터 텍스트 (속성 원문이 다른 충돌 레코드 제외)"""
        fp = record.fingerprint or self.engine.fingerprint(record.path)
        if fp is None:
            return []
        try:
            items = await self._run(self.store.query_data, fp, DATA_QUERY_LIMIT)
        except RemoteStoreError as e:
            logger.warning(f"⚠️ 데이터 조회 실패 ({record.path}): {e.message}")
            return []
        return [i.text for i in items if i.text and (not i.attribute_text or i.attribute_text == record.path)]

    # ------------------------------------------------------------------
    # 구성

    async def _load_structure(self, novel_title: str) -> List[Dict[str, Any]]:
        fp = self.engine.fingerprint(structure_attribute(novel_title))
        if fp is None:
            return []
        try:
            items = await self._run(self.store.query_data, fp, 1)
        except RemoteStoreError as e:
            logger.warning(f"⚠️ 챕터 구성 조회 실패: {e.message}")
            return []
        items = [i for i in items if not i.attribute_text or i.attribute_text == structure_attribute(novel_title)]
        return parse_structure(items[0].text) if items else []

    async def load(self, novel_title: str) -> Novel:
        """챕터 목록 재구성 (없으면 기본 챕터 생성 후 저장)"""
        novel_title = novel_title.strip()
        structure = await self._load_structure(novel_title)
        attributes = await self._list_attributes()
        chapters = merge_chapters(novel_title, structure, (a.path for a in attributes))

        if not chapters:
            chapters = [Chapter("1", default_chapter_title(1), list(DEFAULT_SCENES))]
            logger.info(f"기본 챕터 생성: {novel_title} → {chapters[0].label}")
            await self.save_structure(novel_title, chapters)

        view = Novel(novel_title)
        for chapter in chapters:
            view.add(chapter)
        self._novels[novel_title] = view
        self._set_count(novel_title, len(chapters))
        logger.info(f"✅ 챕터 목록 로드: {novel_title} ({len(chapters)}개)")
        return view

    async def novel_view(self, novel_title: str) -> Novel:
        view = self._novels.get(novel_title.strip())
        if view is None:
            view = await self.load(novel_title)
        return view

    async def save_structure(self, novel_title: str, chapters: Iterable[Chapter]) -> SaveResult:
        """챕터 구성 레코드 저장

        구성 전용 코디네이터를 거치므로 사용자 입력 커밋이 진행 중이어도 BUSY가 되지 않는다.
        연속 호출은 순서대로 저장된다.
        """
        text = serialize_structure(chapters)
        if self._structure_lock is None:
            self._structure_lock = asyncio.Lock()
        async with self._structure_lock:
            return await self.structure_coordinator.save(novel_title, STRUCTURE_ATTRIBUTE, text)

    async def close(self) -> None:
        """두 코디네이터 종료 (예약된 검증 대기)"""
        await self.coordinator.close()
        await self.structure_coordinator.close()

    # ------------------------------------------------------------------
    # 커서

    def _get_index(self, novel_title: str) -> int:
        if self.cache is not None:
            return self.cache.get_int(chapter_index_key(novel_title), 0)
        return self._cursors.get(novel_title, 0)

    def set_cursor(self, novel_title: str, index: int) -> None:
        if self.cache is not None:
            self.cache.set(chapter_index_key(novel_title), str(index))
        else:
            self._cursors[novel_title] = index

    def _set_count(self, novel_title: str, count: int) -> None:
        if self.cache is not None:
            self.cache.set(chapter_count_key(novel_title), str(count))

    def cursor(self, novel_title: str, count: int) -> int:
        """현재 커서 (범위를 벗어나면 0으로 초기화)"""
        index = self._get_index(novel_title)
        if not 0 <= index < count:
            logger.warning(f"⚠️ 챕터 커서 범위 초과({index}/{count}), 0으로 초기화")
            index = 0
            self.set_cursor(novel_title, index)
        return index

    async def current(self, novel_title: str) -> Optional[Chapter]:
        chapters = (await self.novel_view(novel_title)).ordered()
        if not chapters:
            return None
        return chapters[self.cursor(novel_title, len(chapters))]

    async def prev(self, novel_title: str) -> Optional[Chapter]:
        """이전 챕터 (첫 챕터면 이동 없음)"""
        chapters = (await self.novel_view(novel_title)).ordered()
        if not chapters:
            return None
        index = self.cursor(novel_title, len(chapters))
        if index > 0:
            index -= 1
            self.set_cursor(novel_title, index)
        return chapters[index]

    async def next(self, novel_title: str) -> Chapter:
        """다음 챕터 (마지막이면 새 챕터를 만들어 이동)"""
        view = await self.novel_view(novel_title)
        chapters = view.ordered()
        index = self.cursor(novel_title, len(chapters))
        if index < len(chapters) - 1:
            index += 1
            self.set_cursor(novel_title, index)
            return chapters[index]

        chapter = await self._append_chapter(view)
        self.set_cursor(novel_title, len(view.chapters) - 1)
        return chapter

    async def _append_chapter(self, view: Novel) -> Chapter:
        chapters = view.ordered()
        last_number = max((int(c.number) for c in chapters), default=0)
        number = str(last_number + 1)
        chapter = Chapter(number, default_chapter_title(number), list(NEW_CHAPTER_SCENES))
        view.add(chapter)
        self._set_count(view.title, len(view.chapters))

        result = await self.save_structure(view.title, view.ordered())
        if not result.ok:
            logger.warning(f"⚠️ 챕터 구성 저장 실패 ({result.status.value}): {result.message}")
        logger.info(f"✅ 새 챕터 생성: {view.title} → {chapter.label}")
        return chapter

    # ------------------------------------------------------------------
    # 요약

    async def summary(self, novel_title: str) -> Optional[str]:
        """현재 챕터 요약 생성 (저장하지 않음)

        Returns:
            정리된 요약 텍스트, 재료가 없거나 요약 실패 시 None
        """
        if self.summary_client is None:
            logger.warning("⚠️ 요약 클라이언트가 설정되지 않았습니다")
            return None

        novel_title = novel_title.strip()
        chapter = await self.current(novel_title)
        if chapter is None:
            return None

        attributes = await self._list_attributes()
        materials: List[ChapterMaterial] = []
        characters: List[str] = []

        for record in attributes:
            parsed = parse_path(record.path)
            if parsed is None or parsed.novel != novel_title:
                continue

            lower = record.path.lower()
            if any(marker in lower for marker in CHARACTER_MARKERS):
                for text in await self._query_texts(record):
                    if text not in characters:
                        characters.append(text)

            if parsed.chapter is None or parsed.chapter.number != chapter.number:
                continue
            if PAST_SUMMARY_ATTRIBUTE in record.path:
                continue
            texts = await self._query_texts(record)
            if texts:
                parts = split_path(record.path)
                attribute_part = PATH_SEPARATOR.join(parts[2:]) or parts[1]
                materials.append(ChapterMaterial(chapter.label, attribute_part, texts))

        if not materials:
            logger.info(f"요약할 데이터가 없습니다: {novel_title} → {chapter.label}")
            return None

        logger.info(f"요약 재료: {len(materials)}개 속성, 등장인물 {len(characters)}개")
        prompt = build_summary_prompt(novel_title, chapter.label, materials, characters)
        raw = await self._run(self.summary_client.generate, prompt, SYSTEM_MESSAGE,
                              self.temperature, self.max_output_tokens)
        if not raw:
            return None

        text = clean_summary_text(raw)
        logger.info(f"✅ 요약 생성 완료: {len(text)}자")
        return text or None

    async def write_past_summary(self, novel_title: str, summary_text: str) -> Optional[SaveResult]:
        """요약을 다음 챕터의 '과거 줄거리' 속성으로 저장 (입력 경로를 통해)"""
        novel_title = novel_title.strip()
        if not summary_text or not summary_text.strip():
            logger.warning("⚠️ 저장할 요약이 비어 있습니다")
            return None

        view = await self.novel_view(novel_title)
        chapters = view.ordered()
        index = self.cursor(novel_title, len(chapters))
        if index + 1 < len(chapters):
            target = chapters[index + 1]
        else:
            target = await self._append_chapter(view)

        attribute = build_path(novel_title, target.ref, PAST_SUMMARY_ATTRIBUTE)
        self.coordinator.reset_last_saved()
        result = await self.coordinator.submit(novel_title, attribute, summary_text)
        if result is not None:
            logger.info(f"과거 줄거리 저장 결과: {result.status.value} ({attribute})")
        return result
