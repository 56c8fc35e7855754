"""중복 방지 자동 저장 코디네이터

입력 변경 → (디바운스) → 정규화 → 지문 계산 → 중복 확인 → 저장 → 사후 검증.
저장 대상 하나당 코디네이터 하나, 동시에 진행되는 커밋은 최대 1개.
어떤 실패도 코디네이터 밖으로 예외를 던지지 않고 SaveResult로 돌아온다.
"""

import asyncio
import functools
from concurrent.futures import Executor
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple
from novel_ai_client.core.fingerprint import Fingerprint, FingerprintEngine
from novel_ai_client.core.path_model import (
    ChapterRef, build_path, extract_chapter_from_path, normalize_attribute_input
)
from novel_ai_client.store.local_cache import (
    InputCache, KEY_ATTRIBUTE_TEXT, KEY_DATA_TEXT, KEY_NOVEL_TITLE
)
from novel_ai_client.store.remote_store import RemoteStoreError
from novel_ai_client.utils.logger import get_logger
from novel_ai_client.utils.text_cleaner import truncate

logger = get_logger(__name__)

FIELD_NOVEL = "novel"
FIELD_ATTRIBUTE = "attribute"
FIELD_DATA = "data"


class SaveState(Enum):
    """저장 상태 머신"""
    IDLE = "idle"
    PENDING_CHANGE = "pending_change"
    SETTLED = "settled"
    COMMITTING = "committing"


class ChangePhase(IntEnum):
    """변경 감지 스위치 (0 비교 → 1 스냅샷 → 2 정규화 → 3 실행 → 0)"""
    COMPARE = 0
    SNAPSHOT = 1
    NORMALIZE = 2
    ACT = 3


class SaveStatus(Enum):
    """커밋 결과 태그"""
    SAVED = "saved"
    DUPLICATE = "duplicate"
    UNCHANGED = "unchanged"
    BUSY = "busy"
    INPUT_INCOMPLETE = "input_incomplete"
    FINGERPRINT_UNAVAILABLE = "fingerprint_unavailable"
    REMOTE_WRITE_FAILURE = "remote_write_failure"


@dataclass
class SaveResult:
    """커밋 결과"""
    status: SaveStatus
    message: str = ""
    attribute_path: str = ""
    data_text: str = ""
    chapter: Optional[ChapterRef] = None
    record: Optional[Dict[str, Any]] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status in (SaveStatus.SAVED, SaveStatus.DUPLICATE, SaveStatus.UNCHANGED)


@dataclass(frozen=True)
class InputSnapshot:
    novel_title: str
    attribute_text: str
    data_text: str


@dataclass
class SaveCoordinatorContext:
    """저장 대상 하나의 상태 (입력 버퍼 + 마지막 저장 기록 + 진행 플래그)"""
    novel_title: str = ""
    attribute_text: str = ""
    data_text: str = ""
    last_saved_attribute: Optional[str] = None
    last_saved_data: Optional[str] = None
    last_observed: Optional[InputSnapshot] = None
    is_saving: bool = False
    state: SaveState = SaveState.IDLE
    phase: ChangePhase = ChangePhase.COMPARE
    last_result: Optional[SaveResult] = None
    suggested_filter: Optional[str] = None

    def snapshot(self) -> InputSnapshot:
        return InputSnapshot(self.novel_title, self.attribute_text, self.data_text)

    def mark_saved(self, attribute_path: str, data_text: str) -> None:
        self.last_saved_attribute = attribute_path
        self.last_saved_data = data_text

    def reset_last_saved(self) -> None:
        self.last_saved_attribute = None
        self.last_saved_data = None

    def is_last_saved(self, attribute_path: str, data_text: str) -> bool:
        return self.last_saved_attribute == attribute_path and self.last_saved_data == data_text


class SaveCoordinator:
    """디바운스 + 단일 진행 + 중복 방지 저장"""

    def __init__(self, store, engine: Optional[FingerprintEngine] = None,
                 cache: Optional[InputCache] = None,
                 context: Optional[SaveCoordinatorContext] = None,
                 quiet_period: float = 1.0,
                 attribute_quiet_period: float = 0.3,
                 verify_delay: float = 1.0,
                 query_limit: int = 100,
                 verify_limit: int = 10,
                 executor: Optional[Executor] = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        """
        Args:
            store: RemoteStore 호환 객체 (query_data / write_record)
            engine: 지문 엔진
            cache: 로컬 입력 캐시 (없으면 미러링하지 않음)
            context: 상태 객체 (없으면 새로 생성)
            quiet_period: 데이터/제목 입력 디바운스 (초)
            attribute_quiet_period: 속성 입력 디바운스 (초)
            verify_delay: 저장 후 검증까지 대기 (초)
            query_limit: 중복 확인 조회 개수
            verify_limit: 사후 검증 조회 개수
            executor: 지문 계산/HTTP 호출용 실행기 (None이면 기본 스레드 풀)
            sleep: 대기 함수 (테스트에서 교체)
        """
        self.store = store
        self.engine = engine or FingerprintEngine()
        self.cache = cache
        self.context = context or SaveCoordinatorContext()
        self.quiet_periods = {
            FIELD_NOVEL: quiet_period,
            FIELD_DATA: quiet_period,
            FIELD_ATTRIBUTE: attribute_quiet_period,
        }
        self.verify_delay = verify_delay
        self.query_limit = query_limit
        self.verify_limit = verify_limit
        self.executor = executor
        self.sleep = sleep

        self._changes: Optional[asyncio.Queue] = None
        self._watcher: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()
        self.on_result: Optional[Callable[[SaveResult], None]] = None

    @classmethod
    def from_config(cls, store, cache: Optional[InputCache] = None, **kwargs) -> "SaveCoordinator":
        """설정 파일 값으로 생성"""
        from novel_ai_client.config.loader import get_config
        config = get_config()
        return cls(
            store,
            cache=cache,
            quiet_period=config.save.quiet_period_ms / 1000,
            attribute_quiet_period=config.save.attribute_quiet_period_ms / 1000,
            verify_delay=config.save.verify_delay_ms / 1000,
            query_limit=config.store.query_limit,
            verify_limit=config.store.verify_limit,
            **kwargs
        )

    # ------------------------------------------------------------------
    # 입력

    def set_novel_title(self, text: str) -> None:
        self._set_input(FIELD_NOVEL, text)

    def set_attribute_text(self, text: str) -> None:
        self._set_input(FIELD_ATTRIBUTE, text)

    def set_data_text(self, text: str) -> None:
        self._set_input(FIELD_DATA, text)

    def _set_input(self, name: str, text: Optional[str], notify: bool = True) -> None:
        text = text or ""
        ctx = self.context
        if name == FIELD_NOVEL:
            ctx.novel_title = text
            self._mirror(KEY_NOVEL_TITLE, text)
        elif name == FIELD_ATTRIBUTE:
            ctx.attribute_text = text
            self._mirror(KEY_ATTRIBUTE_TEXT, text)
        else:
            ctx.data_text = text
            self._mirror(KEY_DATA_TEXT, text)

        if notify and self._changes is not None:
            self._changes.put_nowait(name)

    def _mirror(self, key: str, value: str) -> None:
        if self.cache is None:
            return
        try:
            self.cache.set(key, value)
        except Exception as e:
            logger.warning(f"⚠️ 입력 캐시 저장 실패 ({key}): {e}")

    def restore_inputs(self) -> InputSnapshot:
        """로컬 캐시에서 저장되지 않은 입력 복원 (변경 알림 없음)"""
        ctx = self.context
        if self.cache is not None:
            ctx.novel_title = self.cache.get(KEY_NOVEL_TITLE, "") or ""
            ctx.attribute_text = self.cache.get(KEY_ATTRIBUTE_TEXT, "") or ""
            ctx.data_text = self.cache.get(KEY_DATA_TEXT, "") or ""
            logger.info(f"입력 복원: novel='{ctx.novel_title}', attribute='{ctx.attribute_text}', "
                        f"data={len(ctx.data_text)} chars")
        return ctx.snapshot()

    def reset_last_saved(self) -> None:
        self.context.reset_last_saved()

    # ------------------------------------------------------------------
    # 변경 감지 (채널 + 디바운스)

    def start(self) -> None:
        """변경 감시 태스크 시작 (실행 중인 이벤트 루프 필요)"""
        if self._watcher is not None and not self._watcher.done():
            return
        self._changes = asyncio.Queue()
        self._watcher = asyncio.get_running_loop().create_task(self._watch())
        logger.debug("Save watcher started")

    async def _watch(self) -> None:
        while True:
            name = await self._changes.get()
            self.context.state = SaveState.PENDING_CHANGE
            quiet = self.quiet_periods.get(name, 1.0)

            # 조용한 구간이 이어질 때까지 대기 (새 변경이 오면 타이머 재시작)
            while True:
                try:
                    name = await asyncio.wait_for(self._changes.get(), timeout=quiet)
                    quiet = max(quiet, self.quiet_periods.get(name, 1.0))
                except asyncio.TimeoutError:
                    break

            result = await self.flush()
            if result is not None and result.status == SaveStatus.BUSY:
                # 진행 중이면 다음 자연스러운 트리거로 재시도
                self.context.last_observed = None

    async def flush(self) -> Optional[SaveResult]:
        """현재 입력에 대해 스위치를 한 바퀴 실행

        Returns:
            커밋을 실행했으면 SaveResult, 변경이 없으면 None
        """
        ctx = self.context
        warnings: List[str] = []
        ctx.phase = ChangePhase.COMPARE
        while True:
            if ctx.phase == ChangePhase.COMPARE:
                if ctx.snapshot() == ctx.last_observed:
                    ctx.state = SaveState.IDLE
                    return None
                ctx.phase = ChangePhase.SNAPSHOT
            elif ctx.phase == ChangePhase.SNAPSHOT:
                ctx.last_observed = ctx.snapshot()
                ctx.last_result = None
                ctx.phase = ChangePhase.NORMALIZE
            elif ctx.phase == ChangePhase.NORMALIZE:
                warnings = self._normalize_inputs()
                ctx.state = SaveState.SETTLED
                ctx.phase = ChangePhase.ACT
            else:
                result = await self.commit()
                result.warnings[:0] = warnings
                ctx.phase = ChangePhase.COMPARE
                return result

    def _collapse_attribute(self, raw: str, novel: str) -> Tuple[str, List[str]]:
        """여러 줄 속성 입력을 한 줄로 (경고 메시지 포함)"""
        normalized = normalize_attribute_input(raw, novel)
        if not normalized.multiline:
            return raw, []
        first_line = next(line.strip() for line in raw.splitlines() if line.strip())
        chosen = normalized.attribute or first_line
        message = f"속성은 한 줄만 사용됩니다: '{chosen}'"
        logger.warning(f"⚠️ {message}")
        return chosen, [message]

    def _normalize_inputs(self) -> List[str]:
        """입력 버퍼의 속성을 한 줄로 교체"""
        ctx = self.context
        collapsed, warnings = self._collapse_attribute(ctx.attribute_text, ctx.novel_title.strip())
        if warnings:
            self._set_input(FIELD_ATTRIBUTE, collapsed, notify=False)
            ctx.last_observed = ctx.snapshot()
        return warnings

    async def submit(self, novel_title: str, attribute_text: str, data_text: str) -> Optional[SaveResult]:
        """입력을 설정하고 곧바로 스위치 실행 (디바운스 생략)"""
        self._set_input(FIELD_NOVEL, novel_title, notify=False)
        self._set_input(FIELD_ATTRIBUTE, attribute_text, notify=False)
        self._set_input(FIELD_DATA, data_text, notify=False)
        self.context.last_observed = None
        return await self.flush()

    # ------------------------------------------------------------------
    # 커밋

    async def commit(self) -> SaveResult:
        """현재 입력 버퍼를 저장"""
        ctx = self.context
        return await self._guarded(
            lambda: self._commit_steps(ctx.novel_title, ctx.attribute_text, ctx.data_text, from_input=True)
        )

    async def save(self, novel_title: str, attribute_text: str, data_text: str) -> SaveResult:
        """입력 버퍼와 무관한 값 저장 (챕터 구성 레코드 등)"""
        return await self._guarded(
            lambda: self._commit_steps(novel_title, attribute_text, data_text, from_input=False)
        )

    async def _guarded(self, steps: Callable[[], Awaitable[SaveResult]]) -> SaveResult:
        ctx = self.context
        if ctx.is_saving:
            return self._dispatch(SaveResult(SaveStatus.BUSY, "이미 저장 중"))

        ctx.is_saving = True
        ctx.state = SaveState.COMMITTING
        try:
            result = await steps()
        except Exception as e:
            logger.error(f"❌ 저장 처리 중 예외: {e}", exc_info=True)
            result = SaveResult(SaveStatus.REMOTE_WRITE_FAILURE, truncate(str(e)))
        finally:
            ctx.is_saving = False
            ctx.state = SaveState.IDLE
        return self._dispatch(result)

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, functools.partial(fn, *args))

    async def _fingerprint(self, text: str) -> Optional[Fingerprint]:
        return await self.engine.fingerprint_async(text, self.executor)

    async def _commit_steps(self, novel_raw: str, attribute_raw: str, data_raw: str, from_input: bool) -> SaveResult:
        ctx = self.context
        novel = (novel_raw or "").strip()
        # 1. 정규화 (여러 줄 속성 → 한 줄)
        attribute_raw, warnings = self._collapse_attribute(attribute_raw or "", novel)
        if warnings and from_input:
            self._set_input(FIELD_ATTRIBUTE, attribute_raw, notify=False)
        normalized = normalize_attribute_input(attribute_raw, novel)
        data = (data_raw or "").strip()

        # 2. 필수 입력
        if not novel:
            return SaveResult(SaveStatus.INPUT_INCOMPLETE, "소설 제목이 비어 있습니다", warnings=warnings)
        if not normalized.attribute:
            return SaveResult(SaveStatus.INPUT_INCOMPLETE, "속성 텍스트가 비어 있습니다",
                              attribute_path=normalized.full_path, warnings=warnings)

        full_path = normalized.full_path
        if from_input and ctx.is_last_saved(full_path, data):
            return SaveResult(SaveStatus.UNCHANGED, "마지막 저장과 동일", full_path, data, warnings=warnings)

        # 3. 지문
        attribute_fp = await self._fingerprint(full_path)
        data_fp = await self._fingerprint(data) if data else None
        if attribute_fp is None or (data and data_fp is None):
            return SaveResult(SaveStatus.FINGERPRINT_UNAVAILABLE, "지문 계산 실패", full_path, data, warnings=warnings)
        novel_fp = await self._fingerprint(novel)

        # 4. 중복 확인 (속성 텍스트 + 데이터 텍스트 모두 일치)
        try:
            existing = await self._run(self.store.query_data, attribute_fp, self.query_limit)
        except RemoteStoreError as e:
            logger.warning(f"⚠️ 중복 확인 조회 실패, 저장 계속: {e.message}")
            existing = []
        if any(item.attribute_text == full_path and item.text == data for item in existing):
            if from_input:
                ctx.mark_saved(full_path, data)
            return SaveResult(SaveStatus.DUPLICATE, "이미 저장된 속성-데이터 조합", full_path, data, warnings=warnings)

        # 5. 챕터 (커밋할 전체 경로 기준)
        chapter = extract_chapter_from_path(full_path)
        chapter_fp = await self._fingerprint(chapter.label) if chapter else None

        payload = build_record_payload(full_path, attribute_fp, data, data_fp, novel, novel_fp, chapter, chapter_fp)

        # 6. 저장
        try:
            body = await self._run(self.store.write_record, payload)
        except RemoteStoreError as e:
            return SaveResult(SaveStatus.REMOTE_WRITE_FAILURE, e.message, full_path, data, chapter, warnings=warnings)

        if body.get("duplicate"):
            if from_input:
                ctx.mark_saved(full_path, data)
            return SaveResult(SaveStatus.DUPLICATE, body.get("message") or "서버 측 중복", full_path, data,
                              chapter, warnings=warnings)

        # 7. 저장 후 처리 (데이터만 소비, 속성은 유지)
        if from_input:
            ctx.mark_saved(full_path, data)
            # 커밋 중 새로 입력된 데이터는 보존
            if ctx.data_text.strip() == data:
                ctx.data_text = ""
                if self.cache is not None:
                    try:
                        self.cache.remove(KEY_DATA_TEXT)
                    except Exception as e:
                        logger.warning(f"⚠️ 입력 캐시 정리 실패: {e}")
            ctx.last_observed = ctx.snapshot()
            ctx.suggested_filter = build_path(novel, chapter)

        self._schedule(self._verify(full_path, attribute_fp, data, chapter))
        return SaveResult(SaveStatus.SAVED, "저장 완료", full_path, data, chapter, body.get("record"), warnings)

    def _dispatch(self, result: SaveResult) -> SaveResult:
        """결과 태그별 로깅 + 콜백 (커밋 결과가 모이는 단일 지점)"""
        status = result.status
        short = (result.data_text[:30] + "...") if len(result.data_text) > 30 else result.data_text
        if status == SaveStatus.SAVED:
            logger.info(f"✅ 저장 완료: '{result.attribute_path}' ← '{short}'")
        elif status == SaveStatus.DUPLICATE:
            logger.info(f"중복 저장 생략: '{result.attribute_path}' ({result.message})")
        elif status == SaveStatus.UNCHANGED:
            logger.debug(f"변경 없음: '{result.attribute_path}'")
        elif status == SaveStatus.BUSY:
            logger.debug("저장 진행 중, 다음 변경에서 재시도")
        elif status in (SaveStatus.INPUT_INCOMPLETE, SaveStatus.FINGERPRINT_UNAVAILABLE):
            logger.warning(f"⚠️ 저장 건너뜀: {result.message}")
        else:
            logger.error(f"❌ 저장 실패: {result.message}")

        if status != SaveStatus.BUSY:
            self.context.last_result = result
        if self.on_result is not None:
            try:
                self.on_result(result)
            except Exception as e:
                logger.warning(f"⚠️ 결과 콜백 오류: {e}")
        return result

    # ------------------------------------------------------------------
    # 사후 검증

    def _schedule(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _verify(self, full_path: str, attribute_fp: Fingerprint, data: str,
                      chapter: Optional[ChapterRef]) -> List[str]:
        """저장 직후 다시 조회하여 보낸 값과 비교 (불일치는 경고만)"""
        mismatches: List[str] = []
        await self.sleep(self.verify_delay)
        try:
            items = await self._run(self.store.query_data, attribute_fp, self.verify_limit)
        except RemoteStoreError as e:
            logger.warning(f"⚠️ 저장 확인 조회 실패: {e.message}")
            return [f"조회 실패: {e.message}"]

        candidates = [item for item in items if item.text == data]
        if chapter is not None:
            same_chapter = [item for item in candidates if item.chapter and item.chapter.number == chapter.number]
            candidates = same_chapter or candidates
        if not candidates:
            mismatches.append("저장된 데이터를 찾을 수 없음")
        else:
            saved = candidates[0]
            if saved.attribute_text != full_path:
                mismatches.append(f"속성 불일치: '{saved.attribute_text}' != '{full_path}'")
            if chapter is not None and (saved.chapter is None or saved.chapter.number != chapter.number):
                found = saved.chapter.number if saved.chapter else None
                mismatches.append(f"챕터 불일치: {found} != {chapter.number}")

        for mismatch in mismatches:
            logger.warning(f"⚠️ 저장 확인: {mismatch} ({full_path})")
        if not mismatches:
            logger.debug(f"저장 확인 완료: {full_path}")
        return mismatches

    async def drain(self) -> None:
        """예약된 검증 태스크 완료 대기"""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def close(self) -> None:
        """감시 태스크 종료 + 검증 대기"""
        if self._watcher is not None:
            self._watcher.cancel()
            try:
                await self._watcher
            except asyncio.CancelledError:
                pass
            self._watcher = None
        self._changes = None
        await self.drain()


def build_record_payload(full_path: str, attribute_fp: Fingerprint, data: str, data_fp: Optional[Fingerprint],
                         novel: str, novel_fp: Optional[Fingerprint],
                         chapter: Optional[ChapterRef], chapter_fp: Optional[Fingerprint]) -> Dict[str, Any]:
    """저장 요청 본문"""
    payload: Dict[str, Any] = {
        "attributeText": full_path,
        "attributeBitMax": attribute_fp.bit_max,
        "attributeBitMin": attribute_fp.bit_min,
        "text": data,
        "dataBitMax": data_fp.bit_max if data_fp else None,
        "dataBitMin": data_fp.bit_min if data_fp else None,
        "novelTitle": novel,
        "novelTitleBitMax": novel_fp.bit_max if novel_fp else None,
        "novelTitleBitMin": novel_fp.bit_min if novel_fp else None,
    }
    if chapter is not None:
        payload["chapter"] = {"number": chapter.number, "title": chapter.title}
        payload["chapterBitMax"] = chapter_fp.bit_max if chapter_fp else None
        payload["chapterBitMin"] = chapter_fp.bit_min if chapter_fp else None
    return payload
