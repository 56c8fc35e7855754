"""로컬 입력 캐시 (SQLite 키-값)

작업 중인 입력(소설 제목, 속성 경로, 데이터 텍스트)과 챕터 커서를 보관한다.
재시작 시 저장되지 않은 입력을 복원하기 위한 최선 노력 캐시이며
원격 저장소보다 우선하지 않는다.
"""

import sqlite3
from pathlib import Path
from typing import Optional
from novel_ai_client.utils.logger import get_logger

logger = get_logger(__name__)

KEY_NOVEL_TITLE = "novel_ai_input_novel_title"
KEY_ATTRIBUTE_TEXT = "novel_ai_input_attribute_text"
KEY_DATA_TEXT = "novel_ai_input_data_text"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS input_cache (
  key         TEXT PRIMARY KEY,
  value       TEXT NOT NULL,
  updated_at  TEXT DEFAULT (datetime('now','localtime'))
);
"""


def chapter_index_key(novel_title: str) -> str:
    return f"chapterListIndex_{novel_title}"


def chapter_count_key(novel_title: str) -> str:
    return f"chapterListCount_{novel_title}"


class InputCache:
    """SQLite 기반 키-값 캐시"""

    def __init__(self, db_path: Optional[str] = None):
        """
        Args:
            db_path: 데이터베이스 파일 경로 (":memory:" 허용, 없으면 설정 값)
        """
        if db_path is None:
            from novel_ai_client.config.loader import get_config
            db_path = get_config().cache.database

        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn: Optional[sqlite3.Connection] = None
        logger.debug(f"InputCache initialized: {self.db_path}")

    def connect(self) -> sqlite3.Connection:
        """연결 (최초 연결 시 테이블 생성)"""
        if self.conn is None:
            self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
            self.conn.executescript(SCHEMA_SQL)
            logger.debug(f"Connected to cache: {self.db_path}")
        return self.conn

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        row = self.connect().execute("SELECT value FROM input_cache WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else default

    def set(self, key: str, value: Optional[str]) -> None:
        """값 저장 (None이면 삭제)"""
        if value is None:
            self.remove(key)
            return
        conn = self.connect()
        conn.execute(
            "INSERT INTO input_cache (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = datetime('now','localtime')",
            (key, str(value))
        )
        conn.commit()

    def remove(self, key: str) -> None:
        conn = self.connect()
        conn.execute("DELETE FROM input_cache WHERE key = ?", (key,))
        conn.commit()

    def get_int(self, key: str, default: int = 0) -> int:
        value = self.get(key)
        try:
            return int(value) if value is not None else default
        except ValueError:
            logger.warning(f"⚠️ 캐시 값이 정수가 아님: {key}={value!r}")
            return default

    def close(self) -> None:
        """연결 종료"""
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.debug("Cache connection closed")

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
