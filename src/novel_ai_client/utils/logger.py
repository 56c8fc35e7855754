"""전역 로깅 설정 모듈

모든 모듈에서 `from novel_ai_client.utils.logger import get_logger` 로 사용.
임포트 시 기본값(파일 DEBUG / 콘솔 INFO)으로 초기화되고,
CLI는 config.yml의 logging 섹션으로 다시 설정한다.
"""

import logging
import sys
from pathlib import Path
from datetime import datetime
from typing import Optional, Union

# 로그 디렉토리
LOG_DIR = Path("data/logs")

# 로그 포맷
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
CONSOLE_FORMAT = "%(levelname)-8s | %(name)s | %(message)s"

# 요청마다 DEBUG를 쏟아내는 라이브러리
NOISY_LOGGERS = ("urllib3", "httpx", "httpcore", "google_genai")


def log_file_path(log_dir: Union[str, Path] = LOG_DIR) -> Path:
    """날짜별 로그 파일 경로 (data/logs/YYYY-MM-DD.log)"""
    return Path(log_dir) / f"{datetime.now().strftime('%Y-%m-%d')}.log"


def setup_logging(level: str = "DEBUG", console_level: str = "INFO",
                  log_dir: Union[str, Path] = LOG_DIR) -> Path:
    """전역 로깅 설정

    저장 코디네이터, 챕터 관리자, 원격 저장소가 모두 같은 루트 로거를 공유한다.

    Args:
        level: 파일 로그 레벨 (DEBUG/INFO/WARNING/ERROR)
        console_level: 콘솔 로그 레벨
        log_dir: 로그 디렉토리

    Returns:
        로그 파일 경로
    """
    log_file = log_file_path(log_dir)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # 기존 핸들러 제거 (재설정 시 중복 출력 방지)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(getattr(logging, level.upper(), logging.DEBUG))
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
    root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, console_level.upper(), logging.INFO))
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root_logger.addHandler(console_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.debug(f"Logging initialized: file={log_file}, level={level}, console={console_level}")
    return log_file


def set_levels(level: str, console_level: str) -> None:
    """핸들러를 다시 만들지 않고 레벨만 변경"""
    for handler in logging.getLogger().handlers:
        if isinstance(handler, logging.FileHandler):
            handler.setLevel(getattr(logging, level.upper(), logging.DEBUG))
        elif isinstance(handler, logging.StreamHandler):
            handler.setLevel(getattr(logging, console_level.upper(), logging.INFO))


def configure_from(logging_config, verbose: bool = False) -> None:
    """LoggingConfig 값 적용 (verbose면 콘솔도 DEBUG)"""
    set_levels(logging_config.file_level, "DEBUG" if verbose else logging_config.console_level)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """로거 인스턴스 반환

    Args:
        name: 로거 이름 (보통 __name__ 사용)

    Example:
        >>> from novel_ai_client.utils.logger import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.warning("⚠️ 속성 텍스트가 비어 있습니다")
    """
    return logging.getLogger(name or __name__)


# 모듈 임포트 시 자동 초기화
setup_logging()
