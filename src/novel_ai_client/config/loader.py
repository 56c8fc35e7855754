"""설정 파일 로더 (YAML)

config.yml을 읽어서 Python 객체로 변환
"""

import yaml
from pathlib import Path
from typing import Optional
from dataclasses import dataclass, asdict
from novel_ai_client.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class StoreConfig:
    """원격 속성/데이터 저장소 설정"""
    base_url: str
    timeout: int
    query_limit: int
    verify_limit: int


@dataclass
class SaveConfig:
    """자동 저장 (디바운스) 설정"""
    quiet_period_ms: int
    attribute_quiet_period_ms: int
    verify_delay_ms: int


@dataclass
class SummaryConfig:
    """줄거리 요약 (Gemini) 설정"""
    model: str
    max_retries: int
    timeout: int
    rate_limit: int
    temperature: float
    max_output_tokens: int


@dataclass
class CacheConfig:
    """로컬 입력 캐시 설정"""
    database: str


@dataclass
class LoggingConfig:
    """로깅 설정"""
    file_level: str
    console_level: str


@dataclass
class Config:
    """전체 설정"""
    store: StoreConfig
    save: SaveConfig
    summary: SummaryConfig
    cache: CacheConfig
    logging: LoggingConfig


def load_config(config_path: str = "config/config.yml") -> Config:
    """config.yml 로드

    Args:
        config_path: 설정 파일 경로

    Returns:
        Config 객체

    Raises:
        FileNotFoundError: 설정 파일이 없을 때
        yaml.YAMLError: YAML 파싱 에러
    """
    path = Path(config_path)
    if not path.exists():
        logger.error(f"Config file not found: {config_path}")
        raise FileNotFoundError(f"Config file not found: {config_path}")

    logger.debug(f"Loading config from: {config_path}")
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    config = Config(
        store=StoreConfig(**data["store"]),
        save=SaveConfig(**data["save"]),
        summary=SummaryConfig(**data["summary"]),
        cache=CacheConfig(**data["cache"]),
        logging=LoggingConfig(**data["logging"])
    )

    logger.info(f"✅ Config loaded: store={config.store.base_url}")
    return config


# 전역 설정 인스턴스 (싱글톤)
_config: Optional[Config] = None


def get_config() -> Config:
    """전역 설정 인스턴스 반환 (싱글톤)

    Returns:
        Config 객체

    Example:
        >>> from novel_ai_client.config.loader import get_config
        >>> config = get_config()
        >>> print(config.store.base_url)
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def save_config(config: Config, config_path: str = "config/config.yml") -> None:
    """config.yml 저장

    Args:
        config: Config 객체
        config_path: 설정 파일 경로
    """
    path = Path(config_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(asdict(config), f, allow_unicode=True, default_flow_style=False, sort_keys=False)

    logger.info(f"✅ Config saved: {config_path}")
