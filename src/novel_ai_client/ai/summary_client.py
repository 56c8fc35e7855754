"""줄거리 요약 클라이언트 (google-genai SDK)

프롬프트 + 생성 파라미터 → 자유 텍스트. 실패하거나 비어 있으면 None.
Rate limiting, 재시도 (횟수/타임아웃은 config.yml summary 섹션)
"""

import os
import time
from typing import Optional
from google import genai
from google.genai import types
from tenacity import Retrying, stop_after_attempt, wait_exponential, retry_if_exception_type
from novel_ai_client.utils.logger import get_logger

logger = get_logger(__name__)


class SummaryClient:
    """요약 생성 클라이언트 (google.genai)"""

    def __init__(self, model: Optional[str] = None, rate_limit: Optional[int] = None,
                 api_key: Optional[str] = None, max_retries: Optional[int] = None,
                 timeout: Optional[int] = None, retry_wait=None):
        """초기화 (API 키 확인은 첫 호출 시)

        Args:
            model: 모델 이름 (없으면 설정 값)
            rate_limit: 분당 호출 수 (없으면 설정 값)
            api_key: API 키 (없으면 GEMINI_API_KEY 환경변수)
            max_retries: 최대 시도 횟수 (없으면 설정 값)
            timeout: 요청 타임아웃 초 (없으면 설정 값)
            retry_wait: tenacity wait 전략 (없으면 지수 백오프 2~10초)
        """
        if model is None or rate_limit is None or max_retries is None or timeout is None:
            from novel_ai_client.config.loader import get_config
            summary_config = get_config().summary
            model = model or summary_config.model
            rate_limit = rate_limit or summary_config.rate_limit
            max_retries = max_retries or summary_config.max_retries
            timeout = timeout or summary_config.timeout

        self.client = None  # genai.Client
        self.model_name = model
        self.api_key = api_key
        self._initialized = False

        # Rate limiting (RPM)
        self.rate_limit = rate_limit
        self.last_call_time = 0.0
        self.min_interval = 60.0 / self.rate_limit

        # 재시도 / 타임아웃
        self.max_retries = max(1, int(max_retries))
        self.timeout = timeout
        self.retry_wait = retry_wait or wait_exponential(multiplier=1, min=2, max=10)

        logger.info(f"SummaryClient created (lazy init): model={self.model_name}, rate_limit={self.rate_limit} RPM, "
                    f"max_retries={self.max_retries}, timeout={self.timeout}s")

    def _ensure_initialized(self):
        """API 사용 전 초기화 확인"""
        if self._initialized:
            return

        api_key = self.api_key or os.getenv("GEMINI_API_KEY")
        if not api_key:
            raise ValueError(
                "❌ GEMINI_API_KEY 환경변수가 설정되지 않았습니다.\n"
                "  PowerShell: $env:GEMINI_API_KEY='your_key'\n"
                "  bash: export GEMINI_API_KEY=your_key"
            )

        try:
            # HttpOptions.timeout 단위는 밀리초
            self.client = genai.Client(
                api_key=api_key,
                http_options=types.HttpOptions(timeout=int(self.timeout * 1000))
            )
            self._initialized = True
            logger.info(f"SummaryClient initialized: model={self.model_name}")
        except Exception as e:
            logger.error(f"Failed to initialize Gemini Client: {e}")
            raise

    def _wait_for_rate_limit(self) -> None:
        """Rate limit 대기"""
        elapsed = time.time() - self.last_call_time
        if elapsed < self.min_interval:
            wait_time = self.min_interval - elapsed
            logger.debug(f"Rate limit: waiting {wait_time:.2f}s")
            time.sleep(wait_time)
        self.last_call_time = time.time()

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.max_retries),
            wait=self.retry_wait,
            retry=retry_if_exception_type(Exception),
            reraise=True
        )

    def _call_api(self, prompt: str, system_message: Optional[str], temperature: float,
                  max_output_tokens: int) -> Optional[str]:
        """API 호출 1회 (재시도는 _retrying)"""
        self._ensure_initialized()
        self._wait_for_rate_limit()

        try:
            response = self.client.models.generate_content(
                model=self.model_name,
                contents=prompt,
                config=types.GenerateContentConfig(
                    system_instruction=system_message,
                    temperature=temperature,
                    max_output_tokens=max_output_tokens,
                )
            )
            return response.text
        except Exception as e:
            # 503 과부하면 재시도하지 않음
            error_str = str(e)
            if "503" in error_str or "Overloaded" in error_str or "High demand" in error_str:
                logger.warning("⚠️ Gemini Server 503/Overloaded. Skipping retries.")
                return None

            logger.error(f"Gemini API error: {e}")
            raise

    def generate(self, prompt: str, system_message: Optional[str] = None,
                 temperature: float = 0.7, max_output_tokens: int = 2500) -> Optional[str]:
        """요약 생성

        Args:
            prompt: 사용자 프롬프트
            system_message: 시스템 지시문
            temperature: 샘플링 온도
            max_output_tokens: 최대 출력 토큰

        Returns:
            응답 텍스트 (실패/빈 응답이면 None)
        """
        try:
            text = self._retrying()(self._call_api, prompt, system_message, temperature, max_output_tokens)
        except Exception as e:
            logger.error(f"❌ 요약 생성 실패 ({self.max_retries}회 시도): {e}")
            return None

        text = (text or "").strip()
        if not text:
            logger.warning("⚠️ 요약 응답이 비어 있습니다")
            return None
        return text
