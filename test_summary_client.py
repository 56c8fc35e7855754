"""요약 클라이언트 테스트 (genai.Client 모킹)

재시도 횟수, 503 즉시 포기, 타임아웃 전달, 설정 값 사용 확인
"""

from unittest.mock import MagicMock, patch
from tenacity import wait_none
from novel_ai_client.ai.summary_client import SummaryClient
from novel_ai_client.config.loader import get_config


def make_client(side_effect, max_retries=3):
    """API 키 확인을 건너뛴 클라이언트 + generate_content 모킹"""
    client = SummaryClient(model="test-model", rate_limit=6000, max_retries=max_retries,
                           timeout=30, retry_wait=wait_none())
    client.client = MagicMock()
    client.client.models.generate_content.side_effect = side_effect
    client._initialized = True
    return client


def make_response(text):
    response = MagicMock()
    response.text = text
    return response


def test_retries_until_success():
    """실패 2번 후 성공 → 3번 호출"""
    client = make_client([RuntimeError("boom"), RuntimeError("boom"), make_response("  요약  ")])
    assert client.generate("프롬프트", "시스템") == "요약"
    assert client.client.models.generate_content.call_count == 3
    print("✅ retries until success")


def test_max_retries_from_argument():
    """max_retries 만큼만 시도하고 None"""
    client = make_client([RuntimeError("boom")] * 5, max_retries=2)
    assert client.generate("프롬프트") is None
    assert client.client.models.generate_content.call_count == 2

    single = make_client([RuntimeError("boom"), make_response("요약")], max_retries=1)
    assert single.generate("프롬프트") is None
    assert single.client.models.generate_content.call_count == 1
    print("✅ max retries")


def test_overloaded_skips_retries():
    client = make_client([RuntimeError("503 UNAVAILABLE: Overloaded"), make_response("요약")])
    assert client.generate("프롬프트") is None
    assert client.client.models.generate_content.call_count == 1


def test_generation_parameters_passed():
    client = make_client([make_response("요약")])
    client.generate("프롬프트", "시스템", temperature=0.3, max_output_tokens=100)
    kwargs = client.client.models.generate_content.call_args.kwargs
    assert kwargs["model"] == "test-model"
    assert kwargs["contents"] == "프롬프트"
    assert kwargs["config"].temperature == 0.3
    assert kwargs["config"].max_output_tokens == 100
    assert kwargs["config"].system_instruction == "시스템"


def test_timeout_passed_to_client():
    """타임아웃(초)은 HttpOptions 밀리초로 전달"""
    client = SummaryClient(model="test-model", rate_limit=60, api_key="key", max_retries=2, timeout=45)
    with patch("novel_ai_client.ai.summary_client.genai.Client") as client_cls:
        client._ensure_initialized()
    kwargs = client_cls.call_args.kwargs
    assert kwargs["api_key"] == "key"
    assert kwargs["http_options"].timeout == 45000
    print("✅ timeout passed")


def test_defaults_from_config():
    """인자가 없으면 config.yml summary 섹션 값 사용"""
    summary_config = get_config().summary
    client = SummaryClient(api_key="key")
    assert client.model_name == summary_config.model
    assert client.rate_limit == summary_config.rate_limit
    assert client.max_retries == summary_config.max_retries
    assert client.timeout == summary_config.timeout


def main():
    """테스트 실행"""
    print("=" * 50)
    print("Summary Client Tests")
    print("=" * 50)
    test_retries_until_success()
    test_max_retries_from_argument()
    test_overloaded_skips_retries()
    test_generation_parameters_passed()
    test_timeout_passed_to_client()
    test_defaults_from_config()
    print("\n✅ All summary client tests passed!")


if __name__ == "__main__":
    main()
