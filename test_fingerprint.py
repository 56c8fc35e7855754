"""BIT 지문 엔진 테스트

결정성, 무효 입력 처리, 언어별 접두값, 이진 탐색 경로와 단순 반복 결과 일치
"""

import asyncio
import math
from novel_ai_client.core.fingerprint import (
    BIT_BASE_VALUE, BIT_COUNT, BIT_DEFAULT_PREFIX, Fingerprint, FingerprintEngine,
    calculate_bit, fingerprint, word_nb_unicode_format
)


def reference_calculate_bit(nb, bit=BIT_BASE_VALUE, reverse=False):
    """단순 반복 버전 (비교 기준)"""
    if len(nb) < 2:
        return bit / 100
    hi, lo = max(nb), min(nb)
    denom = (BIT_COUNT * len(nb) - 1) or 1
    neg_inc = (abs(lo) if lo < 0 else 0) / denom
    pos_inc = (hi if hi > 0 else 0) / denom
    b50, b100, weights = [], [], []
    count = 0
    for value in nb:
        for _ in range(BIT_COUNT):
            inc = neg_inc if value < 0 else pos_inc
            a50 = lo + inc * (count + 1)
            b50.append(a50 - inc * 2)
            b100.append(a50 + inc)
            weights.append((count + 1) * bit / (BIT_COUNT * len(nb)) / (len(nb) - 1))
            count += 1
    if reverse:
        weights.reverse()
    total = 0
    for value in nb:
        for a in range(len(weights)):
            if b50[a] <= value <= b100[a]:
                total += weights[a]
                break
    return bit - total if len(nb) == 2 else total


def test_determinism():
    """같은 텍스트 → 같은 지문"""
    engine = FingerprintEngine()
    for text in ["다크 판타지 → 챕터 1: 제1장", "안개가 걷혔다.", "Hello 世界", "ひらがな カタカナ"]:
        assert engine.fingerprint(text) == engine.fingerprint(text)
        assert fingerprint(text) == engine.fingerprint(text)
    print("✅ determinism")


def test_invalid_input():
    """빈 텍스트/공백은 None"""
    engine = FingerprintEngine()
    assert engine.fingerprint("") is None
    assert engine.fingerprint("   ") is None
    assert engine.fingerprint(None) is None
    print("✅ invalid input")


def test_result_range():
    """결과는 유한하고 ±100 안쪽"""
    for text in ["a", "챕터 구성", "다크 판타지 → 챕터 12: 붉은 달 → 등장인물", "x" * 300]:
        fp = fingerprint(text)
        assert fp is not None
        assert math.isfinite(fp.bit_max) and math.isfinite(fp.bit_min)
        assert -100 <= fp.bit_max <= 100
        assert -100 <= fp.bit_min <= 100
    print("✅ result range")


def test_unicode_format_prefixes():
    """언어별 접두값 + 코드 포인트"""
    values = word_nb_unicode_format("A가")
    prefix_len = len(BIT_DEFAULT_PREFIX) + 1
    assert len(values) == prefix_len + 2
    assert values[-2] == 6000000 + ord("A")
    assert values[-1] == 1000000 + 0xAC00
    # 콜론/공백은 접두값 없음
    assert values[prefix_len - 1] == ord(":")
    assert word_nb_unicode_format("") == word_nb_unicode_format(None or "")
    assert len(word_nb_unicode_format("")) == len(BIT_DEFAULT_PREFIX)
    print("✅ unicode format")


def test_calculate_bit_short_input():
    assert calculate_bit([]) == BIT_BASE_VALUE / 100
    assert calculate_bit([42]) == BIT_BASE_VALUE / 100


def test_calculate_bit_matches_reference():
    """이진 탐색 경로가 단순 반복과 같은 값"""
    samples = [
        word_nb_unicode_format("다크 판타지"),
        word_nb_unicode_format("안개가 걷혔다."),
        word_nb_unicode_format("Mixed 한글 and English 123"),
        [3, 7],
        [5, 5, 5, 5],
        [-4, -2, -9],
        [-3, 0, 4, 8],
    ]
    for nb in samples:
        for reverse in (False, True):
            assert calculate_bit(nb, reverse=reverse) == reference_calculate_bit(nb, reverse=reverse)
    print("✅ calculate_bit matches reference")


def test_fingerprint_async():
    """실행기 위임 결과도 동일"""
    engine = FingerprintEngine()

    async def run():
        return await engine.fingerprint_async("다크 판타지")

    assert asyncio.run(run()) == engine.fingerprint("다크 판타지")


def test_from_values():
    assert Fingerprint.from_values("1.5", 2) == Fingerprint(1.5, 2.0)
    assert Fingerprint.from_values(None, 2) is None
    assert Fingerprint.from_values(float("inf"), 2) is None
    assert Fingerprint(1.0, 2.0).to_params() == {"bitMax": 1.0, "bitMin": 2.0}


def main():
    """테스트 실행"""
    print("=" * 50)
    print("Fingerprint Engine Tests")
    print("=" * 50)
    test_determinism()
    test_invalid_input()
    test_result_range()
    test_unicode_format_prefixes()
    test_calculate_bit_short_input()
    test_calculate_bit_matches_reference()
    test_fingerprint_async()
    test_from_values()
    print("\n✅ All fingerprint tests passed!")


if __name__ == "__main__":
    main()
