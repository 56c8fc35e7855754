"""속성 경로 / 챕터 파서 테스트"""

from novel_ai_client.core.path_model import (
    ChapterRef, build_path, default_chapter_title, extract_chapter_from_path,
    is_placeholder_title, merge_title, normalize_attribute_input, parse_chapter,
    parse_path, split_path, strip_novel_prefix
)


def test_parse_chapter_default_title():
    """'챕터 2' → 번호 2, 제목 '제2장'"""
    ref = parse_chapter("챕터 2")
    assert ref == ChapterRef("2", "제2장")
    assert ref.label == "챕터 2: 제2장"
    print("✅ parse_chapter default title")


def test_parse_chapter_with_title():
    assert parse_chapter("챕터 3: 흑막의 등장") == ChapterRef("3", "흑막의 등장")
    assert parse_chapter("챕터 03:") == ChapterRef("3", "제3장")
    assert parse_chapter("챕터 5：붉은 달") == ChapterRef("5", "붉은 달")


def test_parse_chapter_rejects_other_segments():
    """엄격한 문법: 세그먼트 전체가 챕터 형식이어야 함"""
    assert parse_chapter("등장인물") is None
    assert parse_chapter("챕터") is None
    assert parse_chapter("챕터2") is None
    assert parse_chapter("메모 챕터 2") is None
    assert parse_chapter("") is None
    assert parse_chapter(None) is None


def test_build_and_parse_roundtrip():
    """build_path → parse_path 복원"""
    ref = ChapterRef("12", "붉은 달")
    path = build_path("다크 판타지", ref, "등장인물")
    assert path == "다크 판타지 → 챕터 12: 붉은 달 → 등장인물"

    parsed = parse_path(path)
    assert parsed.novel == "다크 판타지"
    assert parsed.chapter == ref
    assert parsed.attributes == ["등장인물"]
    assert parsed.scene == "등장인물"
    print("✅ build/parse roundtrip")


def test_build_path_skips_empty_segments():
    assert build_path("다크 판타지") == "다크 판타지"
    assert build_path("다크 판타지", None, "챕터 구성") == "다크 판타지 → 챕터 구성"
    assert build_path("다크 판타지", "", "  ") == "다크 판타지"
    assert build_path("다크 판타지", "챕터 1: 제1장") == "다크 판타지 → 챕터 1: 제1장"


def test_split_path_tolerates_spacing():
    assert split_path("a→b  →  c") == ["a", "b", "c"]
    assert split_path("a → → b") == ["a", "b"]
    assert split_path("") == []
    assert split_path(None) == []


def test_parse_path_without_chapter():
    parsed = parse_path("다크 판타지 → 챕터 구성")
    assert parsed.chapter is None
    assert parsed.attributes == ["챕터 구성"]
    assert parse_path("") is None


def test_extract_chapter_strict_second_segment():
    """소설 제목 다음 세그먼트가 우선 (뒤쪽 숫자에 걸리지 않음)"""
    ref = extract_chapter_from_path("다크 판타지 → 챕터 1: 제1장 → 챕터 2 관련 메모")
    assert ref.number == "1"
    assert ref.title == "제1장"


def test_extract_chapter_loose_fallback():
    """두 번째 세그먼트가 형식에 맞지 않으면 세그먼트 단위 보조 규칙"""
    ref = extract_chapter_from_path("다크 판타지 → 메모 → 챕터5 정리")
    assert ref.number == "5"
    assert ref.title == "제5장"

    ref = extract_chapter_from_path("다크 판타지 → 설정 챕터7: 결전")
    assert ref == ChapterRef("7", "결전")


def test_extract_chapter_prefers_later_strict_segment():
    """앞 세그먼트에 느슨한 표기가 있어도 뒤쪽의 정식 챕터 세그먼트가 우선"""
    ref = extract_chapter_from_path("다크 판타지 → 메모 챕터1 참고 → 챕터 2: 결전 → 스토리")
    assert ref == ChapterRef("2", "결전")

    ref = extract_chapter_from_path("다크 판타지 → 설정 → 챕터 3 → 등장인물")
    assert ref == ChapterRef("3", "제3장")
    print("✅ later strict segment")


def test_extract_chapter_none():
    assert extract_chapter_from_path("다크 판타지") is None
    assert extract_chapter_from_path("다크 판타지 → 등장인물") is None
    assert extract_chapter_from_path(None) is None


def test_extract_chapter_ignores_novel_title_digits():
    """소설 제목 안의 '챕터N'은 챕터로 보지 않음"""
    assert extract_chapter_from_path("챕터9 이야기 → 등장인물") is None


def test_placeholder_titles():
    assert is_placeholder_title("제3장")
    assert is_placeholder_title("제 3 장")
    assert is_placeholder_title("")
    assert is_placeholder_title(None)
    assert not is_placeholder_title("붉은 달")
    assert default_chapter_title(4) == "제4장"


def test_merge_title():
    """기존 제목 우선, 자리표시자만 실제 제목으로 교체"""
    assert merge_title("제1장", "시작") == "시작"
    assert merge_title("시작", "다른 제목") == "시작"
    assert merge_title("시작", "제1장") == "시작"
    assert merge_title("제1장", "제1장") == "제1장"
    print("✅ merge_title")


def test_strip_novel_prefix():
    assert strip_novel_prefix("다크 판타지 → 등장인물", "다크 판타지") == "등장인물"
    assert strip_novel_prefix("다크 판타지 → 다크 판타지 → 등장인물", "다크 판타지") == "등장인물"
    assert strip_novel_prefix("다크 판타지", "다크 판타지") == ""
    assert strip_novel_prefix("등장인물", "") == "등장인물"


def test_normalize_attribute_multiline():
    """여러 줄 속성 → 첫 줄만 사용"""
    normalized = normalize_attribute_input("등장인물\n배경", "다크 판타지")
    assert normalized.attribute == "등장인물"
    assert normalized.full_path == "다크 판타지 → 등장인물"
    assert normalized.multiline


def test_normalize_attribute_first_line_is_title():
    """첫 줄이 소설 제목뿐이면 다음 줄 사용"""
    normalized = normalize_attribute_input("다크 판타지\n챕터 1: 제1장 → 스토리", "다크 판타지")
    assert normalized.attribute == "챕터 1: 제1장 → 스토리"
    assert normalized.full_path == "다크 판타지 → 챕터 1: 제1장 → 스토리"


def test_normalize_attribute_empty():
    normalized = normalize_attribute_input("  \n ", "다크 판타지")
    assert normalized.attribute == ""
    assert normalized.full_path == "다크 판타지"
    assert not normalized.multiline


def main():
    """테스트 실행"""
    print("=" * 50)
    print("Path Model Tests")
    print("=" * 50)
    test_parse_chapter_default_title()
    test_parse_chapter_with_title()
    test_parse_chapter_rejects_other_segments()
    test_build_and_parse_roundtrip()
    test_build_path_skips_empty_segments()
    test_split_path_tolerates_spacing()
    test_parse_path_without_chapter()
    test_extract_chapter_strict_second_segment()
    test_extract_chapter_loose_fallback()
    test_extract_chapter_prefers_later_strict_segment()
    test_extract_chapter_none()
    test_extract_chapter_ignores_novel_title_digits()
    test_placeholder_titles()
    test_merge_title()
    test_strip_novel_prefix()
    test_normalize_attribute_multiline()
    test_normalize_attribute_first_line_is_title()
    test_normalize_attribute_empty()
    print("\n✅ All path model tests passed!")


if __name__ == "__main__":
    main()
