"""속성/데이터 조회 및 삭제 흐름 테스트"""

from fake_store import InMemoryStore
from novel_ai_client.core.fingerprint import fingerprint
from novel_ai_client.save.coordinator import build_record_payload
from novel_ai_client.store.data_manager import DataManager

NOVEL = "다크 판타지"
EMOTION = f"{NOVEL} → 챕터 1: 제1장 → 감정/분위기"
CHARACTERS = f"{NOVEL} → 등장인물"


def seed(store: InMemoryStore, path: str, text: str) -> None:
    store.write_record(build_record_payload(
        path, fingerprint(path), text, fingerprint(text), NOVEL, fingerprint(NOVEL), None, None
    ))


def seeded_store() -> InMemoryStore:
    store = InMemoryStore()
    seed(store, EMOTION, "긴장감")
    seed(store, EMOTION, "불안")
    seed(store, CHARACTERS, "레아: 기사")
    return store


def test_search_ranks_matching_attribute_first():
    manager = DataManager(seeded_store())
    results = manager.search(NOVEL, "감정")
    assert results[0].path == EMOTION
    assert results[0].score >= 0.85

    strict = manager.search(NOVEL, "감정", require_match=True)
    assert [r.path for r in strict] == [EMOTION]
    assert len(manager.search(NOVEL, limit=1)) == 1
    print("✅ search")


def test_list_data_newest_first():
    manager = DataManager(seeded_store())
    records = manager.list_data(EMOTION)
    assert [r.text for r in records] == ["불안", "긴장감"]
    assert manager.list_data("   ") == []


def test_list_data_skips_fingerprint_collisions():
    """지문이 같아도 속성 원문이 다르면 제외"""
    store = seeded_store()
    # 같은 지문, 다른 속성 원문
    store.write_record({
        **build_record_payload(EMOTION, fingerprint(EMOTION), "충돌", fingerprint("충돌"), NOVEL, None, None, None),
        "attributeText": "다른 경로",
    })
    texts = [r.text for r in DataManager(store).list_data(EMOTION)]
    assert "충돌" not in texts


def test_find_attribute():
    manager = DataManager(seeded_store())
    assert manager.find_attribute(f"  {CHARACTERS} ").path == CHARACTERS
    assert manager.find_attribute("없는 경로") is None


def test_similar_exact_first():
    manager = DataManager(seeded_store())
    results = manager.similar(CHARACTERS)
    assert results[0].path == CHARACTERS
    assert results[0].score == 1.0


def test_delete_data_requires_literal_match():
    """속성 경로 + 데이터 원문이 모두 일치해야 삭제"""
    store = seeded_store()
    manager = DataManager(store)

    assert manager.delete_data(EMOTION, "없는 데이터") == 0
    assert manager.delete_data(EMOTION, "긴장감") == 1
    assert store.data_texts(EMOTION) == ["불안"]
    print("✅ delete_data")


def test_delete_attribute_requires_exact_path():
    store = seeded_store()
    manager = DataManager(store)

    assert manager.delete_attribute(f"{NOVEL} → 등장") == 0
    assert manager.delete_attribute(CHARACTERS) == 1
    assert store.data_texts(CHARACTERS) == []
    assert len(store.data_texts(EMOTION)) == 2


def main():
    """테스트 실행"""
    print("=" * 50)
    print("Data Manager Tests")
    print("=" * 50)
    test_search_ranks_matching_attribute_first()
    test_list_data_newest_first()
    test_list_data_skips_fingerprint_collisions()
    test_find_attribute()
    test_similar_exact_first()
    test_delete_data_requires_literal_match()
    test_delete_attribute_requires_exact_path()
    print("\n✅ All data manager tests passed!")


if __name__ == "__main__":
    main()
