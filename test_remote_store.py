"""원격 저장소 클라이언트 테스트 (requests.Session 모킹)"""

from unittest.mock import MagicMock
import requests
import pytest
from novel_ai_client.core.fingerprint import Fingerprint
from novel_ai_client.store.remote_store import RemoteStore, RemoteStoreError

BASE_URL = "http://store.test"


def make_response(status_code=200, body=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.text = text
    if body is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = body
    return response


def make_store(response=None, error=None):
    session = MagicMock()
    if error is not None:
        session.request.side_effect = error
    else:
        session.request.return_value = response
    return RemoteStore(BASE_URL + "/", timeout=5, session=session), session


def test_list_attributes():
    body = {"ok": True, "attributes": [
        {"text": "다크 판타지 → 등장인물", "bitMax": 1.5, "bitMin": 2.5, "dataCount": 3},
        {"text": "  ", "bitMax": 1, "bitMin": 1},
    ]}
    store, session = make_store(make_response(body=body))
    records = store.list_attributes()

    assert len(records) == 1
    assert records[0].path == "다크 판타지 → 등장인물"
    assert records[0].fingerprint == Fingerprint(1.5, 2.5)
    assert records[0].extra == {"dataCount": 3}
    session.request.assert_called_once_with("GET", BASE_URL + "/api/attributes/all", timeout=5)
    print("✅ list_attributes")


def test_query_data_params_and_records():
    body = {"ok": True, "items": [{
        "timestamp": "2026-01-01T00:00:00",
        "s": "안개가 걷혔다.",
        "max": 3.0, "min": 4.0,
        "attribute": {"text": "다크 판타지 → 챕터 1: 제1장", "bitMax": 1.0, "bitMin": 2.0},
        "chapter": {"number": 1, "title": ""},
        "novel": {"title": "다크 판타지"},
    }]}
    store, session = make_store(make_response(body=body))
    items = store.query_data(Fingerprint(1.0, 2.0), limit=5000)

    _, kwargs = session.request.call_args
    assert kwargs["params"] == {"bitMax": 1.0, "bitMin": 2.0, "limit": 1000}
    item = items[0]
    assert item.text == "안개가 걷혔다."
    assert item.fingerprint == Fingerprint(3.0, 4.0)
    assert item.attribute_text == "다크 판타지 → 챕터 1: 제1장"
    assert item.chapter.number == "1"
    assert item.chapter.title == "제1장"
    assert item.novel_title == "다크 판타지"


def test_write_record_duplicate_flag():
    store, session = make_store(make_response(body={"ok": True, "duplicate": True, "message": "exists"}))
    body = store.write_record({"attributeText": "a", "text": "b"})
    assert body["duplicate"] is True
    args, kwargs = session.request.call_args
    assert args == ("POST", BASE_URL + "/api/attributes/data")
    assert kwargs["json"] == {"attributeText": "a", "text": "b"}


def test_delete_data_encodes_text():
    """삭제 요청의 데이터 원문은 URI 인코딩"""
    store, session = make_store(make_response(body={"ok": True, "deletedCount": 2}))
    deleted = store.delete_data(Fingerprint(1.0, 2.0), Fingerprint(3.0, 4.0), "문 열림 (1)")

    assert deleted == 2
    payload = session.request.call_args[1]["json"]
    assert payload["dataText"] == "%EB%AC%B8%20%EC%97%B4%EB%A6%BC%20(1)"
    assert payload["attributeBitMax"] == 1.0
    assert payload["dataBitMin"] == 4.0


def test_delete_attribute():
    store, session = make_store(make_response(body={"ok": True, "deletedCount": 5}))
    assert store.delete_attribute(Fingerprint(1.0, 2.0)) == 5
    assert session.request.call_args[0][1] == BASE_URL + "/api/attributes/delete"


def test_http_error_message_truncated():
    store, _ = make_store(make_response(status_code=500, text="x" * 1000))
    with pytest.raises(RemoteStoreError) as excinfo:
        store.list_attributes()
    assert excinfo.value.status_code == 500
    assert len(excinfo.value.message) <= 203
    assert excinfo.value.message.endswith("...")


def test_ok_false_raises():
    store, _ = make_store(make_response(body={"ok": False, "error": "invalid bits"}))
    with pytest.raises(RemoteStoreError) as excinfo:
        store.query_data(Fingerprint(1.0, 2.0))
    assert excinfo.value.message == "invalid bits"


def test_transport_error_raises():
    store, _ = make_store(error=requests.ConnectionError("refused"))
    with pytest.raises(RemoteStoreError) as excinfo:
        store.list_attributes()
    assert "refused" in excinfo.value.message
    assert excinfo.value.status_code is None


def main():
    """테스트 실행"""
    print("=" * 50)
    print("Remote Store Tests")
    print("=" * 50)
    test_list_attributes()
    test_query_data_params_and_records()
    test_write_record_duplicate_flag()
    test_delete_data_encodes_text()
    test_delete_attribute()
    test_http_error_message_truncated()
    test_ok_false_raises()
    test_transport_error_raises()
    print("\n✅ All remote store tests passed!")


if __name__ == "__main__":
    main()
