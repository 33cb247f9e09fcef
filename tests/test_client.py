import email
import io
import json
from datetime import datetime, timezone

import httpx
import pytest

from manaxpro.client import Client
from manaxpro.transport import APIError
from manaxpro.types import (
    MatchingDirection,
    UploadSpeechAudioRequest,
    UploadSpeechTextRequest,
    parse_timestamp,
)

NOW = "2025-01-01T00:00:00Z"


def make_client(responder, base_url="http://testserver"):
    seen = []

    def handler(request):
        request.read()
        seen.append(request)
        return responder(request)

    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    return Client(base_url, http_client), seen


def json_response(payload, status=200):
    return lambda request: httpx.Response(status, json=payload)


def form_fields(request):
    header = f"Content-Type: {request.headers['Content-Type']}\r\n\r\n".encode()
    message = email.message_from_bytes(header + request.content)
    fields = {}
    for part in message.get_payload():
        name = part.get_param("name", header="content-disposition")
        fields[name] = (part.get_filename(), part.get_payload(decode=True))
    return fields


def test_new_client_valid_base_url():
    client = Client("https://manax.pro/api", None)
    url = client.base_url()
    assert url.scheme == "https"
    assert url.netloc == "manax.pro"


def test_new_client_invalid_base_url():
    with pytest.raises(ValueError):
        Client("://bad-url", None)


def test_create_pro_wallet():
    client, seen = make_client(json_response({
        "proId": "p_123",
        "token": "token",
        "mnemonic24": "word1 word2 ... word24",
        "createdUtc": NOW,
    }))
    resp = client.create_pro_wallet("placeholder")
    request = seen[0]
    assert request.url.path == "/api/crypto/pro-wallet/create"
    assert request.method == "POST"
    assert request.headers["X-Manax-Key"] == "placeholder"
    assert resp.pro_id == "p_123"
    assert resp.token == "token"
    assert resp.created_utc == datetime(2025, 1, 1, tzinfo=timezone.utc)


def test_create_pro_wallet_without_key_sends_no_header():
    client, seen = make_client(json_response({"proId": "p_1"}))
    client.create_pro_wallet("  ")
    assert "X-Manax-Key" not in seen[0].headers
    assert seen[0].headers["Accept"] == "application/json"


def test_verify_pro_wallet():
    client, seen = make_client(json_response({"proId": "p_123", "valid": True}))
    resp = client.verify_pro_wallet("p_123", "token")
    request = seen[0]
    assert request.url.path == "/api/crypto/pro-wallet/verify"
    assert request.url.params["proId"] == "p_123"
    assert request.url.params["token"] == "token"
    assert resp.valid is True


def test_verify_pro_wallet_rejects_empty_arguments():
    client, seen = make_client(json_response({}))
    with pytest.raises(ValueError):
        client.verify_pro_wallet(" ", "token")
    with pytest.raises(ValueError):
        client.verify_pro_wallet("p_123", "")
    assert seen == []


def test_upload_speech_audio():
    client, seen = make_client(json_response({
        "ok": True,
        "existed": False,
        "id": 42,
        "proId": "p_123",
        "sessionId": "s_1",
        "chunkIndex": 0,
        "sampleRate": 16000,
        "storedPath": "speech_store/p_123/s_1/0.raw",
    }))
    client.set_auth("p_123", "token")
    resp = client.upload_speech_audio(UploadSpeechAudioRequest(
        pro_id="p_123",
        session_id="s_1",
        chunk_index=0,
        audio=io.BytesIO(b"dummy"),
        file_name="test.raw",
        sample_rate=16000,
    ))
    request = seen[0]
    assert request.url.path == "/api/speech/upload"
    assert request.method == "POST"
    assert request.headers["Content-Type"].startswith("multipart/form-data;")
    assert request.headers["X-Pro-Id"] == "p_123"
    assert request.headers["X-Pro-Token"] == "token"
    fields = form_fields(request)
    assert fields["proId"][1] == b"p_123"
    assert fields["sessionId"][1] == b"s_1"
    assert fields["chunkIndex"][1] == b"0"
    assert fields["sampleRate"][1] == b"16000"
    assert fields["audio"] == ("test.raw", b"dummy")
    assert resp.id == 42
    assert resp.sample_rate == 16000


def test_upload_speech_audio_defaults_file_name_and_omits_sample_rate():
    client, seen = make_client(json_response({"ok": True}))
    client.upload_speech_audio(UploadSpeechAudioRequest(
        pro_id="p_1", session_id="s_1", chunk_index=3, audio=b"abc",
    ))
    fields = form_fields(seen[0])
    assert fields["audio"] == ("audio", b"abc")
    assert "sampleRate" not in fields
    assert fields["chunkIndex"][1] == b"3"


@pytest.mark.parametrize("kwargs", [
    {"audio": None},
    {"pro_id": " "},
    {"session_id": ""},
    {"chunk_index": -1},
])
def test_upload_speech_audio_validation(kwargs):
    args = {"pro_id": "p_1", "session_id": "s_1", "chunk_index": 0, "audio": b"x"}
    args.update(kwargs)
    client, seen = make_client(json_response({}))
    with pytest.raises(ValueError):
        client.upload_speech_audio(UploadSpeechAudioRequest(**args))
    assert seen == []


def test_upload_speech_text():
    client, seen = make_client(lambda r: httpx.Response(200, content=b'{"ok":true,"id":99}'))
    resp = client.upload_speech_text(UploadSpeechTextRequest(
        pro_id="p_123", session_id="s_1", chunk_index=0, text="hello world",
    ))
    request = seen[0]
    assert request.url.path == "/api/speech/text"
    assert request.headers["Content-Type"] == "application/json"
    assert json.loads(request.content) == {
        "proId": "p_123", "sessionId": "s_1", "chunkIndex": 0, "text": "hello world",
    }
    assert resp.raw == b'{"ok":true,"id":99}'
    assert resp.json() == {"ok": True, "id": 99}


def test_upload_speech_text_rejects_blank_text():
    client, _ = make_client(json_response({}))
    with pytest.raises(ValueError):
        client.upload_speech_text(UploadSpeechTextRequest("p_1", "s_1", 0, "  "))


def test_get_speech_status_by_id():
    client, seen = make_client(json_response({
        "ok": True, "found": True, "id": 123, "proId": "p_123", "sessionId": "s_1",
    }))
    resp = client.get_speech_status_by_id(123)
    assert seen[0].url.path == "/api/speech/status"
    assert seen[0].url.params["id"] == "123"
    assert resp.id == 123
    assert resp.found is True


def test_get_speech_status_by_id_rejects_non_positive():
    client, _ = make_client(json_response({}))
    with pytest.raises(ValueError):
        client.get_speech_status_by_id(0)


def test_get_speech_status_by_key_omits_empty_pro_id():
    client, seen = make_client(json_response({"ok": True, "sessionId": "s_1"}))
    resp = client.get_speech_status_by_key("", "s_1", 2)
    params = seen[0].url.params
    assert "proId" not in params
    assert params["sessionId"] == "s_1"
    assert params["chunkIndex"] == "2"
    assert resp.session_id == "s_1"


def test_get_facts_snapshot():
    client, seen = make_client(json_response({
        "proId": "p_123",
        "cursorUpdatedUtc": NOW,
        "cursorId": 5,
        "items": [{"id": 1, "proId": "p_123", "factText": "example",
                   "factHash": "hash", "status": "ok"}],
    }))
    resp = client.get_facts_snapshot("p_123", 10)
    assert seen[0].url.path == "/api/facts/items/snapshot"
    assert seen[0].url.params["proId"] == "p_123"
    assert seen[0].url.params["limit"] == "10"
    assert len(resp.items) == 1
    assert resp.items[0].fact_text == "example"
    assert resp.cursor_id == 5


def test_get_facts_updates():
    client, seen = make_client(json_response({
        "proId": "p_123",
        "cursorUpdatedUtc": NOW,
        "cursorId": 6,
        "items": [{"id": 6, "proId": "p_123", "factText": "updated",
                   "factHash": "hash2", "status": "ok"}],
    }))
    resp = client.get_facts_updates("p_123", datetime.now(timezone.utc), 5, 50)
    params = seen[0].url.params
    assert seen[0].url.path == "/api/facts/items/updates"
    assert params["proId"] == "p_123"
    assert params["sinceId"] == "5"
    assert params["limit"] == "50"
    assert params["sinceUpdatedUtc"].endswith("Z")
    assert parse_timestamp(params["sinceUpdatedUtc"]).tzinfo == timezone.utc
    assert len(resp.items) == 1
    assert resp.items[0].id == 6


def test_get_facts_updates_rejects_negative_since_id():
    client, _ = make_client(json_response({}))
    with pytest.raises(ValueError):
        client.get_facts_updates("p_1", None, -1)


def test_patch_fact_review_status():
    client, seen = make_client(json_response({"code": "ok", "reason": None}))
    resp = client.patch_fact_review_status("p_123", 7, " ok ")
    request = seen[0]
    assert request.method == "PATCH"
    assert request.url.path == "/api/facts/items/7/review-status"
    assert request.url.params["proId"] == "p_123"
    assert json.loads(request.content) == {"reviewStatus": "ok"}
    assert resp.code == "ok"
    assert resp.reason is None


def test_get_matches_snapshot():
    client, seen = make_client(json_response({
        "proId": "p_123",
        "direction": "Offer",
        "cursorUpdatedUtc": NOW,
        "cursorId": 10,
        "items": [{"id": 1, "proId": "p_123", "targetProId": "p_456",
                   "direction": "Offer", "score": 0.9, "rationale": "strong match",
                   "modelId": "m1", "createdUtc": NOW, "updatedUtc": NOW}],
    }))
    resp = client.get_matches_snapshot("p_123", MatchingDirection.OFFER, 0.0, 100, 0, 0)
    params = seen[0].url.params
    assert seen[0].url.path == "/api/matches/items/snapshot"
    assert params["proId"] == "p_123"
    assert params["direction"] == "Offer"
    assert params["limit"] == "100"
    assert "minScore" not in params
    assert "minRationaleLength" not in params
    assert len(resp.items) == 1
    assert resp.items[0].target_pro_id == "p_456"
    assert resp.direction == MatchingDirection.OFFER


def test_get_matches_snapshot_formats_filters():
    client, seen = make_client(json_response({}))
    client.get_matches_snapshot("p_1", "Seek", 0.5, 0, 10, 200)
    params = seen[0].url.params
    assert params["minScore"] == "0.5"
    assert params["minRationaleLength"] == "10"
    assert params["maxRationaleLength"] == "200"
    assert "limit" not in params


def test_get_matches_snapshot_requires_direction():
    client, _ = make_client(json_response({}))
    with pytest.raises(ValueError):
        client.get_matches_snapshot("p_1", "")


def test_get_matches_updates():
    client, seen = make_client(json_response({
        "proId": "p_123",
        "direction": "Offer",
        "cursorUpdatedUtc": NOW,
        "cursorId": 11,
        "items": [{"id": 11, "proId": "p_123", "targetProId": "p_789",
                   "direction": "Offer", "score": 0.8, "rationale": "updated match",
                   "modelId": "m1", "createdUtc": NOW, "updatedUtc": NOW}],
    }))
    resp = client.get_matches_updates(
        "p_123", MatchingDirection.OFFER, datetime.now(timezone.utc), 10, 0.0, 100, 0, 0,
    )
    params = seen[0].url.params
    assert seen[0].url.path == "/api/matches/items/updates"
    assert params["proId"] == "p_123"
    assert params["direction"] == "Offer"
    assert params["sinceId"] == "10"
    assert parse_timestamp(params["sinceUpdatedUtc"]) is not None
    assert len(resp.items) == 1
    assert resp.items[0].target_pro_id == "p_789"
    assert resp.cursor_id == 11


def test_get_matches_updates_without_direction():
    client, seen = make_client(json_response({"proId": "p_1", "direction": None}))
    resp = client.get_matches_updates("p_1", None, None, 0)
    params = seen[0].url.params
    assert "direction" not in params
    assert "sinceUpdatedUtc" not in params
    assert params["sinceId"] == "0"
    assert resp.direction is None


def test_api_error_with_json_message():
    client, _ = make_client(json_response({"error": "bad request"}, status=400))
    with pytest.raises(APIError) as info:
        client.get_speech_status_by_id(1)
    assert info.value.status_code == 400
    assert info.value.message == "bad request"
    assert str(info.value) == 'api error: status=400 message="bad request"'


def test_api_error_falls_back_to_body_text():
    client, _ = make_client(lambda r: httpx.Response(500, content=b"  boom \n"))
    with pytest.raises(APIError) as info:
        client.get_facts_snapshot("p_1")
    assert info.value.message == "boom"
    assert info.value.body == b"  boom \n"


def test_api_error_falls_back_to_status_line():
    client, _ = make_client(lambda r: httpx.Response(404))
    with pytest.raises(APIError) as info:
        client.get_facts_snapshot("p_1")
    assert info.value.status_code == 404
    assert info.value.message == "404 Not Found"


def test_base_path_is_preserved():
    client, seen = make_client(json_response({"proId": "p_1"}),
                               base_url="https://example.com/manax/")
    client.get_facts_snapshot("p_1")
    assert seen[0].url.path == "/manax/api/facts/items/snapshot"
    assert seen[0].url.host == "example.com"


def test_empty_response_body_gives_zero_values():
    client, _ = make_client(lambda r: httpx.Response(200, content=b""))
    resp = client.verify_pro_wallet("p_1", "token")
    assert resp.pro_id == ""
    assert resp.valid is False