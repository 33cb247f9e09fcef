"""High-level client for the Manax ApiService."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional, Union

from .streaming import StreamingClient, _format_float
from .types import (
    CreateProWalletResponse,
    FactsItemsResponse,
    FactsUpdatesResponse,
    MatchesItemsResponse,
    MatchesUpdatesResponse,
    MatchingDirection,
    PatchReviewStatusRequest,
    PatchReviewStatusResponse,
    SpeechStatusResponse,
    SpeechUploadResponse,
    UploadSpeechAudioRequest,
    UploadSpeechTextRequest,
    UploadSpeechTextResponse,
    VerifyProWalletResponse,
    format_timestamp,
)

_JSON_HEADERS = {"Content-Type": "application/json"}


def _object(data: Any) -> Any:
    """An empty response body leaves every field at its zero value."""
    return {} if data is None else data


def _json_body(payload: dict[str, Any]) -> bytes:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _strip(value: Optional[str]) -> str:
    return (value or "").strip()


class Client(StreamingClient):
    """Client for wallets, speech, facts and matches of the ApiService.

    Every call raises :class:`~manaxpro.transport.APIError` on a non-2xx
    response and ``ValueError`` on invalid arguments.
    """

    def create_pro_wallet(self, manax_key: str = "") -> CreateProWalletResponse:
        """Create a pro wallet; a non-empty ``manax_key`` goes in X-Manax-Key."""
        headers = {}
        key = _strip(manax_key)
        if key:
            headers["X-Manax-Key"] = key
        data = self.request_json("POST", "/api/crypto/pro-wallet/create", headers=headers)
        return CreateProWalletResponse.from_dict(_object(data))

    def verify_pro_wallet(self, pro_id: str, token: str) -> VerifyProWalletResponse:
        """Check whether ``token`` is valid for ``pro_id``."""
        pro_id = _strip(pro_id)
        token = _strip(token)
        if not pro_id:
            raise ValueError("pro_id must not be empty")
        if not token:
            raise ValueError("token must not be empty")
        data = self.request_json(
            "GET",
            "/api/crypto/pro-wallet/verify",
            params={"proId": pro_id, "token": token},
        )
        return VerifyProWalletResponse.from_dict(_object(data))

    def upload_speech_audio(self, request: UploadSpeechAudioRequest) -> SpeechUploadResponse:
        """Upload one audio chunk as multipart/form-data."""
        if request.audio is None:
            raise ValueError("upload_speech_audio: audio must not be None")
        if not _strip(request.pro_id):
            raise ValueError("upload_speech_audio: pro_id must not be empty")
        if not _strip(request.session_id):
            raise ValueError("upload_speech_audio: session_id must not be empty")
        if request.chunk_index < 0:
            raise ValueError("upload_speech_audio: chunk_index must be >= 0")

        audio = request.audio
        content = bytes(audio) if isinstance(audio, (bytes, bytearray)) else audio.read()
        file_name = request.file_name if _strip(request.file_name) else "audio"

        fields = {
            "proId": _strip(request.pro_id),
            "sessionId": _strip(request.session_id),
            "chunkIndex": str(request.chunk_index),
        }
        if request.sample_rate > 0:
            fields["sampleRate"] = str(request.sample_rate)

        data = self.request_json(
            "POST",
            "/api/speech/upload",
            files={"audio": (file_name, content, "application/octet-stream")},
            data=fields,
        )
        return SpeechUploadResponse.from_dict(_object(data))

    def upload_speech_text(self, request: UploadSpeechTextRequest) -> UploadSpeechTextResponse:
        """Attach text to a speech chunk; the answer is kept as raw JSON."""
        if not _strip(request.pro_id):
            raise ValueError("upload_speech_text: pro_id must not be empty")
        if not _strip(request.session_id):
            raise ValueError("upload_speech_text: session_id must not be empty")
        if request.chunk_index < 0:
            raise ValueError("upload_speech_text: chunk_index must be >= 0")
        if not _strip(request.text):
            raise ValueError("upload_speech_text: text must not be empty")

        body = self._send(
            "POST",
            "/api/speech/text",
            headers=_JSON_HEADERS,
            content=_json_body(request.to_dict()),
        )
        if body:
            try:
                json.loads(body)
            except ValueError as exc:
                raise ValueError(f"decode JSON response: {exc}") from exc
        return UploadSpeechTextResponse(raw=body)

    def get_speech_status_by_id(self, id: int) -> SpeechStatusResponse:
        """ASR status of the speech row with the given id."""
        if id <= 0:
            raise ValueError("get_speech_status_by_id: id must be > 0")
        data = self.request_json("GET", "/api/speech/status", params={"id": str(id)})
        return SpeechStatusResponse.from_dict(_object(data))

    def get_speech_status_by_key(
        self, pro_id: str, session_id: str, chunk_index: int
    ) -> SpeechStatusResponse:
        """ASR status of a speech row looked up by its logical key."""
        session_id = _strip(session_id)
        if not session_id:
            raise ValueError("get_speech_status_by_key: session_id must not be empty")
        if chunk_index < 0:
            raise ValueError("get_speech_status_by_key: chunk_index must be >= 0")
        params = {}
        if _strip(pro_id):
            params["proId"] = _strip(pro_id)
        params["sessionId"] = session_id
        params["chunkIndex"] = str(chunk_index)
        data = self.request_json("GET", "/api/speech/status", params=params)
        return SpeechStatusResponse.from_dict(_object(data))

    def get_facts_snapshot(self, pro_id: str, limit: int = 0) -> FactsItemsResponse:
        """A window of facts plus the cursor for incremental updates."""
        pro_id = _strip(pro_id)
        if not pro_id:
            raise ValueError("get_facts_snapshot: pro_id must not be empty")
        params = {"proId": pro_id}
        if limit > 0:
            params["limit"] = str(limit)
        data = self.request_json("GET", "/api/facts/items/snapshot", params=params)
        return FactsItemsResponse.from_dict(_object(data))

    def get_facts_updates(
        self,
        pro_id: str,
        since_updated_utc: Optional[datetime],
        since_id: int,
        limit: int = 0,
    ) -> FactsUpdatesResponse:
        """Facts changed since the cursor ``(since_updated_utc, since_id)``."""
        pro_id = _strip(pro_id)
        if not pro_id:
            raise ValueError("get_facts_updates: pro_id must not be empty")
        if since_id < 0:
            raise ValueError("get_facts_updates: since_id must be >= 0")
        params = {"proId": pro_id}
        if since_updated_utc is not None:
            params["sinceUpdatedUtc"] = format_timestamp(since_updated_utc)
        params["sinceId"] = str(since_id)
        if limit > 0:
            params["limit"] = str(limit)
        data = self.request_json("GET", "/api/facts/items/updates", params=params)
        return FactsUpdatesResponse.from_dict(_object(data))

    def patch_fact_review_status(
        self, pro_id: str, id: int, review_status: str
    ) -> PatchReviewStatusResponse:
        """Set the review status of a fact: "ok", "not" or "" to clear it."""
        pro_id = _strip(pro_id)
        if not pro_id:
            raise ValueError("patch_fact_review_status: pro_id must not be empty")
        if id <= 0:
            raise ValueError("patch_fact_review_status: id must be > 0")
        body = PatchReviewStatusRequest(review_status=_strip(review_status))
        data = self.request_json(
            "PATCH",
            f"/api/facts/items/{id}/review-status",
            params={"proId": pro_id},
            headers=_JSON_HEADERS,
            content=_json_body(body.to_dict()),
        )
        return PatchReviewStatusResponse.from_dict(_object(data))

    def get_matches_snapshot(
        self,
        pro_id: str,
        direction: Union[MatchingDirection, str],
        min_score: float = 0.0,
        limit: int = 0,
        min_rationale_length: int = 0,
        max_rationale_length: int = 0,
    ) -> MatchesItemsResponse:
        """A snapshot of current matches in one direction."""
        pro_id = _strip(pro_id)
        if not pro_id:
            raise ValueError("get_matches_snapshot: pro_id must not be empty")
        if not direction:
            raise ValueError("get_matches_snapshot: direction must not be empty")
        params = {"proId": pro_id, "direction": str(direction)}
        params.update(
            _match_filters(min_score, limit, min_rationale_length, max_rationale_length)
        )
        data = self.request_json("GET", "/api/matches/items/snapshot", params=params)
        return MatchesItemsResponse.from_dict(_object(data))

    def get_matches_updates(
        self,
        pro_id: str,
        direction: Union[MatchingDirection, str, None],
        since_updated_utc: Optional[datetime],
        since_id: int,
        min_score: float = 0.0,
        limit: int = 0,
        min_rationale_length: int = 0,
        max_rationale_length: int = 0,
    ) -> MatchesUpdatesResponse:
        """Matches changed since a cursor; an empty direction covers both."""
        pro_id = _strip(pro_id)
        if not pro_id:
            raise ValueError("get_matches_updates: pro_id must not be empty")
        if since_id < 0:
            raise ValueError("get_matches_updates: since_id must be >= 0")
        params = {"proId": pro_id}
        if direction:
            params["direction"] = str(direction)
        if since_updated_utc is not None:
            params["sinceUpdatedUtc"] = format_timestamp(since_updated_utc)
        params["sinceId"] = str(since_id)
        params.update(
            _match_filters(min_score, limit, min_rationale_length, max_rationale_length)
        )
        data = self.request_json("GET", "/api/matches/items/updates", params=params)
        return MatchesUpdatesResponse.from_dict(_object(data))


def _match_filters(
    min_score: float, limit: int, min_rationale_length: int, max_rationale_length: int
) -> dict[str, str]:
    filters = {}
    if min_score > 0:
        filters["minScore"] = _format_float(min_score)
    if limit > 0:
        filters["limit"] = str(limit)
    if min_rationale_length > 0:
        filters["minRationaleLength"] = str(min_rationale_length)
    if max_rationale_length > 0:
        filters["maxRationaleLength"] = str(max_rationale_length)
    return filters