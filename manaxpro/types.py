"""Wire models for the Manax ApiService and timestamp helpers."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import IO, Any, Optional, Union

_RFC3339 = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})"
    r"(?:\.(\d+))?"
    r"(?:(Z)|([+-])(\d{2}):(\d{2}))$"
)


class MatchingDirection(str, Enum):
    """Direction of matching between profiles."""

    OFFER = "Offer"
    """"Who needs me?": the source profile offers help."""

    SEEK = "Seek"
    """"Who do I need?": the source profile is looking for help."""

    def __str__(self) -> str:
        return self.value


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp into an aware datetime.

    ``None`` and the empty string yield ``None``; a datetime is returned as is.
    Fractional seconds beyond microsecond precision are truncated.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise TypeError(f"timestamp must be a string, got {type(value).__name__}")
    match = _RFC3339.match(value)
    if match is None:
        raise ValueError(f"invalid RFC 3339 timestamp: {value!r}")
    (year, month, day, hour, minute, second, fraction,
     zulu, sign, off_hours, off_minutes) = match.groups()
    micros = int((fraction or "")[:6].ljust(6, "0"))
    if zulu:
        tz = timezone.utc
    else:
        offset = timedelta(hours=int(off_hours), minutes=int(off_minutes))
        if offset >= timedelta(hours=24):
            raise ValueError(f"invalid time zone offset in {value!r}")
        tz = timezone(-offset if sign == "-" else offset)
    return datetime(
        int(year), int(month), int(day),
        int(hour), int(minute), int(second), micros, tzinfo=tz,
    )


def format_timestamp(value: datetime) -> str:
    """Format a datetime as RFC 3339 in UTC with second precision.

    Naive datetimes are taken to be in UTC.
    """
    if not isinstance(value, datetime):
        raise TypeError(f"expected datetime, got {type(value).__name__}")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    u = value.astimezone(timezone.utc)
    return (
        f"{u.year:04d}-{u.month:02d}-{u.day:02d}"
        f"T{u.hour:02d}:{u.minute:02d}:{u.second:02d}Z"
    )


def _mapping(data: Any, name: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise TypeError(f"{name}: expected a JSON object, got {type(data).__name__}")
    return data


def _value(data: Mapping[str, Any], key: str, default: Any) -> Any:
    value = data.get(key)
    return default if value is None else value


def _direction(value: Any) -> Union[MatchingDirection, str]:
    if value is None:
        return ""
    try:
        return MatchingDirection(value)
    except ValueError:
        return str(value)


@dataclass
class CreateProWalletResponse:
    """Result of creating a pro wallet."""

    pro_id: str = ""
    token: str = ""
    mnemonic24: str = ""
    created_utc: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Any) -> "CreateProWalletResponse":
        data = _mapping(data, cls.__name__)
        return cls(
            pro_id=_value(data, "proId", ""),
            token=_value(data, "token", ""),
            mnemonic24=_value(data, "mnemonic24", ""),
            created_utc=parse_timestamp(data.get("createdUtc")),
        )


@dataclass
class VerifyProWalletResponse:
    """Result of verifying a pro wallet token."""

    pro_id: str = ""
    valid: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> "VerifyProWalletResponse":
        data = _mapping(data, cls.__name__)
        return cls(
            pro_id=_value(data, "proId", ""),
            valid=bool(_value(data, "valid", False)),
        )


@dataclass
class UploadSpeechAudioRequest:
    """Input for uploading one audio chunk.

    ``audio`` is either the raw bytes or a binary file object to read from.
    An empty ``file_name`` becomes ``"audio"``; a ``sample_rate`` of 0 is omitted.
    """

    pro_id: str
    session_id: str
    chunk_index: int
    audio: Union[bytes, IO[bytes], None]
    file_name: str = ""
    sample_rate: int = 0


@dataclass
class SpeechUploadResponse:
    """Server answer to an audio chunk upload."""

    ok: bool = False
    existed: bool = False
    id: Optional[int] = None
    pro_id: str = ""
    session_id: str = ""
    chunk_index: int = 0
    sample_rate: Optional[int] = None
    stored_path: str = ""
    wav16k_mono_path: Optional[str] = None
    transcript: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "SpeechUploadResponse":
        data = _mapping(data, cls.__name__)
        return cls(
            ok=bool(_value(data, "ok", False)),
            existed=bool(_value(data, "existed", False)),
            id=data.get("id"),
            pro_id=_value(data, "proId", ""),
            session_id=_value(data, "sessionId", ""),
            chunk_index=_value(data, "chunkIndex", 0),
            sample_rate=data.get("sampleRate"),
            stored_path=_value(data, "storedPath", ""),
            wav16k_mono_path=data.get("wav16kMonoPath"),
            transcript=_value(data, "transcript", ""),
        )


@dataclass
class UploadSpeechTextRequest:
    """Text attached to a speech chunk."""

    pro_id: str
    session_id: str
    chunk_index: int
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "proId": self.pro_id,
            "sessionId": self.session_id,
            "chunkIndex": self.chunk_index,
            "text": self.text,
        }


@dataclass
class UploadSpeechTextResponse:
    """Opaque JSON answer to a text upload, kept as raw bytes."""

    raw: bytes = b""

    def json(self) -> Any:
        """Decode the raw body; an empty body decodes to ``None``."""
        if not self.raw:
            return None
        return json.loads(self.raw)


@dataclass
class SpeechStatusResponse:
    """ASR status and metadata of one speech row."""

    ok: bool = False
    found: bool = False
    id: Optional[int] = None
    pro_id: str = ""
    session_id: str = ""
    chunk_index: int = 0
    asr_status: str = ""
    asr_error: Optional[str] = None
    transcript: str = ""
    duration_sec: Optional[float] = None
    audio_sha256: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "SpeechStatusResponse":
        data = _mapping(data, cls.__name__)
        duration = data.get("durationSec")
        return cls(
            ok=bool(_value(data, "ok", False)),
            found=bool(_value(data, "found", False)),
            id=data.get("id"),
            pro_id=_value(data, "proId", ""),
            session_id=_value(data, "sessionId", ""),
            chunk_index=_value(data, "chunkIndex", 0),
            asr_status=_value(data, "asrStatus", ""),
            asr_error=data.get("asrError"),
            transcript=_value(data, "transcript", ""),
            duration_sec=None if duration is None else float(duration),
            audio_sha256=data.get("audioSha256"),
        )


@dataclass
class FactItem:
    """A single fact row."""

    id: int = 0
    pro_id: str = ""
    fact_text: str = ""
    fact_hash: str = ""
    status: str = ""
    false_reason: Optional[str] = None
    created_utc: Optional[datetime] = None
    last_seen_utc: Optional[datetime] = None
    updated_utc: Optional[datetime] = None
    review_status: Optional[str] = None
    review_updated_utc: Optional[datetime] = None
    is_writable: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> "FactItem":
        data = _mapping(data, cls.__name__)
        return cls(
            id=_value(data, "id", 0),
            pro_id=_value(data, "proId", ""),
            fact_text=_value(data, "factText", ""),
            fact_hash=_value(data, "factHash", ""),
            status=_value(data, "status", ""),
            false_reason=data.get("falseReason"),
            created_utc=parse_timestamp(data.get("createdUtc")),
            last_seen_utc=parse_timestamp(data.get("lastSeenUtc")),
            updated_utc=parse_timestamp(data.get("updatedUtc")),
            review_status=data.get("reviewStatus"),
            review_updated_utc=parse_timestamp(data.get("reviewUpdatedUtc")),
            is_writable=bool(_value(data, "isWritable", False)),
        )


def _fact_items(data: Mapping[str, Any]) -> list[FactItem]:
    return [FactItem.from_dict(item) for item in _value(data, "items", [])]


@dataclass
class FactsItemsResponse:
    """A window of facts plus the cursor for incremental polling."""

    pro_id: str = ""
    cursor_updated_utc: Optional[datetime] = None
    cursor_id: int = 0
    items: list[FactItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "FactsItemsResponse":
        data = _mapping(data, cls.__name__)
        return cls(
            pro_id=_value(data, "proId", ""),
            cursor_updated_utc=parse_timestamp(data.get("cursorUpdatedUtc")),
            cursor_id=_value(data, "cursorId", 0),
            items=_fact_items(data),
        )


@dataclass
class FactsUpdatesResponse:
    """Facts changed since a cursor, with the advanced cursor."""

    pro_id: str = ""
    cursor_updated_utc: Optional[datetime] = None
    cursor_id: int = 0
    items: list[FactItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "FactsUpdatesResponse":
        data = _mapping(data, cls.__name__)
        return cls(
            pro_id=_value(data, "proId", ""),
            cursor_updated_utc=parse_timestamp(data.get("cursorUpdatedUtc")),
            cursor_id=_value(data, "cursorId", 0),
            items=_fact_items(data),
        )


@dataclass
class PatchReviewStatusRequest:
    """New review status of a fact: "ok", "not" or "" to clear it."""

    review_status: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"reviewStatus": self.review_status}


@dataclass
class PatchReviewStatusResponse:
    """Result code of a review status change."""

    code: str = ""
    reason: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "PatchReviewStatusResponse":
        data = _mapping(data, cls.__name__)
        return cls(
            code=_value(data, "code", ""),
            reason=data.get("reason"),
        )


@dataclass
class MatchItem:
    """A single match row from the matching engine."""

    id: int = 0
    pro_id: str = ""
    target_pro_id: str = ""
    direction: Union[MatchingDirection, str] = ""
    score: float = 0.0
    rationale: str = ""
    model_id: str = ""
    created_utc: Optional[datetime] = None
    updated_utc: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Any) -> "MatchItem":
        data = _mapping(data, cls.__name__)
        return cls(
            id=_value(data, "id", 0),
            pro_id=_value(data, "proId", ""),
            target_pro_id=_value(data, "targetProId", ""),
            direction=_direction(data.get("direction")),
            score=float(_value(data, "score", 0.0)),
            rationale=_value(data, "rationale", ""),
            model_id=_value(data, "modelId", ""),
            created_utc=parse_timestamp(data.get("createdUtc")),
            updated_utc=parse_timestamp(data.get("updatedUtc")),
        )


def _match_items(data: Mapping[str, Any]) -> list[MatchItem]:
    return [MatchItem.from_dict(item) for item in _value(data, "items", [])]


@dataclass
class MatchesItemsResponse:
    """A snapshot of matches plus the cursor for incremental polling."""

    pro_id: str = ""
    direction: Union[MatchingDirection, str] = ""
    cursor_updated_utc: Optional[datetime] = None
    cursor_id: int = 0
    items: list[MatchItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "MatchesItemsResponse":
        data = _mapping(data, cls.__name__)
        return cls(
            pro_id=_value(data, "proId", ""),
            direction=_direction(data.get("direction")),
            cursor_updated_utc=parse_timestamp(data.get("cursorUpdatedUtc")),
            cursor_id=_value(data, "cursorId", 0),
            items=_match_items(data),
        )


@dataclass
class MatchesUpdatesResponse:
    """Matches changed since a cursor; ``direction`` is ``None`` for both."""

    pro_id: str = ""
    direction: Union[MatchingDirection, str, None] = None
    cursor_updated_utc: Optional[datetime] = None
    cursor_id: int = 0
    items: list[MatchItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "MatchesUpdatesResponse":
        data = _mapping(data, cls.__name__)
        raw_direction = data.get("direction")
        return cls(
            pro_id=_value(data, "proId", ""),
            direction=None if raw_direction is None else _direction(raw_direction),
            cursor_updated_utc=parse_timestamp(data.get("cursorUpdatedUtc")),
            cursor_id=_value(data, "cursorId", 0),
            items=_match_items(data),
        )