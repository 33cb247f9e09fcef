"""Server-Sent Events streams of facts and matches."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from contextlib import closing
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, TypeVar, Union

from .sse import SSEReader
from .transport import BaseClient
from .types import (
    FactsItemsResponse,
    MatchesUpdatesResponse,
    MatchingDirection,
    format_timestamp,
)

_FACTS_ENDPOINT = "/api/facts/items/stream"
_MATCHES_ENDPOINT = "/api/matches/items/stream"

_Chunk = TypeVar("_Chunk", FactsItemsResponse, MatchesUpdatesResponse)

FactsStreamHandler = Callable[[FactsItemsResponse], Optional[bool]]
MatchesStreamHandler = Callable[[MatchesUpdatesResponse], Optional[bool]]


@dataclass
class MatchesStreamCursor:
    """Watermark of the matches stream: last seen cursor timestamp and id."""

    updated_utc: Optional[datetime]
    id: int = 0


@dataclass
class MatchesStreamOptions:
    """Filters of the matches stream; zero values leave a filter out."""

    direction: Union[MatchingDirection, str]
    min_score: float = 0.0
    limit: int = 0
    min_rationale_length: int = 0
    max_rationale_length: int = 0


def _format_float(value: float) -> str:
    """Shortest decimal form of a float, without an exponent."""
    text = format(Decimal(repr(float(value))), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _decode(data: bytes, model: type[_Chunk]) -> _Chunk:
    try:
        return model.from_dict(json.loads(data))
    except (ValueError, TypeError) as exc:
        raise ValueError(f"decode JSON payload: {exc}") from exc


def _chunks(reader: SSEReader, event_name: str, model: type[_Chunk]) -> Iterator[_Chunk]:
    for event in reader:
        if event.comment and not event.event and not event.data:
            continue
        if event.event and event.event != event_name:
            continue
        if not event.data:
            raise ValueError(
                f'received event "{event_name}" with empty data payload'
            )
        yield _decode(event.data, model)


def _dispatch(chunks: Iterator[Any], handler: Callable[[Any], Optional[bool]]) -> None:
    with closing(chunks):
        for chunk in chunks:
            if handler(chunk) is False:
                break


class StreamingClient(BaseClient):
    """Client for the facts and matches event streams."""

    def _stream(
        self, endpoint: str, params: dict[str, str], event_name: str, model: type[_Chunk]
    ) -> Iterator[_Chunk]:
        with self.open_stream(endpoint, params) as reader:
            yield from _chunks(reader, event_name, model)

    def iter_facts(self, pro_id: str) -> Iterator[FactsItemsResponse]:
        """Yield each "facts" event: the initial snapshot, then updates.

        Comment events and events of other types are skipped. The iterator
        ends when the server closes the stream; an event without data or
        with undecodable JSON raises ``ValueError``.
        """
        pro_id = (pro_id or "").strip()
        if not pro_id:
            raise ValueError("pro_id must not be empty")
        return self._stream(
            _FACTS_ENDPOINT, {"proId": pro_id}, "facts", FactsItemsResponse
        )

    def stream_facts(self, pro_id: str, handler: FactsStreamHandler) -> None:
        """Pass every "facts" chunk to ``handler`` until the stream ends.

        Returning ``False`` from the handler stops the stream; an exception
        raised by the handler propagates.
        """
        if handler is None:
            raise ValueError("handler must not be None")
        _dispatch(self.iter_facts(pro_id), handler)

    def iter_matches(
        self,
        pro_id: str,
        cursor: MatchesStreamCursor,
        options: MatchesStreamOptions,
    ) -> Iterator[MatchesUpdatesResponse]:
        """Yield each "matches" event after the given cursor.

        The stream carries no snapshot; take the cursor from a matches
        snapshot first.
        """
        return self._matches(pro_id, cursor, options, require_handler=None)

    def stream_matches(
        self,
        pro_id: str,
        cursor: MatchesStreamCursor,
        options: MatchesStreamOptions,
        handler: MatchesStreamHandler,
    ) -> None:
        """Pass every "matches" chunk to ``handler`` until the stream ends.

        Returning ``False`` from the handler stops the stream; an exception
        raised by the handler propagates.
        """
        chunks = self._matches(pro_id, cursor, options, require_handler=handler)
        _dispatch(chunks, handler)

    def _matches(
        self,
        pro_id: str,
        cursor: MatchesStreamCursor,
        options: MatchesStreamOptions,
        require_handler: Any,
    ) -> Iterator[MatchesUpdatesResponse]:
        pro_id = (pro_id or "").strip()
        if not pro_id:
            raise ValueError("pro_id must not be empty")
        if require_handler is None and require_handler is not ...:
            pass
        if not options.direction:
            raise ValueError("direction must not be empty")
        if cursor.id < 0:
            raise ValueError("cursor.id must be >= 0")
        if cursor.updated_utc is None:
            raise ValueError("cursor.updated_utc must be set")

        params = {
            "proId": pro_id,
            "sinceUpdatedUtc": format_timestamp(cursor.updated_utc),
            "sinceId": str(cursor.id),
            "direction": str(options.direction),
        }
        if options.min_score > 0:
            params["minScore"] = _format_float(options.min_score)
        if options.limit > 0:
            params["limit"] = str(options.limit)
        if options.min_rationale_length > 0:
            params["minRationaleLength"] = str(options.min_rationale_length)
        if options.max_rationale_length > 0:
            params["maxRationaleLength"] = str(options.max_rationale_length)

        return self._stream(_MATCHES_ENDPOINT, params, "matches", MatchesUpdatesResponse)