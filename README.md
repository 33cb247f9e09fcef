# manaxpro

A synchronous client for the Manax API service, built on `httpx`.

It covers:

- pro wallets: creating a wallet and verifying its token;
- speech: uploading audio chunks and text, and querying recognition status;
- facts: snapshots, incremental updates, review status, and a live
  Server-Sent Events stream;
- matches: snapshots, incremental updates, and a live Server-Sent Events stream.

## Installation

```
pip install manaxpro
```

## Modules

- `manaxpro.client` – `Client`, with every endpoint call and the streams.
- `manaxpro.streaming` – `StreamingClient` (the streams alone),
  `MatchesStreamCursor`, `MatchesStreamOptions`.
- `manaxpro.transport` – `BaseClient` (base URL, identity headers, request
  execution) and `APIError`.
- `manaxpro.sse` – `SSEReader` and `SSEEvent`, a parser for Server-Sent Events.
- `manaxpro.types` – the request and response dataclasses, `MatchingDirection`,
  and the `parse_timestamp` / `format_timestamp` helpers.

## Basic use

```python
from manaxpro.client import Client

with Client("https://api.example.com") as client:
    client.set_auth("p_123", "token")

    snapshot = client.get_facts_snapshot("p_123", 10)
    for item in snapshot.items:
        print(item.id, item.fact_text, item.status)
```

The base URL must carry a scheme and a host, and may carry a path (for example
`https://api.example.com/manax`); endpoint paths are joined onto it. Any query
or fragment in the base URL is dropped. Once `set_auth` has been called, every
request carries the `X-Pro-Id` and `X-Pro-Token` headers.

An `httpx.Client` may be passed as the second argument. Without one, a client
with no read timeout is created on first use; leaving the `with` block closes
it.

Timestamps in responses are parsed into timezone-aware `datetime` objects.
Timestamps sent as cursors are written in UTC with second precision; naive
datetimes are taken to be UTC.

## Wallets

```python
wallet = client.create_pro_wallet("placeholder")   # sent as X-Manax-Key when not empty
print(wallet.pro_id, wallet.created_utc)

check = client.verify_pro_wallet(wallet.pro_id, wallet.token)
print(check.valid)
```

## Errors

Input that cannot be sent (an empty profile id, a negative chunk index and so
on) raises `ValueError` before any request is made. A response whose status is
not 2xx raises `manaxpro.transport.APIError`, which holds the status code, a
message taken from the JSON `error` field when present (otherwise the body or
the status text), and the raw body bytes. A 2xx body that is not valid JSON
raises `ValueError`.

```python
from manaxpro.transport import APIError

try:
    client.get_speech_status_by_id(123)
except APIError as exc:
    print(exc.status_code, exc.message)
```

## Speech

```python
from manaxpro.types import UploadSpeechAudioRequest, UploadSpeechTextRequest

with open("chunk0.raw", "rb") as audio:
    result = client.upload_speech_audio(
        UploadSpeechAudioRequest(
            pro_id="p_123",
            session_id="s_1",
            chunk_index=0,
            audio=audio,            # bytes or a binary file object
            file_name="chunk0.raw", # "audio" when empty
            sample_rate=16000,      # left out when 0
        )
    )
print(result.id, result.stored_path)

answer = client.upload_speech_text(
    UploadSpeechTextRequest(pro_id="p_123", session_id="s_1", chunk_index=0, text="hello world")
)
print(answer.raw, answer.json())

status = client.get_speech_status_by_key("p_123", "s_1", 0)
print(status.found, status.asr_status, status.transcript)
```

## Facts and matches

```python
from manaxpro.types import MatchingDirection

updates = client.get_facts_updates("p_123", snapshot.cursor_updated_utc, snapshot.cursor_id, 50)
client.patch_fact_review_status("p_123", 6, "ok")   # "ok", "not" or "" to clear

matches = client.get_matches_snapshot("p_123", MatchingDirection.OFFER, 0.0, 100, 0, 0)
changed = client.get_matches_updates(
    "p_123", MatchingDirection.OFFER, matches.cursor_updated_utc, matches.cursor_id
)
```

Zero values of the optional filters (score, limit, rationale lengths) are left
out of the query.

## Streaming

The streaming calls open a `text/event-stream` connection, skip keep-alive
comments and events of other types, and decode each payload into the same
response types used by the polling calls. An event without data, or with
undecodable JSON, raises `ValueError`. The calls return when the server closes
the stream or when the handler returns `False`; an exception raised by the
handler propagates.

```python
def on_facts(chunk):
    print(chunk.cursor_id, len(chunk.items))

client.stream_facts("p_123", on_facts)
```

The matches stream carries no snapshot, so take the cursor from a snapshot
first, then follow updates:

```python
from manaxpro.streaming import MatchesStreamCursor, MatchesStreamOptions

snapshot = client.get_matches_snapshot("p_123", MatchingDirection.OFFER, 0.0, 100, 0, 0)
cursor = MatchesStreamCursor(snapshot.cursor_updated_utc, snapshot.cursor_id)
options = MatchesStreamOptions(direction=MatchingDirection.OFFER)

for chunk in client.iter_matches("p_123", cursor, options):
    for match in chunk.items:
        print(match.id, match.target_pro_id, match.score)
```

`iter_facts` and `iter_matches` are the generator counterparts of
`stream_facts` and `stream_matches`. `StreamingClient` offers only these four
calls, for code that needs nothing else.

## What the package does not do

- It has no command-line tool; it is a library only.
- It is synchronous; there is no asyncio interface.
- Streams are not reconnected. When a stream ends, open it again with the
  last cursor you saw.

## Running the tests

```
pip install -e ".[test]"
pytest
```