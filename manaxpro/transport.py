"""HTTP plumbing shared by the Manax ApiService clients."""

from __future__ import annotations

import json
import posixpath
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any, Optional
from urllib.parse import SplitResult, urlsplit, urlunsplit

import httpx

from .sse import SSEReader

_ERROR_BODY_LIMIT = 64 * 1024


class APIError(Exception):
    """A non-2xx response from the ApiService."""

    def __init__(self, status_code: int, message: str = "", body: bytes = b"") -> None:
        self.status_code = status_code
        self.message = message
        self.body = body
        super().__init__(status_code, message, body)

    def __str__(self) -> str:
        if self.message:
            quoted = json.dumps(self.message, ensure_ascii=False)
            return f"api error: status={self.status_code} message={quoted}"
        return f"api error: status={self.status_code}"


def _status_line(response: httpx.Response) -> str:
    return f"{response.status_code} {response.reason_phrase}".strip()


def _error_message(body: bytes, status_line: str) -> str:
    try:
        payload = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        payload = None
    message = ""
    if isinstance(payload, dict) and isinstance(payload.get("error"), str):
        message = payload["error"].strip()
    if not message and body:
        message = body.decode("utf-8", errors="replace").strip()
    return message or status_line


def _read_limited(response: httpx.Response, limit: int) -> bytes:
    buffer = bytearray()
    for chunk in response.iter_bytes():
        buffer += chunk
        if len(buffer) >= limit:
            break
    return bytes(buffer[:limit])


def _join_path(base_path: str, relative: str) -> str:
    cleaned = posixpath.normpath(base_path.rstrip("/") + relative)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


class BaseClient:
    """Base URL, identity headers and request execution for the ApiService.

    ``http_client`` may be ``None``; a client without a read timeout is then
    created on first use and closed when the context manager exits.
    """

    def __init__(self, base_url: str, http_client: Optional[httpx.Client] = None) -> None:
        text = (base_url or "").strip()
        if not text:
            raise ValueError("base_url must not be empty")
        try:
            parts = urlsplit(text)
        except ValueError as exc:
            raise ValueError(f"invalid base_url {text!r}: {exc}") from exc
        if not parts.scheme or not parts.netloc:
            raise ValueError(f"base_url must include scheme and host: {text!r}")
        self._base = parts._replace(query="", fragment="")
        self._http_client = http_client
        self._owns_client = False
        self._pro_id = ""
        self._pro_token = ""

    def __enter__(self) -> "BaseClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self._owns_client and self._http_client is not None:
            self._http_client.close()
            self._http_client = None
            self._owns_client = False

    def set_auth(self, pro_id: str, pro_token: str) -> None:
        """Send X-Pro-Id and X-Pro-Token with every following request."""
        self._pro_id = (pro_id or "").strip()
        self._pro_token = (pro_token or "").strip()

    def base_url(self) -> SplitResult:
        """The base API URL, without query or fragment."""
        return self._base

    def http_client(self) -> httpx.Client:
        """The underlying HTTP client, created on demand."""
        if self._http_client is None:
            self._http_client = httpx.Client(timeout=httpx.Timeout(None, connect=30.0))
            self._owns_client = True
        return self._http_client

    def build_url(self, endpoint: str) -> str:
        """Append ``endpoint`` to the base URL, keeping any base path."""
        relative = endpoint.strip()
        if not relative.startswith("/"):
            relative = "/" + relative
        path = _join_path(self._base.path, relative)
        return urlunsplit((self._base.scheme, self._base.netloc, path, "", ""))

    def _headers(self, extra: Optional[Mapping[str, str]]) -> httpx.Headers:
        merged = httpx.Headers(dict(extra) if extra else {})
        if self._pro_id:
            merged["X-Pro-Id"] = self._pro_id
        if self._pro_token:
            merged["X-Pro-Token"] = self._pro_token
        if not merged.get("Accept"):
            merged["Accept"] = "application/json"
        return merged

    def _send(
        self,
        method: str,
        endpoint: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        content: Optional[bytes] = None,
        files: Optional[Mapping[str, Any]] = None,
        data: Optional[Mapping[str, Any]] = None,
    ) -> bytes:
        """Execute a request and return the raw body of a 2xx response."""
        response = self.http_client().request(
            method,
            self.build_url(endpoint),
            params=params,
            headers=self._headers(headers),
            content=content,
            files=files,
            data=data,
        )
        body = response.content
        if not response.is_success:
            raise APIError(
                response.status_code,
                _error_message(body, _status_line(response)),
                body,
            )
        return body

    def request_json(
        self,
        method: str,
        endpoint: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        content: Optional[bytes] = None,
        files: Optional[Mapping[str, Any]] = None,
        data: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Execute a request and decode its JSON body; an empty body gives ``None``.

        Raises :class:`APIError` on a non-2xx status.
        """
        body = self._send(
            method,
            endpoint,
            params=params,
            headers=headers,
            content=content,
            files=files,
            data=data,
        )
        if not body:
            return None
        try:
            return json.loads(body)
        except ValueError as exc:
            raise ValueError(f"decode JSON response: {exc}") from exc

    @contextmanager
    def open_stream(
        self, endpoint: str, params: Optional[Mapping[str, Any]] = None
    ) -> Iterator[SSEReader]:
        """Open a GET event stream and yield a reader over its body.

        Raises :class:`APIError` on a non-2xx status, keeping at most 64 KiB
        of the error body.
        """
        headers = self._headers({"Accept": "text/event-stream"})
        with self.http_client().stream(
            "GET", self.build_url(endpoint), params=params, headers=headers
        ) as response:
            if not response.is_success:
                body = _read_limited(response, _ERROR_BODY_LIMIT)
                raise APIError(
                    response.status_code,
                    _error_message(body, _status_line(response)),
                    body,
                )
            yield SSEReader(response.iter_bytes())