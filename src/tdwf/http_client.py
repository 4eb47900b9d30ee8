"""HTTP transport for the Treasure Data workflow API.

The workflow endpoints exchange raw gzip archives and small JSON documents, so
requests carry at most a ``content`` body and callers get the
:class:`httpx.Response` back. Throttling and gateway failures are retried with
the prepared request re-sent as-is, which keeps an upload body byte-identical
across attempts.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from types import TracebackType
from typing import Any

import httpx

from .errors import HttpError

logger = logging.getLogger(__name__)

USER_AGENT = "tdwf-python"
RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After", "").strip()
    return float(value) if value.isdigit() else None


def _raise_for_status(response: httpx.Response) -> None:
    if response.status_code < 400:
        return
    try:
        details: Any = response.json()
    except ValueError:
        details = response.text or None
    raise HttpError(response.status_code, response.reason_phrase, details=details)


class HttpClient:
    """Sends ``TD1``-authenticated requests to one workflow endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key_getter: Callable[[], str],
        *,
        timeout: float = 60.0,
        max_retries: int = 2,
        backoff_factor: float = 0.5,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            headers={"User-Agent": USER_AGENT},
        )
        self._api_key_getter = api_key_getter
        self._max_retries = max_retries
        self._backoff_factor = backoff_factor

    @property
    def base_url(self) -> httpx.URL:
        return self._client.base_url

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        content: bytes | None = None,
    ) -> httpx.Response:
        """Send one request, retrying 429/5xx and transport failures.

        The API key is read when the request is prepared, so a key rotated
        between calls is picked up without rebuilding the client.
        """

        merged = dict(headers or {})
        api_key = self._api_key_getter()
        if api_key:
            merged["Authorization"] = f"TD1 {api_key}"
        request = self._client.build_request(
            method, path.lstrip("/"), params=params, headers=merged, content=content
        )

        for attempt in range(self._max_retries + 1):
            last_attempt = attempt == self._max_retries
            try:
                response = self._client.send(request)
            except httpx.TransportError as exc:
                if last_attempt:
                    raise HttpError(0, f"Transport error: {exc}") from exc
                self._pause(attempt, None, f"transport error: {exc}")
                continue

            if response.status_code in RETRYABLE_STATUSES and not last_attempt:
                response.close()
                self._pause(attempt, _retry_after(response), f"HTTP {response.status_code}")
                continue

            _raise_for_status(response)
            return response

        raise AssertionError("retry loop exited without a response")  # pragma: no cover

    def _pause(self, attempt: int, retry_after: float | None, reason: str) -> None:
        delay = retry_after if retry_after is not None else self._backoff_factor * (2**attempt)
        logger.debug("Retrying workflow request in %.1fs after %s", delay, reason)
        time.sleep(delay)

    def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("GET", path, **kwargs)

    def put(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("PUT", path, **kwargs)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


__all__ = ["RETRYABLE_STATUSES", "USER_AGENT", "HttpClient"]
