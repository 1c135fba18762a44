"""
Shared JSON-over-HTTP request helper for the remote-service clients.
"""
from __future__ import annotations

from typing import Any, Mapping

import requests

from cinefilter.cancellation import CancellationScope, check_scope
from cinefilter.errors import ApiHttpError, ApiResponseError


def _failure_message(prefix: str, resp: requests.Response, *, include_body: bool) -> str:
    message = f"{prefix} {resp.status_code}: {resp.reason or ''}".rstrip()
    if include_body:
        body = (resp.text or "")[:400]
        message = f"{message} - {body}"
    return message


def request_json(
    session: requests.Session,
    url: str,
    *,
    method: str = "GET",
    params: Mapping[str, Any] | None = None,
    json_body: Mapping[str, Any] | None = None,
    scope: CancellationScope | None = None,
    timeout_seconds: float = 20.0,
    error_prefix: str = "TMDB",
    include_body: bool = True,
) -> dict[str, Any]:
    """
    Issue one request and return the JSON object body.

    There are no retries. The scope is checked before the request is sent and again
    once a response (or transport failure) arrives, so a late response is discarded
    by raising `SearchCancelled` instead of being returned.
    """

    headers = {
        "accept": "application/json",
        "user-agent": "Mozilla/5.0",
    }
    check_scope(scope)
    try:
        resp = session.request(
            method,
            url,
            params=params,
            json=json_body,
            headers=headers,
            timeout=timeout_seconds,
        )
    except requests.RequestException as exc:
        check_scope(scope)
        raise ApiHttpError(f"{error_prefix} request failed: {exc}") from exc
    check_scope(scope)

    if not 200 <= resp.status_code < 300:
        raise ApiHttpError(
            _failure_message(error_prefix, resp, include_body=include_body),
            status_code=resp.status_code,
            reason=resp.reason,
            body_snippet=(resp.text or "")[:400],
        )

    try:
        payload = resp.json()
    except ValueError as exc:
        raise ApiResponseError(f"{error_prefix} returned non-JSON response.") from exc

    if not isinstance(payload, dict):
        raise ApiResponseError(f"{error_prefix} returned unexpected JSON shape (not an object).")
    return payload


