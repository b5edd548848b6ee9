"""Shared HTTP helper that maps requests failures onto the panel error taxonomy."""

from __future__ import annotations

from typing import Any, Mapping

import requests

from weatherpane.errors import NetworkFailure, ProviderError


def get_json(session: requests.Session, url: str, params: Mapping[str, Any], *, timeout: float) -> Any:
    """
    GET `url` and return the decoded JSON body.

    Transport problems (DNS, refused connection, timeout) raise NetworkFailure;
    non-2xx statuses and bodies that are not JSON raise ProviderError.
    """
    try:
        resp = session.get(url, params=params, timeout=timeout)
    except (requests.Timeout, requests.ConnectionError) as exc:
        raise NetworkFailure(f"Request to {url} failed: {exc}") from exc
    except requests.RequestException as exc:
        raise ProviderError(f"Request to {url} failed: {exc}") from exc

    if not 200 <= resp.status_code < 300:
        raise ProviderError((resp.text or "")[:200], status_code=resp.status_code)

    try:
        return resp.json()
    except ValueError as exc:
        raise ProviderError(f"Non-JSON response from {url}: {(resp.text or '')[:200]}") from exc
