"""Minimal JSON over HTTPS transport for the remote services."""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from urllib.parse import urlparse

from mozblocklist import __version__

USER_AGENT = f"mozblocklist/{__version__}"
DEFAULT_TIMEOUT = 30


@dataclass(frozen=True, slots=True)
class JsonResponse:
    status: int
    payload: object
    headers: dict[str, str] = field(default_factory=dict)


def request_json(
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    payload: object | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> JsonResponse:
    """Send one request and decode its JSON body."""
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"}:
        raise ValueError(f"Unsupported URL scheme: {url}")
    if not parsed.netloc:
        raise ValueError(f"Invalid URL (missing host): {url}")

    request_headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
    request_headers.update(headers or {})
    body: bytes | None = None
    if payload is not None:
        body = json.dumps(payload).encode("utf-8")
        request_headers["Content-Type"] = "application/json"

    request = urllib.request.Request(url, data=body, headers=request_headers, method=method)
    try:
        # Scheme and host are validated above; only HTTP(S) is permitted.
        with urllib.request.urlopen(request, timeout=timeout) as response:  # nosec B310
            status = response.status
            response_headers = {key.lower(): value for key, value in response.headers.items()}
            raw = response.read()
    except urllib.error.HTTPError as exc:
        detail = _error_detail(exc)
        raise OSError(f"{method} {url} returned HTTP {exc.code}: {detail}") from exc
    except (urllib.error.URLError, TimeoutError) as exc:
        raise OSError(f"{method} {url} failed: {exc}") from exc

    if not raw:
        return JsonResponse(status=status, payload=None, headers=response_headers)
    try:
        decoded = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValueError(f"{method} {url} returned invalid JSON: {exc}") from exc
    return JsonResponse(status=status, payload=decoded, headers=response_headers)


def _error_detail(exc: urllib.error.HTTPError) -> str:
    try:
        raw = exc.read()
    except OSError:
        return str(exc.reason)
    try:
        decoded = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return str(exc.reason)
    if isinstance(decoded, dict) and decoded.get("message"):
        return str(decoded["message"])
    return str(exc.reason)
