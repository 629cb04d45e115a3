from __future__ import annotations

import http.client
import ipaddress
import urllib.parse
from dataclasses import dataclass
from urllib.error import HTTPError, URLError
from urllib.request import OpenerDirector, ProxyHandler, Request, build_opener


class HttpClientError(Exception):
    pass


class RequestBuildError(HttpClientError):
    pass


class TransportError(HttpClientError):
    pass


class ResponseReadError(HttpClientError):
    def __init__(self, message: str, status: int) -> None:
        super().__init__(message)
        self.status = status


@dataclass(frozen=True, slots=True)
class HttpResponse:
    status: int
    body: str


def is_loopback_host(hostname: str) -> bool:
    host = (hostname or "").strip().lower().rstrip(".")
    if host == "localhost" or host.endswith(".localhost"):
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


def _build_opener(url: str) -> OpenerDirector:
    # Loopback targets never go through http_proxy/https_proxy.
    if is_loopback_host(urllib.parse.urlsplit(url).hostname or ""):
        return build_opener(ProxyHandler({}))
    return build_opener()


def _build_request(url: str, body: bytes, headers: dict[str, str | bytes]) -> Request:
    try:
        return Request(url, data=body, headers=headers, method="POST")
    except ValueError as exc:
        raise RequestBuildError(str(exc)) from exc


def http_post(url: str, body: bytes, *, headers: dict[str, str | bytes], timeout: float) -> HttpResponse:
    """POST `body` to `url` once. Error statuses come back as a response, not an exception."""
    req = _build_request(url, body, headers)
    opener = _build_opener(url)
    try:
        resp = opener.open(req, timeout=timeout)
    except HTTPError as exc:
        # urllib raises on >= 400 but the error object is the response itself.
        resp = exc
    except (http.client.InvalidURL, ValueError) as exc:
        # Bad header values, IDNA-unencodable hostnames: nothing was sent.
        raise RequestBuildError(str(exc)) from exc
    except (TimeoutError, URLError, http.client.HTTPException, OSError) as exc:
        reason = getattr(exc, "reason", None) or exc
        raise TransportError(str(reason)) from exc

    status = int(resp.status)
    try:
        with resp:
            raw = resp.read()
    except (TimeoutError, http.client.HTTPException, OSError) as exc:
        raise ResponseReadError(str(exc), status) from exc
    return HttpResponse(status=status, body=raw.decode("utf-8", errors="replace"))
