"""
Turns one InboundMessage into one POST against the post2mpv server.

Every outcome, local or remote, maps to exactly one OutboundMessage; nothing
in here raises to the caller.
"""

from __future__ import annotations

import json
import logging
import urllib.parse
from collections.abc import Callable
from dataclasses import replace

from .config import DEFAULT_HTTP_TIMEOUT, BridgeConfig
from .http_client import HttpResponse, RequestBuildError, ResponseReadError, TransportError, http_post
from .messages import InboundMessage, OutboundMessage

DEFAULT_HOST = "http://localhost"
DEFAULT_PORT = 7531
DEFAULT_ACTION = "play"
TOKEN_HEADER = "X-POST2MPV-TOKEN"

logger = logging.getLogger("post2mpv.bridge.translator")

PostFn = Callable[..., HttpResponse]


def apply_defaults(msg: InboundMessage) -> InboundMessage:
    """Return a copy with host/port/action filled in. Applying it twice is a no-op."""
    host = msg.host or DEFAULT_HOST
    port = msg.port or DEFAULT_PORT
    action = msg.action or msg.type or DEFAULT_ACTION
    return replace(msg, host=host, port=port, action=action, params=list(msg.params))


def build_target_url(host: str, port: int) -> str:
    """Build `scheme://hostname:port/` from a scheme-qualified (or bare) host."""
    raw = (host or "").strip()
    if _has_unsafe_chars(raw):
        raise RequestBuildError(f"host {host!r} contains whitespace or control characters")
    if "://" not in raw:
        raw = f"http://{raw}"
    try:
        parts = urllib.parse.urlsplit(raw)
        embedded_port = parts.port
    except ValueError as exc:
        raise RequestBuildError(f"invalid host {host!r}: {exc}") from exc

    scheme = parts.scheme.lower()
    if scheme not in ("http", "https"):
        raise RequestBuildError(f"unsupported scheme {parts.scheme!r} in host {host!r} (allowed: http, https)")
    if parts.username is not None or parts.password is not None:
        raise RequestBuildError(f"host {host!r} must not carry credentials")
    if parts.path not in ("", "/") or parts.query or parts.fragment:
        raise RequestBuildError(f"host {host!r} must not carry a path, query or fragment")
    if embedded_port is not None:
        raise RequestBuildError(f"host {host!r} must not carry a port; use the 'port' field")
    hostname = parts.hostname
    if not hostname:
        raise RequestBuildError(f"host {host!r} has no hostname")
    if not 0 < port <= 65535:
        raise RequestBuildError(f"port {port} out of range 1-65535")
    if ":" in hostname:
        hostname = f"[{hostname}]"
    else:
        try:
            hostname.encode("idna")
        except UnicodeError as exc:
            raise RequestBuildError(f"invalid hostname {hostname!r}: {exc}") from exc
    return f"{scheme}://{hostname}:{port}/"


def _has_unsafe_chars(value: str) -> bool:
    return any(ch.isspace() or ord(ch) < 0x20 or ord(ch) == 0x7F for ch in value)


def build_body(msg: InboundMessage) -> bytes:
    payload = {"url": msg.url, "action": msg.action, "params": list(msg.params)}
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def build_headers(token: str) -> dict[str, str | bytes]:
    headers: dict[str, str | bytes] = {"Content-Type": "application/json"}
    if not token:
        return headers
    if any(ord(ch) < 0x20 or ord(ch) == 0x7F for ch in token):
        raise RequestBuildError("token contains control characters")
    # http.client encodes str header values as latin-1; non-ASCII tokens go out as raw UTF-8.
    headers[TOKEN_HEADER] = token if token.isascii() else token.encode("utf-8")
    return headers


class RequestTranslator:
    """Forwards requests to the media server and maps the outcome."""

    def __init__(self, config: BridgeConfig | None = None, *, post: PostFn = http_post) -> None:
        self._timeout = config.http_timeout if config is not None else DEFAULT_HTTP_TIMEOUT
        self._post = post

    def translate(self, msg: InboundMessage) -> OutboundMessage:
        msg = apply_defaults(msg)

        try:
            body = build_body(msg)
        except (TypeError, ValueError) as exc:
            return OutboundMessage.error(f"Failed to marshal JSON: {exc}")

        try:
            url = build_target_url(msg.host, msg.port)
            headers = build_headers(msg.token)
        except RequestBuildError as exc:
            return OutboundMessage.error(f"Failed to create request: {exc}")

        logger.debug(
            "post url=%s action=%s params=%d token=%s",
            url,
            msg.action,
            len(msg.params),
            "set" if msg.token else "unset",
        )
        try:
            resp = self._post(url, body, headers=headers, timeout=self._timeout)
        except RequestBuildError as exc:
            return OutboundMessage.error(f"Failed to create request: {exc}")
        except TransportError as exc:
            logger.info("post_failed url=%s reason=%s", url, exc)
            return OutboundMessage.error(f"Failed to send request: {exc}")
        except ResponseReadError as exc:
            logger.info("read_failed url=%s status=%d reason=%s", url, exc.status, exc)
            return OutboundMessage.error(f"Failed to read response: {exc}", code=exc.status)

        if resp.status >= 400:
            logger.info("http_error url=%s status=%d", url, resp.status)
            return OutboundMessage.error(f"HTTP {resp.status}", code=resp.status, body=resp.body)
        return OutboundMessage.ok(resp.status, body=resp.body)


__all__ = [
    "DEFAULT_ACTION",
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "TOKEN_HEADER",
    "RequestTranslator",
    "apply_defaults",
    "build_body",
    "build_headers",
    "build_target_url",
]
