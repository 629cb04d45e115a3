"""
Message shapes exchanged with the browser extension.

InboundMessage is decoded from one native-messaging frame; OutboundMessage is
what the bridge writes back. Optional outbound fields are dropped from the
wire form when unset.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

STATUS_OK = "ok"
STATUS_ERROR = "error"


class MessageShapeError(ValueError):
    """Decoded JSON does not match the InboundMessage shape."""


def _string_field(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise MessageShapeError(f"field '{key}' must be a string, got {type(value).__name__}")
    return value


def _port_field(data: dict[str, Any]) -> int:
    value = data.get("port")
    if value is None:
        return 0
    # bool is an int subclass; JSON true/false is never a port.
    if isinstance(value, bool) or not isinstance(value, int):
        raise MessageShapeError(f"field 'port' must be an integer, got {type(value).__name__}")
    return value


def _params_field(data: dict[str, Any]) -> list[str]:
    value = data.get("params")
    if value is None:
        return []
    if not isinstance(value, list):
        raise MessageShapeError(f"field 'params' must be an array, got {type(value).__name__}")
    for index, item in enumerate(value):
        if not isinstance(item, str):
            raise MessageShapeError(f"field 'params[{index}]' must be a string, got {type(item).__name__}")
    return list(value)


@dataclass(slots=True)
class InboundMessage:
    """One request from the extension."""

    type: str = ""
    url: str = ""
    host: str = ""
    port: int = 0
    action: str = ""
    params: list[str] = field(default_factory=list)
    token: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> InboundMessage:
        if not isinstance(data, dict):
            raise MessageShapeError(f"message must be a JSON object, got {type(data).__name__}")
        return cls(
            type=_string_field(data, "type"),
            url=_string_field(data, "url"),
            host=_string_field(data, "host"),
            port=_port_field(data),
            action=_string_field(data, "action"),
            params=_params_field(data),
            token=_string_field(data, "token"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "url": self.url,
            "host": self.host,
            "port": self.port,
            "action": self.action,
            "params": list(self.params),
            "token": self.token,
        }


@dataclass(slots=True)
class OutboundMessage:
    """One reply to the extension."""

    status: str
    code: int | None = None
    message: str | None = None
    body: str | None = None

    @classmethod
    def ok(cls, code: int, body: str | None = None) -> OutboundMessage:
        return cls(status=STATUS_OK, code=code, body=body)

    @classmethod
    def error(cls, message: str, *, code: int | None = None, body: str | None = None) -> OutboundMessage:
        return cls(status=STATUS_ERROR, code=code, message=message, body=body)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"status": self.status}
        if self.code:
            payload["code"] = self.code
        if self.message:
            payload["message"] = self.message
        if self.body:
            payload["body"] = self.body
        return payload

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OutboundMessage:
        return cls(
            status=str(data.get("status") or ""),
            code=data.get("code"),
            message=data.get("message"),
            body=data.get("body"),
        )


__all__ = [
    "STATUS_ERROR",
    "STATUS_OK",
    "InboundMessage",
    "MessageShapeError",
    "OutboundMessage",
]
