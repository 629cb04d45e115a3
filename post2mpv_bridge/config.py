from __future__ import annotations

import logging
import os
from dataclasses import dataclass

DEFAULT_HTTP_TIMEOUT = 15.0
DEFAULT_MAX_FRAME_BYTES = 8_000_000
DEFAULT_LOG_LEVEL = "WARNING"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= 0 else default


@dataclass
class BridgeConfig:
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    # 0 disables the cap.
    max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES
    log_level: str = DEFAULT_LOG_LEVEL

    @staticmethod
    def normalize_log_level(raw: str | None) -> str:
        level = (raw or "").strip().upper()
        if level == "WARN":
            return "WARNING"
        if level in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            return level
        return DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls) -> BridgeConfig:
        level = cls.normalize_log_level(os.environ.get("POST2MPV_LOG_LEVEL"))
        if os.environ.get("POST2MPV_NATIVE_HOST_DEBUG") == "1":
            level = "DEBUG"
        return cls(
            http_timeout=_env_float("POST2MPV_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
            max_frame_bytes=_env_int("POST2MPV_MAX_FRAME_BYTES", DEFAULT_MAX_FRAME_BYTES),
            log_level=level,
        )

    @property
    def logging_level(self) -> int:
        return logging.getLevelName(self.log_level)
