"""
Request Context and Logging State.

The request id lives in a ContextVar so that every log line emitted while
serving one stream (including lines from the pull loop task, which inherits
the context when it is created) carries the same id.

Environment Variables:
    - TTS_BRIDGE_LOG_LEVEL: Override log level (1-4 or name)
    - TTS_BRIDGE_LOG_DIR: Directory for the JSONL log file
    - TTS_BRIDGE_JSONL_FILE: JSONL filename (default tts-bridge.jsonl)
    - TTS_BRIDGE_LOG_ROTATE_BYTES: Max file size before rotation
    - TTS_BRIDGE_LOG_ROTATE_BACKUP: Number of rotated files to keep
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

from .levels import LEVEL_NAMES, LogLevel

# "-" marks log lines emitted outside any request
_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    """Get the request id of the current context, or "-"."""
    return _request_id.get()


def set_request_id(rid: str) -> None:
    """Bind a request id to the current context for log correlation."""
    _request_id.set(rid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def get_level_name() -> str:
    return LEVEL_NAMES.get(int(_current_level), "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def read_logging_config() -> Dict[str, Any]:
    """
    Resolve logging options from the settings file and environment.

    Priority (highest first): TTS_BRIDGE_* variables, the ``logging``
    section of the settings file, built-in defaults.
    """
    from tts_bridge.core.config import load_settings

    cfg: Dict[str, Any] = {}
    cfg.update(load_settings().raw.get("logging", {}) or {})

    if os.getenv("TTS_BRIDGE_LOG_LEVEL"):
        cfg["level"] = os.environ["TTS_BRIDGE_LOG_LEVEL"]
    if os.getenv("TTS_BRIDGE_LOG_DIR"):
        cfg["log_dir"] = os.environ["TTS_BRIDGE_LOG_DIR"]
    if os.getenv("TTS_BRIDGE_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["TTS_BRIDGE_JSONL_FILE"]
    for env_name, key in (
        ("TTS_BRIDGE_LOG_ROTATE_BYTES", "rotate_max_bytes"),
        ("TTS_BRIDGE_LOG_ROTATE_BACKUP", "rotate_backup_count"),
    ):
        value = os.getenv(env_name)
        if value and value.isdigit():
            cfg[key] = int(value)

    return cfg
