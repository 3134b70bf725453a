"""Connection settings for the CLI, read from flags first and the environment second."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_REQUEST_TIMEOUT = 30.0

BASE_URL_ENV = "API_BASE_URL"
REQUEST_TIMEOUT_ENV = "CLI_REQUEST_TIMEOUT"


@dataclass(frozen=True)
class CLIConfig:
    base_url: str = DEFAULT_BASE_URL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT


def _env_timeout() -> float:
    raw = (os.getenv(REQUEST_TIMEOUT_ENV) or "").strip()
    try:
        timeout = float(raw) if raw else DEFAULT_REQUEST_TIMEOUT
    except ValueError:
        return DEFAULT_REQUEST_TIMEOUT
    return timeout if timeout > 0 else DEFAULT_REQUEST_TIMEOUT


def load_config(
    base_url: Optional[str] = None,
    request_timeout: Optional[float] = None,
) -> CLIConfig:
    url = (base_url or os.getenv(BASE_URL_ENV) or DEFAULT_BASE_URL).rstrip("/")
    timeout = request_timeout if request_timeout and request_timeout > 0 else _env_timeout()
    return CLIConfig(base_url=url, request_timeout=timeout)
