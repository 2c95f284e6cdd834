"""Runtime configuration profiles for QuillChain."""
from __future__ import annotations

import os
from typing import Dict

PROFILE = os.getenv("QUILL_PROFILE", "default")

DEFAULT_API_URL = "http://localhost:8080/api"

PROFILES: Dict[str, Dict[str, str]] = {
    "default": {
        "QUILL_API_URL": DEFAULT_API_URL,
        "QUILL_NETWORK": "preview",
        "QUILL_MONITOR_INTERVAL": "20",
        "QUILL_FEE_MAX_ATTEMPTS": "12",
        "QUILL_FEE_RETRY_DELAY": "5",
        "QUILL_SIGNING_TIMEOUT": "90",
        "QUILL_HTTP_TIMEOUT": "15",
        "QUILL_SYNC_DELAY": "0.1",
        "QUILL_SWEEP_FEE_DELAY": "0.5",
        "QUILL_SWEEP_SYNC_DELAY": "0.2",
        "QUILL_BACKGROUND_WORKERS": "4",
    },
    "mainnet": {
        "QUILL_NETWORK": "mainnet",
        "QUILL_MONITOR_INTERVAL": "30",
        "QUILL_FEE_MAX_ATTEMPTS": "24",
    },
}


def apply_profile() -> None:
    profile = os.getenv("QUILL_PROFILE", PROFILE)
    if not profile:
        return
    settings = PROFILES.get(profile)
    if not settings:
        return
    for key, value in settings.items():
        os.environ.setdefault(key, value)


def env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value else default


def env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default
