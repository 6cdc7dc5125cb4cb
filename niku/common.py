"""Helpers shared by the client, the backend and the command line."""

from __future__ import annotations

import logging
import os
import struct
from pathlib import Path

import platformdirs

logger = logging.getLogger(__name__)

CACHE_PREFIX = "app.niku"
DEBUG_ENV_VAR = "APP_NIKU_DEBUG"

LOCAL_BACKEND_ADDRESS = "http://localhost:8080"
PUBLIC_BACKEND_ADDRESS = "https://eu1.backend.niku.app"

_BACKEND_ADDRESSES = {
    "test": LOCAL_BACKEND_ADDRESS,
    "the": PUBLIC_BACKEND_ADDRESS,
}

_BYTES_IN_A_KIBIBYTE = 1024
_MAX_SIZE = 2**64 - 1


def _debug_mode() -> bool:
    return os.environ.get(DEBUG_ENV_VAR, "").strip().lower() in {"1", "true", "yes", "on"}


def get_cache_path() -> Path:
    """Return the user cache directory used by the application."""
    return Path(platformdirs.user_cache_dir()) / CACHE_PREFIX


def get_backend_address_from_prefix(prefix: str) -> str | None:
    """Return the backend address for an object ID prefix, if known."""
    return _BACKEND_ADDRESSES.get(prefix)


def get_recommended_backend_address() -> str:
    """Return the backend address to publish new objects to."""
    if _debug_mode():
        logger.debug("Debug mode enabled, trying to use local backend...")
        return LOCAL_BACKEND_ADDRESS
    return PUBLIC_BACKEND_ADDRESS


def _to_f32(value: float) -> float:
    return struct.unpack("<f", struct.pack("<f", value))[0]


def format_bytes_with_unit(size: int) -> str:
    """Format a byte count with a suffix from B to GiB."""
    if isinstance(size, bool) or not isinstance(size, int):
        raise TypeError("size must be an integer")
    if not 0 <= size <= _MAX_SIZE:
        raise ValueError(f"size out of range: {size}")

    scale = size // _BYTES_IN_A_KIBIBYTE
    if scale == 0:
        suffix, power = "B", 0
    elif scale == 1:
        suffix, power = "KiB", 1
    elif size // _BYTES_IN_A_KIBIBYTE**3 == 0:
        suffix, power = "MiB", 2
    else:
        suffix, power = "GiB", 3

    value = _to_f32(_to_f32(size) / _to_f32(_BYTES_IN_A_KIBIBYTE**power))
    return f"{value:.2f} {suffix}"