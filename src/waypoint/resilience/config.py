"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Retry, timeout and backoff policy for wrapped external calls.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")


@dataclass(frozen=True, slots=True)
class ResiliencePolicy:
    # Attempts
    retries: int = 3
    timeout_s: float = 30.0

    # Backoff
    backoff_base_s: float = 1.0
    backoff_max_s: float = 30.0
    jitter: bool = True
    jitter_ratio: float = 0.25

    def __post_init__(self) -> None:
        if self.retries < 0:
            raise ValueError("retries must be >= 0")
        if self.timeout_s <= 0:
            raise ValueError("timeout_s must be greater than 0")
        if self.backoff_base_s < 0 or self.backoff_max_s < 0:
            raise ValueError("backoff values must be >= 0")
        if not 0.0 <= self.jitter_ratio <= 1.0:
            raise ValueError("jitter_ratio must be within [0, 1]")

    @staticmethod
    def from_env(prefix: str = "WAYPOINT") -> "ResiliencePolicy":
        return ResiliencePolicy(
            retries=int(os.getenv(f"{prefix}_RETRIES", "3")),
            timeout_s=float(os.getenv(f"{prefix}_TIMEOUT_S", "30")),
            backoff_base_s=float(os.getenv(f"{prefix}_BACKOFF_BASE_S", "1.0")),
            backoff_max_s=float(os.getenv(f"{prefix}_BACKOFF_MAX_S", "30")),
            jitter=_env_bool(f"{prefix}_JITTER", True),
            jitter_ratio=float(os.getenv(f"{prefix}_JITTER_RATIO", "0.25")),
        )
