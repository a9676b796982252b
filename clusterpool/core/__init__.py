"""Core module exports."""

from __future__ import annotations

from .enums import HealthCheckStatus
from .types import P, R

__all__ = [
    "HealthCheckStatus",
    "P",
    "R",
]
