"""Core module exports."""

from __future__ import annotations

from .enums import HealthStatus

__all__ = [
    "HealthStatus",
]
