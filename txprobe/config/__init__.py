from __future__ import annotations

from .retry import RetryConfig

__all__ = ["RetryConfig"]
