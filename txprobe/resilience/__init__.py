from __future__ import annotations

from .retry import log_before_sleep, retry

__all__ = ["log_before_sleep", "retry"]
