"""Utility helpers package."""

from app.utils.cache import CacheBackend
from app.utils.time import as_utc, minutes_between, utcnow

__all__ = ["CacheBackend", "as_utc", "minutes_between", "utcnow"]
