"""Caching helpers for slow remote reads."""

from .loader import CachedAsyncLoader, LoaderState, params_hash

__all__ = [
    "CachedAsyncLoader",
    "LoaderState",
    "params_hash",
]
