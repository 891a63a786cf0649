"""Dependency cache service.

This module exports:
- DependencyCache: Abstract key-value cache contract
- FileSystemDependencyCache: Directory-backed, concurrency-safe cache
- InMemoryDependencyCache: Process-local cache
- CacheKey, ResolutionRecord: Cache models
- get_cache_dir: Resolve the cache directory (SHIPWRIGHT_CACHE_DIR)
"""

from __future__ import annotations

from shipwright_core.cache.base import CacheKey, DependencyCache, ResolutionRecord
from shipwright_core.cache.filesystem import (
    CACHE_DIR_ENV_VAR,
    DEFAULT_CACHE_DIR,
    FileSystemDependencyCache,
    InMemoryDependencyCache,
    get_cache_dir,
)

__all__: list[str] = [
    "CACHE_DIR_ENV_VAR",
    "DEFAULT_CACHE_DIR",
    "CacheKey",
    "DependencyCache",
    "FileSystemDependencyCache",
    "InMemoryDependencyCache",
    "ResolutionRecord",
    "get_cache_dir",
]
