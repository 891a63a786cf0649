"""Dependency cache interface.

The dependency cache is an external key-value service injected into the
pipeline. Keys are (package name, version); values are the packaged crate
bytes. A resolution record per Manifest Set fingerprint lets an unchanged
workspace skip resolution entirely.

Implementations must be safe for concurrent readers and writers across
pipeline runs: a reader never observes a partially written entry.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CacheKey(BaseModel):
    """Key of one cached package."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, description="Package name")
    version: str = Field(..., min_length=1, description="Exact package version")

    def __str__(self) -> str:
        return f"{self.name}-{self.version}"


class ResolutionRecord(BaseModel):
    """Marker stored after a Manifest Set resolved completely.

    Attributes:
        fingerprint: Manifest Set fingerprint.
        packages: Every cached package the resolution relies on.
        resolved_at: When the resolution finished (UTC).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    fingerprint: str = Field(..., min_length=1)
    packages: list[CacheKey] = Field(default_factory=list)
    resolved_at: datetime = Field(...)


class DependencyCache(ABC):
    """Concurrency-safe key-value store for fetched packages."""

    @abstractmethod
    def contains(self, key: CacheKey) -> bool:
        """Return True when the package is stored."""

    @abstractmethod
    def get(self, key: CacheKey) -> bytes | None:
        """Return the stored package bytes, or None on a miss."""

    @abstractmethod
    def put(self, key: CacheKey, data: bytes) -> None:
        """Store package bytes atomically.

        Callers must have verified ``data`` against the lock checksum.
        """

    @abstractmethod
    def get_resolution(self, fingerprint: str) -> ResolutionRecord | None:
        """Return the resolution record for a Manifest Set, if any."""

    @abstractmethod
    def put_resolution(self, record: ResolutionRecord) -> None:
        """Store a resolution record atomically."""

    def has_resolution(self, fingerprint: str) -> bool:
        """Check a resolution record exists and every package it names is present."""
        record = self.get_resolution(fingerprint)
        if record is None:
            return False
        return all(self.contains(key) for key in record.packages)

    def missing(self, keys: Iterable[CacheKey]) -> list[CacheKey]:
        return [key for key in keys if not self.contains(key)]
