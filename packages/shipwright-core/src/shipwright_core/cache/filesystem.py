"""Filesystem-backed dependency cache.

Layout under the cache root:

    packages/<name>/<name>-<version>.crate
    resolutions/<fingerprint>.json

Every write goes to a temporary file in the destination directory followed
by ``os.replace``, so concurrent pipeline runs sharing one cache directory
never observe partial entries. Two writers of the same key store identical
verified bytes, so the last rename wins harmlessly.
"""

from __future__ import annotations

import os
import tempfile
import threading
from pathlib import Path

import structlog
from pydantic import ValidationError

from shipwright_core.cache.base import CacheKey, DependencyCache, ResolutionRecord

logger = structlog.get_logger(__name__)

# Environment variable overriding the cache location
CACHE_DIR_ENV_VAR = "SHIPWRIGHT_CACHE_DIR"

# Default cache location when neither config nor environment set one
DEFAULT_CACHE_DIR = Path.home() / ".cache" / "shipwright"


def get_cache_dir(configured: Path | str | None = None) -> Path:
    """Resolve the cache directory.

    Precedence: SHIPWRIGHT_CACHE_DIR, then the configured path, then
    ~/.cache/shipwright.
    """
    env_value = os.environ.get(CACHE_DIR_ENV_VAR)
    if env_value:
        return Path(env_value).expanduser()
    if configured:
        return Path(configured).expanduser()
    return DEFAULT_CACHE_DIR


def _atomic_write(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class FileSystemDependencyCache(DependencyCache):
    """Dependency cache stored in a local (possibly shared) directory.

    Attributes:
        root: Cache root directory.

    Example:
        >>> cache = FileSystemDependencyCache(get_cache_dir())
        >>> cache.contains(CacheKey(name="serde", version="1.0.210"))
        False
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)
        self._write_lock = threading.Lock()

    def _package_path(self, key: CacheKey) -> Path:
        return self.root / "packages" / key.name / f"{key.name}-{key.version}.crate"

    def _resolution_path(self, fingerprint: str) -> Path:
        return self.root / "resolutions" / f"{fingerprint}.json"

    def package_path(self, key: CacheKey) -> Path:
        """On-disk location of a cached package (it may not exist)."""
        return self._package_path(key)

    def contains(self, key: CacheKey) -> bool:
        return self._package_path(key).is_file()

    def get(self, key: CacheKey) -> bytes | None:
        path = self._package_path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    def put(self, key: CacheKey, data: bytes) -> None:
        with self._write_lock:
            _atomic_write(self._package_path(key), data)
        logger.debug("cache_put", package=str(key), size=len(data))

    def get_resolution(self, fingerprint: str) -> ResolutionRecord | None:
        path = self._resolution_path(fingerprint)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            return ResolutionRecord.model_validate_json(raw)
        except ValidationError:
            logger.warning("cache_resolution_unreadable", path=str(path))
            return None

    def put_resolution(self, record: ResolutionRecord) -> None:
        with self._write_lock:
            _atomic_write(
                self._resolution_path(record.fingerprint),
                record.model_dump_json(indent=2).encode("utf-8"),
            )


class InMemoryDependencyCache(DependencyCache):
    """Process-local dependency cache, used for dry runs and tests."""

    def __init__(self) -> None:
        self._packages: dict[CacheKey, bytes] = {}
        self._resolutions: dict[str, ResolutionRecord] = {}
        self._lock = threading.Lock()

    def contains(self, key: CacheKey) -> bool:
        with self._lock:
            return key in self._packages

    def get(self, key: CacheKey) -> bytes | None:
        with self._lock:
            return self._packages.get(key)

    def put(self, key: CacheKey, data: bytes) -> None:
        with self._lock:
            self._packages[key] = bytes(data)

    def get_resolution(self, fingerprint: str) -> ResolutionRecord | None:
        with self._lock:
            return self._resolutions.get(fingerprint)

    def put_resolution(self, record: ResolutionRecord) -> None:
        with self._lock:
            self._resolutions[record.fingerprint] = record

    def __len__(self) -> int:
        with self._lock:
            return len(self._packages)
