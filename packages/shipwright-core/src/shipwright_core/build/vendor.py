"""Vendor directory materialization.

Cargo's directory source replacement reads one unpacked crate per
subdirectory, each carrying a ``.cargo-checksum.json``. Materializing that
layout from the dependency cache lets the compiler stage run with
``--offline`` so it only ever sees the exact bytes the resolver verified.
"""

from __future__ import annotations

import io
import json
import os
import shutil
import tarfile
import tempfile
from pathlib import Path

import structlog

from shipwright_core.cache.base import CacheKey, DependencyCache
from shipwright_core.errors import PipelineError
from shipwright_core.manifest.models import LockFile

logger = structlog.get_logger(__name__)

CHECKSUM_FILE_NAME = ".cargo-checksum.json"


def _is_current(crate_dir: Path, checksum: str) -> bool:
    marker = crate_dir / CHECKSUM_FILE_NAME
    if not marker.is_file():
        return False
    try:
        data = json.loads(marker.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return False
    return data.get("package") == checksum


def _unpack(data: bytes, key: CacheKey, dest: Path) -> None:
    """Unpack a .crate archive into ``dest`` (staged, then renamed into place)."""
    staging = Path(tempfile.mkdtemp(dir=dest.parent, prefix=f".{dest.name}."))
    try:
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as archive:
            archive.extractall(staging, filter="data")
        unpacked = staging / str(key)
        if not unpacked.is_dir():
            raise PipelineError(f"Cached package {key} has an unexpected layout")
        if dest.exists():
            shutil.rmtree(dest)
        os.replace(unpacked, dest)
    finally:
        shutil.rmtree(staging, ignore_errors=True)


def materialize_vendor_dir(
    cache: DependencyCache,
    lockfile: LockFile,
    vendor_dir: Path,
) -> Path:
    """Unpack every locked registry package from the cache into ``vendor_dir``.

    Already unpacked crates with a matching checksum are left alone.

    Raises:
        PipelineError: If a locked package has not been resolved into the cache.
    """
    vendor_dir.mkdir(parents=True, exist_ok=True)
    unpacked = 0

    for package in lockfile.registry_packages():
        key = CacheKey(name=package.name, version=package.version)
        crate_dir = vendor_dir / str(key)
        if package.checksum and _is_current(crate_dir, package.checksum):
            continue

        data = cache.get(key)
        if data is None:
            raise PipelineError(
                f"{key} is not in the dependency cache; resolve dependencies first"
            )

        _unpack(data, key, crate_dir)
        (crate_dir / CHECKSUM_FILE_NAME).write_text(
            json.dumps({"files": {}, "package": package.checksum}),
            encoding="utf-8",
        )
        unpacked += 1

    logger.debug("vendor_dir_materialized", path=str(vendor_dir), unpacked=unpacked)
    return vendor_dir
