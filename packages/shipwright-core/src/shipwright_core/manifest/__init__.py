"""Cargo workspace manifests, lock file, and version requirements.

This module exports:
- load_manifest_set: Load root + member manifests and Cargo.lock
- ManifestSet, PackageManifest, DependencyDecl: Manifest models
- LockFile, LockedPackage: Lock file models
- Version, VersionReq: Cargo version requirement matching
"""

from __future__ import annotations

from shipwright_core.manifest.loader import (
    LOCK_FILE_NAME,
    MANIFEST_FILE_NAME,
    load_lockfile,
    load_manifest_set,
    load_package_manifest,
)
from shipwright_core.manifest.models import (
    CRATES_IO_SOURCES,
    DependencyDecl,
    DependencyKind,
    LockedPackage,
    LockFile,
    ManifestSet,
    PackageManifest,
)
from shipwright_core.manifest.versions import Comparator, Version, VersionReq

__all__: list[str] = [
    "CRATES_IO_SOURCES",
    "LOCK_FILE_NAME",
    "MANIFEST_FILE_NAME",
    "Comparator",
    "DependencyDecl",
    "DependencyKind",
    "LockFile",
    "LockedPackage",
    "ManifestSet",
    "PackageManifest",
    "Version",
    "VersionReq",
    "load_lockfile",
    "load_manifest_set",
    "load_package_manifest",
]
