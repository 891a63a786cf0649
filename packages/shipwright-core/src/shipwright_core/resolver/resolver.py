"""Dependency Resolver/Fetcher stage.

Resolution is locked: Cargo.lock is the only source of versions and is
never re-resolved. The resolver first checks the lock against every member
manifest without touching the network, then fills the dependency cache with
any locked registry package it is missing. An unchanged Manifest Set whose
resolution record is present performs no fetches at all.
"""

from __future__ import annotations

import hashlib
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from datetime import UTC, datetime

import structlog
from pydantic import BaseModel, ConfigDict, Field

from shipwright_core.cache.base import CacheKey, DependencyCache, ResolutionRecord
from shipwright_core.errors import FetchError, ManifestLockMismatchError
from shipwright_core.manifest.models import (
    CRATES_IO_SOURCES,
    DependencyDecl,
    LockedPackage,
    LockFile,
    ManifestSet,
    PackageManifest,
)
from shipwright_core.manifest.versions import Version, VersionReq
from shipwright_core.observability import span
from shipwright_core.resolver.fetcher import PackageFetcher

logger = structlog.get_logger(__name__)

# Lock formats whose checksums live inline on each [[package]]
SUPPORTED_LOCK_VERSIONS = frozenset({2, 3, 4})


class ResolutionResult(BaseModel):
    """Outcome of one resolution.

    Attributes:
        fingerprint: Manifest Set fingerprint that was resolved.
        packages: Every locked registry package now present in the cache.
        fetched: Packages downloaded during this resolution.
        cache_hit: True when a resolution record short-circuited all work.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    fingerprint: str = Field(..., min_length=1)
    packages: list[CacheKey] = Field(default_factory=list)
    fetched: list[CacheKey] = Field(default_factory=list)
    cache_hit: bool = Field(default=False)

    @property
    def fetched_count(self) -> int:
        return len(self.fetched)

    @property
    def cached_count(self) -> int:
        return len(self.packages) - len(self.fetched)


def _member_entry(lockfile: LockFile, member: PackageManifest) -> LockedPackage | None:
    for package in lockfile.find(member.name):
        if package.source is None:
            return package
    return None


def _check_dependency(
    member: PackageManifest,
    entry: LockedPackage,
    decl: DependencyDecl,
    lockfile: LockFile,
) -> str | None:
    """Return a problem description, or None when the lock agrees with ``decl``."""
    crate = decl.crate_name
    label = f"{member.name}: dependency '{crate}'"
    candidates = [p for p in lockfile.find(crate) if entry.references(p.name, p.version)]

    if not candidates:
        return f"{label} is not recorded in Cargo.lock"

    if decl.path is not None:
        if not any(p.source is None for p in candidates):
            return f"{label} is a path dependency but the lock pins a remote source"
        return None

    if decl.git is not None:
        if not any(p.is_git for p in candidates):
            return f"{label} is a git dependency but the lock pins a different source"
        return None

    registry = [p for p in candidates if p.is_registry]
    if not registry:
        return f"{label} is a registry dependency but the lock pins a non-registry source"

    if decl.requirement is None:
        return None

    try:
        requirement = VersionReq.parse(decl.requirement)
    except ValueError as e:
        return f"{label} has an invalid version requirement: {e}"

    for candidate in registry:
        try:
            if requirement.matches(Version.parse(candidate.version)):
                return None
        except ValueError:
            continue

    pinned = ", ".join(p.version for p in registry)
    return f"{label} requires {decl.requirement} but Cargo.lock pins {pinned}"


def _check_locked_package(package: LockedPackage, lockfile: LockFile) -> list[str]:
    problems: list[str] = []
    label = f"{package.name} {package.version}"

    if package.is_git:
        problems.append(f"{label}: git sources cannot be fetched for offline builds")
    elif package.is_registry:
        if package.source not in CRATES_IO_SOURCES:
            problems.append(f"{label}: unsupported registry source {package.source}")
        if not package.checksum:
            problems.append(f"{label}: missing checksum")
        try:
            Version.parse(package.version)
        except ValueError:
            problems.append(f"{label}: invalid version")
    elif package.source is not None:
        problems.append(f"{label}: unsupported source {package.source}")

    for ref in package.dependencies:
        parts = ref.split(" ")
        name = parts[0]
        version = parts[1] if len(parts) > 1 else None
        targets = lockfile.find(name)
        if version is not None:
            targets = [p for p in targets if p.version == version]
        if not targets:
            problems.append(f"{label}: references '{ref}' which is not in Cargo.lock")

    return problems


def check_lock_consistency(manifest_set: ManifestSet) -> list[str]:
    """Compare the lock file with every member manifest.

    No network access happens here.

    Returns:
        One line per disagreement; empty when the lock is usable.
    """
    lockfile = manifest_set.lockfile
    problems: list[str] = []

    if lockfile.version not in SUPPORTED_LOCK_VERSIONS:
        supported = ", ".join(str(v) for v in sorted(SUPPORTED_LOCK_VERSIONS))
        return [f"Cargo.lock format version {lockfile.version} is not supported ({supported})"]

    for member in manifest_set.members:
        entry = _member_entry(lockfile, member)
        if entry is None:
            problems.append(f"{member.name}: workspace member is missing from Cargo.lock")
            continue
        if entry.version != member.version:
            problems.append(
                f"{member.name}: Cargo.toml declares {member.version} "
                f"but Cargo.lock records {entry.version}"
            )
        for decl in member.dependencies:
            problem = _check_dependency(member, entry, decl, lockfile)
            if problem is not None:
                problems.append(problem)
        declared = {decl.crate_name for decl in member.dependencies}
        for name in sorted(entry.dependency_names() - declared):
            problems.append(
                f"{member.name}: Cargo.lock records dependency '{name}' "
                "that Cargo.toml does not declare"
            )

    for package in lockfile.packages:
        problems.extend(_check_locked_package(package, lockfile))

    return problems


class DependencyResolver:
    """Resolve a Manifest Set into a populated dependency cache.

    The resolver is the only writer of the cache.

    Attributes:
        cache: Injected dependency cache.
        fetcher: Injected package fetcher.
        concurrency: Maximum parallel downloads.

    Example:
        >>> resolver = DependencyResolver(cache, RegistryFetcher(RegistryConfig()))
        >>> result = resolver.resolve(load_manifest_set("."))
        >>> result.cache_hit
        False
    """

    def __init__(
        self,
        cache: DependencyCache,
        fetcher: PackageFetcher,
        *,
        concurrency: int = 8,
    ) -> None:
        self.cache = cache
        self.fetcher = fetcher
        self.concurrency = max(1, concurrency)
        self._log = logger.bind(component="dependency_resolver")

    def validate(self, manifest_set: ManifestSet) -> None:
        """Check lock consistency.

        Raises:
            ManifestLockMismatchError: If the lock disagrees with any manifest.
        """
        problems = check_lock_consistency(manifest_set)
        if problems:
            self._log.warning("lock_mismatch", problems=len(problems))
            raise ManifestLockMismatchError(problems)

    def resolve(self, manifest_set: ManifestSet) -> ResolutionResult:
        """Validate the lock and make every locked registry package available.

        Raises:
            ManifestLockMismatchError: Before any fetch, if the lock disagrees.
            FetchError: If a package cannot be downloaded or fails verification.
        """
        fingerprint = manifest_set.fingerprint
        with span("shipwright.resolve", attributes={"fingerprint": fingerprint[:12]}):
            self.validate(manifest_set)

            locked = manifest_set.lockfile.registry_packages()
            keys = [CacheKey(name=p.name, version=p.version) for p in locked]

            if self.cache.has_resolution(fingerprint):
                self._log.info("resolution_cache_hit", packages=len(keys))
                return ResolutionResult(fingerprint=fingerprint, packages=keys, cache_hit=True)

            missing = set(self.cache.missing(keys))
            to_fetch = [p for p in locked if CacheKey(name=p.name, version=p.version) in missing]
            self._log.info(
                "resolution_started",
                packages=len(keys),
                to_fetch=len(to_fetch),
            )

            fetched = self._fetch_all(to_fetch)

            # Record last so a partial resolution never reads as complete
            self.cache.put_resolution(
                ResolutionRecord(
                    fingerprint=fingerprint,
                    packages=keys,
                    resolved_at=datetime.now(UTC),
                )
            )
            self._log.info("resolution_completed", fetched=len(fetched), packages=len(keys))
            return ResolutionResult(fingerprint=fingerprint, packages=keys, fetched=fetched)

    def _fetch_all(self, packages: list[LockedPackage]) -> list[CacheKey]:
        if not packages:
            return []

        if self.concurrency == 1 or len(packages) == 1:
            return [self._fetch_one(p) for p in packages]

        with ThreadPoolExecutor(max_workers=self.concurrency) as executor:
            futures = [executor.submit(self._fetch_one, p) for p in packages]
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)
            for future in pending:
                future.cancel()
            for future in futures:
                if future in done:
                    error = future.exception()
                    if error is not None:
                        raise error
            return [f.result() for f in futures]

    def _fetch_one(self, package: LockedPackage) -> CacheKey:
        key = CacheKey(name=package.name, version=package.version)
        data = self.fetcher.fetch(package)

        digest = hashlib.sha256(data).hexdigest()
        if digest != package.checksum:
            raise FetchError(
                package.name,
                package.version,
                "checksum does not match Cargo.lock",
                internal_details=f"expected {package.checksum}, got {digest}",
            )

        self.cache.put(key, data)
        return key
