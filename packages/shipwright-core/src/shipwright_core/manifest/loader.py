"""Load a Cargo workspace into a ManifestSet.

Reads the root Cargo.toml, every workspace member manifest, and Cargo.lock.
Only manifests and minimal source placeholders are required, so the
dependency stage can run before the full source tree is present.
"""

from __future__ import annotations

import hashlib
import re
import tomllib
from pathlib import Path
from typing import Any

import structlog

from shipwright_core.errors import ConfigurationError, WorkspaceMemberError
from shipwright_core.manifest.models import (
    DependencyDecl,
    DependencyKind,
    LockedPackage,
    LockFile,
    ManifestSet,
    PackageManifest,
)

logger = structlog.get_logger(__name__)

MANIFEST_FILE_NAME = "Cargo.toml"
LOCK_FILE_NAME = "Cargo.lock"

_DEPENDENCY_TABLES = {
    "dependencies": DependencyKind.NORMAL,
    "dev-dependencies": DependencyKind.DEV,
    "build-dependencies": DependencyKind.BUILD,
}
_TOML_LINE_RE = re.compile(r"at line (\d+)")


def _read_toml(path: Path) -> dict[str, Any]:
    """Parse a TOML file, translating syntax errors into ConfigurationError."""
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        match = _TOML_LINE_RE.search(str(e))
        raise ConfigurationError(
            "Invalid TOML",
            file_path=str(path),
            line_number=int(match.group(1)) if match else None,
            internal_details=str(e),
        ) from e


def _expand_members(root_dir: Path, patterns: list[str], exclude: list[str]) -> list[str]:
    """Expand workspace member globs into member paths relative to the root."""
    excluded = {Path(e).as_posix() for e in exclude}
    members: list[str] = []
    for pattern in patterns:
        if any(ch in pattern for ch in "*?["):
            matches = sorted(
                p.relative_to(root_dir).as_posix() for p in root_dir.glob(pattern) if p.is_dir()
            )
        else:
            matches = [Path(pattern).as_posix()]
        for member in matches:
            if member not in excluded and member not in members:
                members.append(member)
    return members


def _parse_dependency(
    name: str,
    raw: Any,
    kind: DependencyKind,
    target: str | None,
    workspace_deps: dict[str, Any],
    manifest_path: Path,
) -> DependencyDecl:
    """Build a DependencyDecl from a manifest entry, honoring workspace inheritance."""
    optional = False
    package: str | None = None

    if isinstance(raw, dict) and raw.get("workspace") is True:
        optional = bool(raw.get("optional", False))
        inherited = workspace_deps.get(name)
        if inherited is None:
            raise ConfigurationError(
                f"Dependency '{name}' inherits from the workspace but "
                "[workspace.dependencies] does not define it",
                file_path=str(manifest_path),
                field_path=f"dependencies.{name}",
            )
        raw = inherited

    if isinstance(raw, str):
        return DependencyDecl(
            name=name,
            requirement=raw,
            optional=optional,
            kind=kind,
            target=target,
        )

    if not isinstance(raw, dict):
        raise ConfigurationError(
            f"Dependency '{name}' must be a version string or a table",
            file_path=str(manifest_path),
            field_path=f"dependencies.{name}",
        )

    package = raw.get("package")
    return DependencyDecl(
        name=name,
        package=package,
        requirement=raw.get("version"),
        path=raw.get("path"),
        git=raw.get("git"),
        optional=optional or bool(raw.get("optional", False)),
        kind=kind,
        target=target,
    )


def _collect_dependencies(
    data: dict[str, Any],
    workspace_deps: dict[str, Any],
    manifest_path: Path,
) -> list[DependencyDecl]:
    deps: list[DependencyDecl] = []

    for table, kind in _DEPENDENCY_TABLES.items():
        for name, raw in (data.get(table) or {}).items():
            deps.append(_parse_dependency(name, raw, kind, None, workspace_deps, manifest_path))

    for target, target_data in (data.get("target") or {}).items():
        for table, kind in _DEPENDENCY_TABLES.items():
            for name, raw in (target_data.get(table) or {}).items():
                deps.append(
                    _parse_dependency(name, raw, kind, target, workspace_deps, manifest_path)
                )

    return deps


def _discover_targets(
    member_dir: Path,
    data: dict[str, Any],
    package_name: str,
) -> tuple[bool, list[str]]:
    """Find library and binary targets that actually exist on disk.

    Returns:
        Tuple of (has_library, binary names).
    """
    lib_table = data.get("lib") or {}
    lib_path = member_dir / lib_table.get("path", "src/lib.rs")
    has_library = lib_path.is_file()

    binaries: list[str] = []
    declared = data.get("bin") or []
    for entry in declared:
        bin_name = entry.get("name", package_name)
        bin_path = entry.get("path")
        if bin_path is None:
            candidates = [
                member_dir / "src" / "bin" / f"{bin_name}.rs",
                member_dir / "src" / "main.rs",
            ]
        else:
            candidates = [member_dir / bin_path]
        if any(c.is_file() for c in candidates) and bin_name not in binaries:
            binaries.append(bin_name)

    if not declared and (member_dir / "src" / "main.rs").is_file():
        binaries.append(package_name)

    package_table = data.get("package") or {}
    if package_table.get("autobins", True):
        bin_dir = member_dir / "src" / "bin"
        if bin_dir.is_dir():
            for source in sorted(bin_dir.glob("*.rs")):
                if source.stem not in binaries:
                    binaries.append(source.stem)

    return has_library, binaries


def load_package_manifest(
    root_dir: Path,
    member: str,
    workspace: dict[str, Any],
) -> PackageManifest:
    """Load one workspace member manifest.

    Args:
        root_dir: Workspace root directory.
        member: Member path relative to the root ("." for the root package).
        workspace: The root manifest's [workspace] table.

    Raises:
        WorkspaceMemberError: If the manifest or a minimal source tree is missing.
        ConfigurationError: If the manifest is invalid.
    """
    member_dir = (root_dir / member).resolve() if member != "." else root_dir
    manifest_path = member_dir / MANIFEST_FILE_NAME

    if not manifest_path.is_file():
        raise WorkspaceMemberError(member, f"{MANIFEST_FILE_NAME} not found")

    data = _read_toml(manifest_path)
    package_table = data.get("package")
    if not package_table or "name" not in package_table:
        raise ConfigurationError(
            "Missing [package] name",
            file_path=str(manifest_path),
            field_path="package.name",
        )

    name = package_table["name"]
    version = package_table.get("version", "0.0.0")
    if isinstance(version, dict) and version.get("workspace") is True:
        version = (workspace.get("package") or {}).get("version")
        if version is None:
            raise ConfigurationError(
                "package.version inherits from the workspace but "
                "[workspace.package] has no version",
                file_path=str(manifest_path),
                field_path="package.version",
            )

    has_library, binaries = _discover_targets(member_dir, data, name)
    if not has_library and not binaries:
        raise WorkspaceMemberError(
            member,
            "no source targets found; add at least a placeholder src/lib.rs or src/main.rs",
        )

    dependencies = _collect_dependencies(
        data,
        workspace.get("dependencies") or {},
        manifest_path,
    )

    return PackageManifest(
        name=name,
        version=str(version),
        member_path=member,
        manifest_path=manifest_path,
        dependencies=dependencies,
        has_library=has_library,
        binaries=binaries,
    )


def load_lockfile(path: Path) -> LockFile:
    """Parse Cargo.lock.

    Raises:
        ConfigurationError: If the lock file is missing or malformed.
    """
    if not path.is_file():
        raise ConfigurationError(
            "Cargo.lock not found; builds are locked and require a committed lock file",
            file_path=str(path),
        )

    data = _read_toml(path)
    raw_packages = data.get("package") or []
    packages: list[LockedPackage] = []
    for index, entry in enumerate(raw_packages):
        if "name" not in entry or "version" not in entry:
            raise ConfigurationError(
                "Lock entry is missing name or version",
                file_path=str(path),
                field_path=f"package[{index}]",
            )
        packages.append(
            LockedPackage(
                name=entry["name"],
                version=entry["version"],
                source=entry.get("source"),
                checksum=entry.get("checksum"),
                dependencies=list(entry.get("dependencies") or []),
            )
        )

    # v1 and v2 carry no version key; v1 keeps checksums in [metadata]
    version = data.get("version")
    if version is None:
        version = 1 if "metadata" in data else 2

    return LockFile(version=int(version), path=path, packages=packages)


def compute_fingerprint(root_dir: Path, manifests: list[Path], lock_path: Path) -> str:
    """Hash the lock file and every manifest, keyed by path relative to the root."""
    digest = hashlib.sha256()
    entries = sorted({m.relative_to(root_dir).as_posix(): m for m in manifests}.items())
    for rel, path in entries:
        digest.update(rel.encode("utf-8"))
        digest.update(b"\0")
        digest.update(path.read_bytes())
        digest.update(b"\0")
    digest.update(LOCK_FILE_NAME.encode("utf-8"))
    digest.update(b"\0")
    digest.update(lock_path.read_bytes())
    return digest.hexdigest()


def load_manifest_set(workspace_dir: Path | str) -> ManifestSet:
    """Load the root manifest, every member manifest, and the lock file.

    Args:
        workspace_dir: Directory containing the root Cargo.toml.

    Returns:
        ManifestSet ready for dependency resolution.

    Raises:
        ConfigurationError: If the root manifest or lock file is missing/invalid.
        WorkspaceMemberError: If any listed member lacks a manifest or source placeholder.

    Example:
        >>> manifest_set = load_manifest_set("path/to/backvonia")
        >>> manifest_set.member_names
        ['backvonia', 'entity', 'migration']
    """
    root_dir = Path(workspace_dir).resolve()
    root_manifest = root_dir / MANIFEST_FILE_NAME
    if not root_manifest.is_file():
        raise ConfigurationError(
            "Root Cargo.toml not found",
            file_path=str(root_manifest),
        )

    root_data = _read_toml(root_manifest)
    workspace = root_data.get("workspace") or {}

    member_paths = _expand_members(
        root_dir,
        list(workspace.get("members") or []),
        list(workspace.get("exclude") or []),
    )
    if "package" in root_data and "." not in member_paths:
        member_paths.insert(0, ".")

    if not member_paths:
        raise ConfigurationError(
            "Workspace defines no packages",
            file_path=str(root_manifest),
            field_path="workspace.members",
        )

    members = [load_package_manifest(root_dir, m, workspace) for m in member_paths]

    names = [m.name for m in members]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ConfigurationError(
            f"Duplicate workspace package names: {', '.join(duplicates)}",
            file_path=str(root_manifest),
        )

    lock_path = root_dir / LOCK_FILE_NAME
    lockfile = load_lockfile(lock_path)

    manifest_files = [root_manifest] + [m.manifest_path for m in members]
    fingerprint = compute_fingerprint(root_dir, manifest_files, lock_path)

    logger.debug(
        "manifest_set_loaded",
        root=str(root_dir),
        members=names,
        locked_packages=len(lockfile.packages),
        fingerprint=fingerprint[:12],
    )

    return ManifestSet(
        root_dir=root_dir,
        members=members,
        lockfile=lockfile,
        fingerprint=fingerprint,
    )
