"""Shared-library linkage checks.

A dynamically linked executable that needs a library the runtime stage
does not install only fails when the container starts. Reading each
collected executable's DT_NEEDED entries at assembly time moves that
failure into the pipeline.
"""

from __future__ import annotations

import re
import shutil
import subprocess
from collections.abc import Iterable, Mapping
from pathlib import Path

import structlog

from shipwright_core.errors import ImageAssemblyError, MissingRuntimeDependencyError

logger = structlog.get_logger(__name__)

_NEEDED_RE = re.compile(r"\(NEEDED\)\s+Shared library:\s+\[([^\]]+)\]")

# Provided by every glibc base image
BASE_LIBRARIES = frozenset(
    {
        "libc.so.6",
        "libm.so.6",
        "libdl.so.2",
        "librt.so.1",
        "libpthread.so.0",
        "libutil.so.1",
        "libgcc_s.so.1",
        "ld-linux-x86-64.so.2",
        "ld-linux-aarch64.so.1",
        "libz.so.1",
    }
)

# Sonames shipped by common Debian runtime packages
PACKAGE_LIBRARIES: dict[str, frozenset[str]] = {
    "libssl3": frozenset({"libssl.so.3", "libcrypto.so.3"}),
    "libssl3t64": frozenset({"libssl.so.3", "libcrypto.so.3"}),
    "libpq5": frozenset({"libpq.so.5"}),
    "libsqlite3-0": frozenset({"libsqlite3.so.0"}),
    "libstdc++6": frozenset({"libstdc++.so.6"}),
    "zlib1g": frozenset({"libz.so.1"}),
    "libzstd1": frozenset({"libzstd.so.1"}),
    "liblzma5": frozenset({"liblzma.so.5"}),
    "libbz2-1.0": frozenset({"libbz2.so.1.0"}),
    "libcurl4": frozenset({"libcurl.so.4"}),
}


def inspect_needed_libraries(binary: Path, *, readelf: str = "readelf") -> list[str]:
    """List the sonames an ELF executable declares as DT_NEEDED.

    Returns an empty list for statically linked executables.

    Raises:
        ImageAssemblyError: If readelf is unavailable or cannot read the file.
    """
    if shutil.which(readelf) is None:
        raise ImageAssemblyError(f"'{readelf}' not found on PATH")

    completed = subprocess.run(  # noqa: S603
        [readelf, "--dynamic", "--wide", str(binary)],
        capture_output=True,
        text=True,
        check=False,
    )
    if completed.returncode != 0:
        raise ImageAssemblyError(
            f"Could not read dynamic section of {binary.name}",
            internal_details=completed.stderr.strip(),
        )
    return _NEEDED_RE.findall(completed.stdout)


def provided_libraries(packages: Iterable[str]) -> set[str]:
    """Sonames available in an image built from a glibc base plus ``packages``."""
    provided = set(BASE_LIBRARIES)
    for package in packages:
        provided |= PACKAGE_LIBRARIES.get(package, frozenset())
    return provided


def missing_libraries(needed: Iterable[str], packages: Iterable[str]) -> list[str]:
    provided = provided_libraries(packages)
    return sorted(set(needed) - provided)


def check_runtime_linkage(
    binaries: Mapping[str, Path],
    packages: list[str],
    *,
    readelf: str = "readelf",
) -> None:
    """Verify every executable's shared libraries are installed.

    Raises:
        MissingRuntimeDependencyError: For the first executable with unmet needs.
    """
    for name, path in sorted(binaries.items()):
        needed = inspect_needed_libraries(path, readelf=readelf)
        missing = missing_libraries(needed, packages)
        logger.debug("linkage_checked", binary=name, needed=needed, missing=missing)
        if missing:
            raise MissingRuntimeDependencyError(name, missing)
