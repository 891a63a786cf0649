"""Runtime Image Assembler.

This module exports:
- RuntimeImageAssembler: Plan, build and verify the runtime image
- RuntimeImage, InstalledBinary, AssembledImage: Image models
- render_containerfile: Runtime-stage recipe
- ImageBackend, DockerCliBackend: Image build backends
- check_runtime_linkage, inspect_needed_libraries: Shared-library checks
"""

from __future__ import annotations

from shipwright_core.image.assembler import (
    RUNTIME_PACKAGE_EXCEPTIONS,
    TOOLCHAIN_PACKAGE_PATTERNS,
    RuntimeImageAssembler,
    check_minimality,
)
from shipwright_core.image.backend import DockerCliBackend, ImageBackend
from shipwright_core.image.containerfile import render_containerfile
from shipwright_core.image.linkage import (
    check_runtime_linkage,
    inspect_needed_libraries,
    missing_libraries,
)
from shipwright_core.image.models import (
    AssembledImage,
    ImageInspection,
    ImageLayer,
    InstalledBinary,
    LayerKind,
    RuntimeImage,
)

__all__: list[str] = [
    "RUNTIME_PACKAGE_EXCEPTIONS",
    "TOOLCHAIN_PACKAGE_PATTERNS",
    "AssembledImage",
    "DockerCliBackend",
    "ImageBackend",
    "ImageInspection",
    "ImageLayer",
    "InstalledBinary",
    "LayerKind",
    "RuntimeImage",
    "RuntimeImageAssembler",
    "check_minimality",
    "check_runtime_linkage",
    "inspect_needed_libraries",
    "missing_libraries",
    "render_containerfile",
]
