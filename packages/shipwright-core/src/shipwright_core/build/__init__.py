"""Compiler/Linker stage and Artifact Collector.

This module exports:
- BuildGraph, BuildUnit: Workspace DAG and per-binary build plan
- Toolchain, CargoToolchain, BuildRequest: Compiler backends
- CompilerStage, BuildOutput, BuildOutputSet: Selective builds
- ArtifactCollector, CollectedArtifact(s): Durable dist directory
- materialize_vendor_dir: Offline dependency sources from the cache
"""

from __future__ import annotations

from shipwright_core.build.collector import (
    EXECUTABLE_MODE,
    ArtifactCollector,
    CollectedArtifact,
    CollectedArtifacts,
)
from shipwright_core.build.compiler import (
    BuildOutput,
    BuildOutputSet,
    CompilerStage,
    file_digest,
)
from shipwright_core.build.graph import BuildGraph, BuildUnit
from shipwright_core.build.toolchain import BuildRequest, CargoToolchain, Toolchain
from shipwright_core.build.vendor import materialize_vendor_dir

__all__: list[str] = [
    "EXECUTABLE_MODE",
    "ArtifactCollector",
    "BuildGraph",
    "BuildOutput",
    "BuildOutputSet",
    "BuildRequest",
    "BuildUnit",
    "CargoToolchain",
    "CollectedArtifact",
    "CollectedArtifacts",
    "CompilerStage",
    "Toolchain",
    "file_digest",
    "materialize_vendor_dir",
]
