"""shipwright-core: Reproducible build-and-release pipeline for Cargo workspaces.

This package provides:
- ManifestSet loading and locked dependency resolution into a shared cache
- Selective, parallel compilation of workspace binaries
- Idempotent artifact collection into a durable dist directory
- Minimal, non-root runtime image assembly
- The pipeline state machine tying the stages together
"""

from __future__ import annotations

__version__ = "0.1.0"

# Cache
from shipwright_core.cache import (
    DependencyCache,
    FileSystemDependencyCache,
    InMemoryDependencyCache,
    get_cache_dir,
)

# Error types
from shipwright_core.errors import (
    CollectionError,
    CompilationError,
    ConfigurationError,
    EnvironmentValidationError,
    FetchError,
    ImageAssemblyError,
    ManifestLockMismatchError,
    MinimalityError,
    MissingRuntimeDependencyError,
    PipelineError,
    ShipwrightError,
    WorkspaceMemberError,
)

# Manifests
from shipwright_core.manifest import ManifestSet, load_manifest_set

# Pipeline
from shipwright_core.pipeline import (
    PipelineResult,
    PipelineRunner,
    PipelineState,
    StageStatus,
)

# Schema models
from shipwright_core.schemas import (
    BACKVONIA_ENVIRONMENT,
    BinaryRole,
    BinaryTarget,
    ReleaseSpec,
    ServiceEnvironment,
)

__all__ = [
    "__version__",
    # Schemas
    "BACKVONIA_ENVIRONMENT",
    "BinaryRole",
    "BinaryTarget",
    "ReleaseSpec",
    "ServiceEnvironment",
    # Manifests
    "ManifestSet",
    "load_manifest_set",
    # Cache
    "DependencyCache",
    "FileSystemDependencyCache",
    "InMemoryDependencyCache",
    "get_cache_dir",
    # Pipeline
    "PipelineResult",
    "PipelineRunner",
    "PipelineState",
    "StageStatus",
    # Errors
    "CollectionError",
    "CompilationError",
    "ConfigurationError",
    "EnvironmentValidationError",
    "FetchError",
    "ImageAssemblyError",
    "ManifestLockMismatchError",
    "MinimalityError",
    "MissingRuntimeDependencyError",
    "PipelineError",
    "ShipwrightError",
    "WorkspaceMemberError",
]
