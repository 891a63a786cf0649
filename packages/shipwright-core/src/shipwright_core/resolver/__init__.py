"""Dependency Resolver/Fetcher stage.

This module exports:
- DependencyResolver: Locked resolution into the dependency cache
- ResolutionResult: Resolution outcome
- check_lock_consistency: Offline manifest/lock comparison
- PackageFetcher, RegistryFetcher: Package download backends
"""

from __future__ import annotations

from shipwright_core.resolver.fetcher import PackageFetcher, RegistryFetcher
from shipwright_core.resolver.resolver import (
    SUPPORTED_LOCK_VERSIONS,
    DependencyResolver,
    ResolutionResult,
    check_lock_consistency,
)

__all__: list[str] = [
    "SUPPORTED_LOCK_VERSIONS",
    "DependencyResolver",
    "PackageFetcher",
    "RegistryFetcher",
    "ResolutionResult",
    "check_lock_consistency",
]
