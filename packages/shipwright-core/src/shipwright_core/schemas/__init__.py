"""Configuration schemas for shipwright.

This module exports:
- ReleaseSpec: shipwright.yaml root model
- BinaryTarget, BinaryRole: Executables to build and install
- BuildConfig, CacheConfig, RegistryConfig, RuntimeConfig: Stage configuration
- ExecutionIdentity: Unprivileged runtime user
- ServiceEnvironment, EnvVar: Service environment contract
"""

from __future__ import annotations

from shipwright_core.schemas.release_spec import (
    CONFIG_ENV_VAR,
    RELEASE_FILE_NAME,
    BinaryRole,
    BinaryTarget,
    BuildConfig,
    CacheConfig,
    ExecutionIdentity,
    RegistryConfig,
    ReleaseSpec,
    RuntimeConfig,
    find_release_file,
)
from shipwright_core.schemas.service_env import (
    BACKVONIA_ENVIRONMENT,
    DEFAULT_HOST,
    DEFAULT_LOG_FILTER,
    DEFAULT_PORT,
    EnvVar,
    EnvVarType,
    ServiceEnvironment,
    parse_log_filter,
)

__all__: list[str] = [
    "BACKVONIA_ENVIRONMENT",
    "CONFIG_ENV_VAR",
    "DEFAULT_HOST",
    "DEFAULT_LOG_FILTER",
    "DEFAULT_PORT",
    "RELEASE_FILE_NAME",
    "BinaryRole",
    "BinaryTarget",
    "BuildConfig",
    "CacheConfig",
    "EnvVar",
    "EnvVarType",
    "ExecutionIdentity",
    "RegistryConfig",
    "ReleaseSpec",
    "RuntimeConfig",
    "ServiceEnvironment",
    "find_release_file",
    "parse_log_filter",
]
