"""Custom exception hierarchy for shipwright-core.

This module defines the exception classes raised by the release pipeline:
- ShipwrightError: Base exception for all shipwright errors
- ConfigurationError: shipwright.yaml or manifest parsing fails
- ManifestLockMismatchError: Cargo.lock disagrees with a manifest
- FetchError: A locked package could not be fetched or verified
- CompilationError: A workspace binary failed to build
- ImageAssemblyError: The runtime image could not be assembled

Every stage failure is unrecoverable within one run. User-facing messages
are safe to display; technical details are logged internally via structlog.
"""

from __future__ import annotations

import structlog

logger = structlog.get_logger(__name__)


class ShipwrightError(Exception):
    """Base exception for shipwright.

    All shipwright exceptions inherit from this class. User-facing messages
    are safe to display; technical details are logged internally.

    Args:
        user_message: Safe message to display to the user.
        internal_details: Optional technical details for logging. This is
            logged internally but NEVER exposed to the user.

    Example:
        >>> raise ShipwrightError(
        ...     "Release configuration invalid",
        ...     internal_details="runtime.user.uid: must not be 0",
        ... )
    """

    def __init__(
        self,
        user_message: str,
        *,
        internal_details: str | None = None,
    ) -> None:
        """Initialize ShipwrightError with user message and optional internal details.

        Args:
            user_message: Safe message to display to the user.
            internal_details: Technical details for internal logging only.
        """
        super().__init__(user_message)
        self.user_message = user_message
        self.internal_details = internal_details

        if internal_details:
            logger.error(
                "shipwright_error",
                error_type=self.__class__.__name__,
                user_message=user_message,
                internal_details=internal_details,
            )


class ConfigurationError(ShipwrightError):
    """Raised when a configuration or manifest file cannot be parsed or validated.

    Provides file path and field context for actionable error messages.

    Attributes:
        file_path: Path to the file (if known).
        field_path: Dot-separated path to the invalid field (e.g., "runtime.user.uid").
        line_number: Line number in the file where the error occurred (if available).

    Example:
        >>> raise ConfigurationError(
        ...     "Invalid TOML",
        ...     file_path="entity/Cargo.toml",
        ...     line_number=7,
        ... )
    """

    def __init__(
        self,
        user_message: str,
        *,
        file_path: str | None = None,
        field_path: str | None = None,
        line_number: int | None = None,
        internal_details: str | None = None,
    ) -> None:
        """Initialize ConfigurationError with context.

        Args:
            user_message: Safe message to display to the user.
            file_path: Path to the configuration file (optional).
            field_path: Dot-separated path to the field (optional).
            line_number: Line number in the file (optional).
            internal_details: Technical details for internal logging only.
        """
        context_parts: list[str] = []
        if file_path:
            context_parts.append(f"in {file_path}")
        if line_number:
            context_parts.append(f"line {line_number}")
        if field_path:
            context_parts.append(f"field '{field_path}'")

        if context_parts:
            full_message = f"{user_message} ({', '.join(context_parts)})"
        else:
            full_message = user_message

        super().__init__(full_message, internal_details=internal_details)

        self.file_path = file_path
        self.field_path = field_path
        self.line_number = line_number


class WorkspaceMemberError(ConfigurationError):
    """Raised when a workspace member lacks a manifest or a minimal source tree.

    Workspace-aware resolution requires every member listed by the root
    manifest to exist, even as a placeholder, before dependencies resolve.

    Attributes:
        member: Workspace member path as written in the root manifest.
    """

    def __init__(
        self,
        member: str,
        reason: str,
        *,
        internal_details: str | None = None,
    ) -> None:
        super().__init__(
            f"Workspace member '{member}' is not usable: {reason}",
            internal_details=internal_details,
        )
        self.member = member
        self.reason = reason


class ManifestLockMismatchError(ShipwrightError):
    """Raised when declared and locked dependency versions disagree.

    The lock file is the single source of truth: the pipeline never
    re-resolves, so every mismatch is reported and the run aborts before
    any network fetch.

    Attributes:
        problems: One line per disagreement found.

    Example:
        >>> raise ManifestLockMismatchError(
        ...     ["backvonia: dependency 'serde' requires ^1.0.200, lock has 1.0.100"]
        ... )
    """

    def __init__(
        self,
        problems: list[str],
        *,
        internal_details: str | None = None,
    ) -> None:
        count = len(problems)
        noun = "problem" if count == 1 else "problems"
        listing = "\n".join(f"  - {p}" for p in problems)
        user_message = (
            f"Cargo.lock does not match the workspace manifests ({count} {noun}); "
            f"the lock file needs to be updated:\n{listing}"
        )
        super().__init__(user_message, internal_details=internal_details)
        self.problems = problems


class FetchError(ShipwrightError):
    """Raised when a locked package cannot be fetched or fails verification.

    Attributes:
        package: Package name.
        version: Package version.
    """

    def __init__(
        self,
        package: str,
        version: str,
        reason: str,
        *,
        internal_details: str | None = None,
    ) -> None:
        super().__init__(
            f"Failed to fetch {package} {version}: {reason}",
            internal_details=internal_details,
        )
        self.package = package
        self.version = version
        self.reason = reason


class CompilationError(ShipwrightError):
    """Raised when a workspace binary fails to build.

    Attributes:
        package: Workspace package whose build failed.
        exit_code: Toolchain exit status, if the toolchain ran.
        output_tail: Last lines of toolchain output for diagnostics.

    Example:
        >>> raise CompilationError(
        ...     "migration",
        ...     "cargo build exited with status 101",
        ...     exit_code=101,
        ... )
    """

    def __init__(
        self,
        package: str,
        reason: str,
        *,
        exit_code: int | None = None,
        output_tail: str = "",
        internal_details: str | None = None,
    ) -> None:
        super().__init__(
            f"Build of '{package}' failed: {reason}",
            internal_details=internal_details,
        )
        self.package = package
        self.exit_code = exit_code
        self.output_tail = output_tail


class CollectionError(ShipwrightError):
    """Raised when a built executable cannot be copied into the dist directory."""

    pass


class ImageAssemblyError(ShipwrightError):
    """Raised when the runtime image cannot be planned or built."""

    pass


class MinimalityError(ImageAssemblyError):
    """Raised when the runtime image would carry toolchain or cache content.

    Attributes:
        offenders: Package names or paths that violate minimality.
    """

    def __init__(
        self,
        offenders: list[str],
        *,
        internal_details: str | None = None,
    ) -> None:
        super().__init__(
            "Runtime image must not contain build tooling: " + ", ".join(offenders),
            internal_details=internal_details,
        )
        self.offenders = offenders


class MissingRuntimeDependencyError(ImageAssemblyError):
    """Raised when an executable needs shared libraries the runtime stage lacks.

    Attributes:
        binary: Executable name.
        libraries: Sonames not provided by the declared runtime packages.
    """

    def __init__(
        self,
        binary: str,
        libraries: list[str],
        *,
        internal_details: str | None = None,
    ) -> None:
        super().__init__(
            f"'{binary}' needs shared libraries not installed in the runtime image: "
            + ", ".join(libraries),
            internal_details=internal_details,
        )
        self.binary = binary
        self.libraries = libraries


class EnvironmentValidationError(ShipwrightError):
    """Raised when a process environment does not satisfy the service schema.

    Attributes:
        problems: Mapping of variable name to problem description.
    """

    def __init__(
        self,
        problems: dict[str, str],
        *,
        internal_details: str | None = None,
    ) -> None:
        listing = "\n".join(f"  - {key}: {msg}" for key, msg in sorted(problems.items()))
        super().__init__(
            f"Service environment is invalid:\n{listing}",
            internal_details=internal_details,
        )
        self.problems = problems


class PipelineError(ShipwrightError):
    """Raised when a pipeline transition is attempted out of order."""

    pass
