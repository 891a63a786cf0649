"""CLI error handling for shipwright-cli.

Maps configuration, pipeline, and system failures onto user-facing
messages and exit codes.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, NoReturn

import click
from pydantic import ValidationError as PydanticValidationError

from shipwright_cli.output import error

if TYPE_CHECKING:
    from pydantic_core import ErrorDetails

# Exit codes
EXIT_SUCCESS = 0
EXIT_USER_ERROR = 1  # Invalid config, lock mismatch, failed pipeline stage
EXIT_SYSTEM_ERROR = 2  # Missing file, permissions, write failure


class CLIError(click.ClickException):
    """CLI exception carrying an exit code.

    Attributes:
        message: User-facing error message.
        exit_code: Process exit code.
    """

    def __init__(self, message: str, exit_code: int = EXIT_USER_ERROR) -> None:
        super().__init__(message)
        self.exit_code = exit_code

    def show(self, file: object = None) -> None:
        error(self.format_message(), markup=False)


def format_pydantic_error(err: PydanticValidationError) -> str:
    """Format a pydantic ValidationError as one line per field.

    Example:
        >>> format_pydantic_error(err)
        "Validation failed:\\n  - runtime.user.uid: Input should be greater than or equal to 1"
    """
    errors: list[ErrorDetails] = err.errors()
    lines = ["Validation failed:"]
    for e in errors:
        loc = ".".join(str(x) for x in e["loc"]) or "(root)"
        lines.append(f"  - {loc}: {e['msg']}")
    return "\n".join(lines)


def handle_yaml_error(err: Exception, file_path: str) -> NoReturn:
    """Raise a CLIError for a YAML syntax error, with line and column when known."""
    message = str(err)
    mark = getattr(err, "problem_mark", None)
    if mark is not None:
        problem = getattr(err, "problem", None) or "syntax error"
        message = f"YAML syntax error at line {mark.line + 1}, column {mark.column + 1}: {problem}"
    raise CLIError(f"Invalid YAML in {file_path}: {message}")


def handle_validation_error(err: PydanticValidationError, file_path: str) -> NoReturn:
    raise CLIError(f"Invalid configuration in {file_path}:\n{format_pydantic_error(err)}")


def handle_file_not_found(file_path: str) -> NoReturn:
    """Raise a CLIError for a missing release file.

    Raises:
        CLIError: Always, with EXIT_SYSTEM_ERROR.
    """
    raise CLIError(
        f"File not found: {file_path}\n\n"
        "Run 'shipwright init' to create a release file, or use --file to specify a path.",
        exit_code=EXIT_SYSTEM_ERROR,
    )


def handle_permission_error(path: str, operation: str = "access") -> NoReturn:
    raise CLIError(f"Permission denied: cannot {operation} {path}", exit_code=EXIT_SYSTEM_ERROR)


def exit_with_error(message: str, exit_code: int = EXIT_USER_ERROR) -> NoReturn:
    """Print an error and exit the process."""
    error(message, markup=False)
    sys.exit(exit_code)
