"""Service environment schema.

The service binary is configured purely through environment variables at
process start. This module makes that contract explicit: every variable has
a name, a type, an optional default, and required/secret flags, and a whole
environment can be validated up front instead of failing ad hoc inside the
service.

The image assembler only bakes non-secret defaults (HOST, PORT, RUST_LOG);
everything else is supplied by the deployer at launch time.
"""

from __future__ import annotations

import ipaddress
import re
from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from shipwright_core.errors import EnvironmentValidationError

# Defaults baked into the runtime image
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
DEFAULT_LOG_FILTER = "info,backvonia=debug"

LOG_LEVELS = frozenset({"trace", "debug", "info", "warn", "error", "off"})

_HOSTNAME_RE = re.compile(
    r"^(?=.{1,253}$)[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*$"
)
_LOG_TARGET_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_:-]*(?:\[[^\]]*\])?$")

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


class EnvVarType(str, Enum):
    """Value types understood by the schema."""

    STRING = "string"
    INTEGER = "integer"
    PORT = "port"
    HOST = "host"
    URL = "url"
    LOG_FILTER = "log_filter"
    CHOICE = "choice"


def _top_level(text: str, char: str) -> list[int]:
    """Indexes of ``char`` outside span-filter brackets and field braces."""
    indexes: list[int] = []
    depth = 0
    for i, c in enumerate(text):
        if c in "[{":
            depth += 1
        elif c in "]}":
            depth = max(0, depth - 1)
        elif c == char and depth == 0:
            indexes.append(i)
    return indexes


def _split_top_level(text: str, char: str) -> list[str]:
    parts: list[str] = []
    start = 0
    for i in _top_level(text, char):
        parts.append(text[start:i])
        start = i + 1
    parts.append(text[start:])
    return parts


def parse_log_filter(value: str) -> list[tuple[str | None, str | None]]:
    """Parse a RUST_LOG-style directive string.

    Each comma-separated directive is ``level``, ``target`` or
    ``target=level``; a trailing ``/regex`` filter is ignored. A target may
    carry a span filter such as ``backvonia[request{id=1}]``, so separators
    inside brackets and braces do not split.

    Returns:
        List of (target, level) pairs; either side may be None.

    Raises:
        ValueError: If a directive is malformed or names an unknown level.

    Example:
        >>> parse_log_filter("info,backvonia=debug")
        [(None, 'info'), ('backvonia', 'debug')]
    """
    body = _split_top_level(value, "/")[0]
    directives: list[tuple[str | None, str | None]] = []
    for raw in _split_top_level(body, ","):
        directive = raw.strip()
        if not directive:
            continue
        equals = _top_level(directive, "=")
        if equals:
            target = directive[: equals[-1]].strip()
            level = directive[equals[-1] + 1 :].strip()
            if level.lower() not in LOG_LEVELS:
                raise ValueError(f"unknown log level '{level}' in directive '{directive}'")
            if not _LOG_TARGET_RE.match(target):
                raise ValueError(f"invalid log target '{target}'")
            directives.append((target, level.lower()))
        elif directive.lower() in LOG_LEVELS:
            directives.append((None, directive.lower()))
        elif _LOG_TARGET_RE.match(directive):
            directives.append((directive, None))
        else:
            raise ValueError(f"invalid log directive '{directive}'")

    if not directives:
        raise ValueError("log filter is empty")
    return directives


class EnvVar(BaseModel):
    """One environment variable of the service contract.

    Attributes:
        name: Variable name.
        type: Value type.
        default: Default value (string form), if any.
        required: Whether the service refuses to start without it.
        secret: Whether the value is sensitive and must never be baked.
        choices: Allowed values for CHOICE variables.
        description: Human-readable purpose.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., pattern=r"^[A-Z][A-Z0-9_]*$", description="Variable name")
    type: EnvVarType = Field(default=EnvVarType.STRING, description="Value type")
    default: str | None = Field(default=None, description="Default value")
    required: bool = Field(default=False, description="Required at start")
    secret: bool = Field(default=False, description="Sensitive value")
    choices: tuple[str, ...] = Field(default=(), description="Allowed values")
    description: str = Field(default="", description="Purpose")

    @model_validator(mode="after")
    def _check_choices(self) -> EnvVar:
        if self.type == EnvVarType.CHOICE and not self.choices:
            raise ValueError(f"{self.name}: choice variables need at least one choice")
        if self.secret and self.default is not None:
            raise ValueError(f"{self.name}: secret variables cannot have defaults")
        return self

    def parse(self, raw: str) -> Any:
        """Convert a raw string into the typed value.

        Raises:
            ValueError: With a user-facing description of the problem.
        """
        value = raw.strip()
        if self.type == EnvVarType.STRING:
            return raw
        if self.type == EnvVarType.INTEGER:
            try:
                number = int(value)
            except ValueError:
                raise ValueError(f"expected an integer, got '{raw}'") from None
            if not _INT32_MIN <= number <= _INT32_MAX:
                raise ValueError(f"integer out of range: {number}")
            return number
        if self.type == EnvVarType.PORT:
            try:
                port = int(value)
            except ValueError:
                raise ValueError(f"expected a TCP port, got '{raw}'") from None
            if not 1 <= port <= 65535:
                raise ValueError(f"port must be between 1 and 65535, got {port}")
            return port
        if self.type == EnvVarType.HOST:
            try:
                return str(ipaddress.ip_address(value))
            except ValueError:
                if _HOSTNAME_RE.match(value):
                    return value
            raise ValueError(f"expected an IP address or hostname, got '{raw}'")
        if self.type == EnvVarType.URL:
            if "://" not in value or value.startswith("://"):
                raise ValueError("expected a URL with a scheme")
            return value
        if self.type == EnvVarType.LOG_FILTER:
            parse_log_filter(value)
            return value
        if value not in self.choices:
            raise ValueError(f"expected one of {', '.join(self.choices)}, got '{raw}'")
        return value


class ServiceEnvironment(BaseModel):
    """The complete environment contract of a service binary.

    Example:
        >>> schema = BACKVONIA_ENVIRONMENT
        >>> values = schema.validate_environment({"DATABASE_URL": "postgres://db/app", ...})
        >>> values["PORT"]
        8080
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    service: str = Field(..., min_length=1, description="Service binary name")
    variables: list[EnvVar] = Field(default_factory=list, description="Variables")

    @model_validator(mode="after")
    def _unique_names(self) -> ServiceEnvironment:
        names = [v.name for v in self.variables]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate variables: {', '.join(duplicates)}")
        return self

    def get(self, name: str) -> EnvVar | None:
        for variable in self.variables:
            if variable.name == name:
                return variable
        return None

    @property
    def secret_names(self) -> set[str]:
        return {v.name for v in self.variables if v.secret}

    def defaults(self) -> dict[str, str]:
        """Default values of every non-secret variable that has one."""
        return {v.name: v.default for v in self.variables if v.default is not None}

    def check_values(self, env: Mapping[str, str], *, require: bool = True) -> dict[str, str]:
        """Collect problems for an environment without raising.

        Args:
            env: Variable values (typically os.environ or image ENV defaults).
            require: Whether missing required variables are problems.

        Returns:
            Mapping of variable name to problem description.
        """
        problems: dict[str, str] = {}
        for variable in self.variables:
            raw = env.get(variable.name)
            if raw is None:
                if require and variable.required:
                    problems[variable.name] = "required but not set"
                continue
            try:
                variable.parse(raw)
            except ValueError as e:
                problems[variable.name] = str(e)
        return problems

    def validate_environment(self, env: Mapping[str, str]) -> dict[str, Any]:
        """Validate a process environment and return typed values.

        Defaults fill unset optional variables; unknown variables are ignored.

        Raises:
            EnvironmentValidationError: If any variable is missing or invalid.
        """
        problems = self.check_values(env)
        if problems:
            raise EnvironmentValidationError(problems)

        values: dict[str, Any] = {}
        for variable in self.variables:
            raw = env.get(variable.name, variable.default)
            values[variable.name] = variable.parse(raw) if raw is not None else None
        return values


BACKVONIA_ENVIRONMENT = ServiceEnvironment(
    service="backvonia",
    variables=[
        EnvVar(
            name="HOST",
            type=EnvVarType.HOST,
            default=DEFAULT_HOST,
            description="Bind address",
        ),
        EnvVar(
            name="PORT",
            type=EnvVarType.PORT,
            default=str(DEFAULT_PORT),
            description="Listen port",
        ),
        EnvVar(
            name="RUST_LOG",
            type=EnvVarType.LOG_FILTER,
            default=DEFAULT_LOG_FILTER,
            description="Log level directives",
        ),
        EnvVar(name="DATABASE_URL", type=EnvVarType.URL, required=True, secret=True),
        EnvVar(name="REDIS_URL", type=EnvVarType.URL, required=True, secret=True),
        EnvVar(name="OPENAI_API_KEY", required=True, secret=True),
        EnvVar(name="ANTHROPIC_API_KEY", secret=True),
        EnvVar(name="APPLE_SHARED_SECRET", required=True, secret=True),
        EnvVar(
            name="APPLE_ENVIRONMENT",
            type=EnvVarType.CHOICE,
            choices=("sandbox", "production"),
            default="sandbox",
        ),
        EnvVar(name="GOOGLE_SERVICE_ACCOUNT_KEY_PATH"),
        EnvVar(name="BASE_URL", type=EnvVarType.URL, required=True),
        EnvVar(name="FREE_TEXT_DAILY_LIMIT", type=EnvVarType.INTEGER, default="15"),
        EnvVar(name="FREE_IMAGE_DAILY_LIMIT", type=EnvVarType.INTEGER, default="10"),
        EnvVar(name="PRO_TEXT_DAILY_LIMIT", type=EnvVarType.INTEGER, default="5000"),
        EnvVar(name="PRO_IMAGE_DAILY_LIMIT", type=EnvVarType.INTEGER, default="500"),
    ],
)
