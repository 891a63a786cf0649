"""Unit tests for the service environment schema."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from shipwright_core.errors import EnvironmentValidationError
from shipwright_core.schemas import (
    BACKVONIA_ENVIRONMENT,
    EnvVar,
    EnvVarType,
    ServiceEnvironment,
    parse_log_filter,
)

LAUNCH_ENV = {
    "DATABASE_URL": "postgres://app:pw@db:5432/backvonia",
    "REDIS_URL": "redis://cache:6379",
    "OPENAI_API_KEY": "sk-test",
    "APPLE_SHARED_SECRET": "shared",
    "BASE_URL": "https://api.backvonia.app",
}


class TestParseLogFilter:
    def test_default_filter(self) -> None:
        assert parse_log_filter("info,backvonia=debug") == [(None, "info"), ("backvonia", "debug")]

    def test_bare_target_and_regex_suffix(self) -> None:
        assert parse_log_filter("tower_http,sqlx=WARN/slow") == [
            ("tower_http", None),
            ("sqlx", "warn"),
        ]

    def test_span_filter_target(self) -> None:
        assert parse_log_filter("info,backvonia[req{id=1}]=debug") == [
            (None, "info"),
            ("backvonia[req{id=1}]", "debug"),
        ]

    def test_separators_inside_span_fields(self) -> None:
        assert parse_log_filter("backvonia[req{id=1,path=/v1/x}]=trace/slow") == [
            ("backvonia[req{id=1,path=/v1/x}]", "trace"),
        ]

    def test_span_filter_without_level(self) -> None:
        assert parse_log_filter("backvonia::api[handler{id=1}]") == [
            ("backvonia::api[handler{id=1}]", None),
        ]

    @pytest.mark.parametrize(
        "value",
        ["", " , ", "backvonia=loud", "=debug", "info,!bad", "backvonia[req{id=1}]=loud"],
    )
    def test_invalid(self, value: str) -> None:
        with pytest.raises(ValueError):
            parse_log_filter(value)


class TestEnvVar:
    """Tests for EnvVar.parse."""

    @pytest.mark.parametrize(
        ("var_type", "raw", "expected"),
        [
            (EnvVarType.PORT, "8080", 8080),
            (EnvVarType.INTEGER, "-15", -15),
            (EnvVarType.HOST, "0.0.0.0", "0.0.0.0"),
            (EnvVarType.HOST, "::", "::"),
            (EnvVarType.HOST, "db.internal", "db.internal"),
            (EnvVarType.URL, "redis://cache:6379", "redis://cache:6379"),
            (EnvVarType.STRING, " spaced ", " spaced "),
        ],
    )
    def test_parse(self, var_type: EnvVarType, raw: str, expected: object) -> None:
        assert EnvVar(name="X", type=var_type).parse(raw) == expected

    @pytest.mark.parametrize(
        ("var_type", "raw", "message"),
        [
            (EnvVarType.PORT, "0", "between 1 and 65535"),
            (EnvVarType.PORT, "http", "expected a TCP port"),
            (EnvVarType.INTEGER, "ten", "expected an integer"),
            (EnvVarType.INTEGER, str(2**31), "out of range"),
            (EnvVarType.HOST, "not a host", "IP address or hostname"),
            (EnvVarType.URL, "cache:6379", "scheme"),
        ],
    )
    def test_parse_rejects(self, var_type: EnvVarType, raw: str, message: str) -> None:
        with pytest.raises(ValueError, match=message):
            EnvVar(name="X", type=var_type).parse(raw)

    def test_choice(self) -> None:
        var = EnvVar(name="MODE", type=EnvVarType.CHOICE, choices=("sandbox", "production"))
        assert var.parse("production") == "production"
        with pytest.raises(ValueError, match="expected one of sandbox, production"):
            var.parse("staging")

    def test_choice_needs_choices(self) -> None:
        with pytest.raises(ValidationError, match="at least one choice"):
            EnvVar(name="MODE", type=EnvVarType.CHOICE)

    def test_secret_cannot_have_default(self) -> None:
        with pytest.raises(ValidationError, match="cannot have defaults"):
            EnvVar(name="TOKEN", secret=True, default="abc")


class TestServiceEnvironment:
    """Tests for the backvonia environment contract."""

    def test_defaults_cover_bind_and_logging(self) -> None:
        defaults = BACKVONIA_ENVIRONMENT.defaults()
        assert defaults["HOST"] == "0.0.0.0"
        assert defaults["PORT"] == "8080"
        assert defaults["RUST_LOG"] == "info,backvonia=debug"
        assert not set(defaults) & BACKVONIA_ENVIRONMENT.secret_names

    def test_secret_names(self) -> None:
        assert BACKVONIA_ENVIRONMENT.secret_names == {
            "DATABASE_URL",
            "REDIS_URL",
            "OPENAI_API_KEY",
            "ANTHROPIC_API_KEY",
            "APPLE_SHARED_SECRET",
        }

    def test_validate_launch_environment(self) -> None:
        values = BACKVONIA_ENVIRONMENT.validate_environment(LAUNCH_ENV)

        assert values["PORT"] == 8080
        assert values["HOST"] == "0.0.0.0"
        assert values["APPLE_ENVIRONMENT"] == "sandbox"
        assert values["FREE_TEXT_DAILY_LIMIT"] == 15
        assert values["ANTHROPIC_API_KEY"] is None

    def test_missing_required_variables(self) -> None:
        env = {k: v for k, v in LAUNCH_ENV.items() if k not in ("DATABASE_URL", "BASE_URL")}

        with pytest.raises(EnvironmentValidationError) as exc_info:
            BACKVONIA_ENVIRONMENT.validate_environment(env)

        assert exc_info.value.problems == {
            "BASE_URL": "required but not set",
            "DATABASE_URL": "required but not set",
        }

    def test_check_values_without_require(self) -> None:
        problems = BACKVONIA_ENVIRONMENT.check_values({"PORT": "99999"}, require=False)
        assert list(problems) == ["PORT"]

    def test_unknown_variables_ignored(self) -> None:
        env = {**LAUNCH_ENV, "UNRELATED": "x"}
        assert "UNRELATED" not in BACKVONIA_ENVIRONMENT.validate_environment(env)

    def test_duplicate_variables_rejected(self) -> None:
        with pytest.raises(ValidationError, match="duplicate variables: PORT"):
            ServiceEnvironment(
                service="svc",
                variables=[EnvVar(name="PORT"), EnvVar(name="PORT")],
            )
