"""Unit tests for shipwright_cli.output."""

from __future__ import annotations

import json

import pytest

from shipwright_cli import output


@pytest.fixture(autouse=True)
def plain_consoles() -> None:
    """Rebuild the module consoles so they write to the captured streams."""
    output.set_no_color(True)


class TestStatusLines:
    """Status lines go to stderr and leave stdout for command output."""

    def test_success(self, capsys: pytest.CaptureFixture[str]) -> None:
        output.success("Release configuration valid")

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "✓ Release configuration valid" in captured.err

    def test_error(self, capsys: pytest.CaptureFixture[str]) -> None:
        output.error("Lock out of date")

        assert "✗ Lock out of date" in capsys.readouterr().err

    def test_warning(self, capsys: pytest.CaptureFixture[str]) -> None:
        output.warning("Overwrote existing shipwright.yaml")

        assert "⚠ Overwrote" in capsys.readouterr().err

    def test_markup_disabled(self, capsys: pytest.CaptureFixture[str]) -> None:
        output.info("[bold]literal[/bold]", markup=False)

        assert "[bold]literal[/bold]" in capsys.readouterr().err


class TestPrintJson:
    def test_writes_plain_json_to_stdout(self, capsys: pytest.CaptureFixture[str]) -> None:
        output.print_json({"service": "backvonia", "valid": True})

        captured = capsys.readouterr()
        assert json.loads(captured.out) == {"service": "backvonia", "valid": True}
        assert captured.err == ""


class TestCreateConsole:
    def test_no_color(self) -> None:
        console = output.create_console(no_color=True)

        assert console.no_color is True
        assert console.is_terminal is False

    def test_stderr(self) -> None:
        assert output.create_console(stderr=True).stderr is True

    def test_set_no_color_rebinds_consoles(self) -> None:
        before = output.console

        output.set_no_color(True)

        assert output.console is not before
        assert output.err_console.stderr is True


class TestEscaping:
    def test_unmarked_message_keeps_prefix(self, capsys: pytest.CaptureFixture[str]) -> None:
        output.error("Invalid [runtime] section", markup=False)

        err = capsys.readouterr().err
        assert "✗ Invalid [runtime] section" in err
        assert "[red]" not in err
