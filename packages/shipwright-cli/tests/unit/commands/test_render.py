"""Unit tests for the render command."""

from __future__ import annotations

from pathlib import Path

from click.testing import CliRunner

from shipwright_cli.main import cli
from testing.fixtures import write_release_file


class TestRenderCommand:
    def test_prints_containerfile(self, cli_runner: CliRunner, release_file: Path) -> None:
        result = cli_runner.invoke(cli, ["render", "--file", str(release_file)])

        assert result.exit_code == 0, result.output
        lines = result.stdout.splitlines()
        assert lines[0] == "FROM debian:trixie-slim"
        assert "RUN useradd -m -u 10001 appuser" in lines
        assert "COPY backvonia-migrate /usr/local/bin/backvonia-migrate" in lines
        assert "USER appuser" in lines
        assert lines[-1] == 'ENTRYPOINT ["backvonia"]'
        assert result.stderr == ""

    def test_writes_output_file(
        self,
        isolated_runner: CliRunner,
        release_file: Path,
    ) -> None:
        result = isolated_runner.invoke(
            cli, ["render", "--file", str(release_file), "-o", "Containerfile"]
        )

        assert result.exit_code == 0, result.output
        assert Path("Containerfile").read_text().startswith("FROM debian:trixie-slim\n")
        assert "Wrote Containerfile" in result.stderr
        assert result.stdout == ""

    def test_build_tooling_rejected(self, cli_runner: CliRunner, workspace: Path) -> None:
        path = write_release_file(workspace, workspace, extra="  packages:\n    - rustc\n")

        result = cli_runner.invoke(cli, ["render", "--file", str(path)])

        assert result.exit_code == 1
        assert "rustc" in result.stderr
        assert result.stdout == ""
