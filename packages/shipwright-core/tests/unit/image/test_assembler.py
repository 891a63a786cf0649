"""Unit tests for the runtime image assembler."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from shipwright_core.build import (
    EXECUTABLE_MODE,
    CollectedArtifact,
    CollectedArtifacts,
    file_digest,
)
from shipwright_core.errors import (
    EnvironmentValidationError,
    ImageAssemblyError,
    MinimalityError,
)
from shipwright_core.image import RuntimeImageAssembler, check_minimality
from shipwright_core.schemas import BinaryRole, ReleaseSpec, RuntimeConfig
from testing.fixtures import SLIM_IMAGE_PACKAGES, FakeBackend


def _spec(workspace: Path, **runtime: object) -> ReleaseSpec:
    runtime.setdefault("check_linkage", False)
    return ReleaseSpec(
        name="backvonia",
        workspace=str(workspace),
        runtime=RuntimeConfig(**runtime),
    )


def _collect(dist_dir: Path, *names: str) -> CollectedArtifacts:
    dist_dir.mkdir(parents=True, exist_ok=True)
    artifacts = []
    for name in names:
        path = dist_dir / name
        path.write_bytes(f"#!/bin/sh\n# {name}\n".encode())
        path.chmod(EXECUTABLE_MODE)
        artifacts.append(
            CollectedArtifact(
                name=name,
                path=path,
                sha256=file_digest(path),
                size=path.stat().st_size,
            )
        )
    return CollectedArtifacts(dist_dir=dist_dir, artifacts=artifacts)


@pytest.fixture
def collected(tmp_path: Path) -> CollectedArtifacts:
    return _collect(tmp_path / "dist", "backvonia", "backvonia-migrate")


class TestCheckMinimality:
    @pytest.mark.parametrize(
        "package",
        [
            "gcc",
            "gcc-12",
            "gcc-14",
            "cargo",
            "rustc",
            "rust-src",
            "libssl-dev",
            "build-essential",
            "clang-16",
        ],
    )
    def test_rejects_build_tooling(self, package: str) -> None:
        assert check_minimality(["ca-certificates", package]) == [package]

    def test_accepts_runtime_libraries(self) -> None:
        assert check_minimality(["ca-certificates", "libssl3", "libpq5", "tzdata"]) == []

    @pytest.mark.parametrize("package", ["gcc-12-base", "gcc-14-base"])
    def test_compiler_runtime_base_is_not_tooling(self, package: str) -> None:
        """libgcc-s1 pulls in gcc-N-base, which carries only docs."""
        assert check_minimality([package, "libgcc-s1", "libstdc++6"]) == []

    def test_slim_base_image_passes(self) -> None:
        assert check_minimality(SLIM_IMAGE_PACKAGES) == []


class TestPlan:
    """Tests for RuntimeImageAssembler.plan."""

    @pytest.mark.requirement("runtime-image")
    def test_default_plan(self, release_spec: ReleaseSpec, collected: CollectedArtifacts) -> None:
        image = RuntimeImageAssembler(release_spec).plan(collected)

        assert image.base_image == "debian:trixie-slim"
        assert image.packages == ["ca-certificates", "libssl3"]
        assert image.entrypoint == ["backvonia"]
        assert image.user.name == "appuser"
        assert image.user.uid == 10001
        assert image.port == 8080
        assert image.env == {
            "HOST": "0.0.0.0",
            "PORT": "8080",
            "RUST_LOG": "info,backvonia=debug",
        }
        assert image.tag == "backvonia:latest"

    @pytest.mark.requirement("runtime-image")
    def test_installs_every_binary(
        self, release_spec: ReleaseSpec, collected: CollectedArtifacts
    ) -> None:
        image = RuntimeImageAssembler(release_spec).plan(collected)

        destinations = {b.name: b.destination for b in image.binaries}
        assert destinations == {
            "backvonia": "/usr/local/bin/backvonia",
            "backvonia-migrate": "/usr/local/bin/backvonia-migrate",
        }
        assert image.service.name == "backvonia"
        migrate = next(b for b in image.binaries if b.name == "backvonia-migrate")
        assert migrate.role == BinaryRole.AUXILIARY
        assert migrate.sha256 == collected.artifacts[1].sha256

    def test_entrypoint_off_path_uses_full_path(
        self, workspace: Path, collected: CollectedArtifacts
    ) -> None:
        spec = _spec(workspace, install_dir="/opt/backvonia/bin/")

        image = RuntimeImageAssembler(spec).plan(collected)

        assert image.entrypoint == ["/opt/backvonia/bin/backvonia"]
        assert image.service.destination == "/opt/backvonia/bin/backvonia"

    def test_custom_tag(self, workspace: Path, collected: CollectedArtifacts) -> None:
        spec = _spec(workspace, tag="registry.example.com/backvonia:1.4.0")
        assert RuntimeImageAssembler(spec).plan(collected).tag == "registry.example.com/backvonia:1.4.0"

    def test_binary_not_collected(self, release_spec: ReleaseSpec, tmp_path: Path) -> None:
        partial = _collect(tmp_path / "dist", "backvonia")

        with pytest.raises(ImageAssemblyError, match="'backvonia-migrate' was not collected"):
            RuntimeImageAssembler(release_spec).plan(partial)

    def test_binary_outside_dist_dir(self, release_spec: ReleaseSpec, tmp_path: Path) -> None:
        elsewhere = _collect(tmp_path / "elsewhere", "backvonia", "backvonia-migrate")
        moved = CollectedArtifacts(dist_dir=tmp_path / "dist", artifacts=elsewhere.artifacts)

        with pytest.raises(ImageAssemblyError, match="outside the dist directory"):
            RuntimeImageAssembler(release_spec).plan(moved)

    @pytest.mark.requirement("runtime-image")
    def test_toolchain_package_rejected(
        self, workspace: Path, collected: CollectedArtifacts
    ) -> None:
        spec = _spec(workspace, packages=["ca-certificates", "libssl3", "gcc"])

        with pytest.raises(MinimalityError) as exc_info:
            RuntimeImageAssembler(spec).plan(collected)
        assert exc_info.value.offenders == ["gcc"]

    @pytest.mark.requirement("runtime-image")
    def test_secret_default_rejected(self, workspace: Path, collected: CollectedArtifacts) -> None:
        spec = _spec(
            workspace,
            env={"PORT": "8080", "DATABASE_URL": "postgres://app:secret@db/backvonia"},
        )

        with pytest.raises(ImageAssemblyError, match="DATABASE_URL"):
            RuntimeImageAssembler(spec).plan(collected)

    def test_port_default_must_match_exposed_port(
        self, workspace: Path, collected: CollectedArtifacts
    ) -> None:
        spec = _spec(workspace, env={"PORT": "9090"})

        with pytest.raises(ImageAssemblyError, match="does not match the exposed port 8080"):
            RuntimeImageAssembler(spec).plan(collected)

    def test_invalid_default_values(self, workspace: Path, collected: CollectedArtifacts) -> None:
        spec = _spec(workspace, env={"PORT": "http", "RUST_LOG": "info,backvonia=loud"})

        with pytest.raises(EnvironmentValidationError) as exc_info:
            RuntimeImageAssembler(spec).plan(collected)
        assert set(exc_info.value.problems) == {"PORT", "RUST_LOG"}


class TestPreview:
    def test_preview_points_at_dist_dir(self, release_spec: ReleaseSpec, workspace: Path) -> None:
        image = RuntimeImageAssembler(release_spec).preview()

        dist = workspace / ".shipwright" / "dist"
        assert [b.source for b in image.binaries] == [
            dist / "backvonia",
            dist / "backvonia-migrate",
        ]
        assert all(b.sha256 is None for b in image.binaries)
        assert image.entrypoint == ["backvonia"]


class TestVerify:
    """Tests for RuntimeImageAssembler.verify."""

    def test_matching_inspection(
        self,
        release_spec: ReleaseSpec,
        collected: CollectedArtifacts,
        backend: FakeBackend,
    ) -> None:
        """The slim base installs gcc-14-base; that is not build tooling."""
        assert "gcc-14-base" in backend.inspection.packages
        assembler = RuntimeImageAssembler(release_spec)
        assembler.verify(assembler.plan(collected), backend.inspection)

    def test_numeric_user_accepted(
        self,
        release_spec: ReleaseSpec,
        collected: CollectedArtifacts,
        backend: FakeBackend,
    ) -> None:
        assembler = RuntimeImageAssembler(release_spec)
        inspection = backend.inspection.model_copy(update={"user": "10001"})
        assembler.verify(assembler.plan(collected), inspection)

    @pytest.mark.requirement("runtime-image")
    def test_root_user_rejected(
        self,
        release_spec: ReleaseSpec,
        collected: CollectedArtifacts,
        backend: FakeBackend,
    ) -> None:
        assembler = RuntimeImageAssembler(release_spec)
        inspection = backend.inspection.model_copy(update={"user": "", "uid": 0})

        with pytest.raises(ImageAssemblyError) as exc_info:
            assembler.verify(assembler.plan(collected), inspection)
        assert "user is ''" in exc_info.value.user_message
        assert "uid is 0" in exc_info.value.user_message

    def test_toolchain_found_in_image(
        self,
        release_spec: ReleaseSpec,
        collected: CollectedArtifacts,
        backend: FakeBackend,
    ) -> None:
        assembler = RuntimeImageAssembler(release_spec)
        inspection = backend.inspection.model_copy(
            update={"packages": [*backend.inspection.packages, "rustc"]}
        )

        with pytest.raises(MinimalityError, match="rustc"):
            assembler.verify(assembler.plan(collected), inspection)

    def test_drift_is_listed(
        self,
        release_spec: ReleaseSpec,
        collected: CollectedArtifacts,
        backend: FakeBackend,
    ) -> None:
        assembler = RuntimeImageAssembler(release_spec)
        inspection = backend.inspection.model_copy(
            update={
                "entrypoint": ["/bin/sh"],
                "env": {"HOST": "127.0.0.1", "PORT": "8080", "RUST_LOG": "info,backvonia=debug"},
                "exposed_ports": [],
                "installed_files": ["backvonia"],
            }
        )

        with pytest.raises(ImageAssemblyError) as exc_info:
            assembler.verify(assembler.plan(collected), inspection)

        message = exc_info.value.user_message
        assert "entrypoint is ['/bin/sh']" in message
        assert "env HOST is '127.0.0.1'" in message
        assert "port 8080/tcp is not exposed" in message
        assert "install directory holds ['backvonia']" in message


class TestAssemble:
    """Tests for RuntimeImageAssembler.assemble."""

    def test_builds_from_dist_dir(
        self,
        release_spec: ReleaseSpec,
        collected: CollectedArtifacts,
        backend: FakeBackend,
    ) -> None:
        assembled = RuntimeImageAssembler(release_spec, backend=backend).assemble(collected)

        assert assembled.image_id == backend.inspection.image_id
        assert assembled.inspection == backend.inspection
        containerfile, context_dir, tag = backend.builds[0]
        assert context_dir == collected.dist_dir
        assert tag == "backvonia:latest"
        assert containerfile == assembled.containerfile
        assert "USER appuser" in containerfile

    def test_requires_backend(
        self, release_spec: ReleaseSpec, collected: CollectedArtifacts
    ) -> None:
        with pytest.raises(ImageAssemblyError, match="No image backend configured"):
            RuntimeImageAssembler(release_spec).assemble(collected)

    def test_backend_failure_propagates(
        self,
        release_spec: ReleaseSpec,
        collected: CollectedArtifacts,
        backend: FakeBackend,
    ) -> None:
        backend.fail_build = True

        with pytest.raises(ImageAssemblyError, match="docker build"):
            RuntimeImageAssembler(release_spec, backend=backend).assemble(collected)


class TestCheckLinkage:
    def test_disabled(self, release_spec: ReleaseSpec, collected: CollectedArtifacts) -> None:
        assembler = RuntimeImageAssembler(release_spec)
        assert assembler.check_linkage(assembler.plan(collected)) is False

    def test_skipped_without_readelf(self, workspace: Path, collected: CollectedArtifacts) -> None:
        assembler = RuntimeImageAssembler(_spec(workspace, check_linkage=True))
        image = assembler.plan(collected)

        with patch("shutil.which", return_value=None):
            assert assembler.check_linkage(image) is False

    def test_checks_every_binary(self, workspace: Path, collected: CollectedArtifacts) -> None:
        assembler = RuntimeImageAssembler(_spec(workspace, check_linkage=True))
        image = assembler.plan(collected)

        with (
            patch("shutil.which", return_value="/usr/bin/readelf"),
            patch("shipwright_core.image.assembler.check_runtime_linkage") as mock_check,
        ):
            assert assembler.check_linkage(image) is True

        binaries, packages = mock_check.call_args.args
        assert set(binaries) == {"backvonia", "backvonia-migrate"}
        assert packages == ["ca-certificates", "libssl3"]
