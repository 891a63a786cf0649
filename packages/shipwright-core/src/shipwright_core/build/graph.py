"""Workspace build graph.

One node per workspace member, one edge per intra-workspace path
dependency needed to build it (normal and build dependencies; dev
dependencies never take part in a release build). Planning a set of
executable targets yields only the members those targets need, which is
what keeps the service and the migration tool independently buildable.
"""

from __future__ import annotations

from graphlib import CycleError, TopologicalSorter

from pydantic import BaseModel, ConfigDict, Field

from shipwright_core.errors import ConfigurationError
from shipwright_core.manifest.models import DependencyKind, ManifestSet, PackageManifest
from shipwright_core.schemas.release_spec import BinaryTarget


class BuildUnit(BaseModel):
    """One executable target and the workspace members it compiles.

    Attributes:
        target: Release binary this unit produces.
        members: Workspace members compiled, dependencies first.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    target: BinaryTarget = Field(...)
    members: list[str] = Field(default_factory=list)


class BuildGraph:
    """DAG of workspace members.

    Example:
        >>> graph = BuildGraph.from_manifest_set(manifest_set)
        >>> graph.closure("migration")
        ['entity', 'migration']
    """

    def __init__(self, manifests: list[PackageManifest]) -> None:
        self._nodes: dict[str, PackageManifest] = {m.name: m for m in manifests}
        self._edges: dict[str, set[str]] = {}
        for manifest in manifests:
            self._edges[manifest.name] = {
                d.crate_name
                for d in manifest.dependencies
                if d.path is not None
                and d.kind != DependencyKind.DEV
                and d.crate_name in self._nodes
            }
        self._order = self._topological_order()

    @classmethod
    def from_manifest_set(cls, manifest_set: ManifestSet) -> BuildGraph:
        return cls(manifest_set.members)

    def _topological_order(self) -> list[str]:
        sorter = TopologicalSorter(self._edges)
        try:
            return list(sorter.static_order())
        except CycleError as e:
            cycle = " -> ".join(e.args[1])
            raise ConfigurationError(f"Workspace dependency cycle: {cycle}") from e

    @property
    def members(self) -> list[str]:
        """Members in dependency order."""
        return list(self._order)

    def node(self, name: str) -> PackageManifest:
        try:
            return self._nodes[name]
        except KeyError:
            raise ConfigurationError(f"'{name}' is not a workspace member") from None

    def dependencies(self, name: str) -> set[str]:
        """Direct intra-workspace dependencies of a member."""
        self.node(name)
        return set(self._edges[name])

    def closure(self, name: str) -> list[str]:
        """The member and everything it transitively depends on, dependencies first."""
        self.node(name)
        needed: set[str] = set()
        stack = [name]
        while stack:
            current = stack.pop()
            if current in needed:
                continue
            needed.add(current)
            stack.extend(self._edges[current])
        return [m for m in self._order if m in needed]

    def plan(self, targets: list[BinaryTarget]) -> list[BuildUnit]:
        """Plan builds for the selected executables only.

        Raises:
            ConfigurationError: If a target is not an executable workspace member.
        """
        units: list[BuildUnit] = []
        for target in targets:
            manifest = self.node(target.package)
            if target.artifact_name not in manifest.binaries:
                available = ", ".join(manifest.binaries) or "none"
                raise ConfigurationError(
                    f"Package '{target.package}' has no binary target "
                    f"'{target.artifact_name}' (available: {available})",
                    file_path=str(manifest.manifest_path),
                )
            units.append(BuildUnit(target=target, members=self.closure(target.package)))
        return units
