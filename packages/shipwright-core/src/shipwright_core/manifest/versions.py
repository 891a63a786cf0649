"""Cargo version and version-requirement matching.

Implements the requirement syntax accepted in Cargo.toml dependency
declarations so locked versions can be checked against manifests without
invoking cargo:

- bare and caret requirements: "1.2", "^1.2.3", "^0.2", "^0.0.3"
- tilde requirements: "~1.2"
- wildcards: "*", "1.*", "1.2.x"
- comparisons: ">=1.2, <2", "=1.0.5"

Pre-release versions only satisfy a requirement that names a pre-release
on the same major.minor.patch.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

_VERSION_RE = re.compile(
    r"^(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<pre>[0-9A-Za-z.-]+))?(?:\+(?P<build>[0-9A-Za-z.-]+))?$"
)
_PARTIAL_RE = re.compile(
    r"^(?P<major>\d+|[*xX])(?:\.(?P<minor>\d+|[*xX]))?(?:\.(?P<patch>\d+|[*xX]))?"
    r"(?:-(?P<pre>[0-9A-Za-z.-]+))?(?:\+[0-9A-Za-z.-]+)?$"
)
_OPERATORS = (">=", "<=", ">", "<", "=", "~", "^")
_WILDCARDS = frozenset({"*", "x", "X"})


def _pre_identifiers(pre: str | None) -> tuple[str, ...]:
    return tuple(pre.split(".")) if pre else ()


def _pre_key(pre: tuple[str, ...]) -> tuple[object, ...]:
    """Sort key for pre-release identifiers; a release sorts after any pre-release."""
    if not pre:
        return (1,)
    parts: list[tuple[int, int | str]] = []
    for ident in pre:
        if ident.isdigit():
            parts.append((0, int(ident)))
        else:
            parts.append((1, ident))
    return (0, tuple(parts))


@dataclass(frozen=True)
class Version:
    """A concrete semantic version as written in Cargo.lock."""

    major: int
    minor: int
    patch: int
    pre: tuple[str, ...] = ()
    build: str = ""

    @classmethod
    def parse(cls, text: str) -> Version:
        """Parse a full ``major.minor.patch[-pre][+build]`` version.

        Raises:
            ValueError: If the text is not a valid semantic version.
        """
        match = _VERSION_RE.match(text.strip())
        if match is None:
            raise ValueError(f"invalid version: {text!r}")
        return cls(
            major=int(match["major"]),
            minor=int(match["minor"]),
            patch=int(match["patch"]),
            pre=_pre_identifiers(match["pre"]),
            build=match["build"] or "",
        )

    def _key(self) -> tuple[object, ...]:
        return (self.major, self.minor, self.patch, _pre_key(self.pre))

    def __lt__(self, other: Version) -> bool:
        return self._key() < other._key()

    def __le__(self, other: Version) -> bool:
        return self._key() <= other._key()

    def __gt__(self, other: Version) -> bool:
        return self._key() > other._key()

    def __ge__(self, other: Version) -> bool:
        return self._key() >= other._key()

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.pre:
            text += "-" + ".".join(self.pre)
        if self.build:
            text += "+" + self.build
        return text


@dataclass(frozen=True)
class Comparator:
    """One comparator of a requirement, e.g. ``>=1.2`` or ``^0.3.1``."""

    op: str
    major: int
    minor: int | None = None
    patch: int | None = None
    pre: tuple[str, ...] = ()

    def matches(self, version: Version) -> bool:
        if self.op == "=":
            return self._matches_exact(version)
        if self.op == ">":
            return self._matches_greater(version)
        if self.op == ">=":
            return self._matches_exact(version) or self._matches_greater(version)
        if self.op == "<":
            return self._matches_less(version)
        if self.op == "<=":
            return self._matches_exact(version) or self._matches_less(version)
        if self.op == "~":
            return self._matches_tilde(version)
        if self.op == "^":
            return self._matches_caret(version)
        if self.op == "*":
            return self._matches_wildcard(version)
        raise ValueError(f"unknown comparator operator: {self.op!r}")

    def _matches_exact(self, v: Version) -> bool:
        if v.major != self.major:
            return False
        if self.minor is not None and v.minor != self.minor:
            return False
        if self.patch is not None and v.patch != self.patch:
            return False
        return v.pre == self.pre

    def _matches_greater(self, v: Version) -> bool:
        if v.major != self.major:
            return v.major > self.major
        if self.minor is None:
            return False
        if v.minor != self.minor:
            return v.minor > self.minor
        if self.patch is None:
            return False
        if v.patch != self.patch:
            return v.patch > self.patch
        return _pre_key(v.pre) > _pre_key(self.pre)

    def _matches_less(self, v: Version) -> bool:
        if v.major != self.major:
            return v.major < self.major
        if self.minor is None:
            return False
        if v.minor != self.minor:
            return v.minor < self.minor
        if self.patch is None:
            return False
        if v.patch != self.patch:
            return v.patch < self.patch
        return _pre_key(v.pre) < _pre_key(self.pre)

    def _matches_tilde(self, v: Version) -> bool:
        if v.major != self.major:
            return False
        if self.minor is not None and v.minor != self.minor:
            return False
        if self.patch is not None and v.patch != self.patch:
            return v.patch > self.patch
        return _pre_key(v.pre) >= _pre_key(self.pre)

    def _matches_caret(self, v: Version) -> bool:
        if v.major != self.major:
            return False
        if self.minor is None:
            return True
        if self.patch is None:
            if self.major > 0:
                return v.minor >= self.minor
            return v.minor == self.minor

        if self.major > 0:
            if v.minor != self.minor:
                return v.minor > self.minor
            if v.patch != self.patch:
                return v.patch > self.patch
        elif self.minor > 0:
            if v.minor != self.minor:
                return False
            if v.patch != self.patch:
                return v.patch > self.patch
        elif v.minor != self.minor or v.patch != self.patch:
            return False

        return _pre_key(v.pre) >= _pre_key(self.pre)

    def _matches_wildcard(self, v: Version) -> bool:
        if v.major != self.major:
            return False
        return self.minor is None or v.minor == self.minor


@dataclass(frozen=True)
class VersionReq:
    """A parsed Cargo version requirement (comma-joined comparators)."""

    text: str
    comparators: tuple[Comparator, ...] = field(default_factory=tuple)

    @classmethod
    def parse(cls, text: str) -> VersionReq:
        """Parse a requirement string from a manifest.

        Raises:
            ValueError: If any comparator is malformed.
        """
        stripped = text.strip()
        if stripped in ("", "*"):
            return cls(text=text, comparators=())

        comparators = tuple(_parse_comparator(part) for part in stripped.split(","))
        return cls(text=text, comparators=tuple(c for c in comparators if c is not None))

    def matches(self, version: Version) -> bool:
        """Check whether a locked version satisfies this requirement."""
        if not all(c.matches(version) for c in self.comparators):
            return False
        if not version.pre:
            return True
        return any(
            c.major == version.major
            and c.minor == version.minor
            and c.patch == version.patch
            and c.pre
            for c in self.comparators
        )

    def __str__(self) -> str:
        return self.text


def _parse_comparator(part: str) -> Comparator | None:
    """Parse one comparator; returns None for a bare ``*`` wildcard."""
    part = part.strip()
    if not part:
        raise ValueError("empty comparator in version requirement")

    op = "^"
    for candidate in _OPERATORS:
        if part.startswith(candidate):
            op = candidate
            part = part[len(candidate) :].strip()
            break

    match = _PARTIAL_RE.match(part)
    if match is None:
        raise ValueError(f"invalid version requirement: {part!r}")

    raw_major, raw_minor, raw_patch = match["major"], match["minor"], match["patch"]
    pre = _pre_identifiers(match["pre"])

    if raw_major in _WILDCARDS:
        return None
    major = int(raw_major)

    if raw_minor is None or raw_minor in _WILDCARDS:
        minor = None
        patch = None
        if raw_minor is not None:
            op = "*" if op == "^" else op
    else:
        minor = int(raw_minor)
        if raw_patch is None or raw_patch in _WILDCARDS:
            patch = None
            if raw_patch is not None:
                op = "*" if op == "^" else op
        else:
            patch = int(raw_patch)

    if pre and patch is None:
        raise ValueError(f"pre-release requires a full version: {part!r}")

    return Comparator(op=op, major=major, minor=minor, patch=patch, pre=pre)
