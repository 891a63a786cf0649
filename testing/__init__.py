"""Shared testing infrastructure for shipwright.

Modules:
    fixtures: Test workspaces, .crate archives and fakes for the
        fetcher, toolchain and image backend

Usage:
    In your conftest.py:
        from testing.fixtures import FakeToolchain, write_workspace
"""

from __future__ import annotations
