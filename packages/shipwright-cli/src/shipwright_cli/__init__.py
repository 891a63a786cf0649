"""shipwright-cli: Command-line interface for the shipwright release pipeline."""

from __future__ import annotations

__version__ = "0.1.0"
