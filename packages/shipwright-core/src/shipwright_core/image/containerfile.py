"""Render the runtime-stage Containerfile.

The build context is the dist directory, so the recipe can only ever copy
collected executables: the compiler toolchain, source tree and dependency
cache are unreachable from it.
"""

from __future__ import annotations

import json

from shipwright_core.image.models import RuntimeImage


def _env_value(value: str) -> str:
    return json.dumps(value)


def render_containerfile(image: RuntimeImage) -> str:
    """Produce the Containerfile for a planned runtime image.

    Example:
        >>> print(render_containerfile(image))
        FROM debian:trixie-slim
        ...
        ENTRYPOINT ["backvonia"]
    """
    lines: list[str] = [f"FROM {image.base_image}", ""]

    if image.packages:
        lines.append("# Native runtime libraries only")
        lines.append("RUN apt-get update \\")
        lines.append(
            "    && apt-get install -y --no-install-recommends "
            + " ".join(image.packages)
            + " \\"
        )
        lines.append("    && rm -rf /var/lib/apt/lists/*")
        lines.append("")

    lines.append(f"WORKDIR {image.workdir}")
    lines.append("")

    for binary in image.binaries:
        lines.append(f"COPY {binary.source.name} {binary.destination}")
    lines.append("")

    lines.append(f"RUN useradd -m -u {image.user.uid} {image.user.name}")
    lines.append(f"USER {image.user.name}")
    lines.append("")

    if image.env:
        env_lines = [f"{key}={_env_value(value)}" for key, value in image.env.items()]
        lines.append("ENV " + " \\\n    ".join(env_lines))
        lines.append("")

    lines.append(f"EXPOSE {image.port}")
    lines.append("")
    lines.append(f"ENTRYPOINT {json.dumps(image.entrypoint)}")

    return "\n".join(lines) + "\n"
