"""Project identity derivation for BOM uploads."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Callable

from .manifests import BomHints

DEFAULT_PROJECT_NAME = "Dependency-Track"


@dataclass(frozen=True, slots=True)
class ProjectIdentity:
    name: str
    version: str


def derive_identity(
    hints: BomHints,
    *,
    token_factory: Callable[[], str] | None = None,
) -> ProjectIdentity:
    """Build the ``(name, version)`` pair used to auto-create a project.

    The version always ends in a fresh 128-bit random token so repeated runs
    against the same BOM never collide.
    """

    token = token_factory() if token_factory is not None else str(uuid.uuid4())
    name = DEFAULT_PROJECT_NAME
    if hints.name:
        name = f"{hints.group}_{hints.name}" if hints.group else hints.name
    version = f"{hints.version}_{token}" if hints.version else token
    return ProjectIdentity(name=name, version=version)


__all__ = ["DEFAULT_PROJECT_NAME", "ProjectIdentity", "derive_identity"]
