"""CycloneDX manifest discovery and identity-hint decoding."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

import jsonschema

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_PATTERN = "*.cdx.json"

# Only the fields the seeder reads are constrained; everything else passes through.
_BOM_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "metadata": {
            "type": ["object", "null"],
            "properties": {
                "component": {
                    "type": ["object", "null"],
                    "properties": {
                        "name": {"type": "string"},
                        "group": {"type": "string"},
                        "version": {"type": "string"},
                    },
                },
            },
        },
    },
}


@dataclass(frozen=True, slots=True)
class Manifest:
    """Raw BOM bytes plus the path they were read from."""

    path: Path
    content: bytes

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(frozen=True, slots=True)
class BomHints:
    """Identity hints embedded in a BOM's primary component. Empty means absent."""

    name: str = ""
    group: str = ""
    version: str = ""


def load_manifests(directory: str | Path, pattern: str = DEFAULT_PATTERN) -> list[Manifest]:
    """Read every manifest matching ``pattern`` under ``directory`` in sorted order."""

    root = Path(directory)
    if not root.is_dir():
        raise ConfigurationError(
            f"BOM directory does not exist: {root}", operation="load_manifests"
        )
    paths = sorted(path for path in root.glob(pattern) if path.is_file())
    if not paths:
        raise ConfigurationError(
            f"no bom files found in {root}", operation="load_manifests", identifier=pattern
        )
    manifests: list[Manifest] = []
    for path in paths:
        try:
            content = path.read_bytes()
        except OSError as exc:
            raise ConfigurationError(
                f"failed to read bom {path}: {exc}", operation="load_manifests"
            ) from exc
        manifests.append(Manifest(path=path, content=content))
    logger.info("found %d bom files in %s", len(manifests), root)
    return manifests


def decode_hints(manifest: Manifest) -> BomHints:
    """Parse a CycloneDX JSON document and pull out its primary component hints.

    Malformed documents raise :class:`ConfigurationError`; they are a setup
    problem rather than something a retry could fix.
    """

    try:
        document = json.loads(manifest.content)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ConfigurationError(
            f"failed to decode bom {manifest.name}: {exc}",
            operation="decode_bom",
            identifier=str(manifest.path),
        ) from exc
    try:
        jsonschema.validate(instance=document, schema=_BOM_SCHEMA)
    except jsonschema.ValidationError as exc:
        raise ConfigurationError(
            f"failed to decode bom {manifest.name}: {exc.message}",
            operation="decode_bom",
            identifier=str(manifest.path),
        ) from exc

    component = (document.get("metadata") or {}).get("component") or {}
    return BomHints(
        name=component.get("name", ""),
        group=component.get("group", ""),
        version=component.get("version", ""),
    )


def select_manifest(manifests: Sequence[Manifest], unit: int) -> Manifest:
    """Pick the manifest for a unit of work: ``(unit + 1) % len(manifests)``.

    The one-slot offset means the first unit uses the second manifest loaded.
    """

    if not manifests:
        raise ConfigurationError("no manifests loaded", operation="select_manifest")
    if unit < 0:
        raise ValueError("unit must be non-negative.")
    return manifests[(unit + 1) % len(manifests)]


__all__ = [
    "BomHints",
    "DEFAULT_PATTERN",
    "Manifest",
    "decode_hints",
    "load_manifests",
    "select_manifest",
]
