"""
W-9 Layout Loader.

Loads field-placement registries from YAML files, one file per template
revision, so a new IRS revision only needs a new layout file:

    config/w9_layouts/2024-03-coordinates.yaml
    config/w9_layouts/2024-03-acroform.yaml
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from export.w9_placements import PlacementRegistry

logger = logging.getLogger(__name__)

# Default layout directory
LAYOUT_DIR = Path(__file__).parent / "w9_layouts"

DEFAULT_LAYOUT_VERSION = "2024-03-coordinates"


@dataclass
class LayoutMetadata:
    """Metadata about a layout file."""
    form_revision: str
    template_kind: str  # "flat" or "acroform"
    source: str = ""
    notes: str = ""
    irs_references: List[str] = field(default_factory=list)


class W9LayoutLoader:
    """Loads and caches placement registries from a layout directory."""

    def __init__(self, layout_dir: Optional[Path] = None):
        self.layout_dir = Path(layout_dir) if layout_dir else LAYOUT_DIR
        self._registries: Dict[str, PlacementRegistry] = {}
        self._metadata: Dict[str, LayoutMetadata] = {}

    def available_versions(self) -> List[str]:
        return sorted(p.stem for p in self.layout_dir.glob("*.yaml"))

    def load(self, version: str = DEFAULT_LAYOUT_VERSION) -> PlacementRegistry:
        """
        Load the registry for a layout version.

        Raises:
            FileNotFoundError: no layout file for ``version``
            ValueError: the layout file is malformed
        """
        if version in self._registries:
            return self._registries[version]

        layout_file = self.layout_dir / f"{version}.yaml"
        if not layout_file.exists():
            raise FileNotFoundError(
                f"No W-9 layout '{version}' in {self.layout_dir} "
                f"(available: {', '.join(self.available_versions()) or 'none'})"
            )

        logger.info(f"Loading W-9 layout from {layout_file}")
        with open(layout_file, "r") as f:
            try:
                raw = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid W-9 layout '{version}': {e}") from e
        if not isinstance(raw, dict):
            raise ValueError(f"Invalid W-9 layout '{version}': expected a mapping")

        if "_metadata" in raw:
            self._metadata[version] = LayoutMetadata(**raw.pop("_metadata"))
        raw.setdefault("version", version)

        try:
            registry = PlacementRegistry.from_dict(raw)
        except (KeyError, TypeError) as e:
            raise ValueError(f"Invalid W-9 layout '{version}': {e}") from e

        self._registries[version] = registry
        return registry

    def get_metadata(self, version: str) -> Optional[LayoutMetadata]:
        self.load(version)
        return self._metadata.get(version)


_layout_loader: Optional[W9LayoutLoader] = None


def get_layout_loader() -> W9LayoutLoader:
    """Get the global layout loader instance."""
    global _layout_loader
    if _layout_loader is None:
        _layout_loader = W9LayoutLoader()
    return _layout_loader


def load_layout(version: str = DEFAULT_LAYOUT_VERSION) -> PlacementRegistry:
    """Load a shipped layout by version."""
    return get_layout_loader().load(version)


def clear_layout_cache() -> None:
    """Clear cached layouts (for testing)."""
    global _layout_loader
    _layout_loader = None
