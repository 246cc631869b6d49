"""Stores for saved column mappings, keyed by bank key."""

import json
from pathlib import Path
from typing import Protocol

from finport.logging_setup import get_logger
from finport.models import ColumnMapping

_logger = get_logger("finport.presets")


class PresetStore(Protocol):
    """Key-value store of column mappings."""

    def get(self, bank_key: str) -> ColumnMapping | None:
        """Return the mapping saved under ``bank_key``, if any."""
        ...

    def set(self, bank_key: str, mapping: ColumnMapping) -> None:
        """Save ``mapping`` under ``bank_key``."""
        ...


class InMemoryPresetStore:
    """Preset store backed by a dict (tests and embedding applications)."""

    def __init__(self) -> None:
        self._presets: dict[str, ColumnMapping] = {}

    def get(self, bank_key: str) -> ColumnMapping | None:
        return self._presets.get(bank_key)

    def set(self, bank_key: str, mapping: ColumnMapping) -> None:
        self._presets[bank_key] = mapping


class JsonPresetStore:
    """Preset store persisted as a JSON object in a single file."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def _load(self) -> dict[str, dict[str, str]]:
        if not self.path.exists():
            return {}
        with open(self.path) as f:
            return json.load(f)  # type: ignore[no-any-return]

    def get(self, bank_key: str) -> ColumnMapping | None:
        data = self._load().get(bank_key)
        if data is None:
            return None
        return ColumnMapping.from_dict(data, bank_key=bank_key)

    def set(self, bank_key: str, mapping: ColumnMapping) -> None:
        presets = self._load()
        presets[bank_key] = mapping.to_dict()

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(presets, f, indent=2)
            f.write("\n")
        _logger.info("Saved column mapping for %s to %s", bank_key, self.path)
