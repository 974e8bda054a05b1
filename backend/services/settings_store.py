"""
Persistent provider settings.

Stores the last successfully used provider configuration as one JSON
document. Reads never raise: a missing or unreadable file loads as {}.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Mapping

from observability.logger import EventLogger


class SettingsStore:
    """JSON file backed settings (single document, whole-file rewrite)."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)
        self._log = EventLogger("settings_store", path=str(self._path))

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            self._log.log("settings_load_failed", error=repr(e))
            return {}

        if not isinstance(data, dict):
            self._log.log("settings_load_failed", error="top-level value is not an object")
            return {}
        return data

    def save(self, settings: Mapping[str, Any]) -> None:
        """
        Merge settings into the stored document and write it back.

        Raises:
            OSError if the file cannot be written.
        """
        merged = {**self.load(), **settings}

        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(merged, indent=2), encoding="utf-8")
        os.replace(tmp, self._path)

        self._log.log("settings_saved", keys=sorted(merged))
