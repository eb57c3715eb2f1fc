"""File-based binding storage.

Stores the binding table as a single JSON document. Writes go to a temporary
file first and are renamed into place, so a crash never leaves a torn file.
"""

from __future__ import annotations

import json
import os
from pathlib import Path

import structlog

log = structlog.get_logger()


class FileBindingStorage:
    """BindingStorage backed by one JSON file on disk."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict:
        """Return the stored table, or {} if there is none yet."""
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            log.error("bindings_load_failed", path=str(self._path), exc_info=True)
            return {}
        if not isinstance(data, dict):
            log.warning("bindings_file_ignored", path=str(self._path), reason="not an object")
            return {}
        return data

    def save(self, data: dict) -> None:
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
        os.replace(tmp_path, self._path)
        log.debug("bindings_saved", path=str(self._path),
                  displays=len(data))
