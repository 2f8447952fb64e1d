"""Single-file JSON key-value store."""

from __future__ import annotations

from collections.abc import Sequence
import json
import os
from pathlib import Path
from typing import Any

from loguru import logger


class JsonKeyValueStore:
    """Persist JSON-compatible values under string keys in one file.

    The whole document is loaded lazily on first access and rewritten on every
    mutation through a temporary file so a crash never leaves half a file.

    I/O and decode errors propagate as `OSError`/`ValueError`; callers decide
    how to degrade.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._data: dict[str, Any] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Any]:
        if self._data is None:
            if self._path.exists():
                with self._path.open("r", encoding="utf-8") as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    raise ValueError(f"store root is not an object: {self._path}")
                self._data = data
            else:
                self._data = {}
        return self._data

    def _commit(self, data: dict[str, Any]) -> None:
        """Write `data` to disk, then adopt it as the cached document."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            with tmp.open("w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self._path)
        finally:
            tmp.unlink(missing_ok=True)
        self._data = data

    def get(self, key: str) -> Any | None:
        return self._load().get(key)

    def set(self, key: str, value: Any) -> None:
        self._commit({**self._load(), key: value})

    def remove(self, key: str) -> None:
        self.multi_remove([key])

    def multi_remove(self, keys: Sequence[str]) -> None:
        current = self._load()
        removed = [k for k in keys if k in current]
        if removed:
            self._commit({k: v for k, v in current.items() if k not in removed})
            logger.debug("Removed keys from {}: {}", self._path, removed)
