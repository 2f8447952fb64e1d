"""Settings access helpers for JSON-based configuration."""

from __future__ import annotations

from dataclasses import dataclass
import json
from pathlib import Path
from typing import Any

from loguru import logger

APP_DIR = Path.home() / ".gallery_cleaner"


class JsonSettings:
    """Lightweight JSON settings reader with dotted-key access.

    A missing file yields empty settings so every lookup falls back to its
    default; a malformed file is logged and treated the same way.
    """

    def __init__(self, settings_path: str | Path | None = None) -> None:
        self._path = Path(settings_path) if settings_path else None
        self._data: dict[str, Any] = {}
        if self._path is None:
            return
        if not self._path.exists():
            logger.info("settings.json not found, using defaults: {}", self._path)
            return
        try:
            with self._path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as ex:
            logger.error("Read settings failed for {}: {}", self._path, ex)
            return
        if isinstance(data, dict):
            self._data = data
        else:
            logger.warning("settings.json root is not an object: {}", self._path)

    @property
    def path(self) -> Path | None:
        return self._path

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return value for dotted `key`, or `default` if not present."""
        node: Any = self._data
        for part in key.split("."):
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node

    def get_int(self, key: str, default: int) -> int:
        """Return a positive int for `key`, or `default` when absent/invalid."""
        raw = self.get(key, default)
        try:
            value = int(raw)
        except (TypeError, ValueError):
            logger.warning("Invalid integer for {}: {!r}", key, raw)
            return default
        return value if value > 0 else default


@dataclass(frozen=True)
class TriageConfig:
    """Typed view of the settings the application uses."""

    library_root: Path | None = None
    page_size: int = 20
    undo_capacity: int = 5
    analysis_batch_size: int = 10
    storage_path: Path = APP_DIR / "storage.json"
    log_dir: Path = APP_DIR / "logs"
    log_level: str = "INFO"
    delete_log_dir: Path = APP_DIR / "delete_logs"

    @classmethod
    def from_settings(cls, settings: JsonSettings) -> TriageConfig:
        root = settings.get("library.root")
        return cls(
            library_root=Path(root).expanduser() if root else None,
            page_size=settings.get_int("library.page_size", cls.page_size),
            undo_capacity=settings.get_int("review.undo_capacity", cls.undo_capacity),
            analysis_batch_size=settings.get_int(
                "analysis.batch_size", cls.analysis_batch_size
            ),
            storage_path=Path(settings.get("storage.path", str(cls.storage_path))).expanduser(),
            log_dir=Path(settings.get("logging.dir", str(cls.log_dir))).expanduser(),
            log_level=str(settings.get("logging.level", cls.log_level)).upper(),
            delete_log_dir=Path(
                settings.get("delete.log_dir", str(cls.delete_log_dir))
            ).expanduser(),
        )


def load_config(settings_path: str | Path | None = None) -> TriageConfig:
    """Build a `TriageConfig` from `settings_path` (defaults when missing)."""
    return TriageConfig.from_settings(JsonSettings(settings_path))
