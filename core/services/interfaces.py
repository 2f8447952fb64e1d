"""Core service interfaces and shared data structures.

This module defines the collaborator contracts the gallery core consumes
(media source, key-value persistence, permission gate) and the records
exchanged with them. Implementations live in the infrastructure layer.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from core.models import PermissionStatus, PhotoPage


@dataclass
class DeleteResult:
    """Outcome of a delete operation.

    Attributes:
        success_ids: Photo ids successfully deleted.
        failed: Tuples of (photo_id, reason) for failures.
        log_path: Optional path to a detailed audit log file.
    """

    success_ids: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)
    log_path: str | None = None

    @property
    def ok(self) -> bool:
        """True when every requested id was deleted."""
        return not self.failed

    @property
    def failed_ids(self) -> list[str]:
        return [photo_id for photo_id, _ in self.failed]


class MediaSource(Protocol):
    """Paginated asset listing and irreversible bulk delete."""

    def list_photos(self, page_size: int, cursor: str | None = None) -> PhotoPage:
        """Return one page of photos sorted by creation time, newest first."""
        ...

    def bulk_delete(self, photo_ids: Sequence[str]) -> DeleteResult:
        """Permanently delete the given photos and report per-id results."""
        ...

    def get_file_size(self, locator: str) -> int:
        """Best-effort size in bytes of the asset at `locator`; 0 on failure."""
        ...


class KeyValueStore(Protocol):
    """String-keyed store of JSON-compatible values."""

    def get(self, key: str) -> Any | None:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def remove(self, key: str) -> None:
        ...

    def multi_remove(self, keys: Sequence[str]) -> None:
        ...


class PermissionGate(Protocol):
    """Library access permission query/request."""

    def get_status(self) -> PermissionStatus:
        ...

    def request(self) -> PermissionStatus:
        """Ask for access; answers `granted` or `denied`."""
        ...
