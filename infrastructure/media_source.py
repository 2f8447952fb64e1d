"""Folder-backed media library.

Exposes a directory tree of image files through the `MediaSource` contract:
newest-first pages addressed by an offset cursor, and bulk delete through the
recycle bin. Photo ids are POSIX paths relative to the library root.
"""

from __future__ import annotations

from collections.abc import Sequence
import os
from pathlib import Path
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

from loguru import logger

from core.models import PermissionStatus, Photo, PhotoPage
from core.services.interfaces import DeleteResult
from infrastructure.delete_service import DeleteService
from infrastructure.utils import get_creation_millis, get_file_size, read_dimensions

IMAGE_EXTENSIONS = frozenset(
    {".jpg", ".jpeg", ".png", ".heic", ".heif", ".gif", ".webp", ".bmp", ".tif", ".tiff"}
)


def locator_to_path(locator: str) -> str:
    """Accept either a filesystem path or a `file://` URI."""
    if locator.startswith("file:"):
        return url2pathname(unquote(urlparse(locator).path))
    return locator


class FolderMediaSource:
    """Media source over the image files below `root`."""

    def __init__(self, root: str | Path, delete_service: DeleteService | None = None) -> None:
        self._root = Path(root)
        self._deleter = delete_service or DeleteService()
        # (creation_ms, photo_id) newest first; rebuilt when listing restarts.
        # Deleted ids stay in the index so handed-out offsets remain valid.
        self._index: list[tuple[int, str]] = []
        self._deleted: set[str] = set()

    @property
    def root(self) -> Path:
        return self._root

    def _path_for(self, photo_id: str) -> Path:
        return self._root / Path(photo_id)

    def _scan(self) -> list[tuple[int, str]]:
        entries: list[tuple[int, str]] = []
        for dirpath, _dirnames, filenames in os.walk(self._root):
            for name in filenames:
                if Path(name).suffix.lower() not in IMAGE_EXTENSIONS:
                    continue
                full = Path(dirpath) / name
                photo_id = full.relative_to(self._root).as_posix()
                entries.append((get_creation_millis(str(full)), photo_id))
        entries.sort(key=lambda e: (-e[0], e[1]))
        logger.info("Indexed {} image(s) under {}", len(entries), self._root)
        return entries

    def _build_photo(self, creation_ms: int, photo_id: str) -> Photo | None:
        path = self._path_for(photo_id)
        dims = read_dimensions(str(path))
        if dims is None or dims[0] <= 0 or dims[1] <= 0:
            logger.warning("Skipping unreadable image: {}", path)
            return None
        return Photo(
            id=photo_id,
            uri=path.resolve().as_uri(),
            filename=path.name,
            width=dims[0],
            height=dims[1],
            creation_time=creation_ms,
            file_size=get_file_size(str(path)),
        )

    def list_photos(self, page_size: int, cursor: str | None = None) -> PhotoPage:
        """Return the page starting at `cursor` (an item offset).

        Raises:
            OSError: If the library root cannot be read.
            ValueError: If `cursor` is not an offset produced by this source.
        """
        if not self._root.is_dir():
            raise OSError(f"library root is not a directory: {self._root}")
        if cursor is None:
            self._index = self._scan()
            self._deleted = set()
            start = 0
        else:
            start = int(cursor)
            if start < 0:
                raise ValueError(f"invalid cursor: {cursor!r}")

        end = start + max(1, int(page_size))
        items = [
            photo
            for photo in (
                self._build_photo(c, pid)
                for c, pid in self._index[start:end]
                if pid not in self._deleted
            )
            if photo is not None
        ]
        has_more = end < len(self._index)
        return PhotoPage(items=items, next_cursor=str(end) if has_more else None, has_more=has_more)

    def bulk_delete(self, photo_ids: Sequence[str]) -> DeleteResult:
        paths = {pid: str(self._path_for(pid)) for pid in photo_ids}
        result = self._deleter.execute_delete(paths)
        self._deleted.update(result.success_ids)
        return result

    def get_file_size(self, locator: str) -> int:
        return get_file_size(locator_to_path(locator))


class FolderPermissionGate:
    """Grants access when the library folder is readable and writable."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    def get_status(self) -> PermissionStatus:
        if not self._root.exists():
            return "undetermined"
        return "granted" if os.access(self._root, os.R_OK | os.W_OK) else "denied"

    def request(self) -> PermissionStatus:
        return "granted" if self.get_status() == "granted" else "denied"
