from collections.abc import Sequence
from typing import Any

from loguru import logger
import pytest

from core.models import Photo, PhotoPage
from core.services.interfaces import DeleteResult
from infrastructure.storage import TriageStorage

MB = 1024 * 1024
DAY_MS = 24 * 60 * 60 * 1000
NOW = 1_700_000_000_000


class FakeClock:
    """Deterministic epoch-ms clock; `advance` moves it forward."""

    def __init__(self, start: int = NOW) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class MemoryKeyValueStore:
    def __init__(self) -> None:
        self.data: dict[str, Any] = {}

    def get(self, key: str) -> Any | None:
        return self.data.get(key)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)

    def multi_remove(self, keys: Sequence[str]) -> None:
        for key in keys:
            self.data.pop(key, None)


class BrokenKeyValueStore:
    def get(self, key: str) -> Any | None:
        raise OSError("disk unavailable")

    def set(self, key: str, value: Any) -> None:
        raise OSError("disk unavailable")

    def remove(self, key: str) -> None:
        raise OSError("disk unavailable")

    def multi_remove(self, keys: Sequence[str]) -> None:
        raise OSError("disk unavailable")


class FakeMediaSource:
    """In-memory media source serving `photos` in pages."""

    def __init__(self, photos: Sequence[Photo] = ()) -> None:
        self.photos = list(photos)
        self.delete_calls: list[list[str]] = []
        self.fail_ids: set[str] = set()
        self.raise_on_delete: Exception | None = None
        self.raise_on_list: Exception | None = None
        self.sizes: dict[str, int] = {}

    def list_photos(self, page_size: int, cursor: str | None = None) -> PhotoPage:
        if self.raise_on_list is not None:
            raise self.raise_on_list
        start = int(cursor) if cursor else 0
        end = start + page_size
        has_more = end < len(self.photos)
        return PhotoPage(self.photos[start:end], str(end) if has_more else None, has_more)

    def bulk_delete(self, photo_ids: Sequence[str]) -> DeleteResult:
        self.delete_calls.append(list(photo_ids))
        if self.raise_on_delete is not None:
            raise self.raise_on_delete
        result = DeleteResult()
        for photo_id in photo_ids:
            if photo_id in self.fail_ids:
                result.failed.append((photo_id, "locked"))
            else:
                result.success_ids.append(photo_id)
        return result

    def get_file_size(self, locator: str) -> int:
        return self.sizes.get(locator, 0)


class FakePermissionGate:
    def __init__(self, status: str = "granted", error: Exception | None = None) -> None:
        self.status = status
        self.error = error

    def get_status(self) -> str:
        if self.error is not None:
            raise self.error
        return self.status

    def request(self) -> str:
        if self.error is not None:
            raise self.error
        return self.status


def build_photo(
    photo_id: str,
    file_size: int = MB,
    creation_time: int = NOW - DAY_MS,
    filename: str | None = None,
    width: int = 4032,
    height: int = 3024,
) -> Photo:
    return Photo(
        id=photo_id,
        uri=f"file:///library/{photo_id}.jpg",
        filename=filename or f"{photo_id}.jpg",
        width=width,
        height=height,
        creation_time=creation_time,
        file_size=file_size,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_photo():
    return build_photo


@pytest.fixture
def library():
    """Twenty 1MB photos p1..p20, newest first."""
    return [build_photo(f"p{i}", creation_time=NOW - i * 60_000) for i in range(1, 21)]


@pytest.fixture
def memory_store():
    return MemoryKeyValueStore()


@pytest.fixture
def storage(memory_store):
    return TriageStorage(memory_store)


@pytest.fixture
def broken_storage():
    return TriageStorage(BrokenKeyValueStore())


@pytest.fixture
def media(library):
    return FakeMediaSource(library)


@pytest.fixture
def log_messages():
    """Messages logged through loguru while the test runs."""
    messages: list[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)
