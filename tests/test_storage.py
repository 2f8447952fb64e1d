from datetime import date

import pytest

from core.models import GalleryStats, SessionStats
from core.services.achievement_service import initialize_achievements
from infrastructure.kv_store import JsonKeyValueStore
from infrastructure.storage import KEYS, MAX_SESSIONS, TriageStorage


def test_stats_round_trip(storage):
    assert storage.get_stats() is None
    stats = GalleryStats(total_sessions=3, lifetime_deleted=12, lifetime_freed=99)
    storage.save_stats(stats)
    assert storage.get_stats() == stats


def test_stats_decode_ignores_unknown_fields(storage, memory_store):
    memory_store.set(KEYS["STATS"], {"lifetime_deleted": 4, "legacy": True})
    assert storage.get_stats() == GalleryStats(lifetime_deleted=4)


def test_last_photo_id(storage):
    assert storage.get_last_photo_id() is None
    storage.save_last_photo_id("p7")
    assert storage.get_last_photo_id() == "p7"
    storage.clear_last_photo_id()
    assert storage.get_last_photo_id() is None


def test_achievements_round_trip(storage):
    achievements = initialize_achievements()
    storage.save_achievements(achievements)
    assert storage.get_achievements() == achievements


def test_sessions_are_capped(storage):
    for i in range(MAX_SESSIONS + 5):
        storage.add_session(SessionStats(session_id=f"s{i}", start_time=i))
    sessions = storage.get_sessions()
    assert len(sessions) == MAX_SESSIONS
    assert sessions[0].session_id == "s5"
    assert sessions[-1].session_id == f"s{MAX_SESSIONS + 4}"


@pytest.mark.parametrize(
    "days,expected",
    [
        ([date(2024, 3, 1)], 1),
        ([date(2024, 3, 1), date(2024, 3, 1)], 1),
        ([date(2024, 3, 1), date(2024, 3, 2), date(2024, 3, 3)], 3),
        ([date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)], 3),
        ([date(2024, 3, 1), date(2024, 3, 2), date(2024, 3, 5)], 1),
    ],
)
def test_update_streak(storage, days, expected):
    result = None
    for day in days:
        result = storage.update_streak(day)
    assert result == expected
    assert storage.get_current_streak() == expected


def test_favorites(storage):
    assert storage.get_favorites() is None
    storage.save_favorites(["a", "b"])
    assert storage.get_favorites() == ["a", "b"]


def test_clear_all(storage, memory_store):
    storage.save_favorites(["a"])
    storage.save_stats(GalleryStats(lifetime_deleted=1))
    memory_store.set("unrelated", 1)
    storage.clear_all()
    assert memory_store.data == {"unrelated": 1}


def test_failures_degrade_to_defaults(broken_storage, log_messages):
    broken_storage.save_stats(GalleryStats())
    assert broken_storage.get_stats() is None
    assert broken_storage.get_achievements() is None
    assert broken_storage.get_sessions() == []
    assert broken_storage.get_current_streak() == 0
    assert broken_storage.update_streak(date(2024, 1, 1)) == 0
    assert broken_storage.get_favorites() is None
    broken_storage.clear_all()
    assert any("Failed to save stats" in m for m in log_messages)
    assert any("Failed to update streak" in m for m in log_messages)


def test_json_store_persists_between_instances(tmp_path):
    path = tmp_path / "nested" / "store.json"
    store = JsonKeyValueStore(path)
    store.set("a", {"x": 1})
    store.set("b", [1, 2])
    store.remove("b")

    reopened = JsonKeyValueStore(path)
    assert reopened.get("a") == {"x": 1}
    assert reopened.get("b") is None
    reopened.multi_remove(["a", "missing"])
    assert JsonKeyValueStore(path).get("a") is None


def test_corrupt_json_store_is_handled_by_storage(tmp_path, log_messages):
    path = tmp_path / "store.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError):
        JsonKeyValueStore(path).get("a")
    assert TriageStorage(JsonKeyValueStore(path)).get_stats() is None
    assert any("Failed to get stats" in m for m in log_messages)


def test_failed_write_leaves_store_unchanged(tmp_path):
    path = tmp_path / "store.json"
    store = JsonKeyValueStore(path)
    store.set("a", 1)

    with pytest.raises(TypeError):
        store.set("bad", object())
    assert store.get("bad") is None
    assert not path.with_name("store.json.tmp").exists()

    store.set("b", 2)
    reopened = JsonKeyValueStore(path)
    assert reopened.get("a") == 1
    assert reopened.get("b") == 2
    assert reopened.get("bad") is None
