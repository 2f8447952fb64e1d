import random

import pytest

from conftest import MB, NOW
from core import actions as act
from core.models import Achievement, GalleryState, PhotoAnalysis, SessionStats
from core.services.achievement_service import initialize_achievements
from core.services.gallery_reducer import CommitDeletions, GalleryReducer, reduce


@pytest.fixture
def reducer(clock):
    return GalleryReducer(clock=clock)


@pytest.fixture
def loaded(reducer, library):
    return reducer.reduce(GalleryState(), act.LoadPhotosSuccess(library, "20", True)).state


def mark_all(reducer, state, ids, decision):
    effects = []
    for photo_id in ids:
        transition = reducer.reduce(state, act.MarkDecision(photo_id, decision))
        state = transition.state
        effects.extend(transition.effects)
    return state, effects


def ids(prefix_range):
    return [f"p{i}" for i in prefix_range]


def assert_counters_consistent(state):
    assert state.stats.processed == len(state.decisions)
    assert state.stats.to_delete + state.stats.to_keep == state.stats.processed
    assert len(state.undo_history) <= 5


def test_load_photos_success_replaces_list(reducer, library):
    action = act.LoadPhotosSuccess(library[:3], "3", True)
    state = reducer.reduce(GalleryState(is_loading=True), action).state
    assert [p.id for p in state.photos] == ["p1", "p2", "p3"]
    assert state.photo_cursor == "3"
    assert state.has_more_photos is True
    assert state.stats.total_photos == 3
    assert state.is_loading is False

    state = reducer.reduce(state, act.LoadPhotosSuccess(library[5:7], None, False)).state
    assert [p.id for p in state.photos] == ["p6", "p7"]
    assert state.has_more_photos is False


def test_load_more_photos_appends(reducer, library):
    state = reducer.reduce(GalleryState(), act.LoadPhotosSuccess(library[:2], "2", True)).state
    state = reducer.reduce(state, act.LoadMorePhotos(library[2:4], "4", False)).state
    assert [p.id for p in state.photos] == ["p1", "p2", "p3", "p4"]
    assert state.photo_cursor == "4"
    assert state.has_more_photos is False
    assert state.stats.total_photos == 4


def test_mark_decision_updates_counts_and_history(reducer, loaded, clock):
    state = reducer.reduce(loaded, act.MarkDecision("p1", "delete")).state
    assert state.decisions == {"p1": "delete"}
    assert state.stats.to_delete == 1
    assert state.stats.storage_to_free == MB
    assert state.current_index == 1
    assert state.undo_history[-1].photo_id == "p1"
    assert state.undo_history[-1].timestamp == clock.now
    # original snapshot untouched
    assert loaded.decisions == {}


def test_counters_stay_consistent_for_random_sequences(reducer, loaded):
    rng = random.Random(7)
    state = loaded
    for _ in range(60):
        photo = rng.choice(state.photos)
        decision = rng.choice(["keep", "delete"])
        state = reducer.reduce(state, act.MarkDecision(photo.id, decision)).state
        assert_counters_consistent(state)
        if rng.random() < 0.2:
            state = reducer.reduce(state, act.UndoLastDecision()).state
            assert_counters_consistent(state)


def test_five_deletes_then_sixth_decision_commits_oldest(reducer, loaded):
    state, effects = mark_all(reducer, loaded, ids(range(1, 6)), "delete")
    assert effects == []
    assert state.stats.processed == 5
    assert state.stats.to_delete == 5
    assert state.stats.storage_to_free == 5 * MB

    transition = reducer.reduce(state, act.MarkDecision("p6", "keep"))
    state = transition.state
    assert transition.effects == (CommitDeletions(photo_ids=("p1",), freed_bytes=MB),)
    assert len(state.photos) == 19
    assert state.find_photo("p1") is None
    assert "p1" not in state.decisions
    assert len(state.decisions) == 5
    assert state.stats.lifetime_deleted == 1
    assert state.stats.lifetime_freed == MB
    assert state.stats.storage_to_free == 4 * MB
    assert state.stats.total_photos == 19
    assert len(state.undo_history) == 5
    assert state.undo_history[0].photo_id == "p2"
    assert_counters_consistent(state)


def test_eviction_keeps_current_index_on_next_photo(reducer, loaded):
    state, _ = mark_all(reducer, loaded, ids(range(1, 7)), "delete")
    # p1 was removed from in front of the cursor, so the next photo is p7
    assert state.current_photo.id == "p7"


def test_ten_decisions_commit_every_evicted_delete(reducer, loaded):
    state, _ = mark_all(reducer, loaded, ids(range(1, 6)), "delete")
    state, effects = mark_all(reducer, state, ids(range(6, 11)), "keep")
    assert [e.photo_ids for e in effects] == [("p1",), ("p2",), ("p3",), ("p4",), ("p5",)]
    assert len(state.photos) == 15
    assert state.stats.lifetime_deleted == 5
    assert state.stats.lifetime_freed == 5 * MB
    assert state.stats.to_delete == 0
    assert state.stats.to_keep == 5
    assert state.stats.storage_to_free == 0

    # p6 (keep) ages out: nothing to delete
    transition = reducer.reduce(state, act.MarkDecision("p11", "delete"))
    assert transition.effects == ()
    assert transition.state.stats.storage_to_free == MB
    assert transition.state.stats.lifetime_deleted == 5
    assert_counters_consistent(transition.state)


def test_evicted_delete_not_committed_after_flip_to_keep(reducer, loaded):
    state, _ = mark_all(reducer, loaded, ["p1"], "delete")
    state, effects = mark_all(reducer, state, ["p1", "p2", "p3", "p4", "p5"], "keep")
    assert effects == []
    assert state.find_photo("p1") is not None
    assert state.decisions["p1"] == "keep"


def test_evicted_delete_not_committed_after_undo_decision(reducer, loaded):
    state, _ = mark_all(reducer, loaded, ["p1"], "delete")
    state = reducer.reduce(state, act.UndoDecision("p1")).state
    state, effects = mark_all(reducer, state, ids(range(2, 7)), "keep")
    assert effects == []
    assert state.find_photo("p1") is not None


def test_delete_then_keep_restores_storage(reducer, loaded):
    before = loaded.stats.storage_to_free
    state = reducer.reduce(loaded, act.MarkDecision("p3", "delete")).state
    assert state.stats.storage_to_free == before + MB
    state = reducer.reduce(state, act.MarkDecision("p3", "keep")).state
    assert state.stats.storage_to_free == before
    assert state.stats.to_delete == 0
    assert state.stats.to_keep == 1


def test_repeated_delete_does_not_double_count(reducer, loaded):
    state, _ = mark_all(reducer, loaded, ["p2", "p2"], "delete")
    assert state.stats.storage_to_free == MB
    assert state.stats.to_delete == 1


def test_undo_last_decision_on_empty_history_is_noop(reducer, loaded):
    assert reducer.reduce(loaded, act.UndoLastDecision()).state is loaded


def test_undo_last_decision_reverses_delete(reducer, loaded):
    state, _ = mark_all(reducer, loaded, ["p1", "p2"], "delete")
    state = reducer.reduce(state, act.UndoLastDecision()).state
    assert state.decisions == {"p1": "delete"}
    assert state.stats.storage_to_free == MB
    assert state.current_index == 1
    assert [h.photo_id for h in state.undo_history] == ["p1"]
    assert_counters_consistent(state)


def test_undo_last_decision_index_floors_at_zero(reducer, loaded):
    state = reducer.reduce(loaded, act.MarkDecision("p1", "keep")).state
    state = reducer.reduce(state, act.SetCurrentIndex(0)).state
    state = reducer.reduce(state, act.UndoLastDecision()).state
    assert state.current_index == 0


def test_undo_decision_leaves_history(reducer, loaded):
    state, _ = mark_all(reducer, loaded, ["p1", "p2"], "delete")
    state = reducer.reduce(state, act.UndoDecision("p1")).state
    assert state.decisions == {"p2": "delete"}
    assert state.stats.storage_to_free == MB
    assert [h.photo_id for h in state.undo_history] == ["p1", "p2"]
    assert_counters_consistent(state)


def test_undo_decision_unknown_id_is_noop(reducer, loaded):
    assert reducer.reduce(loaded, act.UndoDecision("missing")).state is loaded


def test_clear_undo_history(reducer, loaded):
    state, _ = mark_all(reducer, loaded, ["p1"], "keep")
    state = reducer.reduce(state, act.ClearUndoHistory()).state
    assert state.undo_history == ()
    assert state.decisions == {"p1": "keep"}


def test_execute_deletions_success(reducer, loaded):
    state, _ = mark_all(reducer, loaded, ["p1", "p2"], "delete")
    state, _ = mark_all(reducer, state, ["p3"], "keep")
    state = reducer.reduce(state, act.ExecuteDeletionsSuccess(["p1", "p2"])).state
    assert len(state.photos) == 18
    assert state.current_index == 0
    assert state.undo_history == ()
    assert state.decisions == {"p3": "keep"}
    assert state.stats.to_delete == 0
    assert state.stats.storage_to_free == 0
    assert state.stats.lifetime_deleted == 2
    assert state.stats.lifetime_freed == 2 * MB
    assert_counters_consistent(state)


def test_simple_field_updates(reducer, loaded):
    state = reducer.reduce(loaded, act.SetPermissionStatus("granted")).state
    assert state.permission_status == "granted"
    state = reducer.reduce(state, act.SetLoading(True)).state
    assert state.is_loading is True
    state = reducer.reduce(state, act.SetCurrentIndex(4)).state
    assert state.current_index == 4
    state = reducer.reduce(state, act.SetResumePhoto("p9")).state
    assert state.last_resume_photo_id == "p9"


def test_reset_session_keeps_permission_only(reducer, loaded):
    state = reducer.reduce(loaded, act.SetPermissionStatus("granted")).state
    state, _ = mark_all(reducer, state, ["p1"], "delete")
    state = reducer.reduce(state, act.ResetSession()).state
    assert state == GalleryState(permission_status="granted")


def test_session_lifecycle(reducer, loaded, clock):
    state = reducer.reduce(loaded, act.StartSession()).state
    session = state.current_session
    assert session.session_id == f"session_{NOW}"
    assert session.start_time == NOW

    clock.advance(1000)
    assert reducer.reduce(state, act.StartSession()).state is state

    state, _ = mark_all(reducer, state, ["p1", "p2"], "delete")
    state, _ = mark_all(reducer, state, ["p3"], "keep")
    assert state.current_session.photos_reviewed == 3
    assert state.current_session.photos_deleted == 2
    assert state.current_session.photos_kept == 1

    state = reducer.reduce(state, act.EndSession(state.current_session)).state
    assert state.current_session is None
    assert state.stats.total_sessions == 1


def test_session_tracks_freed_storage_on_eviction(reducer, loaded):
    state = reducer.reduce(loaded, act.StartSession()).state
    state, _ = mark_all(reducer, state, ids(range(1, 7)), "delete")
    assert state.current_session.storage_freed == MB


def test_update_stats_merges_known_fields(reducer, loaded):
    state = reducer.reduce(loaded, act.UpdateStats({"current_streak": 4, "bogus": 1})).state
    assert state.stats.current_streak == 4
    assert state.stats.total_photos == 20
    assert reducer.reduce(state, act.UpdateStats({"bogus": 2})).state is state


def test_analyses_merge(reducer, loaded):
    a1 = PhotoAnalysis("p1", False, 20, True, False, 1, 50, NOW)
    a2 = PhotoAnalysis("p2", True, 60, False, False, 2000, 50, NOW)
    state = reducer.reduce(loaded, act.SetPhotoAnalysis("p1", a1)).state
    state = reducer.reduce(state, act.BatchSetAnalyses({"p2": a2})).state
    assert state.analyses == {"p1": a1, "p2": a2}


def test_unlock_achievement_is_idempotent(reducer, loaded, clock):
    state = reducer.reduce(loaded, act.SetAchievements(initialize_achievements())).state
    assert reducer.reduce(state, act.UnlockAchievement("nope")).state is state

    state = reducer.reduce(state, act.UnlockAchievement("first_steps")).state
    unlocked = next(a for a in state.achievements if a.id == "first_steps")
    assert unlocked.unlocked_at == NOW
    assert state.unlocked_achievements == ("first_steps",)

    clock.advance(5000)
    assert reducer.reduce(state, act.UnlockAchievement("first_steps")).state is state


def test_set_achievements_never_relocks(reducer, loaded):
    stamped = Achievement("first_steps", "First Steps", "", "", target=1, unlocked_at=123)
    state = reducer.reduce(loaded, act.SetAchievements([stamped])).state
    relocked = Achievement("first_steps", "First Steps", "", "", target=1, progress=0)
    state = reducer.reduce(state, act.SetAchievements([relocked])).state
    assert state.achievements[0].unlocked_at == 123


def test_unknown_action_is_ignored(reducer, loaded):
    assert reducer.reduce(loaded, object()).state is loaded


def test_unknown_decision_is_ignored(reducer, loaded):
    assert reducer.reduce(loaded, act.MarkDecision("p1", "maybe")).state is loaded


def test_module_level_reduce_uses_clock(loaded):
    state = reduce(loaded, act.StartSession(), clock=lambda: 42).state
    assert state.current_session == SessionStats(session_id="session_42", start_time=42)


def test_custom_undo_capacity(clock, loaded):
    reducer = GalleryReducer(clock=clock, undo_capacity=2)
    state, effects = mark_all(reducer, loaded, ["p1", "p2", "p3"], "delete")
    assert [e.photo_ids for e in effects] == [("p1",)]
    assert len(state.undo_history) == 2
