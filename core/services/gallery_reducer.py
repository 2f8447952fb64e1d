"""Gallery state machine.

`GalleryReducer.reduce` maps `(state, action)` to a new `GalleryState`
snapshot. Snapshots are never mutated. Side effects that a transition implies
(committing deletes that aged out of the undo window) are not performed here;
they are returned as effect descriptors on the `Transition` so the caller can
execute and reconcile them.

Invalid or stale ids are ignored; `reduce` does not raise.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, fields, replace

from loguru import logger

from core import actions as act
from core.clock import Clock, now_ms
from core.models import (
    DELETE,
    KEEP,
    Achievement,
    GalleryState,
    GalleryStats,
    Photo,
    PhotoDecision,
    SessionStats,
    UndoHistoryItem,
)

UNDO_CAPACITY = 5

_STATS_FIELDS = frozenset(f.name for f in fields(GalleryStats))


@dataclass(frozen=True)
class CommitDeletions:
    """Photos whose delete decision left the undo window and must be removed.

    Attributes:
        photo_ids: Ids to delete from the media source, oldest decision first.
        freed_bytes: Total size of the committed photos known to the state.
    """

    photo_ids: tuple[str, ...]
    freed_bytes: int


@dataclass(frozen=True)
class Transition:
    state: GalleryState
    effects: tuple[CommitDeletions, ...] = ()


def _tally(decisions: Mapping[str, PhotoDecision]) -> tuple[int, int]:
    """Return (to_delete, to_keep) counts of a decisions map."""
    to_delete = sum(1 for d in decisions.values() if d == DELETE)
    return to_delete, len(decisions) - to_delete


def _size_of(photos: Iterable[Photo], photo_ids: set[str]) -> int:
    return sum(p.file_size or 0 for p in photos if p.id in photo_ids)


class GalleryReducer:
    """Applies gallery actions one at a time."""

    def __init__(self, clock: Clock = now_ms, undo_capacity: int = UNDO_CAPACITY) -> None:
        self._clock = clock
        self._undo_capacity = max(1, int(undo_capacity))
        self._handlers: dict[type, Callable[[GalleryState, object], Transition]] = {
            act.LoadPhotosSuccess: self._load_photos_success,
            act.LoadMorePhotos: self._load_more_photos,
            act.MarkDecision: self._mark_decision,
            act.UndoLastDecision: self._undo_last_decision,
            act.UndoDecision: self._undo_decision,
            act.ClearUndoHistory: self._clear_undo_history,
            act.ExecuteDeletionsSuccess: self._execute_deletions_success,
            act.SetPermissionStatus: self._set_permission_status,
            act.SetLoading: self._set_loading,
            act.SetCurrentIndex: self._set_current_index,
            act.ResetSession: self._reset_session,
            act.StartSession: self._start_session,
            act.EndSession: self._end_session,
            act.SetResumePhoto: self._set_resume_photo,
            act.UpdateStats: self._update_stats,
            act.SetPhotoAnalysis: self._set_photo_analysis,
            act.BatchSetAnalyses: self._batch_set_analyses,
            act.SetAchievements: self._set_achievements,
            act.UnlockAchievement: self._unlock_achievement,
        }

    @property
    def undo_capacity(self) -> int:
        return self._undo_capacity

    def reduce(self, state: GalleryState, action: object) -> Transition:
        """Apply `action` to `state`; unknown actions leave it unchanged."""
        handler = self._handlers.get(type(action))
        if handler is None:
            logger.debug("Ignoring unknown action: {}", type(action).__name__)
            return Transition(state)
        return handler(state, action)

    # Photo loading

    def _load_photos_success(
        self, state: GalleryState, action: act.LoadPhotosSuccess
    ) -> Transition:
        photos = tuple(action.photos)
        return Transition(
            replace(
                state,
                photos=photos,
                photo_cursor=action.cursor,
                has_more_photos=action.has_more,
                stats=replace(state.stats, total_photos=len(photos)),
                is_loading=False,
            )
        )

    def _load_more_photos(self, state: GalleryState, action: act.LoadMorePhotos) -> Transition:
        photos = state.photos + tuple(action.photos)
        return Transition(
            replace(
                state,
                photos=photos,
                photo_cursor=action.cursor,
                has_more_photos=action.has_more,
                stats=replace(state.stats, total_photos=len(photos)),
                is_loading=False,
            )
        )

    # Decisions and undo

    def _mark_decision(self, state: GalleryState, action: act.MarkDecision) -> Transition:
        photo_id = action.photo_id
        decision = action.decision
        if decision not in (KEEP, DELETE):
            logger.warning("Ignoring unknown decision {!r} for {}", decision, photo_id)
            return Transition(state)

        previous = state.decisions.get(photo_id)
        decisions = dict(state.decisions)
        decisions[photo_id] = decision

        photo = state.find_photo(photo_id)
        size = photo.file_size if photo else 0
        storage_to_free = state.stats.storage_to_free
        if decision == DELETE and previous != DELETE:
            storage_to_free += size
        elif decision == KEEP and previous == DELETE:
            storage_to_free -= size

        history = state.undo_history + (UndoHistoryItem(photo_id, decision, self._clock()),)

        session = state.current_session
        if session is not None:
            session = replace(
                session,
                photos_reviewed=session.photos_reviewed + 1,
                photos_deleted=session.photos_deleted + (1 if decision == DELETE else 0),
                photos_kept=session.photos_kept + (1 if decision == KEEP else 0),
            )

        photos = state.photos
        current_index = state.current_index + 1
        lifetime_deleted = state.stats.lifetime_deleted
        lifetime_freed = state.stats.lifetime_freed
        effects: tuple[CommitDeletions, ...] = ()

        if len(history) > self._undo_capacity:
            evicted = history[: len(history) - self._undo_capacity]
            history = history[len(history) - self._undo_capacity :]
            commit_ids = self._committable(evicted, history, decisions)
            if commit_ids:
                committed = set(commit_ids)
                freed = _size_of(photos, committed)
                removed_before = sum(1 for p in photos[:current_index] if p.id in committed)
                photos = tuple(p for p in photos if p.id not in committed)
                for cid in commit_ids:
                    decisions.pop(cid, None)
                current_index = max(0, current_index - removed_before)
                storage_to_free -= freed
                lifetime_deleted += len(commit_ids)
                lifetime_freed += freed
                if session is not None:
                    session = replace(session, storage_freed=session.storage_freed + freed)
                effects = (CommitDeletions(photo_ids=commit_ids, freed_bytes=freed),)
                logger.info(
                    "Committing {} evicted delete(s): {} ({} bytes)",
                    len(commit_ids),
                    list(commit_ids),
                    freed,
                )

        to_delete, to_keep = _tally(decisions)
        stats = replace(
            state.stats,
            total_photos=len(photos),
            processed=len(decisions),
            to_delete=to_delete,
            to_keep=to_keep,
            storage_to_free=max(0, storage_to_free),
            lifetime_deleted=lifetime_deleted,
            lifetime_freed=lifetime_freed,
        )
        new_state = replace(
            state,
            photos=photos,
            decisions=decisions,
            current_index=current_index,
            undo_history=history,
            current_session=session,
            stats=stats,
        )
        return Transition(new_state, effects)

    @staticmethod
    def _committable(
        evicted: tuple[UndoHistoryItem, ...],
        window: tuple[UndoHistoryItem, ...],
        decisions: Mapping[str, PhotoDecision],
    ) -> tuple[str, ...]:
        """Ids of evicted delete entries that are final.

        A photo is committed only while its current decision is still delete
        and no newer entry for it remains undoable in the window.
        """
        in_window = {item.photo_id for item in window}
        result: list[str] = []
        for item in evicted:
            if item.decision != DELETE or item.photo_id in result:
                continue
            if item.photo_id in in_window or decisions.get(item.photo_id) != DELETE:
                continue
            result.append(item.photo_id)
        return tuple(result)

    def _undo_last_decision(self, state: GalleryState, _action: act.UndoLastDecision) -> Transition:
        if not state.undo_history:
            return Transition(state)

        last = state.undo_history[-1]
        decisions = dict(state.decisions)
        previous = decisions.pop(last.photo_id, None)

        storage_to_free = state.stats.storage_to_free
        if previous == DELETE:
            photo = state.find_photo(last.photo_id)
            storage_to_free -= photo.file_size if photo else 0

        to_delete, to_keep = _tally(decisions)
        return Transition(
            replace(
                state,
                decisions=decisions,
                current_index=max(0, state.current_index - 1),
                undo_history=state.undo_history[:-1],
                stats=replace(
                    state.stats,
                    processed=len(decisions),
                    to_delete=to_delete,
                    to_keep=to_keep,
                    storage_to_free=max(0, storage_to_free),
                ),
            )
        )

    def _undo_decision(self, state: GalleryState, action: act.UndoDecision) -> Transition:
        # Leaves undo_history alone; see DESIGN.md.
        if action.photo_id not in state.decisions:
            return Transition(state)

        decisions = dict(state.decisions)
        previous = decisions.pop(action.photo_id)
        storage_to_free = state.stats.storage_to_free
        if previous == DELETE:
            photo = state.find_photo(action.photo_id)
            storage_to_free -= photo.file_size if photo else 0

        to_delete, to_keep = _tally(decisions)
        return Transition(
            replace(
                state,
                decisions=decisions,
                stats=replace(
                    state.stats,
                    processed=len(decisions),
                    to_delete=to_delete,
                    to_keep=to_keep,
                    storage_to_free=max(0, storage_to_free),
                ),
            )
        )

    def _clear_undo_history(self, state: GalleryState, _action: act.ClearUndoHistory) -> Transition:
        return Transition(replace(state, undo_history=()))

    def _execute_deletions_success(
        self, state: GalleryState, action: act.ExecuteDeletionsSuccess
    ) -> Transition:
        deleted = set(action.deleted_ids)
        if not deleted:
            return Transition(state)

        freed = _size_of(state.photos, deleted)
        photos = tuple(p for p in state.photos if p.id not in deleted)
        decisions = {k: v for k, v in state.decisions.items() if k not in deleted}
        to_delete, to_keep = _tally(decisions)
        pending = {k for k, v in decisions.items() if v == DELETE}

        session = state.current_session
        if session is not None:
            session = replace(session, storage_freed=session.storage_freed + freed)

        stats = replace(
            state.stats,
            total_photos=len(photos),
            processed=len(decisions),
            to_delete=to_delete,
            to_keep=to_keep,
            storage_to_free=_size_of(photos, pending),
            lifetime_deleted=state.stats.lifetime_deleted + len(deleted),
            lifetime_freed=state.stats.lifetime_freed + freed,
        )
        return Transition(
            replace(
                state,
                photos=photos,
                decisions=decisions,
                current_index=0,
                undo_history=(),
                current_session=session,
                stats=stats,
            )
        )

    # Simple field updates

    def _set_permission_status(
        self, state: GalleryState, action: act.SetPermissionStatus
    ) -> Transition:
        return Transition(replace(state, permission_status=action.status))

    def _set_loading(self, state: GalleryState, action: act.SetLoading) -> Transition:
        return Transition(replace(state, is_loading=bool(action.is_loading)))

    def _set_current_index(self, state: GalleryState, action: act.SetCurrentIndex) -> Transition:
        return Transition(replace(state, current_index=max(0, int(action.index))))

    def _reset_session(self, state: GalleryState, _action: act.ResetSession) -> Transition:
        return Transition(GalleryState(permission_status=state.permission_status))

    # Sessions

    def _start_session(self, state: GalleryState, _action: act.StartSession) -> Transition:
        if state.current_session is not None:
            return Transition(state)
        now = self._clock()
        session = SessionStats(session_id=f"session_{now}", start_time=now)
        return Transition(replace(state, current_session=session))

    def _end_session(self, state: GalleryState, _action: act.EndSession) -> Transition:
        return Transition(
            replace(
                state,
                current_session=None,
                stats=replace(state.stats, total_sessions=state.stats.total_sessions + 1),
            )
        )

    def _set_resume_photo(self, state: GalleryState, action: act.SetResumePhoto) -> Transition:
        return Transition(replace(state, last_resume_photo_id=action.photo_id))

    def _update_stats(self, state: GalleryState, action: act.UpdateStats) -> Transition:
        changes = {k: v for k, v in action.stats.items() if k in _STATS_FIELDS}
        ignored = set(action.stats) - set(changes)
        if ignored:
            logger.debug("Ignoring unknown stats fields: {}", sorted(ignored))
        if not changes:
            return Transition(state)
        return Transition(replace(state, stats=replace(state.stats, **changes)))

    # Analyses

    def _set_photo_analysis(self, state: GalleryState, action: act.SetPhotoAnalysis) -> Transition:
        analyses = dict(state.analyses)
        analyses[action.photo_id] = action.analysis
        return Transition(replace(state, analyses=analyses))

    def _batch_set_analyses(self, state: GalleryState, action: act.BatchSetAnalyses) -> Transition:
        analyses = dict(state.analyses)
        analyses.update(action.analyses)
        return Transition(replace(state, analyses=analyses))

    # Achievements

    def _set_achievements(self, state: GalleryState, action: act.SetAchievements) -> Transition:
        unlocked_at = {a.id: a.unlocked_at for a in state.achievements if a.unlocked_at is not None}
        merged: list[Achievement] = []
        for achievement in action.achievements:
            stamp = unlocked_at.get(achievement.id)
            if stamp is not None and achievement.unlocked_at != stamp:
                achievement = replace(achievement, unlocked_at=stamp)
            merged.append(achievement)
        return Transition(replace(state, achievements=tuple(merged)))

    def _unlock_achievement(self, state: GalleryState, action: act.UnlockAchievement) -> Transition:
        achievement_id = action.achievement_id
        known = any(a.id == achievement_id for a in state.achievements)
        if not known or achievement_id in state.unlocked_achievements:
            return Transition(state)

        now = self._clock()
        achievements = tuple(
            replace(a, unlocked_at=now) if a.id == achievement_id and a.unlocked_at is None else a
            for a in state.achievements
        )
        logger.info("Achievement unlocked: {}", achievement_id)
        return Transition(
            replace(
                state,
                achievements=achievements,
                unlocked_achievements=state.unlocked_achievements + (achievement_id,),
            )
        )


def reduce(state: GalleryState, action: object, clock: Clock = now_ms) -> Transition:
    """Apply `action` with a default-configured reducer."""
    return GalleryReducer(clock=clock).reduce(state, action)
