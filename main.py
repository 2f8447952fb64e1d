from __future__ import annotations

import argparse
from collections.abc import Callable
from pathlib import Path

from loguru import logger

from app.viewmodels.gallery_vm import DeletionError, GalleryVM
from app.viewmodels.photo_vm import PhotoVM
from core.services.achievement_service import format_progress
from core.services.filter_service import FILTER_PRESETS, FilterType
from core.services.gallery_reducer import GalleryReducer
from core.services.stats_report import build_share_text, format_storage
from infrastructure.delete_service import DeleteService
from infrastructure.kv_store import JsonKeyValueStore
from infrastructure.logging import find_latest_delete_log, init_logging
from infrastructure.media_source import FolderMediaSource, FolderPermissionGate
from infrastructure.settings import TriageConfig, load_config
from infrastructure.storage import TriageStorage

BASE_DIR = Path(__file__).parent

REVIEW_HELP = "[k]eep  [d]elete  [u]ndo  [s]kip  [f]avorite  [q]uit"


def build_vm(config: TriageConfig, root: Path) -> GalleryVM:
    storage = TriageStorage(JsonKeyValueStore(config.storage_path))
    media = FolderMediaSource(root, DeleteService(config.delete_log_dir))
    return GalleryVM(
        media,
        storage,
        permissions=FolderPermissionGate(root),
        reducer=GalleryReducer(undo_capacity=config.undo_capacity),
        page_size=config.page_size,
        analysis_batch_size=config.analysis_batch_size,
        on_deletion_failed=lambda ids: print(f"! {len(ids)} photo(s) could not be deleted"),
    )


def _open_library(vm: GalleryVM) -> bool:
    if vm.check_permissions() != "granted" and not vm.request_permissions():
        print("Library access denied.")
        return False
    vm.load_persisted_data()
    if not vm.load_photos():
        print("Could not load photos, see log for details.")
        return False
    return True


def cmd_scan(vm: GalleryVM, _args: argparse.Namespace, _config: TriageConfig) -> int:
    if not _open_library(vm):
        return 1
    while vm.load_more_photos():
        pass
    vm.analyze_photos()
    counts = vm.filter_counts()
    for preset in FILTER_PRESETS:
        print(f"{preset.icon} {preset.label}: {counts[preset.type]}")
    for photo in vm.visible_photos(FilterType.SUGGESTED):
        print("  " + PhotoVM(photo, vm.state.analyses.get(photo.id)).summary)
    return 0


def review_loop(
    vm: GalleryVM,
    filter_type: FilterType,
    read: Callable[[str], str] = input,
    write: Callable[[str], None] = print,
) -> None:
    """Interactive keep/delete loop over the photos matching `filter_type`."""
    write(REVIEW_HELP)
    skipped: set[str] = set()
    resumed = vm.state.current_photo if vm.resume() else None
    anchor = resumed.id if resumed is not None else None
    while True:
        queue = [p for p in vm.visible_photos(filter_type, "pending") if p.id not in skipped]
        position = {p.id: i for i, p in enumerate(vm.state.photos)}
        if anchor in position:
            # continue from the last viewed photo, earlier ones come after
            cut = position[anchor]
            queue.sort(key=lambda p: position[p.id] < cut)
        if not queue and vm.load_more_photos():
            vm.analyze_photos()
            continue
        if not queue:
            write("Nothing left to review.")
            return
        photo = queue[0]
        vm.set_resume_photo(photo.id)
        write(PhotoVM(photo, vm.state.analyses.get(photo.id)).summary)
        choice = read("> ").strip().lower()[:1]
        if choice == "q":
            return
        if choice == "k":
            vm.mark_photo(photo.id, "keep")
        elif choice == "d":
            vm.mark_photo(photo.id, "delete")
        elif choice == "u":
            vm.undo_last_decision()
        elif choice == "f":
            write("favorite" if vm.toggle_favorite(photo.id) else "unfavorited")
        elif choice == "s":
            skipped.add(photo.id)
            continue
        else:
            write(REVIEW_HELP)
            continue
        for achievement_id in vm.check_and_update_achievements():
            write(f"Achievement unlocked: {achievement_id}")


def cmd_review(vm: GalleryVM, args: argparse.Namespace, _config: TriageConfig) -> int:
    if not _open_library(vm):
        return 1
    vm.analyze_photos()
    vm.start_session()
    try:
        review_loop(vm, FilterType(args.filter))
    except (EOFError, KeyboardInterrupt):
        print()
    pending = vm.pending_delete_ids()
    if pending and args.commit:
        try:
            result = vm.execute_deletions(pending)
            print(f"Deleted {len(result.success_ids)} photo(s).")
        except DeletionError as ex:
            print(f"Delete failed: {ex}")
    elif pending:
        print(f"{len(pending)} photo(s) still marked for deletion (use --commit).")
    if vm.pending_deletions and vm.retry_pending_deletions():
        print(f"{len(vm.pending_deletions)} evicted photo(s) could not be deleted.")
    vm.end_session()
    vm.check_and_update_achievements()
    print(build_share_text(vm.state.stats))
    return 0


def cmd_stats(vm: GalleryVM, _args: argparse.Namespace, config: TriageConfig) -> int:
    vm.load_persisted_data()
    vm.check_and_update_achievements()
    stats = vm.state.stats
    print(f"Sessions: {stats.total_sessions}  Streak: {stats.current_streak} day(s)")
    print(f"Deleted: {stats.lifetime_deleted}  Freed: {format_storage(stats.lifetime_freed)}")
    for achievement in vm.state.achievements:
        mark = "x" if achievement.is_unlocked else " "
        print(f"[{mark}] {achievement.icon} {achievement.title}: {format_progress(achievement)}")
    last_delete = find_latest_delete_log(config.delete_log_dir)
    if last_delete is not None:
        print(f"Last delete log: {last_delete}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gallery-cleaner", description="Swipe-style photo triage")
    parser.add_argument("--settings", default=str(BASE_DIR / "settings.json"))
    parser.add_argument("--root", help="Photo library folder (overrides settings)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log to console too")
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="Analyze the library and list suggestions")
    scan.set_defaults(func=cmd_scan)

    review = sub.add_parser("review", help="Review photos one by one")
    review.add_argument("--filter", default="all", choices=[t.value for t in FilterType])
    review.add_argument("--commit", action="store_true", help="Delete marked photos on exit")
    review.set_defaults(func=cmd_review)

    stats = sub.add_parser("stats", help="Show lifetime stats and achievements")
    stats.set_defaults(func=cmd_stats)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(args.settings)
    init_logging(config.log_dir, config.log_level, console=args.verbose)

    root = Path(args.root).expanduser() if args.root else config.library_root
    if root is None:
        print("No library folder: pass --root or set library.root in settings.json")
        return 2
    logger.info("Starting {} on {}", args.command, root)
    return args.func(build_vm(config, root), args, config)


if __name__ == "__main__":
    raise SystemExit(main())
