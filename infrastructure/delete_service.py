"""Deletion execution service.

Moves photo files to the recycle bin via send2trash and writes an audit CSV
log of every attempt, so a delete the gallery already considers done can be
checked against what actually happened on disk.
"""

from __future__ import annotations

from collections.abc import Mapping
import csv
from datetime import datetime
import os
from pathlib import Path

from loguru import logger
from send2trash import send2trash

from core.services.interfaces import DeleteResult


class DeleteService:
    """Coordinates delete operations and audit logging."""

    def __init__(self, log_dir: str | Path | None = None) -> None:
        self._log_dir = Path(log_dir) if log_dir else None

    def delete_to_recycle(self, paths_by_id: Mapping[str, str]) -> DeleteResult:
        """Send files to recycle bin and report per-id results."""
        result = DeleteResult()
        for photo_id, path in paths_by_id.items():
            normalized_path = os.path.normpath(path)
            if not os.path.exists(normalized_path):
                logger.error("File does not exist: {}", normalized_path)
                result.failed.append((photo_id, "File does not exist"))
                continue
            try:
                send2trash(normalized_path)
                result.success_ids.append(photo_id)
            except (UnicodeEncodeError, OSError) as ex:
                logger.warning("Failed to delete with normalized path {}: {}", normalized_path, ex)
                # Retry with the absolute path; some trash backends reject relative ones.
                try:
                    send2trash(os.path.abspath(path))
                    result.success_ids.append(photo_id)
                except (UnicodeEncodeError, OSError) as ex2:
                    logger.error("All delete methods failed for {}: {} / {}", path, ex, ex2)
                    result.failed.append((photo_id, f"Multiple delete failures: {ex}, {ex2}"))
        return result

    def execute_delete(self, paths_by_id: Mapping[str, str]) -> DeleteResult:
        """Delete the given files and write an audit CSV log when configured."""
        result = self.delete_to_recycle(paths_by_id)
        if self._log_dir is None:
            return result
        try:
            self._log_dir.mkdir(parents=True, exist_ok=True)
            ts = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
            log_path = self._log_dir / f"delete_{ts}.csv"
            with log_path.open("w", encoding="utf-8", newline="") as f:
                writer = csv.writer(f)
                writer.writerow(["PhotoId", "FilePath", "Success", "Reason"])
                for photo_id in result.success_ids:
                    writer.writerow([photo_id, paths_by_id.get(photo_id, ""), 1, ""])
                for photo_id, reason in result.failed:
                    writer.writerow([photo_id, paths_by_id.get(photo_id, ""), 0, reason])
            result.log_path = str(log_path)
            logger.info(
                "Delete log written: {} ({} success, {} failed)",
                log_path,
                len(result.success_ids),
                len(result.failed),
            )
        except (OSError, ValueError) as ex:
            logger.error("Write delete log failed: {}", ex)
        return result
