"""Formatting helpers for gallery stats (sizes, keep rate, share text)."""

from __future__ import annotations

from core.models import GalleryStats

KIB = 1024
MIB = KIB * 1024
GIB = MIB * 1024


def format_storage(num_bytes: int | float | None) -> str:
    """Format a byte count as `B`, `KB`, `MB` (one decimal) or `GB` (two)."""
    if not num_bytes or num_bytes <= 0:
        return "0 B"
    if num_bytes < KIB:
        return f"{int(num_bytes)} B"
    if num_bytes < MIB:
        return f"{num_bytes / KIB:.1f} KB"
    if num_bytes < GIB:
        return f"{num_bytes / MIB:.1f} MB"
    return f"{num_bytes / GIB:.2f} GB"


def keep_rate(stats: GalleryStats) -> float:
    """Percentage of loaded photos marked keep; 0 when nothing is loaded."""
    if stats.total_photos <= 0:
        return 0.0
    return stats.to_keep / stats.total_photos * 100


def build_share_text(stats: GalleryStats) -> str:
    return (
        "📊 Gallery Cleaner Stats\n"
        "\n"
        f"✅ Photos Reviewed: {stats.processed} / {stats.total_photos}\n"
        f"🗑️ Photos Deleted: {stats.to_delete}\n"
        f"💾 Storage Freed: {format_storage(stats.lifetime_freed)}\n"
        f"⭐ Keep Rate: {keep_rate(stats):.1f}%\n"
        "\n"
        "Keep cleaning! 🚀"
    )
