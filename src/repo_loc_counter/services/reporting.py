"""Reporting collaborators and the plain-text stats report."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from repo_loc_counter.domain.entities import Stats

logger = logging.getLogger(__name__)

SKIPPED_PREVIEW = 10


@dataclass(frozen=True, slots=True)
class ExtensionRow:
    extension: str
    files: int
    lines: int
    percentage: float


def extension_breakdown(stats: Stats) -> list[ExtensionRow]:
    """Extensions sorted by descending line count with their share of all lines."""
    rows = [
        ExtensionRow(
            extension=ext,
            files=bucket.files,
            lines=bucket.lines,
            percentage=round(bucket.lines / stats.total_lines * 100, 1) if stats.total_lines else 0.0,
        )
        for ext, bucket in stats.by_extension.items()
    ]
    rows.sort(key=lambda row: row.lines, reverse=True)
    return rows


def format_report(stats: Stats) -> str:
    lines = [
        f"Total Lines of Code: {stats.total_lines:,}",
        f"Total Files Processed: {stats.total_files:,}",
        f"Number of Files Skipped: {stats.num_files_skipped:,}",
        "Lines by Extension:",
    ]
    for row in extension_breakdown(stats):
        lines.append(
            f"  {row.extension}: {row.files:,} files, {row.lines:,} lines ({row.percentage:.1f}%)"
        )

    lines.append("Skipped Files:")
    if not stats.files_skipped:
        lines.append("  None")
    for skipped in stats.files_skipped[:SKIPPED_PREVIEW]:
        lines.append(f"  {skipped.label}")
    if len(stats.files_skipped) > SKIPPED_PREVIEW:
        lines.append(f"  ...and {len(stats.files_skipped) - SKIPPED_PREVIEW} more")
    return "\n".join(lines)


class LoggingReporter:
    """Default collaborator: everything goes to the log."""

    def report_progress(self, processed: int, total: int) -> None:
        percentage = round(processed / total * 100) if total else 100
        logger.info("Processing: %d/%d files (%d%%)", processed, total, percentage)

    def report_stats(self, stats: Stats) -> None:
        logger.info("Finished counting lines of code.\n%s", format_report(stats))

    def report_warning(self, message: str) -> None:
        logger.warning(message)

    def report_error(self, message: str) -> None:
        logger.error(message)


@dataclass
class CollectingReporter:
    """Keeps every event so a caller can return them in one response."""

    progress: list[tuple[int, int]] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    stats: Stats | None = None

    def report_progress(self, processed: int, total: int) -> None:
        self.progress.append((processed, total))

    def report_stats(self, stats: Stats) -> None:
        self.stats = stats

    def report_warning(self, message: str) -> None:
        self.warnings.append(message)

    def report_error(self, message: str) -> None:
        self.errors.append(message)
