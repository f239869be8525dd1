"""Port: reporting collaborator that observes an analysis run."""

from __future__ import annotations

from typing import Protocol

from repo_loc_counter.domain.entities import Stats


class ProgressReporter(Protocol):
    """Receives progress, the final stats snapshot and user-visible messages."""

    def report_progress(self, processed: int, total: int) -> None:
        ...

    def report_stats(self, stats: Stats) -> None:
        ...

    def report_warning(self, message: str) -> None:
        ...

    def report_error(self, message: str) -> None:
        ...
