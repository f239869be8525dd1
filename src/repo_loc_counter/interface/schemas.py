"""Pydantic request / response DTOs for the API boundary."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, SecretStr, field_validator

from repo_loc_counter.domain.entities import SkipReason, Stats
from repo_loc_counter.services.reporting import CollectingReporter, extension_breakdown


class AnalyzeRequest(BaseModel):
    """Request body for ``POST /analyze``."""

    owner: str
    repo: str
    token: SecretStr | None = None
    excluded_extensions: list[str] | None = None

    @field_validator("owner", "repo")
    @classmethod
    def _must_not_be_blank(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            msg = "owner and repo must not be empty."
            raise ValueError(msg)
        return stripped


class ExtensionBreakdown(BaseModel):
    extension: str
    files: int
    lines: int
    percentage: float


class SkippedFileOut(BaseModel):
    path: str
    reason: SkipReason
    label: str
    detail: str | None = None


class Progress(BaseModel):
    processed: int
    total: int


class AnalyzeResponse(BaseModel):
    """Successful response from ``POST /analyze``."""

    total_lines: int
    total_files: int
    num_files_skipped: int
    by_extension: list[ExtensionBreakdown]
    files_skipped: list[SkippedFileOut]
    warnings: list[str] = Field(default_factory=list)
    progress: Progress | None = None

    @classmethod
    def from_run(cls, stats: Stats, reporter: CollectingReporter) -> AnalyzeResponse:
        last = reporter.progress[-1] if reporter.progress else None
        return cls(
            total_lines=stats.total_lines,
            total_files=stats.total_files,
            num_files_skipped=stats.num_files_skipped,
            by_extension=[
                ExtensionBreakdown(
                    extension=row.extension,
                    files=row.files,
                    lines=row.lines,
                    percentage=row.percentage,
                )
                for row in extension_breakdown(stats)
            ],
            files_skipped=[
                SkippedFileOut(
                    path=skipped.path,
                    reason=skipped.reason,
                    label=skipped.label,
                    detail=skipped.detail,
                )
                for skipped in stats.files_skipped
            ],
            warnings=list(reporter.warnings),
            progress=Progress(processed=last[0], total=last[1]) if last else None,
        )


class RateLimitResponse(BaseModel):
    remaining: int
    limit: int
    reset_at: datetime
    authenticated: bool


class ClearCacheResponse(BaseModel):
    removed: bool


class ErrorResponse(BaseModel):
    """Standard error envelope returned on all failure paths."""

    status: str = "error"
    message: str


class TokenRequest(BaseModel):
    """Request body for ``PUT /token``; a blank token signs out."""

    token: SecretStr


class AuthStatusResponse(BaseModel):
    authenticated: bool


class ExclusionsBody(BaseModel):
    """Persisted extension exclusion list, normalised on save."""

    excluded_extensions: list[str]
