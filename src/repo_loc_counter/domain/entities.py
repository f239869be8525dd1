"""Domain entities — pure data structures with no external dependencies."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class RunState(str, Enum):
    """Lifecycle of a single analysis run."""

    IDLE = "idle"
    FETCHING_REPO_META = "fetching_repo_meta"
    FETCHING_TREE = "fetching_tree"
    WALKING_FILES = "walking_files"
    DONE = "done"
    FAILED = "failed"


class SkipReason(str, Enum):
    """Why a blob did not contribute to the per-extension counts."""

    USER_EXCLUDED = "user_excluded"
    BINARY = "binary"
    OVERSIZED = "oversized"
    NO_EXTENSION = "no_extension"
    FETCH_FAILED = "fetch_failed"
    DECODE_FAILED = "decode_failed"


@dataclass(frozen=True, slots=True)
class TreeNode:
    """A single node from the GitHub tree API (blob or sub-tree)."""

    path: str
    type: str  # "blob" or "tree"
    size: int = 0
    sha: str = ""

    @property
    def is_blob(self) -> bool:
        return self.type == "blob"

    def to_payload(self) -> dict[str, Any]:
        return {"path": self.path, "type": self.type, "size": self.size, "sha": self.sha}

    @classmethod
    def from_payload(cls, item: dict[str, Any]) -> TreeNode:
        return cls(
            path=item["path"],
            type=item.get("type", "blob"),
            size=item.get("size") or 0,
            sha=item.get("sha", ""),
        )


@dataclass(frozen=True, slots=True)
class RepoTree:
    """Recursive listing of a branch; ``truncated`` mirrors the API flag."""

    nodes: tuple[TreeNode, ...]
    truncated: bool = False

    @property
    def blobs(self) -> list[TreeNode]:
        return [node for node in self.nodes if node.is_blob]

    def to_payload(self) -> dict[str, Any]:
        return {
            "truncated": self.truncated,
            "tree": [node.to_payload() for node in self.nodes],
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> RepoTree:
        return cls(
            nodes=tuple(TreeNode.from_payload(item) for item in data.get("tree", [])),
            truncated=bool(data.get("truncated", False)),
        )


@dataclass(frozen=True, slots=True)
class RepoMetadata:
    """High-level metadata about a GitHub repository."""

    owner: str
    repo: str
    default_branch: str
    description: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "owner": self.owner,
            "repo": self.repo,
            "default_branch": self.default_branch,
            "description": self.description,
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> RepoMetadata:
        return cls(
            owner=data["owner"],
            repo=data["repo"],
            default_branch=data.get("default_branch") or "main",
            description=data.get("description"),
        )


@dataclass(frozen=True, slots=True)
class RateLimitStatus:
    """Core quota as reported by ``GET /rate_limit``."""

    remaining: int
    limit: int
    reset_at: datetime


@dataclass(frozen=True, slots=True)
class Credential:
    """A bearer token plus the window during which it may be used."""

    token: str
    acquired_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """One persisted cache record (timestamps are epoch seconds)."""

    key: str
    payload: Any
    created_at: float
    expires_at: float
    size_bytes: int

    def to_record(self) -> dict[str, Any]:
        return {
            "created_at": self.created_at,
            "expires_at": self.expires_at,
            "size_bytes": self.size_bytes,
            "data": self.payload,
        }

    @classmethod
    def from_record(cls, key: str, record: Any) -> CacheEntry | None:
        """Rebuild an entry from the store; ``None`` for foreign or damaged records."""
        if not isinstance(record, dict) or "created_at" not in record:
            return None
        try:
            created_at = float(record["created_at"])
            expires_at = float(record.get("expires_at", created_at))
            size_bytes = int(record.get("size_bytes", 0))
        except (TypeError, ValueError):
            return None
        return cls(
            key=key,
            payload=record.get("data"),
            created_at=created_at,
            expires_at=expires_at,
            size_bytes=size_bytes,
        )


@dataclass(frozen=True, slots=True)
class SkippedFile:
    """A blob left out of the counts, with a machine-inspectable reason."""

    path: str
    reason: SkipReason
    detail: str | None = None

    @property
    def label(self) -> str:
        if self.reason is SkipReason.USER_EXCLUDED:
            return f"{self.path} (excluded by user)"
        return self.path


@dataclass(slots=True)
class ExtensionStats:
    """Per-extension accumulator."""

    files: int = 0
    lines: int = 0


@dataclass(slots=True)
class Stats:
    """Accumulator for a single run.

    ``total_files`` counts processed files only; skipped files are counted in
    ``num_files_skipped`` and listed in ``files_skipped``.
    """

    total_lines: int = 0
    total_files: int = 0
    num_files_skipped: int = 0
    files_skipped: list[SkippedFile] = field(default_factory=list)
    by_extension: dict[str, ExtensionStats] = field(default_factory=dict)

    def record_processed(self, extension: str, lines: int) -> None:
        bucket = self.by_extension.get(extension)
        if bucket is None:
            bucket = self.by_extension[extension] = ExtensionStats()
        bucket.files += 1
        bucket.lines += lines
        self.total_files += 1
        self.total_lines += lines

    def record_skipped(self, path: str, reason: SkipReason, detail: str | None = None) -> None:
        self.files_skipped.append(SkippedFile(path=path, reason=reason, detail=detail))
        self.num_files_skipped += 1

    @property
    def files_examined(self) -> int:
        return self.total_files + self.num_files_skipped
