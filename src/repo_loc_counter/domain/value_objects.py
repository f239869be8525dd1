"""Value objects — self-validating domain primitives."""

from __future__ import annotations

import re
from dataclasses import dataclass

from repo_loc_counter.domain.exceptions import InvalidRepositoryError

_NAME_RE = re.compile(r"^[A-Za-z0-9\-_.]+$")

CACHE_PREFIX = "cache_"


@dataclass(frozen=True, slots=True)
class RepoRef:
    """Validated ``owner/repo`` pair identifying the target of a run."""

    owner: str
    repo: str

    @classmethod
    def of(cls, owner: str, repo: str) -> RepoRef:
        """Strip and validate both halves; a trailing ``.git`` is dropped."""
        owner = (owner or "").strip()
        repo = (repo or "").strip()
        if repo.endswith(".git"):
            repo = repo[: -len(".git")]
        for label, value in (("owner", owner), ("repo", repo)):
            if not value or not _NAME_RE.match(value) or value in {".", ".."}:
                raise InvalidRepositoryError(
                    f"Invalid repository {label}: '{value}'. "
                    "Expected a GitHub name such as 'psf' / 'requests'."
                )
        return cls(owner=owner, repo=repo)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    # ── Cache keys ──────────────────────────────────────────────────────

    def metadata_key(self) -> str:
        return f"{CACHE_PREFIX}repo_{self.owner}_{self.repo}"

    def tree_key(self, branch: str) -> str:
        return f"{CACHE_PREFIX}tree_{self.owner}_{self.repo}_{branch}"

    def content_key(self, sha: str) -> str:
        return f"{CACHE_PREFIX}content_{self.owner}_{self.repo}_{sha}"
