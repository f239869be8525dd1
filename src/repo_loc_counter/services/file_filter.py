"""File filtering — extension classification and pre-fetch skip decisions."""

from __future__ import annotations

from typing import Iterable

from repo_loc_counter.domain.entities import SkipReason, TreeNode

NO_EXTENSION = "no-extension"

MAX_FILE_SIZE_BYTES = 1_000_000

BINARY_EXTENSIONS: frozenset[str] = frozenset(
    {
        "svg", "png", "jpg", "jpeg", "gif", "bmp", "ico", "webp",
        "mp3", "wav", "ogg", "mp4", "webm", "mov",
        "zip", "tar", "gz", "rar", "7z", "jar",
        "exe", "dll", "so", "dylib", "bin", "dat",
        "pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx",
    }
)


def get_file_extension(path: str) -> str:
    """Lower-cased text after the last ``.``; :data:`NO_EXTENSION` when there is none.

    >>> get_file_extension("a.b.TXT")
    'txt'
    >>> get_file_extension("README")
    'no-extension'
    """
    parts = path.split(".")
    if len(parts) > 1:
        return parts[-1].lower()
    return NO_EXTENSION


def is_binary_extension(extension: str) -> bool:
    return extension in BINARY_EXTENSIONS


def normalize_extensions(extensions: Iterable[str]) -> frozenset[str]:
    """``{" .PY", "md", ""}`` → ``{"py", "md"}``."""
    normalized = set()
    for ext in extensions:
        cleaned = ext.strip().lstrip(".").lower()
        if cleaned:
            normalized.add(cleaned)
    return frozenset(normalized)


def skip_reason(
    node: TreeNode,
    excluded: frozenset[str] = frozenset(),
    max_size_bytes: int = MAX_FILE_SIZE_BYTES,
) -> SkipReason | None:
    """Return why *node* is skipped without a network call, or ``None`` to fetch it."""
    extension = get_file_extension(node.path)

    if extension in excluded:
        return SkipReason.USER_EXCLUDED
    if is_binary_extension(extension):
        return SkipReason.BINARY
    if node.size > max_size_bytes:
        return SkipReason.OVERSIZED
    if extension == NO_EXTENSION:
        return SkipReason.NO_EXTENSION
    return None


def count_lines(text: str) -> int:
    """Newline-delimited line count; a trailing newline opens one more (empty) line."""
    return len(text.split("\n"))
