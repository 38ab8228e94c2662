"""Cache save request and outcome types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class CacheHitKind(str, Enum):
    """How the restore step matched the cache key."""

    EXACT = "exact"
    PARTIAL = "partial"
    NONE = "none"


@dataclass(frozen=True)
class CacheSaveRequest:
    """Inputs of one save, resolved by the cache key step.

    Attributes:
        bucket: Bucket holding cache archives.
        key_file_name: Credentials key file for the store (may be empty).
        target_file_name: Object name the archive is stored under.
        path: Glob pattern, or newline-separated patterns, of files to cache.
        cache_hit_kind: Restore-side match for the key.
    """

    bucket: str
    key_file_name: str
    target_file_name: str
    path: str
    cache_hit_kind: CacheHitKind = CacheHitKind.NONE

    def __post_init__(self) -> None:
        if not self.target_file_name:
            raise ValueError("target_file_name must not be empty")
        # Accept the plain strings produced by CLI and environment inputs.
        object.__setattr__(self, "cache_hit_kind", CacheHitKind(self.cache_hit_kind))


class SaveStatus(str, Enum):
    SKIPPED_EXACT_HIT = "skipped-exact-hit"
    SKIPPED_EXISTS = "skipped-already-exists"
    SAVED = "saved"


_MESSAGES = {
    SaveStatus.SKIPPED_EXACT_HIT: (
        "🌀 Skipping uploading cache as the cache was hit by exact match."
    ),
    SaveStatus.SKIPPED_EXISTS: (
        "🌀 Skipping uploading cache as it already exists "
        "(probably due to another job)."
    ),
    SaveStatus.SAVED: "✅ Successfully saved cache.",
}


@dataclass(frozen=True)
class SaveOutcome:
    """Result of a save that did not fail."""

    status: SaveStatus
    target_file_name: str
    compression_method: str | None = None
    paths: tuple[str, ...] = ()
    archive_size: int | None = None

    @property
    def message(self) -> str:
        return _MESSAGES[self.status]
