"""Centralized error classes for bucketcache."""


class BucketCacheError(Exception):
    """Base class for all bucketcache errors."""

    pass


class ConfigError(BucketCacheError):
    """Raised when configuration values are invalid."""

    pass


class StoreError(BucketCacheError):
    """Raised when an object store operation fails."""

    def __init__(
        self, message: str, key: str | None = None, cause: Exception | None = None
    ) -> None:
        self.key = key
        self.cause = cause
        super().__init__(message)


class ObjectNotFoundError(StoreError):
    """Raised when a requested object does not exist."""

    pass


class ChecksumMismatchError(StoreError):
    """Raised when a transferred part fails checksum validation."""

    def __init__(self, key: str, part_number: int, expected: str, actual: str) -> None:
        self.part_number = part_number
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Checksum mismatch for part {part_number} of '{key}': "
            f"expected {expected}, got {actual}",
            key=key,
        )


class SaveError(BucketCacheError):
    """Raised when a cache save step fails.

    Subclasses set ``step`` so callers can tell which part of the
    pipeline aborted the save.
    """

    step = "save"

    def __str__(self) -> str:
        return f"{self.step}: {super().__str__()}"


class ExistenceCheckError(SaveError):
    """Raised when the store cannot confirm whether the target exists."""

    step = "existence-check"


class PathResolutionError(SaveError):
    """Raised when the path pattern cannot be expanded."""

    step = "resolve-paths"


class ArchiveBuildError(SaveError):
    """Raised when the cache archive cannot be created."""

    step = "build-archive"


class UploadError(SaveError):
    """Raised when the archive upload fails."""

    step = "upload"


class MetadataTagError(SaveError):
    """Raised when metadata cannot be set on the uploaded object."""

    step = "tag-metadata"
