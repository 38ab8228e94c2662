"""Cache save pipeline.

Sequences the existence check, path resolution, archive creation, chunked
upload and metadata tagging for one CacheSaveRequest. Every save ends in one
of three outcomes (skipped on exact hit, skipped because the object exists,
saved) or raises a SaveError naming the step that failed.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

from bucketcache._errors import (
    ArchiveBuildError,
    ConfigError,
    ExistenceCheckError,
    MetadataTagError,
    StoreError,
    UploadError,
)
from bucketcache.archive import METADATA_COMPRESSION_KEY, create_archive
from bucketcache.config import BucketCacheConfig
from bucketcache.logging import StepLogger, get_logger
from bucketcache.paths import resolve_paths, resolve_workspace
from bucketcache.request import CacheHitKind, CacheSaveRequest, SaveOutcome, SaveStatus
from bucketcache.store.protocol import ObjectStore

T = TypeVar("T")

ARCHIVE_FILE_NAME = "cache.tar"


class CacheSaver:
    """Runs cache saves against one object store."""

    def __init__(
        self,
        store: ObjectStore,
        config: BucketCacheConfig | None = None,
        workspace: str | Path | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.config = config or BucketCacheConfig()
        self.workspace = workspace
        self.logger = logger or get_logger("bucketcache.save", self.config.logging)

    def save(self, request: CacheSaveRequest) -> SaveOutcome:
        """Save the request's paths under its target name unless already cached.

        Raises:
            SaveError: Subclass identifying the failed step
        """
        target = request.target_file_name

        if request.cache_hit_kind is CacheHitKind.EXACT:
            return self._skip(SaveStatus.SKIPPED_EXACT_HIT, target)

        self.logger.info(f"Bucket: {request.bucket}")
        self.logger.info(f"Key file name: {request.key_file_name}")
        self.logger.info(f"Target file name: {target}")
        self.logger.info(f"Path: {request.path}")

        if self._target_exists(target):
            return self._skip(SaveStatus.SKIPPED_EXISTS, target)

        workspace = resolve_workspace(self.workspace)
        paths = resolve_paths(request.path, workspace)
        self.logger.debug(f"Paths: {json.dumps(list(paths))}.")

        archive_cfg = self.config.archive
        with self._scoped_archive() as archive:
            method = self._run_step(
                "build-archive",
                "🗜️ Creating cache archive",
                lambda: create_archive(
                    archive,
                    paths,
                    workspace,
                    archive_cfg.compression_method,
                    archive_cfg.compression_level,
                ),
            )
            archive_size = archive.stat().st_size
            metadata = {METADATA_COMPRESSION_KEY: method.value}
            self.logger.debug(f"Metadata: {json.dumps(metadata)}.")

            self._run_step(
                "upload",
                "🌐 Uploading cache archive to bucket",
                lambda: self._upload(archive, target),
            )
            self._run_step(
                "tag-metadata",
                "🏷️ Tagging cache archive",
                lambda: self._tag(target, metadata),
            )

        outcome = SaveOutcome(
            status=SaveStatus.SAVED,
            target_file_name=target,
            compression_method=method.value,
            paths=paths,
            archive_size=archive_size,
        )
        self.logger.info(outcome.message)
        return outcome

    def _skip(self, status: SaveStatus, target: str) -> SaveOutcome:
        outcome = SaveOutcome(status=status, target_file_name=target)
        self.logger.info(outcome.message)
        return outcome

    def _target_exists(self, target: str) -> bool:
        try:
            exists = self.store.exists(target)
        except StoreError as e:
            self.logger.error("Failed to check if the file already exists")
            raise ExistenceCheckError(
                f"Could not check whether '{target}' exists: {e}"
            ) from e
        self.logger.debug(f"Target file name: {target}, exists: {exists}.")
        return exists

    @contextmanager
    def _scoped_archive(self) -> Iterator[Path]:
        temp_root = self.config.archive.temp_dir or os.environ.get("RUNNER_TEMP") or None
        try:
            tmp = tempfile.TemporaryDirectory(prefix="bucketcache-", dir=temp_root)
        except OSError as e:
            raise ArchiveBuildError(f"Failed to create temporary directory: {e}") from e
        with tmp as tmp_dir:
            yield Path(tmp_dir) / ARCHIVE_FILE_NAME

    def _run_step(self, step_name: str, title: str, fn: Callable[[], T]) -> T:
        step_logger = StepLogger(step_name, self.logger, title=title)
        step_logger.start()
        try:
            result = fn()
        except BaseException as e:
            step_logger.fail(e)
            raise
        step_logger.complete()
        return result

    def _upload(self, archive: Path, target: str) -> None:
        upload_cfg = self.config.upload
        try:
            self.store.upload_file_in_chunks(
                archive,
                target,
                chunk_size=upload_cfg.chunk_size,
                validation=upload_cfg.validation,
            )
        except (StoreError, OSError, ValueError) as e:
            raise UploadError(f"Failed to upload the file: {e}") from e

    def _tag(self, target: str, metadata: dict[str, str]) -> None:
        try:
            self.store.set_metadata(target, metadata)
        except StoreError as e:
            if self.config.compensate_on_tag_failure:
                self._delete_untagged(target)
            raise MetadataTagError(
                f"Failed to set metadata on '{target}': {e}"
            ) from e

    def _delete_untagged(self, target: str) -> None:
        try:
            self.store.delete(target)
        except StoreError as e:
            self.logger.error(
                f"Failed to delete untagged object '{target}', "
                f"it stays in the bucket without metadata: {e}"
            )
        else:
            self.logger.warning(f"Deleted untagged object '{target}'")


def save_cache(
    request: CacheSaveRequest,
    config: BucketCacheConfig | None = None,
    store: ObjectStore | None = None,
    workspace: str | Path | None = None,
    logger: logging.Logger | None = None,
) -> SaveOutcome:
    """Save a cache entry, creating the configured store when none is given."""
    config = config or BucketCacheConfig()
    logger = logger or get_logger("bucketcache.save", config.logging)

    if request.cache_hit_kind is not CacheHitKind.EXACT and store is None:
        from bucketcache.store.factory import make_object_store

        try:
            store = make_object_store(
                request.bucket, config, request.key_file_name, logger=logger
            )
        except ConfigError:
            raise
        except Exception as e:
            raise ExistenceCheckError(
                f"Failed to open the {config.store.provider} store for bucket "
                f"'{request.bucket}': {e}"
            ) from e

    saver = CacheSaver(
        store, config, workspace=workspace, logger=logger  # type: ignore[arg-type]
    )
    return saver.save(request)
