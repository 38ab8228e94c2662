"""Local filesystem object store implementation."""

from __future__ import annotations

import functools
import json
import logging
import os
import shutil
import stat
import tempfile
from pathlib import Path, PurePosixPath
from typing import IO

from bucketcache._errors import ChecksumMismatchError, ObjectNotFoundError, StoreError
from bucketcache.chunks import (
    DEFAULT_CHUNK_SIZE,
    Chunk,
    check_validation,
    md5_hex,
    plan_chunks,
)
from bucketcache.logging import LoggingConfig, UploadProgressLogger
from bucketcache.retry import RetryConfig, call_with_retry

METADATA_DIR = ".metadata"
STAGING_DIR = ".staging"


class LocalObjectStore:
    """Directory-backed store mirroring the bucket semantics of S3 and GCS.

    Objects live at ``root/<bucket>/<name>``. Parts are written to a staging
    file, read back and MD5-checked, and the finished file is moved into
    place with ``os.replace`` so an object is never partially visible.
    Metadata is kept in JSON sidecar files.
    """

    def __init__(
        self,
        bucket: str,
        root: Path,
        *,
        retry_config: RetryConfig | None = None,
        logger: logging.Logger | None = None,
        logging_config: LoggingConfig | None = None,
    ) -> None:
        if not bucket:
            raise ValueError("LocalObjectStore requires a bucket name")
        self.bucket = bucket
        self.root = Path(root)
        self.base_dir = self.root / bucket
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.retry_config = retry_config or RetryConfig(
            retries=3, delay=0.1, backoff=2.0, exceptions=(OSError, ChecksumMismatchError)
        )
        self.logger = logger or logging.getLogger(__name__)
        self.logging_config = logging_config or LoggingConfig()

    def _object_path(self, name: str) -> Path:
        parts = PurePosixPath(name).parts
        if (
            not name
            or PurePosixPath(name).is_absolute()
            or ".." in parts
            or parts[0] in (METADATA_DIR, STAGING_DIR)
        ):
            raise StoreError(f"Invalid object name: {name!r}", key=name)
        return self.base_dir.joinpath(*parts)

    def _metadata_path(self, name: str) -> Path:
        return self.base_dir / METADATA_DIR / f"{name}.json"

    def exists(self, name: str) -> bool:
        path = self._object_path(name)
        try:
            mode = path.stat().st_mode
        except (FileNotFoundError, NotADirectoryError):
            return False
        except OSError as e:
            raise StoreError(
                f"Failed to check object '{name}': {e}", key=name, cause=e
            ) from e
        return stat.S_ISREG(mode)

    def upload_file_in_chunks(
        self,
        path: Path,
        name: str,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        validation: str = "md5",
    ) -> None:
        check_validation(validation)
        path = Path(path)
        dest = self._object_path(name)
        chunks = plan_chunks(path, chunk_size)

        staging_dir = self.base_dir / STAGING_DIR
        staging_dir.mkdir(parents=True, exist_ok=True)
        fd, staging_name = tempfile.mkstemp(dir=staging_dir, suffix=".part")
        os.close(fd)
        staging = Path(staging_name)

        progress = UploadProgressLogger(
            name,
            len(chunks),
            sum(chunk.size for chunk in chunks),
            self.logger,
            self.logging_config,
        )
        progress.start()

        try:
            with staging.open("r+b") as out:
                for chunk in chunks:
                    call_with_retry(
                        functools.partial(self._write_part, path, out, chunk, name),
                        self.retry_config,
                        f"Part {chunk.part_number} of '{name}'",
                        self.logger,
                    )
                    progress.update(chunk.part_number, chunk.size)
            dest.parent.mkdir(parents=True, exist_ok=True)
            os.replace(staging, dest)
            # Metadata from a previous object must not describe new content.
            self._metadata_path(name).unlink(missing_ok=True)
        except OSError as e:
            raise StoreError(
                f"Failed to upload '{name}' to {self.base_dir}: {e}", key=name, cause=e
            ) from e
        finally:
            staging.unlink(missing_ok=True)

    def _write_part(self, source: Path, out: IO[bytes], chunk: Chunk, name: str) -> None:
        data = chunk.read(source)
        out.seek(chunk.offset)
        out.write(data)
        out.flush()

        out.seek(chunk.offset)
        written = out.read(chunk.size)
        expected = md5_hex(data)
        actual = md5_hex(written)
        if actual != expected:
            raise ChecksumMismatchError(name, chunk.part_number, expected, actual)

    def set_metadata(self, name: str, metadata: dict[str, str]) -> None:
        if not self.exists(name):
            raise ObjectNotFoundError(f"Object not found: {name}", key=name)
        meta_path = self._metadata_path(name)
        meta_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = meta_path.with_suffix(".json.tmp")
        try:
            tmp_path.write_text(json.dumps(metadata, sort_keys=True))
            os.replace(tmp_path, meta_path)
        except OSError as e:
            raise StoreError(
                f"Failed to write metadata for '{name}': {e}", key=name, cause=e
            ) from e

    def get_metadata(self, name: str) -> dict[str, str]:
        if not self.exists(name):
            raise ObjectNotFoundError(f"Object not found: {name}", key=name)
        meta_path = self._metadata_path(name)
        if not meta_path.exists():
            return {}
        return json.loads(meta_path.read_text())

    def download(self, name: str, dest: Path) -> None:
        src = self._object_path(name)
        if not src.is_file():
            raise ObjectNotFoundError(f"Object not found: {name}", key=name)
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dest)

    def delete(self, name: str) -> None:
        self._object_path(name).unlink(missing_ok=True)
        self._metadata_path(name).unlink(missing_ok=True)
