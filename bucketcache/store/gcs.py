"""Google Cloud Storage object store implementation."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from google.api_core.exceptions import Forbidden, NotFound
from google.cloud import storage as gcs
from google.cloud.storage import transfer_manager
from google.oauth2 import service_account

from bucketcache._errors import ObjectNotFoundError, StoreError
from bucketcache.chunks import DEFAULT_CHUNK_SIZE, check_validation


class GcsObjectStore:
    """GCS-backed object store using XML multipart uploads.

    Chunks are uploaded concurrently by the client library's transfer
    manager, which validates each part with the requested checksum and
    retries failed parts. The multipart upload is cancelled on failure so
    no object appears under the target name.
    """

    def __init__(
        self,
        bucket: str,
        client: Any = None,
        *,
        project: str = "",
        credentials_file: str = "",
        max_workers: int = 4,
        logger: logging.Logger | None = None,
    ) -> None:
        if not bucket:
            raise ValueError("GcsObjectStore requires a bucket name")
        self.bucket = bucket
        self.max_workers = max_workers
        self.logger = logger or logging.getLogger(__name__)

        if client is None:
            kwargs: dict = {}
            if project:
                kwargs["project"] = project
            if credentials_file:
                credentials = service_account.Credentials.from_service_account_file(
                    credentials_file
                )
                kwargs["credentials"] = credentials
                kwargs.setdefault("project", credentials.project_id)
            client = gcs.Client(**kwargs)
        self._client = client
        self._bucket = client.bucket(bucket)

    def exists(self, name: str) -> bool:
        # Blob.exists() maps 404 to False and raises on any other failure.
        try:
            return bool(self._bucket.blob(name).exists())
        except Exception as e:
            raise self._translate_error(e, name) from e

    def upload_file_in_chunks(
        self,
        path: Path,
        name: str,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        validation: str = "md5",
    ) -> None:
        check_validation(validation)
        blob = self._bucket.blob(name)
        self.logger.info(f"Uploading file '{name}'...")
        try:
            transfer_manager.upload_chunks_concurrently(
                str(path),
                blob,
                chunk_size=chunk_size,
                worker_type=transfer_manager.THREAD,
                max_workers=self.max_workers,
                checksum=validation,
            )
        except Exception as e:
            raise self._translate_error(e, name) from e

    def set_metadata(self, name: str, metadata: dict[str, str]) -> None:
        blob = self._bucket.blob(name)
        blob.metadata = metadata
        try:
            blob.patch()
        except Exception as e:
            raise self._translate_error(e, name) from e

    def get_metadata(self, name: str) -> dict[str, str]:
        try:
            blob = self._bucket.get_blob(name)
        except Exception as e:
            raise self._translate_error(e, name) from e
        if blob is None:
            raise ObjectNotFoundError(
                f"Object not found: gs://{self.bucket}/{name}", key=name
            )
        return dict(blob.metadata or {})

    def download(self, name: str, dest: Path) -> None:
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._bucket.blob(name).download_to_filename(str(dest))
        except Exception as e:
            raise self._translate_error(e, name) from e

    def delete(self, name: str) -> None:
        try:
            self._bucket.blob(name).delete()
        except NotFound:
            return
        except Exception as e:
            raise self._translate_error(e, name) from e

    def _translate_error(self, error: Exception, key: str) -> StoreError:
        uri = f"gs://{self.bucket}/{key}"
        if isinstance(error, NotFound):
            return ObjectNotFoundError(f"Object not found: {uri}", key=key, cause=error)
        if isinstance(error, Forbidden):
            return StoreError(f"Access denied to {uri}: {error}", key=key, cause=error)
        return StoreError(f"GCS request for {uri} failed: {error}", key=key, cause=error)
