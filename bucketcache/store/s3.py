"""S3 object store implementation."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any

from boto3.exceptions import Boto3Error
from botocore.exceptions import BotoCoreError, ClientError

from bucketcache._aws import get_s3_client
from bucketcache._errors import ChecksumMismatchError, ObjectNotFoundError, StoreError
from bucketcache.chunks import (
    DEFAULT_CHUNK_SIZE,
    Chunk,
    check_validation,
    md5_base64,
    md5_hex,
    plan_chunks,
)
from bucketcache.logging import LoggingConfig, UploadProgressLogger
from bucketcache.retry import RetryConfig, call_with_retry

# S3 multipart limits: every part but the last must be at least 5 MiB.
S3_MIN_PART_SIZE = 5 * 1024 * 1024
S3_MAX_PARTS = 10_000

_NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")

RETRIABLE_ERRORS: tuple[type, ...] = (ClientError, BotoCoreError, ChecksumMismatchError)

# ETags of KMS-encrypted parts are not MD5 digests of the part body.
_KMS_ENCRYPTION = ("aws:kms", "aws:kms:dsse")


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class S3ObjectStore:
    """S3-backed object store using multipart uploads.

    Parts carry a Content-MD5 header so S3 rejects corrupted bodies, and the
    returned part ETag is compared with the local MD5 where S3 guarantees
    they match. An object only appears once CompleteMultipartUpload succeeds;
    any failure aborts the multipart upload.
    """

    def __init__(
        self,
        bucket: str,
        client: Any = None,
        *,
        region: str = "us-east-1",
        endpoint: str = "",
        credentials_file: str = "",
        max_workers: int = 4,
        retry_config: RetryConfig | None = None,
        logger: logging.Logger | None = None,
        logging_config: LoggingConfig | None = None,
    ) -> None:
        if not bucket:
            raise ValueError("S3ObjectStore requires a bucket name")
        self.bucket = bucket
        self._client = client or get_s3_client(region, endpoint, credentials_file)
        self.max_workers = max_workers
        self.retry_config = retry_config or RetryConfig(
            retries=3,
            delay=1.0,
            backoff=2.0,
            exceptions=RETRIABLE_ERRORS,
        )
        self.logger = logger or logging.getLogger(__name__)
        self.logging_config = logging_config or LoggingConfig()

    def exists(self, name: str) -> bool:
        try:
            self._client.head_object(Bucket=self.bucket, Key=name)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return False
            raise self._translate_error(e, name) from e
        except BotoCoreError as e:
            raise self._translate_error(e, name) from e
        return True

    def upload_file_in_chunks(
        self,
        path: Path,
        name: str,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        validation: str = "md5",
    ) -> None:
        check_validation(validation)
        path = Path(path)
        chunks = plan_chunks(path, chunk_size)
        if len(chunks) > 1 and chunk_size < S3_MIN_PART_SIZE:
            raise ValueError(
                f"chunk_size {chunk_size} is below the S3 minimum part size "
                f"of {S3_MIN_PART_SIZE} bytes"
            )
        if len(chunks) > S3_MAX_PARTS:
            raise ValueError(
                f"{path} needs {len(chunks)} parts, more than the S3 limit of "
                f"{S3_MAX_PARTS}; increase chunk_size"
            )

        try:
            response = self._client.create_multipart_upload(
                Bucket=self.bucket, Key=name
            )
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, name) from e
        upload_id = response["UploadId"]
        self.logger.debug(f"Started multipart upload {upload_id} for '{name}'")

        try:
            parts = self._upload_parts(path, name, upload_id, chunks)
            self._client.complete_multipart_upload(
                Bucket=self.bucket,
                Key=name,
                UploadId=upload_id,
                MultipartUpload={"Parts": parts},
            )
        except BaseException as e:
            self._abort(name, upload_id)
            if isinstance(e, (ClientError, BotoCoreError)):
                raise self._translate_error(e, name) from e
            raise

    def _upload_parts(
        self, path: Path, name: str, upload_id: str, chunks: list[Chunk]
    ) -> list[dict[str, Any]]:
        total_bytes = sum(chunk.size for chunk in chunks)
        progress = UploadProgressLogger(
            name, len(chunks), total_bytes, self.logger, self.logging_config
        )
        progress.start()

        parts: list[dict[str, Any]] = []
        workers = min(self.max_workers, len(chunks))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                pool.submit(self._upload_part, path, name, upload_id, chunk): chunk
                for chunk in chunks
            }
            try:
                for future in as_completed(futures):
                    chunk = futures[future]
                    parts.append(future.result())
                    progress.update(chunk.part_number, chunk.size)
            except BaseException:
                for future in futures:
                    future.cancel()
                raise

        return sorted(parts, key=lambda part: part["PartNumber"])

    def _upload_part(
        self, path: Path, name: str, upload_id: str, chunk: Chunk
    ) -> dict[str, Any]:
        data = chunk.read(path)
        expected = md5_hex(data)

        def attempt() -> dict[str, Any]:
            response = self._client.upload_part(
                Bucket=self.bucket,
                Key=name,
                UploadId=upload_id,
                PartNumber=chunk.part_number,
                Body=data,
                ContentMD5=md5_base64(data),
            )
            etag = response["ETag"]
            if response.get("ServerSideEncryption") not in _KMS_ENCRYPTION:
                actual = etag.strip('"')
                if actual != expected:
                    raise ChecksumMismatchError(
                        name, chunk.part_number, expected, actual
                    )
            return {"ETag": etag, "PartNumber": chunk.part_number}

        return call_with_retry(
            attempt,
            self.retry_config,
            f"Part {chunk.part_number} of '{name}'",
            self.logger,
        )

    def _abort(self, name: str, upload_id: str) -> None:
        try:
            self._client.abort_multipart_upload(
                Bucket=self.bucket, Key=name, UploadId=upload_id
            )
        except (ClientError, BotoCoreError) as e:
            self.logger.warning(
                f"Failed to abort multipart upload {upload_id} for '{name}': {e}"
            )
        else:
            self.logger.debug(f"Aborted multipart upload {upload_id} for '{name}'")

    def set_metadata(self, name: str, metadata: dict[str, str]) -> None:
        # S3 metadata is immutable; copying the object onto itself replaces it.
        try:
            self._client.copy(
                CopySource={"Bucket": self.bucket, "Key": name},
                Bucket=self.bucket,
                Key=name,
                ExtraArgs={"Metadata": metadata, "MetadataDirective": "REPLACE"},
            )
        except (ClientError, BotoCoreError, Boto3Error) as e:
            raise self._translate_error(e, name) from e

    def get_metadata(self, name: str) -> dict[str, str]:
        try:
            response = self._client.head_object(Bucket=self.bucket, Key=name)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, name) from e
        return dict(response.get("Metadata", {}))

    def download(self, name: str, dest: Path) -> None:
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._client.download_file(self.bucket, name, str(dest))
        except (ClientError, BotoCoreError, Boto3Error) as e:
            raise self._translate_error(e, name) from e

    def delete(self, name: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=name)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, name) from e

    def _translate_error(self, error: Exception, key: str) -> StoreError:
        uri = f"s3://{self.bucket}/{key}"
        if isinstance(error, ClientError) and _error_code(error) in _NOT_FOUND_CODES:
            return ObjectNotFoundError(f"Object not found: {uri}", key=key, cause=error)
        return StoreError(f"S3 request for {uri} failed: {error}", key=key, cause=error)
