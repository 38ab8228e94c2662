"""Factory for creating object store instances."""

from __future__ import annotations

import logging
from pathlib import Path

from bucketcache._errors import ChecksumMismatchError, ConfigError
from bucketcache.config import BucketCacheConfig
from bucketcache.store.protocol import ObjectStore


def make_object_store(
    bucket: str,
    config: BucketCacheConfig,
    credentials_file: str = "",
    logger: logging.Logger | None = None,
) -> ObjectStore:
    """Create the object store selected by config.store.provider.

    Args:
        bucket: Bucket the store is bound to
        config: Loaded configuration
        credentials_file: Key file for the provider (AWS shared credentials
            file for S3, service account JSON for GCS)
        logger: Logger used for upload progress

    Raises:
        ConfigError: If the provider is unknown or the bucket is missing
    """
    if not bucket:
        raise ConfigError("A bucket name is required")

    provider = config.store.provider
    upload = config.upload

    if provider == "s3":
        from botocore.exceptions import BotoCoreError, ClientError

        from bucketcache.store.s3 import S3ObjectStore

        return S3ObjectStore(
            bucket,
            region=config.store.region,
            endpoint=config.store.endpoint,
            credentials_file=credentials_file,
            max_workers=upload.max_workers,
            retry_config=upload.retry_config(
                (ClientError, BotoCoreError, ChecksumMismatchError)
            ),
            logger=logger,
            logging_config=config.logging,
        )

    elif provider == "gcs":
        from bucketcache.store.gcs import GcsObjectStore

        return GcsObjectStore(
            bucket,
            project=config.store.project,
            credentials_file=credentials_file,
            max_workers=upload.max_workers,
            logger=logger,
        )

    elif provider == "local":
        from bucketcache.store.local import LocalObjectStore

        return LocalObjectStore(
            bucket,
            Path(config.store.local_root),
            retry_config=upload.retry_config((OSError, ChecksumMismatchError)),
            logger=logger,
            logging_config=config.logging,
        )

    raise ConfigError(f"Provider {provider} not supported")
