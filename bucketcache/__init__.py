"""bucketcache - save CI build caches to object storage buckets."""

from bucketcache.archive import (
    METADATA_COMPRESSION_KEY,
    CompressionMethod,
    compression_method_from_metadata,
    create_archive,
    extract_archive,
)
from bucketcache.cli import main
from bucketcache.config import BucketCacheConfig, load_config
from bucketcache.request import CacheHitKind, CacheSaveRequest, SaveOutcome, SaveStatus
from bucketcache.save import CacheSaver, save_cache

__version__ = "0.1.0"

__all__ = [
    "METADATA_COMPRESSION_KEY",
    "BucketCacheConfig",
    "CacheHitKind",
    "CacheSaveRequest",
    "CacheSaver",
    "CompressionMethod",
    "SaveOutcome",
    "SaveStatus",
    "compression_method_from_metadata",
    "create_archive",
    "extract_archive",
    "load_config",
    "main",
    "save_cache",
]
