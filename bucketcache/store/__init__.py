"""Object store backends for cache archives.

- S3ObjectStore: AWS S3 (and S3-compatible endpoints) via multipart upload
- GcsObjectStore: Google Cloud Storage via XML multipart upload
- LocalObjectStore: Local filesystem buckets for development/testing
"""

from bucketcache.store.factory import make_object_store  # noqa: E402, F401
from bucketcache.store.local import LocalObjectStore  # noqa: E402, F401
from bucketcache.store.protocol import ObjectStore  # noqa: E402, F401

__all__ = ["ObjectStore", "LocalObjectStore", "make_object_store"]
