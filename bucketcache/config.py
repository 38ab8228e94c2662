"""Configuration loading and management for bucketcache.

Configuration is loaded from TOML files with environment variable overrides.

Configuration precedence (highest to lowest):
1. Environment variables
2. Local config (./bucketcache.toml)
3. Global config (~/.bucketcache/bucketcache.toml)
4. Default values
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from bucketcache._errors import ConfigError
from bucketcache.archive import CompressionMethod
from bucketcache.chunks import DEFAULT_CHUNK_SIZE, SUPPORTED_VALIDATIONS
from bucketcache.logging import LogFormat, LoggingConfig
from bucketcache.retry import RetryConfig

GLOBAL_CONFIG_PATH = Path.home() / ".bucketcache" / "bucketcache.toml"
LOCAL_CONFIG_PATH = Path.cwd() / "bucketcache.toml"

PROVIDERS = ("s3", "gcs", "local")


def _load_toml(path: Path) -> dict[str, Any]:
    """Load a TOML file, returning empty dict if not found."""
    if path.exists():
        with path.open("rb") as f:
            try:
                return tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ConfigError(f"Invalid TOML in {path}: {e}") from e
    return {}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge override into base.

    Lists and scalars are replaced; dicts are merged recursively.
    """
    result = base.copy()
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


@dataclass
class StoreConfig:
    """Object store configuration.

    Attributes:
        provider: Store backend - "s3", "gcs" or "local".
        region: AWS region for the S3 backend.
        endpoint: Custom S3 endpoint (LocalStack, MinIO).
        project: Google Cloud project for the GCS backend.
        local_root: Root directory holding buckets for the local backend.
    """

    provider: str = "s3"
    region: str = "us-east-1"
    endpoint: str = ""
    project: str = ""
    local_root: str = ".bucketcache-store"

    def __post_init__(self) -> None:
        if self.provider not in PROVIDERS:
            raise ConfigError(
                f"store.provider must be one of {', '.join(PROVIDERS)}, "
                f"got '{self.provider}'"
            )


@dataclass
class UploadConfig:
    """Chunked upload configuration.

    Attributes:
        chunk_size: Size in bytes of each uploaded part.
        validation: Checksum algorithm used to validate each part.
        max_workers: Number of parts transferred concurrently.
        retries: Retries per part before the upload fails.
        retry_delay: Initial delay between part retries in seconds.
        retry_backoff: Multiplier applied to the delay after each retry.
        retry_max_delay: Upper bound for the delay between retries.
    """

    chunk_size: int = DEFAULT_CHUNK_SIZE
    validation: str = "md5"
    max_workers: int = 4
    retries: int = 3
    retry_delay: float = 1.0
    retry_backoff: float = 2.0
    retry_max_delay: float = 30.0

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ConfigError("upload.chunk_size must be positive")
        if self.validation not in SUPPORTED_VALIDATIONS:
            raise ConfigError(
                f"upload.validation must be one of "
                f"{', '.join(SUPPORTED_VALIDATIONS)}, got '{self.validation}'"
            )
        if self.max_workers <= 0:
            raise ConfigError("upload.max_workers must be positive")

    def retry_config(self, exceptions: tuple[type, ...]) -> RetryConfig:
        """Build the per-part retry policy for the given retriable errors."""
        try:
            return RetryConfig(
                retries=self.retries,
                delay=self.retry_delay,
                backoff=self.retry_backoff,
                max_delay=self.retry_max_delay,
                exceptions=exceptions,
            )
        except ValueError as e:
            raise ConfigError(f"Invalid upload retry settings: {e}") from e


@dataclass
class ArchiveConfig:
    """Archive creation configuration.

    Attributes:
        compression_method: Compressor applied to the tar stream.
        compression_level: Compression level passed to the compressor.
        temp_dir: Directory for temporary archives (RUNNER_TEMP or system
            default when empty).
    """

    compression_method: str = CompressionMethod.ZSTD.value
    compression_level: int = 3
    temp_dir: str = ""

    def __post_init__(self) -> None:
        try:
            CompressionMethod(self.compression_method)
        except ValueError as e:
            supported = ", ".join(m.value for m in CompressionMethod)
            raise ConfigError(
                f"archive.compression_method must be one of {supported}, "
                f"got '{self.compression_method}'"
            ) from e


@dataclass
class BucketCacheConfig:
    """Main bucketcache configuration.

    Attributes:
        store: Object store configuration.
        upload: Chunked upload configuration.
        archive: Archive creation configuration.
        compensate_on_tag_failure: Delete the uploaded object when tagging
            its metadata fails.
        logging: Logging configuration.
    """

    store: StoreConfig = field(default_factory=StoreConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    archive: ArchiveConfig = field(default_factory=ArchiveConfig)
    compensate_on_tag_failure: bool = True
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "BucketCacheConfig":
        """Create a BucketCacheConfig from a dictionary."""
        store_config = d.get("store", {})
        upload_config = d.get("upload", {})
        archive_config = d.get("archive", {})
        save_config = d.get("save", {})
        logging_config = d.get("logging", {})

        store = StoreConfig(
            provider=store_config.get("provider", "s3"),
            region=store_config.get("region", "us-east-1"),
            endpoint=store_config.get("endpoint", ""),
            project=store_config.get("project", ""),
            local_root=store_config.get("local_root", ".bucketcache-store"),
        )
        upload = UploadConfig(
            chunk_size=upload_config.get("chunk_size", DEFAULT_CHUNK_SIZE),
            validation=upload_config.get("validation", "md5"),
            max_workers=upload_config.get("max_workers", 4),
            retries=upload_config.get("retries", 3),
            retry_delay=upload_config.get("retry_delay", 1.0),
            retry_backoff=upload_config.get("retry_backoff", 2.0),
            retry_max_delay=upload_config.get("retry_max_delay", 30.0),
        )
        archive = ArchiveConfig(
            compression_method=archive_config.get(
                "compression_method", CompressionMethod.ZSTD.value
            ),
            compression_level=archive_config.get("compression_level", 3),
            temp_dir=archive_config.get("temp_dir", ""),
        )
        logging_cfg = LoggingConfig(
            level=logging_config.get("level", "INFO"),
            format=logging_config.get("format", _default_log_format()),
            progress_interval=logging_config.get("progress_interval", 10),
            show_timestamps=logging_config.get("show_timestamps", True),
        )
        if logging_cfg.format not in {f.value for f in LogFormat}:
            raise ConfigError(f"Unknown logging.format '{logging_cfg.format}'")

        return cls(
            store=store,
            upload=upload,
            archive=archive,
            compensate_on_tag_failure=save_config.get(
                "compensate_on_tag_failure", True
            ),
            logging=logging_cfg,
        )


def _default_log_format() -> str:
    if os.environ.get("GITHUB_ACTIONS") == "true":
        return LogFormat.GITHUB.value
    return LogFormat.HUMAN.value


def _env_overrides() -> dict[str, Any]:
    """Collect BUCKETCACHE_* environment variables as a config dict."""
    overrides: dict[str, Any] = {}

    def put(section: str, key: str, value: Any) -> None:
        overrides.setdefault(section, {})[key] = value

    if env_provider := os.environ.get("BUCKETCACHE_PROVIDER"):
        put("store", "provider", env_provider)
    if env_region := os.environ.get("BUCKETCACHE_AWS_REGION"):
        put("store", "region", env_region)
    if env_endpoint := os.environ.get("BUCKETCACHE_AWS_ENDPOINT"):
        put("store", "endpoint", env_endpoint)
    if env_project := os.environ.get("BUCKETCACHE_GCS_PROJECT"):
        put("store", "project", env_project)
    if env_root := os.environ.get("BUCKETCACHE_LOCAL_ROOT"):
        put("store", "local_root", env_root)
    if env_chunk := os.environ.get("BUCKETCACHE_CHUNK_SIZE"):
        try:
            put("upload", "chunk_size", int(env_chunk))
        except ValueError as e:
            raise ConfigError(
                f"BUCKETCACHE_CHUNK_SIZE must be an integer, got '{env_chunk}'"
            ) from e
    if env_compression := os.environ.get("BUCKETCACHE_COMPRESSION"):
        put("archive", "compression_method", env_compression)
    if env_temp := os.environ.get("BUCKETCACHE_TEMP_DIR"):
        put("archive", "temp_dir", env_temp)
    if env_log_level := os.environ.get("BUCKETCACHE_LOG_LEVEL"):
        put("logging", "level", env_log_level)
    if env_log_format := os.environ.get("BUCKETCACHE_LOG_FORMAT"):
        put("logging", "format", env_log_format)

    return overrides


def load_config() -> BucketCacheConfig:
    """Load and merge configuration from global and local TOML files.

    Applies environment variable overrides.
    """
    global_cfg = _load_toml(GLOBAL_CONFIG_PATH)
    local_cfg = _load_toml(LOCAL_CONFIG_PATH)
    merged = _deep_merge(_deep_merge(global_cfg, local_cfg), _env_overrides())

    return BucketCacheConfig.from_dict(merged)
