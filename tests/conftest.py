"""Shared test utilities."""

import os
from pathlib import Path

import pytest

from bucketcache._errors import ObjectNotFoundError


_ENV_VARS = (
    "AWS_ENDPOINT_URL",
    "GITHUB_ACTIONS",
    "GITHUB_WORKSPACE",
    "RUNNER_TEMP",
    "BUCKETCACHE_PROVIDER",
    "BUCKETCACHE_AWS_REGION",
    "BUCKETCACHE_AWS_ENDPOINT",
    "BUCKETCACHE_GCS_PROJECT",
    "BUCKETCACHE_LOCAL_ROOT",
    "BUCKETCACHE_CHUNK_SIZE",
    "BUCKETCACHE_COMPRESSION",
    "BUCKETCACHE_TEMP_DIR",
    "BUCKETCACHE_LOG_LEVEL",
    "BUCKETCACHE_LOG_FORMAT",
    "BUCKETCACHE_BUCKET",
    "BUCKETCACHE_KEY_FILE",
    "BUCKETCACHE_TARGET",
    "BUCKETCACHE_PATH",
    "BUCKETCACHE_CACHE_HIT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep CI and bucketcache variables of the host out of the tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mocked AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


class FakeObjectStore:
    """In-memory ObjectStore recording every call made to it."""

    def __init__(self, bucket: str = "test-bucket") -> None:
        self.bucket = bucket
        self.objects: dict[str, bytes] = {}
        self.metadata: dict[str, dict[str, str]] = {}
        self.calls: list[tuple] = []
        self.uploaded_from: Path | None = None
        self.exists_error: Exception | None = None
        self.upload_error: Exception | None = None
        self.set_metadata_error: Exception | None = None
        self.delete_error: Exception | None = None

    def exists(self, name: str) -> bool:
        self.calls.append(("exists", name))
        if self.exists_error:
            raise self.exists_error
        return name in self.objects

    def upload_file_in_chunks(self, path, name, chunk_size=0, validation="md5"):
        self.calls.append(("upload", name, chunk_size, validation))
        self.uploaded_from = Path(path)
        if self.upload_error:
            raise self.upload_error
        self.objects[name] = Path(path).read_bytes()

    def set_metadata(self, name: str, metadata: dict[str, str]) -> None:
        self.calls.append(("set_metadata", name, dict(metadata)))
        if self.set_metadata_error:
            raise self.set_metadata_error
        self.metadata[name] = dict(metadata)

    def get_metadata(self, name: str) -> dict[str, str]:
        if name not in self.objects:
            raise ObjectNotFoundError(f"Object not found: {name}", key=name)
        return dict(self.metadata.get(name, {}))

    def download(self, name: str, dest: Path) -> None:
        if name not in self.objects:
            raise ObjectNotFoundError(f"Object not found: {name}", key=name)
        Path(dest).write_bytes(self.objects[name])

    def delete(self, name: str) -> None:
        self.calls.append(("delete", name))
        if self.delete_error:
            raise self.delete_error
        self.objects.pop(name, None)
        self.metadata.pop(name, None)

    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def fake_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Workspace with a dist/ directory holding two files."""
    root = tmp_path / "workspace"
    (root / "dist").mkdir(parents=True)
    (root / "dist" / "a.txt").write_text("alpha\n")
    (root / "dist" / "b.txt").write_text("bravo\n")
    (root / "src").mkdir()
    (root / "src" / "main.py").write_text("print('hello')\n")
    return root


def list_dir(path: Path) -> list[str]:
    if not path.exists():
        return []
    return sorted(os.listdir(path))
