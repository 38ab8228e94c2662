"""Tests for the bucketcache command line interface."""

import signal
from pathlib import Path

import pytest

from bucketcache.archive import compression_method_from_metadata
from bucketcache.cli import _exit_on_sigterm, build_parser, main
from bucketcache.store.local import LocalObjectStore


@pytest.fixture(autouse=True)
def restore_sigterm():
    previous = signal.getsignal(signal.SIGTERM)
    yield
    signal.signal(signal.SIGTERM, previous)


@pytest.fixture
def local_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    root = tmp_path / "store"
    monkeypatch.setenv("BUCKETCACHE_LOCAL_ROOT", str(root))
    monkeypatch.setenv("BUCKETCACHE_LOG_FORMAT", "human")
    monkeypatch.setenv("RUNNER_TEMP", str(tmp_path))
    monkeypatch.setattr(
        "bucketcache.config.GLOBAL_CONFIG_PATH", Path("/nonexistent/global.toml")
    )
    monkeypatch.setattr(
        "bucketcache.config.LOCAL_CONFIG_PATH", Path("/nonexistent/local.toml")
    )
    return root


def save_args(workspace: Path, *extra: str) -> list[str]:
    return [
        "save",
        "--bucket",
        "ci-cache",
        "--target",
        "linux-key.tar",
        "--path",
        "dist/**",
        "--workspace",
        str(workspace),
        "--provider",
        "local",
        *extra,
    ]


class TestParser:
    """Tests for the argument parser."""

    def test_defaults(self) -> None:
        """Test save arguments default to empty or none."""
        args = build_parser().parse_args(["save"])
        assert args.bucket is None
        assert args.key_file == ""
        assert args.cache_hit == "none"
        assert args.provider is None

    def test_environment_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test BUCKETCACHE_* variables fill in missing flags."""
        monkeypatch.setenv("BUCKETCACHE_BUCKET", "env-bucket")
        monkeypatch.setenv("BUCKETCACHE_TARGET", "env-target.tar")
        monkeypatch.setenv("BUCKETCACHE_PATH", "dist/**")
        monkeypatch.setenv("BUCKETCACHE_CACHE_HIT", "partial")

        args = build_parser().parse_args(["save"])

        assert args.bucket == "env-bucket"
        assert args.target == "env-target.tar"
        assert args.path == "dist/**"
        assert args.cache_hit == "partial"

    def test_requires_command(self) -> None:
        """Test a subcommand is required."""
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args([])
        assert exc_info.value.code == 2

    def test_rejects_unknown_compression(self) -> None:
        """Test an unknown compression choice is refused."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["save", "--compression", "lz4"])


class TestSaveCommand:
    """Tests for the save subcommand."""

    def test_saves_to_local_store(
        self, workspace: Path, local_root: Path, capsys
    ) -> None:
        """Test save uploads and tags the archive."""
        main(save_args(workspace, "--compression", "gzip"))

        assert capsys.readouterr().out.splitlines()[-1] == "saved: linux-key.tar"
        store = LocalObjectStore("ci-cache", local_root)
        metadata = store.get_metadata("linux-key.tar")
        assert compression_method_from_metadata(metadata).value == "gzip"

    def test_second_save_skips(
        self, workspace: Path, local_root: Path, capsys
    ) -> None:
        """Test a repeated save reports the existing object."""
        main(save_args(workspace))
        main(save_args(workspace))

        out = capsys.readouterr().out.splitlines()
        assert out[-1] == "skipped-already-exists: linux-key.tar"

    def test_exact_hit_skips(self, workspace: Path, local_root: Path, capsys) -> None:
        """Test an exact hit skips without creating the store."""
        main(save_args(workspace, "--cache-hit", "exact"))

        assert capsys.readouterr().out.splitlines()[-1] == (
            "skipped-exact-hit: linux-key.tar"
        )
        assert not local_root.exists()

    def test_missing_parameters(self, capsys) -> None:
        """Test missing required inputs exit with code 1."""
        with pytest.raises(SystemExit) as exc_info:
            main(["save", "--bucket", "ci-cache"])

        assert exc_info.value.code == 1
        assert "--target, --path" in capsys.readouterr().out

    def test_failed_step_exits_nonzero(
        self, workspace: Path, local_root: Path, capsys
    ) -> None:
        """Test a failed step prints its name and exits 1."""
        args = save_args(workspace)
        args[args.index("dist/**")] = "build/**"

        with pytest.raises(SystemExit) as exc_info:
            main(args)

        assert exc_info.value.code == 1
        assert "Error: resolve-paths: No files matched" in capsys.readouterr().out

    def test_invalid_config_exits_nonzero(
        self, workspace: Path, local_root: Path, monkeypatch, capsys
    ) -> None:
        """Test a bad configuration value exits 1."""
        monkeypatch.setenv("BUCKETCACHE_CHUNK_SIZE", "lots")

        with pytest.raises(SystemExit) as exc_info:
            main(save_args(workspace))

        assert exc_info.value.code == 1
        assert "Failed to load configuration" in capsys.readouterr().out

    def test_store_open_failure_exits_nonzero(
        self, workspace: Path, local_root: Path, capsys
    ) -> None:
        """Test a store that cannot be created is reported as the first step."""
        local_root.write_text("not a directory")

        with pytest.raises(SystemExit) as exc_info:
            main(save_args(workspace))

        assert exc_info.value.code == 1
        assert "Error: existence-check: Failed to open the local store" in (
            capsys.readouterr().out
        )


class TestSigterm:
    """Tests for SIGTERM handling."""

    def test_handler_raises_system_exit(self) -> None:
        """Test the handler exits with 128 plus the signal number."""
        with pytest.raises(SystemExit) as exc_info:
            _exit_on_sigterm(signal.SIGTERM, None)
        assert exc_info.value.code == 128 + signal.SIGTERM
