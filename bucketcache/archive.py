"""Cache archive creation and extraction.

Archives are tar streams wrapped by one of a fixed set of compressors. The
compressor identifier is stored in the remote object's metadata under
``METADATA_COMPRESSION_KEY`` so that a restore can pick the matching
decompressor.
"""

from __future__ import annotations

import gzip
import tarfile
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import IO

import zstandard

from bucketcache._errors import ArchiveBuildError

METADATA_COMPRESSION_KEY = "Cache-Action-Compression-Method"

# Matches `zstd --long`, which uses a 128 MiB window.
ZSTD_LONG_WINDOW_LOG = 27
ZSTD_MAX_WINDOW_SIZE = 1 << 31


class CompressionMethod(str, Enum):
    GZIP = "gzip"
    ZSTD = "zstd"
    ZSTD_WITHOUT_LONG = "zstd-without-long"


def _check_member_path(rel_path: str) -> str:
    member = PurePosixPath(rel_path)
    if not rel_path or member.is_absolute() or ".." in member.parts:
        raise ArchiveBuildError(f"Path '{rel_path}' is outside the workspace")
    return member.as_posix()


def _normalize_owner(info: tarfile.TarInfo) -> tarfile.TarInfo:
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    return info


@contextmanager
def _compressed_writer(
    f: IO[bytes], method: CompressionMethod, level: int
) -> Iterator[IO[bytes]]:
    if method is CompressionMethod.GZIP:
        with gzip.GzipFile(
            filename="", mode="wb", fileobj=f, compresslevel=min(level, 9), mtime=0
        ) as gz:
            yield gz
        return

    if method is CompressionMethod.ZSTD:
        params = zstandard.ZstdCompressionParameters.from_level(
            level, window_log=ZSTD_LONG_WINDOW_LOG, enable_ldm=True
        )
        cctx = zstandard.ZstdCompressor(compression_params=params)
    else:
        cctx = zstandard.ZstdCompressor(level=level)

    with cctx.stream_writer(f, closefd=False) as writer:
        yield writer


@contextmanager
def _decompressed_reader(f: IO[bytes], method: CompressionMethod) -> Iterator[IO[bytes]]:
    if method is CompressionMethod.GZIP:
        with gzip.GzipFile(fileobj=f, mode="rb") as gz:
            yield gz
        return

    dctx = zstandard.ZstdDecompressor(max_window_size=ZSTD_MAX_WINDOW_SIZE)
    with dctx.stream_reader(f, closefd=False) as reader:
        yield reader


def create_archive(
    destination: Path,
    paths: Sequence[str],
    workspace: Path,
    method: CompressionMethod | str = CompressionMethod.ZSTD,
    level: int = 3,
) -> CompressionMethod:
    """Write the given workspace-relative paths into a compressed tar file.

    Members are added in the given order under exactly the supplied relative
    names; directories are not descended into.

    Args:
        destination: Archive file to create (overwritten if present)
        paths: Workspace-relative POSIX paths
        workspace: Directory the paths are relative to
        method: Compressor for the tar stream
        level: Compression level

    Returns:
        The compression method used

    Raises:
        ArchiveBuildError: If a path escapes the workspace or cannot be read,
            or the archive cannot be written
    """
    try:
        method = CompressionMethod(method)
    except ValueError as e:
        raise ArchiveBuildError(f"Unsupported compression method '{method}'") from e

    members = [_check_member_path(p) for p in paths]

    try:
        with destination.open("wb") as f, _compressed_writer(f, method, level) as out:
            with tarfile.open(fileobj=out, mode="w|") as tar:
                for member in members:
                    tar.add(
                        str(workspace / member),
                        arcname=member,
                        recursive=False,
                        filter=_normalize_owner,
                    )
    except (OSError, tarfile.TarError, zstandard.ZstdError) as e:
        raise ArchiveBuildError(f"Failed to create the archive: {e}") from e

    return method


def extract_archive(
    archive: Path, destination: Path, method: CompressionMethod | str
) -> list[str]:
    """Extract an archive created by create_archive.

    Returns:
        Member names in archive order
    """
    method = CompressionMethod(method)
    destination.mkdir(parents=True, exist_ok=True)
    names: list[str] = []

    with archive.open("rb") as f, _decompressed_reader(f, method) as src:
        with tarfile.open(fileobj=src, mode="r|") as tar:
            for info in tar:
                names.append(info.name)
                tar.extract(info, destination, filter="data")

    return names


def compression_method_from_metadata(metadata: Mapping[str, str]) -> CompressionMethod:
    """Read the compression method back from object metadata.

    Key lookup is case-insensitive since some stores lower-case user
    metadata keys.
    """
    wanted = METADATA_COMPRESSION_KEY.lower()
    for key, value in metadata.items():
        if key.lower() == wanted:
            return CompressionMethod(value)
    raise KeyError(f"Object metadata has no '{METADATA_COMPRESSION_KEY}' entry")
