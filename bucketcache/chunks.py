"""Fixed-size file chunking and part checksums."""

from __future__ import annotations

import base64
import hashlib
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

DEFAULT_CHUNK_SIZE = 32 * 1024 * 1024

SUPPORTED_VALIDATIONS = ("md5",)


@dataclass(frozen=True)
class Chunk:
    """A byte range of a local file uploaded as one part.

    Part numbers start at 1, matching multipart upload APIs.
    """

    part_number: int
    offset: int
    size: int

    def read(self, path: Path) -> bytes:
        with path.open("rb") as f:
            f.seek(self.offset)
            data = f.read(self.size)
        if len(data) != self.size:
            raise OSError(
                f"Short read on {path}: expected {self.size} bytes at offset "
                f"{self.offset}, got {len(data)}"
            )
        return data


def iter_chunks(file_size: int, chunk_size: int) -> Iterator[Chunk]:
    """Yield the parts covering a file of file_size bytes.

    An empty file yields a single empty part so that it can still be
    committed as an object.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if file_size == 0:
        yield Chunk(part_number=1, offset=0, size=0)
        return

    part_number = 1
    for offset in range(0, file_size, chunk_size):
        yield Chunk(
            part_number=part_number,
            offset=offset,
            size=min(chunk_size, file_size - offset),
        )
        part_number += 1


def plan_chunks(path: Path, chunk_size: int) -> list[Chunk]:
    return list(iter_chunks(path.stat().st_size, chunk_size))


def check_validation(validation: str) -> None:
    if validation not in SUPPORTED_VALIDATIONS:
        raise ValueError(
            f"Unsupported validation '{validation}'. "
            f"Supported: {', '.join(SUPPORTED_VALIDATIONS)}"
        )


def md5_hex(data: bytes) -> str:
    return hashlib.md5(data, usedforsecurity=False).hexdigest()


def md5_base64(data: bytes) -> str:
    """MD5 digest in the base64 form used by Content-MD5 headers."""
    digest = hashlib.md5(data, usedforsecurity=False).digest()
    return base64.b64encode(digest).decode("ascii")
