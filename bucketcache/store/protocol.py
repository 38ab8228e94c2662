"""ObjectStore protocol definition."""

from pathlib import Path
from typing import Protocol

from bucketcache.chunks import DEFAULT_CHUNK_SIZE


class ObjectStore(Protocol):
    """Protocol defining the common interface for cache object stores.

    S3ObjectStore, GcsObjectStore and LocalObjectStore implement this
    interface, so the save pipeline works with any of them. Each instance is
    bound to a single bucket. Backend failures are raised as StoreError.
    """

    bucket: str

    def exists(self, name: str) -> bool:
        """Return True if the object is present, False if confirmed absent.

        An inconclusive check (transport error, permission denied) raises
        instead of returning False.
        """
        ...

    def upload_file_in_chunks(
        self,
        path: Path,
        name: str,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        validation: str = "md5",
    ) -> None:
        """Upload a local file as object `name`, split into validated parts.

        The object becomes visible under `name` only once every part has
        been transferred; a failed upload leaves nothing under `name`.
        """
        ...

    def set_metadata(self, name: str, metadata: dict[str, str]) -> None:
        """Replace the custom metadata of an existing object."""
        ...

    def get_metadata(self, name: str) -> dict[str, str]:
        """Read the custom metadata of an existing object."""
        ...

    def download(self, name: str, dest: Path) -> None:
        """Download an object into a local file."""
        ...

    def delete(self, name: str) -> None:
        """Delete an object; deleting a missing object is not an error."""
        ...
