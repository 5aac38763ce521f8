"""Resolve stored-file references to paths on the local storage volume."""
from pathlib import Path

from linkshare.core.config import get_settings
from linkshare.models import StoredFile


class StorageUnavailable(Exception):
    pass


def resolve_path(file: StoredFile, storage_dir: str | None = None) -> Path:
    root = Path(storage_dir or get_settings().storage_dir).resolve()
    path = (root / file.storage_ref).resolve()
    # storage_ref must stay inside the storage root
    if root not in path.parents or not path.is_file():
        raise StorageUnavailable(f"File {file.id} not found in storage")
    return path
