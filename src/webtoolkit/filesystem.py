"""Filesystem helpers."""

import os
from typing import Union

import structlog

from .exceptions import FileStorageError

logger = structlog.get_logger(__name__)

DIRECTORY_MODE = 0o755


def ensure_dir(path: Union[str, os.PathLike], mode: int = DIRECTORY_MODE) -> None:
    """
    Create ``path`` and any missing parents.

    An existing directory is not an error, so the call is idempotent.

    Raises:
        FileStorageError: If the directory cannot be created or ``path``
            exists and is not a directory
    """
    if os.path.isdir(path):
        return

    try:
        os.makedirs(path, mode=mode, exist_ok=True)
    except OSError as e:
        raise FileStorageError(
            f"unable to create directory: {e}",
            storage_operation="create_directory",
            storage_path=os.fspath(path)
        ) from e

    logger.debug("Directory created", path=os.fspath(path), mode=oct(mode))
