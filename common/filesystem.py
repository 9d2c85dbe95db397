"""
Filesystem helpers.
"""

import os
from pathlib import Path
from typing import Union

from common.exceptions import DirectoryError

DEFAULT_DIR_MODE = 0o755

PathLike = Union[str, "os.PathLike[str]"]


def ensure_dir(path: PathLike, mode: int = DEFAULT_DIR_MODE) -> Path:
    """Create ``path`` and any missing parents; no-op if it is already a directory.

    Raises:
        DirectoryError: If a non-directory occupies the path or creation fails.
    """
    directory = Path(path)
    try:
        directory.mkdir(mode=mode, parents=True, exist_ok=True)
    except FileExistsError:
        raise DirectoryError(
            "cannot create upload directory: path exists and is not a directory",
            path=str(directory),
        ) from None
    except OSError as e:
        raise DirectoryError(
            f"cannot create upload directory: {e.strerror or type(e).__name__}",
            path=str(directory),
        ) from e
    return directory
