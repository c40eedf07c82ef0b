"""Recursive listing of a finished build output directory."""

import logging
import os
from pathlib import Path
from typing import List

from storefront_nginx.services.constants import NGINX_CONF_FILENAME, NGINX_CONF_TMP_FILENAME

logger = logging.getLogger(__name__)


def _raise(exc: OSError) -> None:
    raise exc


def list_files_recursively(root: Path) -> List[str]:
    """Return every file under *root* as a sorted, POSIX-style relative path.

    A previously written nginx artifact (or its temporary file) at the root is
    left out so repeated runs over the same build see the same file universe.

    Raises:
        OSError: if *root* or any directory below it cannot be read.
    """
    root = Path(root)
    if not root.is_dir():
        raise NotADirectoryError(f"Build output directory not found: {root}")

    files: List[str] = []
    for dirpath, _dirnames, filenames in os.walk(root, onerror=_raise):
        for name in filenames:
            relative = (Path(dirpath) / name).relative_to(root).as_posix()
            if relative in (NGINX_CONF_FILENAME, NGINX_CONF_TMP_FILENAME):
                continue
            files.append(relative)

    files.sort()
    logger.debug("Listed build output", extra={"root": str(root), "files": len(files)})
    return files
