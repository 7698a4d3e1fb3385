"""
Atomic file writes for run manifests and cached downloads.

Both go to a temporary file beside the destination and are moved into
place with ``os.replace()``. A killed run or a dropped connection leaves
either the previous file or nothing, so a later run never picks up a
half-written manifest or a truncated GO archive from the cache.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import urllib.request
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

logger = logging.getLogger(__name__)

__all__ = ['atomic_write_json', 'atomic_download']


@contextmanager
def _staged(path: Path) -> Iterator[Path]:
    """Yield a temp path next to *path*; move it over *path* on success."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    os.close(fd)
    tmp = Path(tmp_name)
    try:
        yield tmp
        os.replace(tmp, path)
    finally:
        tmp.unlink(missing_ok=True)


def atomic_write_json(path: str | os.PathLike, data: Any, *, indent: int = 2) -> None:
    """Write *data* as JSON at *path* in one step.

    Paths, numpy scalars and other values json cannot encode natively are
    written with ``str()``. The parent directory must exist.
    """
    path = Path(path)
    with _staged(path) as tmp:
        with open(tmp, "w") as fh:
            json.dump(data, fh, indent=indent, default=str)


def atomic_download(url: str, path: str | os.PathLike) -> Path:
    """Fetch *url* to *path*, reusing *path* if it is already there.

    The cache file only appears once the transfer has completed.
    """
    path = Path(path)
    if path.exists():
        logger.debug(f"Using cached {path}")
        return path

    logger.info(f"Downloading {url}")
    with _staged(path) as tmp:
        urllib.request.urlretrieve(url, tmp)
    logger.info(f"Downloaded to {path}")
    return path
