# -*- coding: utf-8 -*-

"""
Storage side of the document grid: recursive listing, root containment and
content types. Everything that touches the filesystem lives here.
"""

from __future__ import annotations
import logging
import os
from pathlib import Path
from typing import Iterable, List

from docgrid import ListingUnavailable

logger = logging.getLogger(__name__)

# ---------- Content types ----------
_EXT_MIME = {
    "txt": "text/plain",
    "csv": "text/csv",
    "pdf": "application/pdf",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "bmp": "image/bmp",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


class AccessDenied(Exception):
    """Requested path resolves outside every configured root."""


class UnsupportedFileType(Exception):
    """The viewer has no renderer for this extension."""


def mime_of(path: str | Path) -> str:
    ext = Path(path).suffix[1:].lower()
    return _EXT_MIME.get(ext, "application/octet-stream")


# ---------- Listing ----------
def list_files(root: str | Path) -> List[str]:
    """Absolute paths of every file under root, recursively.

    Directory entries are visited in sorted order so two scans of an unchanged
    folder return the same listing. Raises ListingUnavailable if root cannot be
    read.
    """
    root = Path(root)
    if not root.is_dir():
        raise ListingUnavailable(f"Not a readable folder: {root}")

    def fail(err: OSError):
        raise err

    out: List[str] = []
    try:
        for dirpath, dirnames, filenames in os.walk(root, onerror=fail):
            dirnames.sort()
            for name in sorted(filenames):
                out.append(str(Path(dirpath, name).absolute()))
    except OSError as e:
        raise ListingUnavailable(f"Failed to read folder {root}: {e}") from e
    return out


# ---------- Containment ----------
def resolve_within(path: str, roots: Iterable[str | Path]) -> Path:
    """Resolve path and make sure it lives under one of roots.

    Raises AccessDenied when it escapes them (.. segments, symlinks) and
    FileNotFoundError when it is inside but absent.
    """
    target = Path(path).resolve()
    for root in roots:
        base = Path(root).resolve()
        if target == base or base in target.parents:
            if not target.is_file():
                raise FileNotFoundError(str(target))
            return target
    logger.warning("Access denied outside configured roots: %s", path)
    raise AccessDenied(path)
