from __future__ import annotations

import logging
from typing import Optional

from .archive import CONTAINER_PATH, EpubArchive
from .errors import InvalidPath, MissingContainer, NoRootfile, ResourceNotFound
from .paths import resolve
from .xmlutils import attr, iter_events, local_name

logger = logging.getLogger("epubread.container")

OEBPS_MEDIA_TYPE = "application/oebps-package+xml"


def locate(archive: EpubArchive) -> str:
    """Return the archive path of the package document named by container.xml."""
    try:
        raw = archive.container_file()
    except ResourceNotFound as exc:
        raise MissingContainer(f"Missing {CONTAINER_PATH}") from exc

    untyped: Optional[str] = None
    for _, node in iter_events(raw, CONTAINER_PATH):
        if local_name(node.tag) != "rootfile":
            continue
        full_path = attr(node, "full-path") or ""
        media_type = attr(node, "media-type")
        node.clear()
        if not full_path:
            continue
        if media_type is None:
            if untyped is None:
                untyped = full_path
            continue
        if media_type.lower() == OEBPS_MEDIA_TYPE:
            return _archive_path(full_path)

    if untyped is not None:
        logger.debug("Using rootfile without media-type: %s", untyped)
        return _archive_path(untyped)
    raise NoRootfile(f"No {OEBPS_MEDIA_TYPE} rootfile in {CONTAINER_PATH}")


def _archive_path(full_path: str) -> str:
    try:
        package_path = resolve("", full_path)
    except InvalidPath as exc:
        raise NoRootfile(f"Rootfile path escapes the archive: {full_path!r}") from exc
    if not package_path:
        raise NoRootfile(f"Empty rootfile path in {CONTAINER_PATH}")
    logger.debug("Package document at %s", package_path)
    return package_path
