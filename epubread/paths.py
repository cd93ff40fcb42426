from __future__ import annotations

import posixpath
import re
from typing import Optional
from urllib.parse import unquote

from .errors import InvalidPath

URL_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]+:")


def canonical_member(name: str) -> str:
    """Index key for a raw ZIP member name.

    Archive member names are taken as they are stored, so a leading ``../``
    written by a broken packer is dropped instead of rejected.
    """
    normalized = posixpath.normpath((name or "").replace("\\", "/")).lstrip("/")
    while normalized.startswith("../"):
        normalized = normalized[3:]
    return "" if normalized in {"", ".", ".."} else normalized


def split_fragment(href: str) -> tuple[str, Optional[str]]:
    raw = (href or "").strip()
    if "#" not in raw:
        return raw, None
    path, fragment = raw.split("#", 1)
    return path, fragment


def is_external(href: str) -> bool:
    return bool(URL_SCHEME_RE.match((href or "").strip()))


def dirname(path: str) -> str:
    parent = posixpath.dirname((path or "").replace("\\", "/").strip("/"))
    return "" if parent in {"", "."} else parent


def _collapse(segments: list[str], href: str, base_dir: str) -> str:
    stack: list[str] = []
    for segment in segments:
        if segment in {"", "."}:
            continue
        if segment == "..":
            if not stack:
                raise InvalidPath(href, base_dir)
            stack.pop()
            continue
        stack.append(segment)
    return "/".join(stack)


def resolve(base_dir: str, raw_href: str) -> str:
    """Resolve an href found inside the publication to an archive path.

    The fragment is dropped, the rest percent-decoded and joined with
    ``base_dir`` unless it starts with ``/``. ``..`` may not climb above the
    archive root.
    """
    path, _ = split_fragment(raw_href)
    decoded = unquote(path.replace("\\", "/"))
    base = (base_dir or "").replace("\\", "/")
    if decoded.startswith("/"):
        segments = decoded.split("/")
    else:
        segments = base.split("/") + decoded.split("/")
    return _collapse(segments, raw_href, base_dir)


def resolve_target(base_dir: str, raw_href: str) -> tuple[str, Optional[str]]:
    _, fragment = split_fragment(raw_href)
    return resolve(base_dir, raw_href), fragment or None
