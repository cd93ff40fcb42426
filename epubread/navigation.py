from __future__ import annotations

import logging
from typing import Callable, Optional

from lxml import etree as LXML_ET

from .archive import EpubArchive
from .errors import InvalidPath, ParseError, ResourceNotFound
from .models import ManifestEntry, NavPoint, Package
from .package import NCX_MEDIA_TYPE
from .paths import dirname, is_external, resolve_target, split_fragment
from .xmlutils import attr, iter_events, local_name, node_text

logger = logging.getLogger("epubread.navigation")


def find_nav_entry(package: Package) -> Optional[ManifestEntry]:
    for entry in package.manifest.values():
        if "nav" in entry.properties:
            return entry
    return None


def find_ncx_entry(package: Package) -> Optional[ManifestEntry]:
    if package.toc_id:
        entry = package.manifest.get(package.toc_id)
        if entry is not None:
            return entry
    for entry in package.manifest.values():
        if entry.media_type == NCX_MEDIA_TYPE:
            return entry
    return None


def _link_target(base_dir: str, member: str, raw: str) -> str:
    if is_external(raw):
        return raw
    raw_path, _ = split_fragment(raw)
    try:
        path, fragment = resolve_target(base_dir, raw)
    except InvalidPath as exc:
        raise ParseError(f"{member}: link {raw!r} escapes the archive") from exc
    if not raw_path:
        path = member
    return f"{path}#{fragment}" if fragment else path


def _first_child(node: LXML_ET._Element, name: str) -> Optional[LXML_ET._Element]:
    for child in node:
        if local_name(child.tag) == name:
            return child
    return None


# --- EPUB 3 navigation document ---


def _is_toc_nav(node: LXML_ET._Element) -> bool:
    nav_type = attr(node, "type") or ""
    return "toc" in nav_type.lower().split()


def _nav_list(ol: LXML_ET._Element, base_dir: str, member: str) -> list[NavPoint]:
    points: list[NavPoint] = []
    for li in ol:
        if local_name(li.tag) != "li":
            continue
        label_node: Optional[LXML_ET._Element] = None
        child_list: Optional[LXML_ET._Element] = None
        for child in li:
            name = local_name(child.tag)
            if name in {"a", "span"} and label_node is None:
                label_node = child
            elif name == "ol" and child_list is None:
                child_list = child
        href = None
        if label_node is not None and local_name(label_node.tag) == "a":
            raw = attr(label_node, "href")
            if raw:
                href = _link_target(base_dir, member, raw)
        label = node_text(label_node)
        if not label and label_node is not None:
            label = attr(label_node, "title") or ""
        children = tuple(_nav_list(child_list, base_dir, member)) if child_list is not None else ()
        points.append(NavPoint(label=label, href=href, children=children))
    return points


def parse_nav_document(raw: bytes, member: str) -> Optional[list[NavPoint]]:
    """Table of contents from an XHTML nav document, or None when it has no <nav>."""
    fallback: Optional[LXML_ET._Element] = None
    chosen: Optional[LXML_ET._Element] = None
    for _, node in iter_events(raw, member):
        if local_name(node.tag) != "nav":
            continue
        if _is_toc_nav(node):
            chosen = node
            break
        if fallback is None:
            fallback = node
    chosen = chosen if chosen is not None else fallback
    if chosen is None:
        return None
    top = _first_child(chosen, "ol")
    if top is None:
        top = next((node for node in chosen.iter() if local_name(node.tag) == "ol"), None)
    if top is None:
        return []
    return _nav_list(top, dirname(member), member)


# --- EPUB 2 NCX ---


def _play_order(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _ncx_points(parent: LXML_ET._Element, base_dir: str, member: str) -> list[NavPoint]:
    points: list[NavPoint] = []
    for node in parent:
        if local_name(node.tag) != "navPoint":
            continue
        label = ""
        src: Optional[str] = None
        for child in node:
            name = local_name(child.tag)
            if name == "navLabel" and not label:
                label = node_text(_first_child(child, "text"))
            elif name == "content" and src is None:
                src = attr(child, "src")
        points.append(
            NavPoint(
                label=label,
                href=_link_target(base_dir, member, src) if src else None,
                children=tuple(_ncx_points(node, base_dir, member)),
                play_order=_play_order(attr(node, "playOrder")),
            )
        )
    if points and all(point.play_order is not None for point in points):
        points.sort(key=lambda point: point.play_order)
    return points


def parse_ncx(raw: bytes, member: str) -> Optional[list[NavPoint]]:
    for _, node in iter_events(raw, member):
        if local_name(node.tag) == "navMap":
            return _ncx_points(node, dirname(member), member)
    return None


def build_toc(archive: EpubArchive, package: Package) -> list[NavPoint]:
    """Build the table of contents, preferring the EPUB 3 nav document over the NCX.

    A publication without any usable navigation resource has an empty table
    of contents.
    """
    sources: list[tuple[Optional[ManifestEntry], Callable[[bytes, str], Optional[list[NavPoint]]]]] = [
        (find_nav_entry(package), parse_nav_document),
        (find_ncx_entry(package), parse_ncx),
    ]
    for entry, parser in sources:
        if entry is None:
            continue
        try:
            raw = archive.read(entry.path)
        except ResourceNotFound:
            logger.warning("Navigation resource %s is declared but missing from the archive", entry.path)
            continue
        toc = parser(raw, entry.path)
        if toc is None:
            logger.debug("%s holds no table of contents", entry.path)
            continue
        logger.debug("Table of contents from %s (%d top-level entries)", entry.path, len(toc))
        return toc
    return []
