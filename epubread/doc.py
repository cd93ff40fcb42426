from __future__ import annotations

import logging
from typing import Mapping, Optional

from lxml import etree as LXML_ET

from .archive import ArchiveSource, EpubArchive
from .container import locate
from .errors import InvalidPath, OutOfBounds, ParseError, ResourceNotFound
from .models import ManifestEntry, Metadata, NavPoint, Package, SpineItem
from .navigation import build_toc
from .package import parse_package
from .paths import dirname, is_external, resolve, split_fragment
from .xmlutils import local_name, parse_tree

logger = logging.getLogger("epubread.doc")

EPUB_URI_SCHEME = "epub://"
# (element, attribute) pairs whose values point at other resources
URI_ATTRIBUTES = {("link", "href"), ("a", "href"), ("img", "src"), ("image", "href")}


class EpubDoc:
    """An opened publication with a reading cursor over its spine."""

    def __init__(self, archive: EpubArchive, package: Package, toc: list[NavPoint]) -> None:
        self._archive = archive
        self._package = package
        self._toc = tuple(toc)
        self._position = 0
        self._extra_css: list[str] = []

    @classmethod
    def open(cls, source: ArchiveSource) -> "EpubDoc":
        return open_epub(source)

    def __enter__(self) -> "EpubDoc":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._archive.close()

    # --- parsed structures ---

    @property
    def package(self) -> Package:
        return self._package

    @property
    def metadata(self) -> Metadata:
        return self._package.metadata

    @property
    def manifest(self) -> Mapping[str, ManifestEntry]:
        return self._package.manifest

    @property
    def spine(self) -> tuple[SpineItem, ...]:
        return self._package.spine

    @property
    def table_of_contents(self) -> tuple[NavPoint, ...]:
        return self._toc

    @property
    def archive(self) -> EpubArchive:
        return self._archive

    def mdata(self, name: str) -> Optional[str]:
        return self._package.metadata.first(name)

    @property
    def unique_identifier(self) -> Optional[str]:
        return self._package.unique_identifier

    @property
    def release_identifier(self) -> Optional[str]:
        modified = self.mdata("dcterms:modified")
        if not self.unique_identifier or not modified:
            return None
        return f"{self.unique_identifier}@{modified}"

    @property
    def page_progression_direction(self) -> Optional[str]:
        return self._package.page_progression_direction

    @property
    def cover_id(self) -> Optional[str]:
        return self._package.cover_id

    def cover(self) -> Optional[tuple[bytes, str]]:
        cover_id = self.cover_id
        if not cover_id or cover_id not in self.manifest:
            return None
        entry = self.manifest[cover_id]
        try:
            return self._archive.read(entry.path), entry.media_type
        except ResourceNotFound:
            logger.warning("Cover %s is declared but missing from the archive", entry.path)
            return None

    # --- resources ---

    def _entry(self, item_id: str) -> ManifestEntry:
        entry = self.manifest.get(item_id)
        if entry is None:
            raise ResourceNotFound(item_id, kind="id")
        return entry

    def resource_by_id(self, item_id: str) -> bytes:
        return self._archive.read(self._entry(item_id).path)

    def resource_mime(self, item_id: str) -> str:
        return self._entry(item_id).media_type

    def resource_str(self, item_id: str, encoding: str = "utf-8") -> str:
        return self._archive.read_text(self._entry(item_id).path, encoding=encoding)

    def resource_by_path(self, member_path: str) -> bytes:
        """Read a resource addressed from the archive root, e.g. ``OEBPS/Images/cover.png``."""
        return self._archive.read(resolve("", member_path))

    def resource_str_by_path(self, member_path: str, encoding: str = "utf-8") -> str:
        return self._archive.read_text(resolve("", member_path), encoding=encoding)

    def resource_mime_by_path(self, member_path: str) -> Optional[str]:
        entry = self._package.entry_for_path(resolve("", member_path))
        return entry.media_type if entry is not None else None

    # --- spine cursor ---

    @property
    def position(self) -> int:
        return self._position

    def spine_len(self) -> int:
        return len(self._package.spine)

    def set_position(self, position: int) -> int:
        if position < 0 or position >= self.spine_len():
            raise OutOfBounds(position, self.spine_len())
        self._position = position
        return position

    def next(self) -> int:
        return self.set_position(self._position + 1)

    def prev(self) -> int:
        return self.set_position(self._position - 1)

    @property
    def current_id(self) -> str:
        if not self._package.spine:
            raise OutOfBounds(self._position, 0)
        return self._package.spine[self._position].idref

    @property
    def current_entry(self) -> ManifestEntry:
        return self._entry(self.current_id)

    @property
    def current_path(self) -> str:
        return self.current_entry.path

    @property
    def current_mime(self) -> str:
        return self.current_entry.media_type

    def current_resource(self) -> tuple[ManifestEntry, bytes]:
        entry = self.current_entry
        return entry, self._archive.read(entry.path)

    def current_str(self, encoding: str = "utf-8") -> tuple[ManifestEntry, str]:
        entry = self.current_entry
        return entry, self._archive.read_text(entry.path, encoding=encoding)

    def position_of_id(self, item_id: str) -> Optional[int]:
        for index, item in enumerate(self._package.spine):
            if item.idref == item_id:
                return index
        return None

    def position_of_path(self, member_path: str) -> Optional[int]:
        """Spine position of a resource path; a TOC href with a fragment is accepted."""
        path, _ = split_fragment(member_path)
        entry = self._package.entry_for_path(resolve("", path))
        if entry is None:
            return None
        return self.position_of_id(entry.id)

    # --- content with epub:// links ---

    def add_extra_css(self, css: str) -> None:
        self._extra_css.append(css)

    def _epub_uri(self, base_dir: str, value: str) -> str:
        raw_path, fragment = split_fragment(value)
        if is_external(value) or not raw_path:
            return value
        try:
            target = resolve(base_dir, raw_path)
        except InvalidPath:
            return value
        suffix = f"#{fragment}" if fragment is not None else ""
        return f"{EPUB_URI_SCHEME}{target}{suffix}"

    def current_with_epub_uris(self) -> bytes:
        """Current spine document with resource links rewritten to ``epub://`` URIs.

        Links become absolute archive paths so a renderer can request them back
        through :meth:`resource_by_path`. Extra CSS registered with
        :meth:`add_extra_css` is appended to ``<head>``.
        """
        entry, content = self.current_resource()
        root = parse_tree(content, entry.path)
        base_dir = dirname(entry.path)
        head = None
        for node in root.iter(LXML_ET.Element):
            name = local_name(node.tag)
            if name == "head" and head is None:
                head = node
            for key, value in list(node.attrib.items()):
                if (name, local_name(key)) in URI_ATTRIBUTES:
                    node.set(key, self._epub_uri(base_dir, value))
        if self._extra_css:
            if head is None:
                raise ParseError(f"{entry.path} has no <head> to receive extra CSS")
            namespace = root.nsmap.get(None)
            style_tag = f"{{{namespace}}}style" if namespace else "style"
            for css in self._extra_css:
                style = LXML_ET.SubElement(head, style_tag)
                style.text = css
        # the whole tree, so the DOCTYPE survives
        return LXML_ET.tostring(root.getroottree(), xml_declaration=True, encoding="utf-8")


def open_epub(source: ArchiveSource) -> EpubDoc:
    """Open and fully parse a publication.

    Every structural problem is raised here; the returned document never
    holds partially parsed state.
    """
    archive = EpubArchive.open(source)
    try:
        package_path = locate(archive)
        package = parse_package(archive, package_path)
        toc = build_toc(archive, package)
    except Exception:
        archive.close()
        raise
    return EpubDoc(archive, package, toc)
