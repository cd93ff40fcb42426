from __future__ import annotations

import logging
from typing import Optional

from lxml import etree as LXML_ET

from .archive import EpubArchive
from .errors import DanglingReference, DuplicateId, InvalidPath, NoRootfile, ParseError, ResourceNotFound
from .models import ManifestEntry, Metadata, Package, SpineItem
from .paths import dirname, resolve
from .xmlutils import attr, iter_events, local_name, node_text

logger = logging.getLogger("epubread.package")

NCX_MEDIA_TYPE = "application/x-dtbncx+xml"
METADATA_PARENTS = frozenset({"metadata", "dc-metadata", "x-metadata"})
REQUIRED_SECTIONS = ("metadata", "manifest", "spine")


class _PackageBuilder:
    def __init__(self, package_path: str) -> None:
        self.package_path = package_path
        self.base_dir = dirname(package_path)
        self.version: Optional[str] = None
        self.unique_identifier_ref: Optional[str] = None
        self.unique_identifier: Optional[str] = None
        self.metadata: dict[str, list[str]] = {}
        self.manifest: dict[str, ManifestEntry] = {}
        self.spine: list[SpineItem] = []
        self.meta_cover_id: Optional[str] = None
        self.manifest_cover_id: Optional[str] = None
        self.toc_id: Optional[str] = None
        self.page_progression_direction: Optional[str] = None
        self.sections: set[str] = set()

    def start_package(self, node: LXML_ET._Element) -> None:
        if local_name(node.tag) != "package":
            raise ParseError(f"{self.package_path} root element is <{local_name(node.tag)}>, expected <package>")
        self.version = attr(node, "version") or None
        self.unique_identifier_ref = attr(node, "unique-identifier") or None

    def add_metadata(self, node: LXML_ET._Element) -> None:
        name = local_name(node.tag)
        if not name or name in METADATA_PARENTS:
            return
        if name == "meta":
            key = attr(node, "name")
            content = attr(node, "content")
            if key and content is not None:
                if key == "cover":
                    self.meta_cover_id = content
                self.metadata.setdefault(key, []).append(content)
                return
            prop = attr(node, "property")
            if prop:
                self.metadata.setdefault(prop, []).append(node_text(node))
            return
        value = node_text(node)
        if not value:
            # <link> and other empty elements carry nothing to report
            return
        if (
            name == "identifier"
            and self.unique_identifier is None
            and self.unique_identifier_ref
            and attr(node, "id") == self.unique_identifier_ref
        ):
            self.unique_identifier = value
        # Dublin Core and custom elements alike are keyed by local name
        self.metadata.setdefault(name, []).append(value)

    def add_item(self, node: LXML_ET._Element) -> None:
        item_id = attr(node, "id")
        href = attr(node, "href")
        if not item_id or not href:
            logger.warning("Skipping manifest item without id/href in %s (id=%r)", self.package_path, item_id)
            return
        if item_id in self.manifest:
            raise DuplicateId(item_id)
        try:
            member_path = resolve(self.base_dir, href)
        except InvalidPath as exc:
            raise ParseError(f"Manifest item {item_id!r} href escapes the archive: {href!r}") from exc
        properties = frozenset((attr(node, "properties") or "").split())
        if self.manifest_cover_id is None and "cover-image" in properties:
            self.manifest_cover_id = item_id
        self.manifest[item_id] = ManifestEntry(
            id=item_id,
            href=href,
            path=member_path,
            media_type=(attr(node, "media-type") or "").lower(),
            properties=properties,
        )

    def add_itemref(self, node: LXML_ET._Element) -> None:
        linear_attr = attr(node, "linear")
        linear = linear_attr is None or linear_attr.lower() == "yes"
        self.spine.append(SpineItem(idref=attr(node, "idref") or "", linear=linear))

    def end_spine(self, node: LXML_ET._Element) -> None:
        self.toc_id = attr(node, "toc") or None
        self.page_progression_direction = attr(node, "page-progression-direction") or None

    def build(self) -> Package:
        for section in REQUIRED_SECTIONS:
            if section not in self.sections:
                raise ParseError(f"{self.package_path} has no <{section}> element")
        for item in self.spine:
            if item.idref not in self.manifest:
                raise DanglingReference(item.idref)
        if self.toc_id is not None and self.toc_id not in self.manifest:
            logger.warning("Spine toc %r names no manifest item in %s", self.toc_id, self.package_path)
            self.toc_id = None
        return Package(
            path=self.package_path,
            base_dir=self.base_dir,
            version=self.version,
            metadata=Metadata(self.metadata),
            manifest=self.manifest,
            spine=tuple(self.spine),
            unique_identifier=self.unique_identifier,
            cover_id=self.meta_cover_id or self.manifest_cover_id,
            toc_id=self.toc_id,
            page_progression_direction=self.page_progression_direction,
        )


def parse_package(archive: EpubArchive, package_path: str) -> Package:
    """Parse the OPF package document into metadata, manifest and spine.

    The whole document is rejected on malformed XML, duplicate manifest ids
    or spine references that do not resolve.
    """
    try:
        raw = archive.read(package_path)
    except ResourceNotFound as exc:
        raise NoRootfile(f"Rootfile {package_path!r} is not in the archive") from exc

    builder = _PackageBuilder(package_path)
    root_seen = False
    for event, node in iter_events(raw, package_path, ("start", "end")):
        if event == "start":
            if not root_seen:
                builder.start_package(node)
                root_seen = True
            continue
        name = local_name(node.tag)
        parent = node.getparent()
        parent_name = local_name(parent.tag) if parent is not None else ""
        if parent_name in METADATA_PARENTS:
            builder.add_metadata(node)
        elif parent_name == "manifest" and name == "item":
            builder.add_item(node)
        elif parent_name == "spine" and name == "itemref":
            builder.add_itemref(node)
        else:
            if name == "spine":
                builder.end_spine(node)
            if name in REQUIRED_SECTIONS:
                builder.sections.add(name)
            continue
        node.clear()

    package = builder.build()
    missing = [entry.path for entry in package.manifest.values() if not archive.contains(entry.path)]
    if missing:
        logger.warning("%d manifest entries are not in the archive: %s", len(missing), ", ".join(missing[:5]))
    logger.debug(
        "Parsed %s: %d metadata keys, %d manifest items, %d spine items",
        package_path,
        len(package.metadata),
        len(package.manifest),
        len(package.spine),
    )
    return package
