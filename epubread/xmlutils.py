from __future__ import annotations

import io
from typing import Iterator, Optional

from lxml import etree as LXML_ET

from .errors import XmlError


def local_name(tag: object) -> str:
    if not tag or not isinstance(tag, str):
        return ""
    if "}" in tag:
        return tag.split("}", 1)[1]
    return tag


def attr(node: LXML_ET._Element, name: str) -> Optional[str]:
    value = node.attrib.get(name)
    if value is None:
        for key, candidate in node.attrib.items():
            if local_name(key) == name:
                value = candidate
                break
    if value is None:
        return None
    return str(value).strip()


def node_text(node: Optional[LXML_ET._Element]) -> str:
    if node is None:
        return ""
    return " ".join("".join(node.itertext()).split())


def iter_events(
    raw: bytes, member: str, events: tuple[str, ...] = ("end",)
) -> Iterator[tuple[str, LXML_ET._Element]]:
    context = LXML_ET.iterparse(
        io.BytesIO(raw),
        events=events,
        resolve_entities=False,
        no_network=True,
        remove_comments=True,
        remove_pis=True,
    )
    try:
        yield from context
    except LXML_ET.XMLSyntaxError as exc:
        raise XmlError(member, exc) from exc


def parse_tree(raw: bytes, member: str) -> LXML_ET._Element:
    parser = LXML_ET.XMLParser(resolve_entities=False, no_network=True)
    try:
        return LXML_ET.fromstring(raw, parser=parser)
    except LXML_ET.XMLSyntaxError as exc:
        raise XmlError(member, exc) from exc
