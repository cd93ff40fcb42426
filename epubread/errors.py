from __future__ import annotations

from typing import Optional


class EpubError(Exception):
    pass


class ArchiveCorrupt(EpubError):
    pass


class ResourceNotFound(EpubError, LookupError):
    def __init__(self, target: str, kind: str = "path") -> None:
        super().__init__(f"No resource for {kind} {target!r}")
        self.target = target
        self.kind = kind


class StructuralError(EpubError):
    pass


class MissingContainer(StructuralError):
    pass


class NoRootfile(StructuralError):
    pass


class ParseError(EpubError):
    pass


class XmlError(ParseError):
    def __init__(self, member: str, detail: object) -> None:
        super().__init__(f"Malformed XML in {member}: {detail}")
        self.member = member


class DuplicateId(ParseError):
    def __init__(self, item_id: str) -> None:
        super().__init__(f"Duplicate manifest id {item_id!r}")
        self.item_id = item_id


class DanglingReference(ParseError):
    def __init__(self, idref: str, where: str = "spine") -> None:
        super().__init__(f"{where} references unknown manifest id {idref!r}")
        self.idref = idref


class InvalidPath(EpubError, ValueError):
    def __init__(self, href: str, base_dir: Optional[str] = None) -> None:
        base = f" (base {base_dir!r})" if base_dir else ""
        super().__init__(f"Path escapes archive root: {href!r}{base}")
        self.href = href
        self.base_dir = base_dir


class OutOfBounds(EpubError, IndexError):
    def __init__(self, position: int, length: int) -> None:
        super().__init__(f"Spine position {position} out of range [0, {length})")
        self.position = position
        self.length = length
