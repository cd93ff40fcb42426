from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Optional

from .paths import split_fragment


class Metadata(Mapping[str, list[str]]):
    """Package metadata: each key maps to every value declared for it, in order."""

    def __init__(self, values: Optional[Mapping[str, list[str]]] = None) -> None:
        self._values: dict[str, tuple[str, ...]] = {
            key: tuple(items) for key, items in (values or {}).items()
        }

    def __getitem__(self, key: str) -> list[str]:
        return list(self._values[key])

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        plain = {key: list(items) for key, items in self._values.items()}
        return f"Metadata({plain!r})"

    def first(self, key: str) -> Optional[str]:
        items = self._values.get(key)
        return items[0] if items else None


@dataclass(frozen=True)
class ManifestEntry:
    id: str
    href: str
    path: str
    media_type: str
    properties: frozenset[str] = frozenset()


@dataclass(frozen=True)
class SpineItem:
    idref: str
    linear: bool = True


@dataclass(frozen=True)
class NavPoint:
    label: str
    href: Optional[str]
    children: tuple["NavPoint", ...] = ()
    play_order: Optional[int] = None

    @property
    def path(self) -> Optional[str]:
        if self.href is None:
            return None
        return split_fragment(self.href)[0]

    @property
    def fragment(self) -> Optional[str]:
        if self.href is None:
            return None
        return split_fragment(self.href)[1]

    def walk(self) -> Iterator["NavPoint"]:
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(frozen=True)
class Package:
    path: str
    base_dir: str
    version: Optional[str]
    metadata: Metadata
    manifest: Mapping[str, ManifestEntry]
    spine: tuple[SpineItem, ...]
    unique_identifier: Optional[str] = None
    cover_id: Optional[str] = None
    toc_id: Optional[str] = None
    page_progression_direction: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.manifest, MappingProxyType):
            object.__setattr__(self, "manifest", MappingProxyType(dict(self.manifest)))

    def entry_for_path(self, member_path: str) -> Optional[ManifestEntry]:
        for entry in self.manifest.values():
            if entry.path == member_path:
                return entry
        return None
