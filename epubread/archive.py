from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import IO, Optional, Union
import zipfile
import zlib

from .errors import ArchiveCorrupt, ParseError, ResourceNotFound
from .paths import canonical_member, resolve

logger = logging.getLogger("epubread.archive")

CONTAINER_PATH = "META-INF/container.xml"

ArchiveSource = Union[str, Path, bytes, bytearray, memoryview, IO[bytes]]

_READ_ERRORS = (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError)


class EpubArchive:
    """ZIP container with lookups by normalized member path."""

    def __init__(self, zf: zipfile.ZipFile, path: Optional[Path] = None) -> None:
        self._zip = zf
        self.path = path
        self.files: list[str] = [info.filename for info in zf.infolist() if not info.is_dir()]
        self._index: dict[str, str] = {}
        self._folded: dict[str, str] = {}
        for name in self.files:
            canonical = canonical_member(name)
            if not canonical:
                continue
            if canonical in self._index:
                logger.warning("Ignoring duplicate archive member %r (normalizes to %r)", name, canonical)
                continue
            self._index[canonical] = name
            self._folded.setdefault(canonical.casefold(), name)

    @classmethod
    def open(cls, source: ArchiveSource) -> "EpubArchive":
        path: Optional[Path] = None
        if isinstance(source, (str, Path)):
            path = Path(source)
            handle: Union[Path, IO[bytes]] = path
        elif isinstance(source, (bytes, bytearray, memoryview)):
            handle = io.BytesIO(bytes(source))
        else:
            handle = source
        try:
            zf = zipfile.ZipFile(handle, "r")
        except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError) as exc:
            raise ArchiveCorrupt(f"Cannot read ZIP container {path or '<buffer>'}: {exc}") from exc
        archive = cls(zf, path)
        logger.debug("Opened %s with %d members", path or "<buffer>", len(archive.files))
        return archive

    def __enter__(self) -> "EpubArchive":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._zip.close()

    def _locate(self, member_path: str) -> Optional[str]:
        raw = (member_path or "").replace("\\", "/")
        # lookups may not climb out of the archive; only stored names are clamped
        decoded = resolve("", raw)
        for candidate in (decoded, canonical_member(raw)):
            if candidate and candidate in self._index:
                return self._index[candidate]
        if not decoded:
            return None
        return self._folded.get(decoded.casefold())

    def contains(self, member_path: str) -> bool:
        return self._locate(member_path) is not None

    def read(self, member_path: str) -> bytes:
        actual = self._locate(member_path)
        if actual is None:
            raise ResourceNotFound(member_path)
        try:
            return self._zip.read(actual)
        except _READ_ERRORS as exc:
            raise ArchiveCorrupt(f"Cannot decompress {actual!r}: {exc}") from exc

    def read_text(self, member_path: str, encoding: str = "utf-8") -> str:
        payload = self.read(member_path)
        try:
            return payload.decode(encoding)
        except UnicodeDecodeError as exc:
            raise ParseError(f"{member_path!r} is not valid {encoding}: {exc}") from exc

    def container_file(self) -> bytes:
        return self.read(CONTAINER_PATH)
