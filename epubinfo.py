#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

from epubread.doc import open_epub
from epubread.errors import EpubError
from epubread.models import NavPoint


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Show metadata, reading order and table of contents of an EPUB file."
    )
    parser.add_argument("input", help="Input EPUB file path")
    parser.add_argument("--toc", action="store_true", help="Print the table of contents")
    parser.add_argument("--spine", action="store_true", help="Print the spine in reading order")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def _print_toc(points: Iterable[NavPoint], depth: int = 0) -> None:
    for point in points:
        target = f"  -> {point.href}" if point.href else ""
        print(f"{'  ' * depth}- {point.label}{target}")
        _print_toc(point.children, depth + 1)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Input file not found: {input_path}", file=sys.stderr)
        return 1

    try:
        doc = open_epub(input_path)
    except EpubError as exc:
        print(f"Cannot open {input_path}: {exc}", file=sys.stderr)
        return 1

    with doc:
        print(f"Title: {doc.mdata('title') or '-'}")
        creators = doc.metadata.get("creator", [])
        print(f"Creators: {', '.join(creators) if creators else '-'}")
        print(f"Language: {doc.mdata('language') or '-'}")
        print(f"Spine items: {doc.spine_len()}")
        if args.spine:
            for index, item in enumerate(doc.spine):
                entry = doc.manifest[item.idref]
                flag = "" if item.linear else " (non-linear)"
                print(f"  {index:>3} {entry.path}{flag}")
        if args.toc:
            print("Table of contents:")
            _print_toc(doc.table_of_contents, 1)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
