import unittest

from epub_fixtures import build_epub, chapter_html, minimal_files, nav_xhtml, package_opf, toc_ncx

from epubread.archive import EpubArchive
from epubread.errors import ParseError, XmlError
from epubread.models import NavPoint
from epubread.navigation import build_toc, find_ncx_entry, find_nav_entry, parse_nav_document, parse_ncx
from epubread.package import parse_package

NAV_ITEM = "<item id=\"nav\" href=\"nav.xhtml\" media-type=\"application/xhtml+xml\" properties=\"nav\"/>"
NCX_ITEM = "<item id=\"ncx\" href=\"toc.ncx\" media-type=\"application/x-dtbncx+xml\"/>"
C1_ITEM = "<item id=\"c1\" href=\"Text/ch1.xhtml\" media-type=\"application/xhtml+xml\"/>"

NAV_ITEMS = (
    "<li><a href=\"Text/ch1.xhtml\">Chapter\n   <em>One</em></a>"
    "<ol><li><a href=\"Text/ch1.xhtml#s1\">Section 1.1</a></li>"
    "<li><a href=\"Text/ch1.xhtml#s2\">Section 1.2</a>"
    "<ol><li><a href=\"Text/ch1.xhtml#s2a\">Deep</a></li></ol></li></ol></li>"
    "<li><span>Part Two</span><ol><li><a href=\"Text/chapter%202.xhtml\">Chapter 2</a></li></ol></li>"
    "<li><a href=\"https://example.com/more\">Online</a></li>"
)

NCX_POINTS = (
    "<navPoint id=\"p2\" playOrder=\"3\"><navLabel><text>Second</text></navLabel>"
    "<content src=\"Text/ch2.xhtml\"/></navPoint>"
    "<navPoint id=\"p1\" playOrder=\"1\"><navLabel><text>First</text></navLabel>"
    "<content src=\"Text/ch1.xhtml#top\"/>"
    "<navPoint id=\"p1a\" playOrder=\"2\"><navLabel><text> Nested  point </text></navLabel>"
    "<content src=\"Text/ch1.xhtml#n\"/></navPoint></navPoint>"
)


def _toc(manifest: str, extra: dict[str, str], spine_attrs: str = "") -> list[NavPoint]:
    files = minimal_files()
    files["OEBPS/content.opf"] = package_opf(manifest=manifest, spine_attrs=spine_attrs)
    files.update(extra)
    with EpubArchive.open(build_epub(files)) as archive:
        package = parse_package(archive, "OEBPS/content.opf")
        return build_toc(archive, package)


class NavDocumentTests(unittest.TestCase):
    def test_nested_tree(self) -> None:
        toc = parse_nav_document(nav_xhtml(NAV_ITEMS).encode("utf-8"), "OEBPS/nav.xhtml")
        assert toc is not None
        self.assertEqual([point.label for point in toc], ["Chapter One", "Part Two", "Online"])
        first = toc[0]
        self.assertEqual(first.href, "OEBPS/Text/ch1.xhtml")
        self.assertEqual([child.label for child in first.children], ["Section 1.1", "Section 1.2"])
        self.assertEqual(first.children[1].href, "OEBPS/Text/ch1.xhtml#s2")
        self.assertEqual(first.children[1].path, "OEBPS/Text/ch1.xhtml")
        self.assertEqual(first.children[1].fragment, "s2")
        self.assertEqual(first.children[1].children[0].label, "Deep")
        self.assertEqual([point.label for point in first.walk()], ["Chapter One", "Section 1.1", "Section 1.2", "Deep"])

    def test_heading_entry_and_external_link(self) -> None:
        toc = parse_nav_document(nav_xhtml(NAV_ITEMS).encode("utf-8"), "OEBPS/nav.xhtml")
        assert toc is not None
        part = toc[1]
        self.assertIsNone(part.href)
        self.assertIsNone(part.path)
        self.assertEqual(part.children[0].href, "OEBPS/Text/chapter 2.xhtml")
        self.assertEqual(toc[2].href, "https://example.com/more")

    def test_links_resolve_against_nav_directory(self) -> None:
        items = "<li><a href=\"../Text/ch1.xhtml\">One</a></li><li><a href=\"#local\">Here</a></li>"
        toc = parse_nav_document(nav_xhtml(items).encode("utf-8"), "OEBPS/Nav/nav.xhtml")
        assert toc is not None
        self.assertEqual(toc[0].href, "OEBPS/Text/ch1.xhtml")
        self.assertEqual(toc[1].href, "OEBPS/Nav/nav.xhtml#local")

    def test_first_nav_used_when_none_is_toc(self) -> None:
        raw = (
            "<html xmlns=\"http://www.w3.org/1999/xhtml\"><body>"
            "<nav><ol><li><a href=\"a.xhtml\">A</a></li></ol></nav></body></html>"
        ).encode("utf-8")
        toc = parse_nav_document(raw, "nav.xhtml")
        assert toc is not None
        self.assertEqual(toc[0].href, "a.xhtml")

    def test_document_without_nav(self) -> None:
        self.assertIsNone(parse_nav_document(chapter_html("x").encode("utf-8"), "nav.xhtml"))

    def test_escaping_link(self) -> None:
        items = "<li><a href=\"../../../etc/passwd\">Bad</a></li>"
        with self.assertRaises(ParseError):
            parse_nav_document(nav_xhtml(items).encode("utf-8"), "OEBPS/nav.xhtml")

    def test_malformed_nav(self) -> None:
        with self.assertRaises(XmlError):
            parse_nav_document(b"<html><nav><ol></nav></html>", "nav.xhtml")


class NcxTests(unittest.TestCase):
    def test_play_order_and_nesting(self) -> None:
        toc = parse_ncx(toc_ncx(NCX_POINTS).encode("utf-8"), "OEBPS/toc.ncx")
        assert toc is not None
        self.assertEqual([point.label for point in toc], ["First", "Second"])
        self.assertEqual([point.play_order for point in toc], [1, 3])
        self.assertEqual(toc[0].href, "OEBPS/Text/ch1.xhtml#top")
        self.assertEqual(toc[0].children[0].label, "Nested point")
        self.assertEqual(toc[1].href, "OEBPS/Text/ch2.xhtml")

    def test_document_order_without_play_order(self) -> None:
        points = (
            "<navPoint><navLabel><text>B</text></navLabel><content src=\"b.xhtml\"/></navPoint>"
            "<navPoint playOrder=\"1\"><navLabel><text>A</text></navLabel><content src=\"a.xhtml\"/></navPoint>"
        )
        toc = parse_ncx(toc_ncx(points).encode("utf-8"), "toc.ncx")
        assert toc is not None
        self.assertEqual([point.label for point in toc], ["B", "A"])

    def test_ncx_without_nav_map(self) -> None:
        raw = b"<ncx xmlns=\"http://www.daisy.org/z3986/2005/ncx/\"><head/></ncx>"
        self.assertIsNone(parse_ncx(raw, "toc.ncx"))


class BuildTocTests(unittest.TestCase):
    def test_prefers_nav_document(self) -> None:
        toc = _toc(
            C1_ITEM + NAV_ITEM + NCX_ITEM,
            {"OEBPS/nav.xhtml": nav_xhtml(NAV_ITEMS), "OEBPS/toc.ncx": toc_ncx(NCX_POINTS)},
            spine_attrs=" toc=\"ncx\"",
        )
        self.assertEqual(toc[0].label, "Chapter One")

    def test_falls_back_to_ncx(self) -> None:
        toc = _toc(C1_ITEM + NCX_ITEM, {"OEBPS/toc.ncx": toc_ncx(NCX_POINTS)}, spine_attrs=" toc=\"ncx\"")
        self.assertEqual([point.label for point in toc], ["First", "Second"])

    def test_ncx_found_by_media_type(self) -> None:
        toc = _toc(C1_ITEM + NCX_ITEM, {"OEBPS/toc.ncx": toc_ncx(NCX_POINTS)})
        self.assertEqual(toc[0].label, "First")

    def test_nav_missing_from_archive_uses_ncx(self) -> None:
        with self.assertLogs("epubread.navigation", level="WARNING"):
            toc = _toc(C1_ITEM + NAV_ITEM + NCX_ITEM, {"OEBPS/toc.ncx": toc_ncx(NCX_POINTS)})
        self.assertEqual(toc[0].label, "First")

    def test_no_navigation_resource(self) -> None:
        self.assertEqual(_toc(C1_ITEM, {}), [])

    def test_find_entries(self) -> None:
        files = minimal_files()
        files["OEBPS/content.opf"] = package_opf(manifest=C1_ITEM + NAV_ITEM + NCX_ITEM)
        with EpubArchive.open(build_epub(files)) as archive:
            package = parse_package(archive, "OEBPS/content.opf")
        nav = find_nav_entry(package)
        ncx = find_ncx_entry(package)
        assert nav is not None and ncx is not None
        self.assertEqual(nav.id, "nav")
        self.assertEqual(ncx.path, "OEBPS/toc.ncx")


if __name__ == "__main__":
    unittest.main()
