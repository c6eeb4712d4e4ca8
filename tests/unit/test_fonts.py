#!/usr/bin/env python3
"""Unit tests for the font catalog in laskugen.fonts.

Covers:
- get_font_paths: configured paths first, duplicates removed
- scan_font_book: stable slot order, unreadable files skipped
- FontSlot: decode once, failures memoized as None
"""

import os
import pathlib
import sys
import tempfile
import threading
import unittest

from fontTools.fontBuilder import FontBuilder
from fontTools.pens.ttGlyphPen import TTGlyphPen

PROJECT_ROOT = os.path.join(os.path.dirname(__file__), '..', '..')
sys.path.insert(0, os.path.join(PROJECT_ROOT, 'src'))

from laskugen.fonts import FontSlot, _format_size, get_font_paths, scan_font_book  # noqa: E402
from laskugen.generation.world import AssetCache, SandboxWorld  # noqa: E402


def make_font(path, family):
    """Write a minimal two-glyph TrueType font."""
    pen = TTGlyphPen(None)
    pen.moveTo((0, 0))
    pen.lineTo((0, 500))
    pen.lineTo((500, 500))
    pen.lineTo((500, 0))
    pen.closePath()
    glyph = pen.glyph()

    fb = FontBuilder(1000, isTTF=True)
    fb.setupGlyphOrder(['.notdef', 'A'])
    fb.setupCharacterMap({65: 'A'})
    fb.setupGlyf({'.notdef': glyph, 'A': glyph})
    fb.setupHorizontalMetrics({'.notdef': (500, 0), 'A': (500, 0)})
    fb.setupHorizontalHeader(ascent=800, descent=-200)
    fb.setupNameTable({'familyName': family, 'styleName': 'Regular'})
    fb.setupOS2()
    fb.setupPost()
    fb.save(str(path))


class TestFontPaths(unittest.TestCase):
    def test_configured_first_and_unique(self):
        paths = get_font_paths(['/x/fonts', '/y/fonts', '/x/fonts', ''])
        self.assertEqual(paths[:2], ['/x/fonts', '/y/fonts'])
        self.assertEqual(len(paths), len(set(paths)))

    def test_format_size(self):
        self.assertEqual(_format_size(512), '512B')
        self.assertEqual(_format_size(2048), '2.0KB')
        self.assertEqual(_format_size(3 * 1024 * 1024), '3.0MB')


class TestFontBook(unittest.TestCase):
    def setUp(self):
        self._td = tempfile.TemporaryDirectory()
        self.dir = pathlib.Path(self._td.name)

    def tearDown(self):
        self._td.cleanup()

    def test_empty_directory(self):
        book = scan_font_book([str(self.dir), str(self.dir / 'missing')])
        self.assertEqual(len(book), 0)
        self.assertEqual(book.directories, [str(self.dir)])
        self.assertIsNone(book.slot(0))

    def test_scan_and_decode(self):
        make_font(self.dir / 'b.ttf', 'Testi Sans')
        (self.dir / 'sub').mkdir()
        make_font(self.dir / 'sub' / 'a.ttf', 'Testi Serif')
        (self.dir / 'readme.txt').write_text('not a font')
        book = scan_font_book([str(self.dir)])
        self.assertEqual(len(book), 2)
        self.assertEqual([i.family for i in book.infos()], ['Testi Sans', 'Testi Serif'])
        self.assertEqual(book.families(), ['Testi Sans', 'Testi Serif'])

        slot = book.slot(0)
        self.assertFalse(slot.loaded)
        font = slot.get()
        self.assertTrue(slot.loaded)
        self.assertEqual(font.family, 'Testi Sans')
        self.assertEqual(font.glyph_count, 2)
        self.assertIs(slot.get(), font)

    def test_unreadable_file_skipped(self):
        (self.dir / 'rikki.ttf').write_bytes(b'this is definitely not a font file')
        make_font(self.dir / 'ok.ttf', 'Testi Sans')
        with self.assertLogs('laskugen.fonts', level='WARNING'):
            book = scan_font_book([str(self.dir)])
        self.assertEqual(len(book), 1)

    def test_failed_decode_memoized(self):
        path = self.dir / 'rikki.ttf'
        path.write_bytes(b'this is definitely not a font file')
        slot = FontSlot(path)
        with self.assertLogs('laskugen.fonts', level='WARNING') as logs:
            self.assertIsNone(slot.get())
            self.assertIsNone(slot.get())
        self.assertTrue(slot.loaded)
        self.assertEqual(len(logs.output), 1)

    def test_concurrent_get_decodes_once(self):
        make_font(self.dir / 'a.ttf', 'Testi Sans')
        slot = scan_font_book([str(self.dir)]).slot(0)
        results = []
        threads = [threading.Thread(target=lambda: results.append(slot.get())) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(len(results), 8)
        self.assertTrue(all(r is results[0] for r in results))

    def test_world_font_lookup(self):
        make_font(self.dir / 'a.ttf', 'Testi Sans')
        world = SandboxWorld(AssetCache(font_paths=[str(self.dir)]))
        self.assertEqual(world.font(0).family, 'Testi Sans')
        self.assertIsNone(world.font(99))
        self.assertEqual(world.font_directories()[0], str(self.dir))


if __name__ == '__main__':
    unittest.main()
