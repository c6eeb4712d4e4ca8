#!/usr/bin/env python3
"""Tests for the per-compilation virtual filesystem"""

import os
import pathlib
import sys
import tempfile
import unittest

PROJECT_ROOT = os.path.join(os.path.dirname(__file__), '..', '..')
sys.path.insert(0, os.path.join(PROJECT_ROOT, 'src'))

from laskugen.errors import InvalidEncoding, SandboxFileNotFound  # noqa: E402
from laskugen.generation.vfs import VirtualFileSystem, normalize_path  # noqa: E402


class TestNormalizePath(unittest.TestCase):
    def test_rooted(self):
        self.assertEqual(normalize_path('logo.svg'), '/logo.svg')
        self.assertEqual(normalize_path('/a//b/./c.png'), '/a/b/c.png')
        self.assertEqual(normalize_path('a\\b.png'), '/a/b.png')

    def test_dotdot_clamped_at_root(self):
        self.assertEqual(normalize_path('/attachments/../../../etc/passwd'), '/etc/passwd')
        self.assertEqual(normalize_path('a/b/../c'), '/a/c')

    def test_invalid(self):
        for bad in ('', '/', '..', 'a\x00b'):
            with self.assertRaises(ValueError):
                normalize_path(bad)


class TestVirtualFileSystem(unittest.TestCase):
    def test_insert_and_resolve(self):
        vfs = VirtualFileSystem()
        self.assertFalse(vfs.insert('/attachments/a.png', b'one'))
        self.assertEqual(vfs.resolve('attachments/a.png').data, b'one')
        self.assertIn('/attachments/a.png', vfs)
        self.assertEqual(len(vfs), 1)

    def test_last_write_wins(self):
        vfs = VirtualFileSystem()
        vfs.insert('/a.png', b'one')
        self.assertTrue(vfs.insert('a.png', b'two'))
        self.assertEqual(vfs.resolve('/a.png').data, b'two')
        self.assertEqual(vfs.paths(), ['/a.png'])

    def test_not_found(self):
        vfs = VirtualFileSystem()
        with self.assertRaises(SandboxFileNotFound) as cm:
            vfs.resolve('/missing.svg')
        self.assertEqual(cm.exception.path, '/missing.svg')
        self.assertNotIn('/missing.svg', vfs)

    def test_source_strips_bom(self):
        vfs = VirtualFileSystem()
        vfs.insert('/lib.typ', b'\xef\xbb\xbf#let x = 1')
        self.assertEqual(vfs.source_text('/lib.typ'), '#let x = 1')
        self.assertTrue(vfs.resolve('/lib.typ').decoded)

    def test_source_invalid_utf8(self):
        vfs = VirtualFileSystem()
        vfs.insert('/bad.typ', b'\xff\xfe\x00')
        with self.assertRaises(InvalidEncoding):
            vfs.source_text('/bad.typ')
        # bytes are still available
        self.assertEqual(vfs.resolve('/bad.typ').data, b'\xff\xfe\x00')

    def test_materialize(self):
        vfs = VirtualFileSystem()
        vfs.insert('/attachments/a.png', b'\x89PNG')
        vfs.insert('/lib.typ', '\ufeff#let y = 2'.encode('utf-8'))
        with tempfile.TemporaryDirectory() as td:
            root = pathlib.Path(td)
            written = vfs.materialize(root)
            self.assertEqual(len(written), 2)
            self.assertEqual((root / 'attachments' / 'a.png').read_bytes(), b'\x89PNG')
            self.assertEqual((root / 'lib.typ').read_text(encoding='utf-8'), '#let y = 2')

    def test_materialize_rejects_bad_source(self):
        vfs = VirtualFileSystem()
        vfs.insert('/bad.typ', b'\xff')
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(InvalidEncoding):
                vfs.materialize(pathlib.Path(td))


if __name__ == '__main__':
    unittest.main()
