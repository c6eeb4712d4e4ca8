#!/usr/bin/env python3
"""Tests for attachment classification"""

import os
import sys
import unittest

PROJECT_ROOT = os.path.join(os.path.dirname(__file__), '..', '..')
sys.path.insert(0, os.path.join(PROJECT_ROOT, 'src'))

from laskugen.generation.attachments import attachment_path, classify_attachments  # noqa: E402
from laskugen.generation.world import AssetCache, SandboxWorld  # noqa: E402
from laskugen.models import InvoiceAttachment  # noqa: E402


class TestClassifyAttachments(unittest.TestCase):
    def setUp(self):
        self.world = SandboxWorld(AssetCache())

    def test_routing_preserves_order(self):
        attachments = [
            InvoiceAttachment('kuitti.pdf', b'%PDF-1'),
            InvoiceAttachment('kuva.png', b'png'),
            InvoiceAttachment('LIITE.PDF', b'%PDF-2'),
            InvoiceAttachment('logo.svg', b'<svg/>'),
        ]
        world, classified = classify_attachments(self.world, attachments)
        self.assertIs(world, self.world)
        self.assertEqual([a.filename for a in classified.mergeable], ['kuitti.pdf', 'LIITE.PDF'])
        self.assertEqual([i.filename for i in classified.inlined], ['kuva.png', 'logo.svg'])
        self.assertEqual(world.file('/attachments/kuva.png'), b'png')
        self.assertNotIn('/attachments/kuitti.pdf', world.vfs)
        # the bundled logo is untouched
        self.assertEqual(world.file('/logo.svg'), AssetCache().bundled_assets()['/logo.svg'])

    def test_descriptions_by_submission_index(self):
        attachments = [
            InvoiceAttachment('a.pdf', b'%PDF'),
            InvoiceAttachment('b.png', b'b'),
            InvoiceAttachment('c.png', b'c'),
        ]
        _, classified = classify_attachments(self.world, attachments, ('eka', 'toka'))
        self.assertEqual([i.description for i in classified.inlined], ['toka', None])

    def test_duplicate_filename_last_write_wins(self):
        attachments = [
            InvoiceAttachment('kuva.png', b'first'),
            InvoiceAttachment('kuva.png', b'second'),
        ]
        world, classified = classify_attachments(self.world, attachments)
        self.assertEqual(world.file('/attachments/kuva.png'), b'second')
        self.assertEqual(len(classified.inlined), 1)
        self.assertEqual(classified.inlined[0].size, len(b'second'))

    def test_no_attachments(self):
        _, classified = classify_attachments(self.world, [])
        self.assertEqual(classified.inlined, [])
        self.assertEqual(classified.mergeable, [])

    def test_path_is_clamped_to_root(self):
        self.assertEqual(attachment_path('kuva.png'), '/attachments/kuva.png')
        self.assertEqual(attachment_path('../logo.svg'), '/logo.svg')


if __name__ == '__main__':
    unittest.main()
