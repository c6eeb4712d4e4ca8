#!/usr/bin/env python3
"""Tests for environment configuration"""

import logging
import os
import sys
import unittest

PROJECT_ROOT = os.path.join(os.path.dirname(__file__), '..', '..')
sys.path.insert(0, os.path.join(PROJECT_ROOT, 'src'))

from laskugen.config import Settings, configure_logging  # noqa: E402


class TestSettings(unittest.TestCase):
    def test_defaults(self):
        s = Settings.from_env({})
        self.assertEqual(s.typst_bin, 'typst')
        self.assertEqual(s.font_paths, [])
        self.assertFalse(s.ignore_system_fonts)
        self.assertIsNone(s.template_path)
        self.assertIsNone(s.utc_offset)
        self.assertEqual(s.commit_hash, 'unknown')
        self.assertGreaterEqual(s.max_workers, 1)

    def test_from_env(self):
        env = {
            'TYPST_BIN': '/opt/typst',
            'LASKUGEN_FONT_PATHS': os.pathsep.join(['/a', '', '/b']),
            'LASKUGEN_IGNORE_SYSTEM_FONTS': 'Yes',
            'LASKUGEN_TEMPLATE': '/srv/lasku.typ',
            'LASKUGEN_MAX_WORKERS': '3',
            'LASKUGEN_UTC_OFFSET': '-2',
            'COMMIT_HASH': 'deadbeef',
            'LASKUGEN_LOG_LEVEL': 'debug',
        }
        s = Settings.from_env(env)
        self.assertEqual(s.typst_bin, '/opt/typst')
        self.assertEqual(s.font_paths, ['/a', '/b'])
        self.assertTrue(s.ignore_system_fonts)
        self.assertEqual(s.template_path, '/srv/lasku.typ')
        self.assertEqual(s.max_workers, 3)
        self.assertEqual(s.utc_offset, -2)
        self.assertEqual(s.commit_hash, 'deadbeef')
        self.assertEqual(s.log_level, 'DEBUG')

    def test_specific_typst_bin_wins(self):
        s = Settings.from_env({'TYPST_BIN': '/a', 'LASKUGEN_TYPST_BIN': '/b'})
        self.assertEqual(s.typst_bin, '/b')

    def test_invalid_integers(self):
        with self.assertRaises(ValueError) as cm:
            Settings.from_env({'LASKUGEN_UTC_OFFSET': 'two'})
        self.assertIn('LASKUGEN_UTC_OFFSET', str(cm.exception))
        with self.assertRaises(ValueError):
            Settings.from_env({'LASKUGEN_MAX_WORKERS': '0'})

    def test_with_overrides_ignores_none(self):
        s = Settings(typst_bin='typst').with_overrides(typst_bin=None, commit_hash='abc')
        self.assertEqual(s.typst_bin, 'typst')
        self.assertEqual(s.commit_hash, 'abc')


class TestLogging(unittest.TestCase):
    def test_configure_logging_once(self):
        logger = logging.getLogger('laskugen')
        before = list(logger.handlers)
        try:
            configure_logging('debug')
            configure_logging('info')
            ours = [h for h in logger.handlers if getattr(h, '_laskugen', False)]
            self.assertEqual(len(ours), 1)
            self.assertEqual(logger.level, logging.INFO)
        finally:
            for h in list(logger.handlers):
                if h not in before:
                    logger.removeHandler(h)
            logger.setLevel(logging.NOTSET)


if __name__ == '__main__':
    unittest.main()
