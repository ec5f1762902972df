"""Tests for logging helpers."""

import logging
import os
import tempfile
import unittest

from confluence_md.logger import ProgressTracker, sanitize_config, setup_logging


class TestSetupLogging(unittest.TestCase):

    def tearDown(self):
        logger = logging.getLogger('confluence_md')
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()

    def test_verbosity_levels(self):
        self.assertEqual(setup_logging(0).level, logging.WARNING)
        self.assertEqual(setup_logging(1).level, logging.INFO)
        self.assertEqual(setup_logging(3).level, logging.DEBUG)

    def test_explicit_level(self):
        self.assertEqual(setup_logging(level='error').level, logging.ERROR)
        with self.assertRaises(ValueError):
            setup_logging(level='loud')

    def test_log_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'run.log')
            logger = setup_logging(1, log_file=path)
            logging.getLogger('confluence_md.pipeline').warning('written to file')
            for handler in logger.handlers:
                handler.flush()

            with open(path, encoding='utf-8') as f:
                self.assertIn('written to file', f.read())
            self.tearDown()


class TestProgressTracker(unittest.TestCase):

    def test_counts(self):
        with ProgressTracker(3) as tracker:
            tracker.increment()
            tracker.increment(False)
            tracker.increment()

        stats = tracker.get_stats()
        self.assertEqual(stats['processed'], 3)
        self.assertEqual(stats['successful'], 2)
        self.assertEqual(stats['failed'], 1)

    def test_format_elapsed(self):
        self.assertEqual(ProgressTracker._format_elapsed(5.5), '5.5s')
        self.assertEqual(ProgressTracker._format_elapsed(125), '2m 5s')
        self.assertEqual(ProgressTracker._format_elapsed(3725), '1h 2m 5s')


class TestSanitizeConfig(unittest.TestCase):

    def test_masks_secrets(self):
        config = {'confluence': {'username': 'me', 'api_token': 'tok', 'password': ''}}
        sanitized = sanitize_config(config)

        self.assertEqual(sanitized['confluence']['api_token'], '***REDACTED***')
        self.assertEqual(sanitized['confluence']['username'], 'me')
        self.assertEqual(sanitized['confluence']['password'], '')
        self.assertEqual(config['confluence']['api_token'], 'tok')


if __name__ == '__main__':
    unittest.main()
