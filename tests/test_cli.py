"""Tests for the command line interface."""

import io
import logging
import logging.handlers
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest.mock import patch

from confluence_md.cli import create_argument_parser, main
from confluence_md.confluence_client import ConfluenceClientError
from confluence_md.pipeline import PageConversionResult

PAGE_URL = 'https://acme.atlassian.net/wiki/spaces/ENG/pages/1/Root'


def page_payload(page_id, title):
    return {
        'id': page_id,
        'title': title,
        'space': {'key': 'ENG'},
        'body': {'storage': {'value': '<p>x</p>'}}
    }


class TestArgumentParser(unittest.TestCase):

    def test_tree_arguments(self):
        args = create_argument_parser().parse_args([
            'tree', PAGE_URL, '-u', 'me', '-t', 'tok', '--depth', '2',
            '--exclude', 'Draft*', 'Old*', '--no-download-images', '--dry-run'
        ])

        self.assertEqual(args.command, 'tree')
        self.assertEqual(args.depth, 2)
        self.assertEqual(args.exclude, ['Draft*', 'Old*'])
        self.assertIs(args.download_images, False)
        self.assertIsNone(args.include_metadata)
        self.assertTrue(args.dry_run)

    def test_credentials_default_from_environment(self):
        with patch.dict(os.environ, {'CONFLUENCE_USERNAME': 'env-user', 'CONFLUENCE_API_TOKEN': 'env-token'}):
            args = create_argument_parser().parse_args(['page', PAGE_URL])

        self.assertEqual(args.username, 'env-user')
        self.assertEqual(args.api_token, 'env-token')

    def test_command_required(self):
        with redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit):
                create_argument_parser().parse_args([])


class TestMain(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def run_main(self, argv):
        stdout, stderr = io.StringIO(), io.StringIO()
        with redirect_stdout(stdout), redirect_stderr(stderr):
            code = main(argv)
        return code, stdout.getvalue(), stderr.getvalue()

    def test_invalid_url(self):
        code, _, stderr = self.run_main(['page', 'not-a-url', '-u', 'me', '-t', 'tok'])
        self.assertEqual(code, 2)
        self.assertIn('ERROR', stderr)

    def test_missing_credentials(self):
        with patch.dict(os.environ, {}):
            os.environ.pop('CONFLUENCE_USERNAME', None)
            os.environ.pop('CONFLUENCE_API_TOKEN', None)
            code, _, stderr = self.run_main(['page', PAGE_URL])

        self.assertEqual(code, 2)
        self.assertIn('confluence.username', stderr)

    @patch('confluence_md.cli.ConfluenceClient')
    def test_tree_dry_run(self, client_class):
        client = client_class.from_config.return_value
        client.get_page.side_effect = lambda page_id, expand=None: page_payload(
            page_id, {'1': 'Root', '2': 'Child'}[page_id]
        )
        client.get_child_pages.side_effect = lambda page_id: [{'id': '2'}] if page_id == '1' else []

        code, stdout, _ = self.run_main(['tree', PAGE_URL, '-u', 'me', '-t', 'tok', '--dry-run'])

        self.assertEqual(code, 0)
        self.assertIn('Root\n├─ Child', stdout)
        self.assertIn('Total pages: 2', stdout)
        self.assertIn('Max depth: 1', stdout)
        config = client_class.from_config.call_args[0][0]
        self.assertEqual(config['confluence']['base_url'], 'https://acme.atlassian.net/wiki')

    @patch('confluence_md.cli.convert_single_page')
    @patch('confluence_md.cli.ConfluenceClient')
    def test_page_command(self, client_class, convert):
        client = client_class.from_config.return_value
        client.get_page.return_value = page_payload('1', 'Root')
        convert.return_value = PageConversionResult(page_id='1', title='Root', success=True)

        code, stdout, _ = self.run_main(['page', PAGE_URL, '-u', 'me', '-t', 'tok', '-o', self.tmp.name])

        self.assertEqual(code, 0)
        self.assertIn('Successfully converted', stdout)
        page, base_url, config = convert.call_args[0][1:4]
        self.assertEqual(page.title, 'Root')
        self.assertEqual(base_url, 'https://acme.atlassian.net/wiki')
        self.assertEqual(config['convert']['output'], self.tmp.name)

    @patch('confluence_md.cli.convert_single_page')
    @patch('confluence_md.cli.ConfluenceClient')
    def test_page_command_failure(self, client_class, convert):
        client_class.from_config.return_value.get_page.return_value = page_payload('1', 'Root')
        convert.return_value = PageConversionResult(page_id='1', title='Root', error='boom')

        code, stdout, _ = self.run_main(['page', PAGE_URL, '-u', 'me', '-t', 'tok'])

        self.assertEqual(code, 1)
        self.assertIn('Error: boom', stdout)

    @patch('confluence_md.cli.ConfluenceClient')
    def test_display_url_resolves_page_id(self, client_class):
        client = client_class.from_config.return_value
        client.retrieve_page_id.return_value = '1'
        client.get_page.side_effect = lambda page_id, expand=None: page_payload(page_id, 'Run Book')
        client.get_child_pages.return_value = []

        code, _, _ = self.run_main([
            'tree', 'https://confluence.example.com/display/OPS/Run+Book', '-u', 'me', '-t', 'tok', '--dry-run'
        ])

        self.assertEqual(code, 0)
        client.retrieve_page_id.assert_called_once_with('OPS', 'Run Book')

    @patch('confluence_md.cli.ConfluenceClient')
    def test_client_error(self, client_class):
        client_class.from_config.return_value.get_page.side_effect = ConfluenceClientError('HTTP 500', 500)

        code, _, stderr = self.run_main(['page', PAGE_URL, '-u', 'me', '-t', 'tok'])

        self.assertEqual(code, 1)
        self.assertIn('HTTP 500', stderr)


class TestLoggingConfiguration(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.addCleanup(self.reset_logger)

    @staticmethod
    def reset_logger():
        logger = logging.getLogger('confluence_md')
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()

    def write_config(self, text):
        path = os.path.join(self.tmp.name, 'config.yaml')
        with open(path, 'w', encoding='utf-8') as f:
            f.write(text)
        return path

    def run_main(self, argv):
        with redirect_stdout(io.StringIO()), redirect_stderr(io.StringIO()):
            return main(argv)

    def test_logging_section_of_config_file_is_applied(self):
        log_path = os.path.join(self.tmp.name, 'run.log')
        config_path = self.write_config(f"logging:\n  level: DEBUG\n  file: {log_path}\n")

        self.run_main(['--config', config_path, 'page', 'not-a-url', '-u', 'me', '-t', 'tok'])

        logger = logging.getLogger('confluence_md')
        self.assertEqual(logger.level, logging.DEBUG)
        file_handlers = [h for h in logger.handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
        self.assertEqual([h.baseFilename for h in file_handlers], [os.path.abspath(log_path)])

    def test_verbose_flag_overrides_config_level(self):
        config_path = self.write_config("logging:\n  level: ERROR\n")

        self.run_main(['--config', config_path, '-v', 'page', 'not-a-url', '-u', 'me', '-t', 'tok'])

        self.assertEqual(logging.getLogger('confluence_md').level, logging.INFO)

    def test_invalid_level_in_config(self):
        config_path = self.write_config("logging:\n  level: LOUD\n")
        self.assertEqual(
            self.run_main(['--config', config_path, 'page', PAGE_URL, '-u', 'me', '-t', 'tok']),
            2
        )


if __name__ == '__main__':
    unittest.main()
