"""Tests for the Confluence REST client."""

import unittest
from unittest.mock import Mock

import requests

from confluence_md.confluence_client import ConfluenceClient, ConfluenceClientError, NotFoundError


def make_response(status_code=200, json_data=None, content=b''):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = json_data if json_data is not None else {}
    response.content = content
    response.text = ''
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status_code} error")
    return response


class TestClientSetup(unittest.TestCase):

    def test_basic_auth(self):
        client = ConfluenceClient('https://wiki.example.com/', username='me', api_token='tok')
        self.assertEqual(client.base_url, 'https://wiki.example.com')
        self.assertEqual(client.session.auth, ('me', 'tok'))

    def test_bearer_auth(self):
        client = ConfluenceClient('https://wiki.example.com', auth_type='bearer', api_token='tok')
        self.assertEqual(client.session.headers['Authorization'], 'Bearer tok')

    def test_invalid_setup(self):
        with self.assertRaises(ValueError):
            ConfluenceClient('', username='me', api_token='tok')
        with self.assertRaises(ValueError):
            ConfluenceClient('https://wiki.example.com', username='me')
        with self.assertRaises(ValueError):
            ConfluenceClient('https://wiki.example.com', auth_type='bearer')
        with self.assertRaises(ValueError):
            ConfluenceClient('https://wiki.example.com', auth_type='kerberos', api_token='tok')

    def test_from_config(self):
        client = ConfluenceClient.from_config({
            'confluence': {'base_url': 'https://wiki.example.com', 'username': 'me', 'password': 'pw'},
            'advanced': {'request_timeout': 5}
        })
        self.assertEqual(client.timeout, 5)
        self.assertEqual(client.session.auth, ('me', 'pw'))


class TestClientRequests(unittest.TestCase):

    def setUp(self):
        self.client = ConfluenceClient('https://wiki.example.com', username='me', api_token='tok', timeout=7)
        self.client.session = Mock()

    def test_get_page(self):
        self.client.session.request.return_value = make_response(json_data={'id': '1'})

        self.assertEqual(self.client.get_page('1'), {'id': '1'})

        method, url = self.client.session.request.call_args[0]
        kwargs = self.client.session.request.call_args[1]
        self.assertEqual(method, 'GET')
        self.assertEqual(url, 'https://wiki.example.com/rest/api/content/1')
        self.assertIn('body.storage', kwargs['params']['expand'])
        self.assertEqual(kwargs['timeout'], 7)

    def test_not_found(self):
        self.client.session.request.return_value = make_response(404)
        with self.assertRaises(NotFoundError) as ctx:
            self.client.get_page('1')
        self.assertEqual(ctx.exception.status_code, 404)

    def test_server_error(self):
        self.client.session.request.return_value = make_response(500, json_data={'message': 'boom'})
        with self.assertRaises(ConfluenceClientError) as ctx:
            self.client.get_user('u1')
        self.assertNotIsInstance(ctx.exception, NotFoundError)
        self.assertEqual(ctx.exception.status_code, 500)

    def test_timeout(self):
        self.client.session.request.side_effect = requests.exceptions.Timeout()
        with self.assertRaises(ConfluenceClientError):
            self.client.get_page('1')

    def test_connection_error(self):
        self.client.session.request.side_effect = requests.exceptions.ConnectionError('refused')
        with self.assertRaises(ConfluenceClientError):
            self.client.get_child_pages('1')

    def test_child_pages_follow_pagination(self):
        self.client.session.request.side_effect = [
            make_response(json_data={'results': [{'id': '2'}], '_links': {'next': '/next'}}),
            make_response(json_data={'results': [{'id': '3'}], '_links': {}}),
        ]

        children = self.client.get_child_pages('1', limit=1)

        self.assertEqual([child['id'] for child in children], ['2', '3'])
        starts = [call[1]['params']['start'] for call in self.client.session.request.call_args_list]
        self.assertEqual(starts, [0, 1])

    def test_retrieve_page_id(self):
        self.client.session.request.return_value = make_response(json_data={'results': [{'id': 55}]})
        self.assertEqual(self.client.retrieve_page_id('ENG', 'Home'), '55')

    def test_retrieve_page_id_no_match(self):
        self.client.session.request.return_value = make_response(json_data={'results': []})
        with self.assertRaises(NotFoundError):
            self.client.retrieve_page_id('ENG', 'Missing')

    def test_download_attachment(self):
        self.client.session.request.return_value = make_response(content=b'PNG')

        self.assertEqual(self.client.download_attachment('/download/attachments/1/a.png'), b'PNG')
        self.assertEqual(self.client.session.request.call_args[0][1],
                         'https://wiki.example.com/download/attachments/1/a.png')

        self.client.download_attachment('https://cdn.example.com/a.png')
        self.assertEqual(self.client.session.request.call_args[0][1], 'https://cdn.example.com/a.png')


if __name__ == '__main__':
    unittest.main()
