"""Confluence REST API client with retry logic and wrapped errors."""

import logging
import time
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

import requests
import urllib3
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger('confluence_md.client')

DEFAULT_PAGE_EXPAND = [
    'body.storage',
    'metadata.labels',
    'version',
    'space',
    'history',
    'children.attachment',
    'ancestors'
]


class ConfluenceClientError(Exception):
    """Transport or HTTP failure talking to Confluence."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(ConfluenceClientError):
    """The requested resource does not exist (HTTP 404)."""


class ConfluenceClient:
    """Confluence REST API client with authentication, retry logic, and error handling."""

    def __init__(
        self,
        base_url: str,
        auth_type: str = 'basic',
        username: Optional[str] = None,
        password: Optional[str] = None,
        api_token: Optional[str] = None,
        verify_ssl: bool = True,
        timeout: int = 30,
        max_retries: int = 3,
        retry_backoff_factor: float = 2.0
    ):
        """
        Initialize Confluence client with authentication and retry configuration.

        Args:
            base_url: Confluence base URL (e.g., "https://example.atlassian.net/wiki")
            auth_type: "basic" or "bearer" authentication
            username: Username (email on Confluence Cloud) for basic auth
            password: Password for basic auth; ignored when api_token is set
            api_token: API token; used as the basic auth secret or the bearer token
            verify_ssl: Whether to verify SSL certificates
            timeout: HTTP request timeout in seconds
            max_retries: Maximum retry attempts for transient errors
            retry_backoff_factor: Exponential backoff factor
        """
        if not base_url:
            raise ValueError("Confluence base_url is required")

        self.base_url = base_url.rstrip('/')
        self.auth_type = auth_type
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_backoff_factor = retry_backoff_factor

        self.session = requests.Session()
        self.session.headers['Accept'] = 'application/json'

        if auth_type == 'basic':
            secret = api_token or password
            if not username or not secret:
                raise ValueError("Basic auth requires username and api_token or password")
            self.session.auth = (username, secret)
            logger.info(f"Initialized Confluence client with Basic auth for {base_url}")
        elif auth_type == 'bearer':
            if not api_token:
                raise ValueError("Bearer auth requires api_token")
            self.session.headers['Authorization'] = f'Bearer {api_token}'
            logger.info(f"Initialized Confluence client with Bearer auth for {base_url}")
        else:
            raise ValueError(f"Unsupported auth_type: {auth_type}")

        self.session.verify = verify_ssl
        if not verify_ssl:
            logger.warning("SSL verification disabled - this is insecure!")
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=retry_backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "OPTIONS"]
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        logger.debug(f"Client configured with timeout={timeout}s, max_retries={max_retries}, "
                     f"backoff_factor={retry_backoff_factor}")

    def _make_request(
        self,
        method: str,
        endpoint: str,
        full_url: Optional[str] = None,
        **kwargs
    ) -> requests.Response:
        """
        Make HTTP request to the Confluence API.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path (e.g., "/rest/api/content/123")
            full_url: Optional full URL (overrides base_url + endpoint)
            **kwargs: Additional arguments for requests

        Returns:
            Response object

        Raises:
            NotFoundError: For HTTP 404
            ConfluenceClientError: For other HTTP errors, timeouts and connection errors
        """
        url = full_url if full_url else urljoin(self.base_url + '/', endpoint.lstrip('/'))

        start_time = time.time()
        logger.debug(f"API Request: {method} {url}")

        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            logger.error(f"Request timeout after {self.timeout}s: {method} {url}")
            raise ConfluenceClientError(f"Request timed out: {method} {url}") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error: {method} {url} - {str(e)}")
            raise ConfluenceClientError(f"Request failed: {method} {url}: {str(e)}") from e

        elapsed = time.time() - start_time
        logger.debug(f"API Response: {response.status_code} {url} ({elapsed:.3f}s)")

        if response.status_code == 404:
            raise NotFoundError(f"Not found: {url}", status_code=404)

        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            details = ''
            try:
                error_json = response.json()
                details = error_json.get('message') or error_json.get('error') or ''
            except ValueError:
                details = response.text[:500]
            logger.error(f"HTTP Error {response.status_code}: {method} {url} {details}".rstrip())
            raise ConfluenceClientError(
                f"HTTP {response.status_code} for {method} {url}", status_code=response.status_code
            ) from e

        return response

    def _get_paginated(self, endpoint: str, params: Dict[str, Any], limit: int) -> List[Dict[str, Any]]:
        results = []
        start = 0
        while True:
            page_params = dict(params, limit=limit, start=start)
            data = self._make_request('GET', endpoint, params=page_params).json()
            results.extend(data.get('results', []))

            if 'next' not in data.get('_links', {}):
                break
            start += limit
        return results

    def get_page(self, page_id: str, expand: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Fetch single page with specified expansions.

        Args:
            page_id: Confluence page ID
            expand: List of expansions; defaults to everything conversion needs

        Returns:
            Page dictionary with expanded fields

        Raises:
            NotFoundError: If the page does not exist
        """
        expand = DEFAULT_PAGE_EXPAND if expand is None else expand
        params = {'expand': ','.join(expand)} if expand else {}
        response = self._make_request('GET', f'/rest/api/content/{page_id}', params=params)
        return response.json()

    def get_child_pages(self, page_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        """Get direct child pages of a page (id and title only)."""
        children = self._get_paginated(f'/rest/api/content/{page_id}/child/page', {}, limit)
        logger.debug(f"Fetched {len(children)} child pages for page {page_id}")
        return children

    def retrieve_page_id(self, space_key: str, title: str) -> str:
        """
        Look up a page id by space key and exact title.

        Raises:
            NotFoundError: If no page matches
        """
        response = self._make_request(
            'GET',
            '/rest/api/content',
            params={'spaceKey': space_key, 'title': title, 'type': 'page', 'limit': 1}
        )
        results = response.json().get('results', [])
        if not results:
            raise NotFoundError(f"No page titled '{title}' in space {space_key}", status_code=404)
        return str(results[0]['id'])

    def get_user(self, account_id: str) -> Dict[str, Any]:
        """Fetch a user by Atlassian account id."""
        response = self._make_request('GET', '/rest/api/user', params={'accountId': account_id})
        return response.json()

    def get_attachments(self, page_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        """Get attachments of a specific page."""
        attachments = self._get_paginated(f'/rest/api/content/{page_id}/child/attachment', {}, limit)
        logger.debug(f"Fetched {len(attachments)} attachments for page {page_id}")
        return attachments

    def download_attachment(self, download_url: str) -> bytes:
        """
        Download attachment content.

        Args:
            download_url: Absolute URL, or a path relative to the base URL

        Returns:
            Attachment bytes
        """
        if download_url.startswith(('http://', 'https://')):
            response = self._make_request('GET', '', full_url=download_url)
        else:
            response = self._make_request('GET', download_url)
        return response.content

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'ConfluenceClient':
        """
        Initialize Confluence client from configuration dictionary.

        Args:
            config: Configuration dictionary with confluence and advanced settings

        Returns:
            ConfluenceClient instance
        """
        confluence_config = config.get('confluence', {})
        advanced_config = config.get('advanced', {})

        return cls(
            base_url=confluence_config.get('base_url'),
            auth_type=confluence_config.get('auth_type', 'basic'),
            username=confluence_config.get('username'),
            password=confluence_config.get('password'),
            api_token=confluence_config.get('api_token'),
            verify_ssl=confluence_config.get('verify_ssl', True),
            timeout=advanced_config.get('request_timeout', 30),
            max_retries=advanced_config.get('max_retries', 3),
            retry_backoff_factor=advanced_config.get('retry_backoff_factor', 2.0)
        )


__all__ = ['ConfluenceClient', 'ConfluenceClientError', 'NotFoundError', 'DEFAULT_PAGE_EXPAND']
