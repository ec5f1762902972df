"""Data models for Confluence storage-format to Markdown conversion."""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, unquote_plus, urlparse

logger = logging.getLogger('confluence_md.models')


@dataclass
class ConfluenceUser:
    """Represents a Confluence user referenced by a page."""

    account_id: str
    display_name: str = ''
    public_name: str = ''
    email: str = ''

    @property
    def name(self) -> str:
        """Best available human readable name."""
        return self.display_name or self.public_name

    @classmethod
    def from_api(cls, data: Optional[Dict[str, Any]]) -> Optional['ConfluenceUser']:
        """Build a user from a REST payload (``history.createdBy``, ``version.by``, ``/user``)."""
        if not data or not data.get('accountId'):
            return None
        return cls(
            account_id=data['accountId'],
            display_name=data.get('displayName') or '',
            public_name=data.get('publicName') or '',
            email=data.get('email') or ''
        )


@dataclass
class ConfluenceAttachment:
    """Represents a Confluence attachment."""

    id: str
    title: str
    media_type: str = ''
    file_size: int = 0
    download_link: str = ''
    version: int = 1

    def validate(self) -> None:
        """
        Validate attachment fields.

        Raises:
            ValueError: If a required field is missing or negative
        """
        if not self.id:
            raise ValueError("attachment id is required")
        if not self.title:
            raise ValueError(f"attachment {self.id} has no title")
        if self.file_size < 0:
            raise ValueError(f"attachment {self.id} has a negative file size")

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'ConfluenceAttachment':
        """Build an attachment from a ``child/attachment`` result entry."""
        extensions = data.get('extensions', {})
        metadata = data.get('metadata', {})
        return cls(
            id=str(data.get('id', '')),
            title=data.get('title', ''),
            media_type=metadata.get('mediaType') or extensions.get('mediaType', ''),
            file_size=int(extensions.get('fileSize') or 0),
            download_link=data.get('_links', {}).get('download', ''),
            version=int(data.get('version', {}).get('number') or 1)
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize attachment to dictionary."""
        return {
            'id': self.id,
            'title': self.title,
            'media_type': self.media_type,
            'file_size': self.file_size
        }


@dataclass
class ConfluencePage:
    """Represents a Confluence page with its storage-format body."""

    id: str
    title: str
    content: str  # storage-format markup
    space_key: str
    version: int = 1
    parent_id: Optional[str] = None
    url: Optional[str] = None
    labels: List[str] = field(default_factory=list)
    attachments: List[ConfluenceAttachment] = field(default_factory=list)
    created_by: Optional[ConfluenceUser] = None
    updated_by: Optional[ConfluenceUser] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def validate(self) -> None:
        """
        Validate that the page can be converted.

        Raises:
            ValueError: If the page id, title, content or space key is empty,
                or if any attachment is invalid
        """
        if not self.id:
            raise ValueError("page id is required")
        if not self.title:
            raise ValueError(f"page {self.id} has no title")
        if not self.content:
            raise ValueError(f"page {self.id} has no content")
        if not self.space_key:
            raise ValueError(f"page {self.id} has no space key")

        for attachment in self.attachments:
            try:
                attachment.validate()
            except ValueError as e:
                raise ValueError(f"page {self.id}: invalid attachment: {e}") from e

    def find_attachment(self, file_name: str) -> Optional[ConfluenceAttachment]:
        """Find an attachment by its file name."""
        for attachment in self.attachments:
            if attachment.title == file_name:
                return attachment
        return None

    @classmethod
    def from_api(cls, data: Dict[str, Any], base_url: str = '') -> 'ConfluencePage':
        """
        Build a page from a ``/rest/api/content/{id}`` payload.

        Args:
            data: Page JSON expanded with body.storage, space, version, history,
                metadata.labels and children.attachment
            base_url: Confluence base URL used to build the page link

        Returns:
            ConfluencePage instance
        """
        history = data.get('history', {})
        version = data.get('version', {})
        links = data.get('_links', {})

        labels = [
            label.get('name', '')
            for label in data.get('metadata', {}).get('labels', {}).get('results', [])
            if label.get('name')
        ]

        attachments = [
            ConfluenceAttachment.from_api(item)
            for item in data.get('children', {}).get('attachment', {}).get('results', [])
        ]

        ancestors = data.get('ancestors') or []
        parent_id = str(ancestors[-1]['id']) if ancestors else None

        url = None
        if links.get('webui'):
            url = (links.get('base') or base_url.rstrip('/')) + links['webui']

        return cls(
            id=str(data.get('id', '')),
            title=data.get('title', ''),
            content=data.get('body', {}).get('storage', {}).get('value', ''),
            space_key=data.get('space', {}).get('key', ''),
            version=int(version.get('number') or 1),
            parent_id=parent_id,
            url=url,
            labels=labels,
            attachments=attachments,
            created_by=ConfluenceUser.from_api(history.get('createdBy')),
            updated_by=ConfluenceUser.from_api(version.get('by')),
            created_at=history.get('createdDate'),
            updated_at=version.get('when')
        )


@dataclass
class ImageRef:
    """An attachment reference found in a page body."""

    original_url: str
    file_name: str
    content_type: str = ''
    size: int = 0
    local_path: Optional[str] = None
    error: Optional[str] = None


@dataclass
class MarkdownDocument:
    """Result of converting one page."""

    content: str
    front_matter: Dict[str, Any] = field(default_factory=dict)
    images: List[ImageRef] = field(default_factory=list)
    macro_stats: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_page(cls, page: ConfluencePage, content: str, images: List[ImageRef]) -> 'MarkdownDocument':
        """Create a document with front matter describing the source page."""
        front_matter: Dict[str, Any] = {
            'title': page.title,
            'confluence_page_id': page.id,
            'space_key': page.space_key,
            'version': page.version,
            'labels': list(page.labels)
        }
        if page.url:
            front_matter['source_url'] = page.url
        if page.created_by:
            front_matter['author'] = page.created_by.name or page.created_by.account_id
        if page.updated_by:
            front_matter['last_editor'] = page.updated_by.name or page.updated_by.account_id
        if page.created_at:
            front_matter['created'] = page.created_at
        if page.updated_at:
            front_matter['updated'] = page.updated_at
        front_matter['converted_at'] = datetime.now(timezone.utc).isoformat()

        return cls(content=content, front_matter=front_matter, images=images)


@dataclass
class PageURLInfo:
    """Location of a page parsed from a Confluence URL."""

    base_url: str
    space_key: str = ''
    page_id: str = ''
    title: str = ''

    CLOUD_PATH = re.compile(r'^(?P<prefix>.*?)/spaces/(?P<space>[^/]+)/pages/(?P<id>\d+)(?:/(?P<title>[^/?#]*))?')
    DISPLAY_PATH = re.compile(r'^(?P<prefix>.*?)/display/(?P<space>[^/]+)/(?P<title>[^/?#]+)')

    @classmethod
    def from_url(cls, url: str) -> 'PageURLInfo':
        """
        Parse a page URL.

        Supported forms::

            https://example.atlassian.net/wiki/spaces/KEY/pages/123/Title
            https://confluence.example.com/display/KEY/Page+Title
            https://confluence.example.com/pages/viewpage.action?pageId=123

        Raises:
            ValueError: If the URL is not a recognizable Confluence page URL
        """
        parsed = urlparse(url)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ValueError(f"Not an http(s) URL: {url}")

        host = f"{parsed.scheme}://{parsed.netloc}"
        path = parsed.path.rstrip('/')

        match = cls.CLOUD_PATH.match(path)
        if match:
            # Cloud sites serve the REST API under the /wiki prefix
            return cls(
                base_url=host + match.group('prefix'),
                space_key=match.group('space'),
                page_id=match.group('id'),
                title=unquote_plus(match.group('title') or '')
            )

        if path.endswith('/viewpage.action'):
            page_id = parse_qs(parsed.query).get('pageId', [''])[0]
            if not page_id:
                raise ValueError(f"viewpage.action URL has no pageId: {url}")
            prefix = path[:-len('/viewpage.action')]
            if prefix.endswith('/pages'):
                prefix = prefix[:-len('/pages')]
            return cls(base_url=host + prefix, page_id=page_id)

        match = cls.DISPLAY_PATH.match(path)
        if match:
            return cls(
                base_url=host + match.group('prefix'),
                space_key=match.group('space'),
                title=unquote_plus(match.group('title'))
            )

        raise ValueError(f"Unrecognized Confluence page URL: {url}")


__all__ = [
    'ConfluenceAttachment',
    'ConfluencePage',
    'ConfluenceUser',
    'ImageRef',
    'MarkdownDocument',
    'PageURLInfo'
]
