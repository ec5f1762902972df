"""Helpers that pull values out of storage-format nodes and raw markup."""

import html
import re
import unicodedata
from typing import Optional

from bs4 import Tag

CDATA_PATTERN = re.compile(r'<!\[CDATA\[([\s\S]*?)\]\]>')
FILENAME_PATTERN = re.compile(r'ri:filename="([^"]+)"')


def preserve_cdata(markup: str) -> str:
    """
    Replace CDATA sections with escaped ``<pre data-cdata='true'>`` blocks.

    The HTML parser drops CDATA content, so code and diagram bodies are moved
    into an element whose text survives parsing unchanged.
    """
    def _replace(match):
        content = html.escape(match.group(1), quote=False)
        return f"<pre data-cdata='true'>{content}</pre>"

    return CDATA_PATTERN.sub(_replace, markup)


def get_macro_name(node: Tag) -> str:
    return (node.get('ac:name') or '').strip()


def get_parameter(node: Tag, name: str) -> str:
    """Trimmed text of the macro parameter ``name``, or an empty string."""
    param = node.find('ac:parameter', attrs={'ac:name': name}, recursive=False)
    return param.get_text().strip() if param is not None else ''


def has_parameters(node: Tag) -> bool:
    """True if the macro carries at least one direct ``ac:parameter`` child."""
    return node.find('ac:parameter', recursive=False) is not None


def get_plain_text_body(node: Tag) -> str:
    """
    Text of the macro's ``ac:plain-text-body``.

    Prefers the preserved CDATA block; falls back to the body's own text.
    """
    body = node.find('ac:plain-text-body')
    if body is None:
        return ''
    pre = body.find('pre', attrs={'data-cdata': 'true'})
    text = pre.get_text() if pre is not None else body.get_text()
    return text.strip()


def find_rich_text_body(node: Tag) -> Optional[Tag]:
    """First ``ac:rich-text-body`` under ``node`` in document order."""
    if node.name == 'ac:rich-text-body':
        return node
    return node.find('ac:rich-text-body')


def get_attachment_filename(node: Tag) -> str:
    """File name of the first ``ri:attachment`` under ``node``."""
    attachment = node.find('ri:attachment')
    if attachment is None:
        return ''
    return attachment.get('ri:filename', '')


def parse_image_filename(markup: str) -> str:
    """Extract and unescape the ``ri:filename`` value from a markup fragment."""
    match = FILENAME_PATTERN.search(markup)
    if not match:
        return ''
    return html.unescape(match.group(1))


def get_account_id(node: Tag) -> str:
    """Account id of the first direct ``ri:user`` child, if any."""
    user = node.find('ri:user', recursive=False)
    if user is None:
        return ''
    return user.get('ri:account-id', '')


def slugify(text: str) -> str:
    """
    Convert text to a URL-friendly slug.

    Non-ASCII characters are transliterated where possible, ``&`` and ``@``
    are spelled out, everything else outside ``[a-z0-9-_]`` becomes a hyphen.
    """
    if not text:
        return ''

    normalized = unicodedata.normalize('NFKD', text)
    normalized = normalized.encode('ascii', 'ignore').decode('ascii')

    normalized = normalized.replace('&', ' and ').replace('@', ' at ')
    slug = normalized.lower()
    slug = re.sub(r'[^a-z0-9\-_]', '-', slug)
    slug = re.sub(r'-+', '-', slug)

    return slug.strip('-_')


__all__ = [
    'preserve_cdata',
    'get_macro_name',
    'get_parameter',
    'has_parameters',
    'get_plain_text_body',
    'find_rich_text_body',
    'get_attachment_filename',
    'parse_image_filename',
    'get_account_id',
    'slugify'
]
