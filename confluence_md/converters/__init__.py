"""Converters package for Confluence storage-format to Markdown conversion."""

import logging

from .dispatch import HandlerRegistry, Priority, RenderStatus, TagKind
from .image_extractor import extract_image_references
from .macro_handler import MacroHandler
from .markdown_converter import MarkdownConverter
from .markdown_normalizer import normalize_markdown
from .page_converter import PageConverter, convert_html, convert_page
from .user_resolver import UserResolver

logger = logging.getLogger('confluence_md.converters')


__all__ = [
    'convert_page',
    'convert_html',
    'PageConverter',
    'MarkdownConverter',
    'MacroHandler',
    'HandlerRegistry',
    'Priority',
    'RenderStatus',
    'TagKind',
    'UserResolver',
    'extract_image_references',
    'normalize_markdown'
]
