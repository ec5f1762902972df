"""Post-processing passes applied to generated Markdown."""

import logging
import re

logger = logging.getLogger('confluence_md.converters.normalizer')

LIST_MARKER = r'(?:[-*+]\s|\d+\.\s)'

BLANK_LINE_PATTERN = re.compile(r'^[ \t]+$', re.MULTILINE)
EXCESS_NEWLINES_PATTERN = re.compile(r'\n{3,}')
NESTED_LIST_GAP_PATTERN = re.compile(r'((?:^|\n)\s*' + LIST_MARKER + r'[^\n]*)\n\s*\n(\s{2,}' + LIST_MARKER + r')')
WIKI_PAGE_LINK_PATTERN = re.compile(r'\[([^\]]+)\]\(/wiki/spaces/([^/]+)/pages/(\d+)/[^)]+\)')


def clear_blank_lines(markdown: str) -> str:
    """Turn whitespace-only lines into empty lines."""
    return BLANK_LINE_PATTERN.sub('', markdown)


def collapse_newlines(markdown: str) -> str:
    """Replace runs of three or more newlines with a single blank line."""
    return EXCESS_NEWLINES_PATTERN.sub('\n\n', markdown)


def fix_nested_list_spacing(markdown: str) -> str:
    """Remove blank lines between a list item and an indented nested item."""
    while True:
        fixed = NESTED_LIST_GAP_PATTERN.sub(r'\1\n\2', markdown)
        if fixed == markdown:
            return fixed
        markdown = fixed


def rewrite_page_links(markdown: str) -> str:
    """Rewrite ``/wiki/spaces/KEY/pages/ID/...`` links to ``confluence://pageId/ID``."""
    return WIKI_PAGE_LINK_PATTERN.sub(r'[\1](confluence://pageId/\3)', markdown)


def normalize_markdown(markdown: str) -> str:
    """
    Apply all post-processing passes in order.

    The result is a fixed point: normalizing it again returns it unchanged.
    """
    logger.debug("Post-processing markdown")
    markdown = clear_blank_lines(markdown)
    markdown = collapse_newlines(markdown)
    markdown = fix_nested_list_spacing(markdown)
    markdown = rewrite_page_links(markdown)
    return markdown.strip()


__all__ = [
    'clear_blank_lines',
    'collapse_newlines',
    'fix_nested_list_spacing',
    'rewrite_page_links',
    'normalize_markdown'
]
