"""Markdown converter for Confluence storage-format documents."""

import io
import logging
from typing import Any, Dict, Optional, Set

from bs4 import BeautifulSoup, Comment, Tag
from markdownify import MarkdownConverter as MarkdownifyConverter

from .dispatch import HandlerRegistry, Priority, RenderStatus, TagKind
from .element_handler import ElementHandler
from .extractors import get_macro_name
from .macro_handler import MacroHandler
from .table_handler import TableHandler
from .user_resolver import UserResolver

logger = logging.getLogger('confluence_md.converters.markdownconverter')


class MarkdownConverter(MarkdownifyConverter):
    """
    Converts a parsed storage-format document to Markdown.

    This class extends markdownify.MarkdownConverter with a handler registry:
    tags with registered handlers (macros, images, emoticons, links, tables,
    ...) are rendered by those handlers first, and markdownify's generic
    conversion handles everything else, including nodes whose handlers defer
    with ``RenderStatus.TRY_NEXT``.

    One instance serves exactly one conversion; it holds that conversion's
    user cache and macro statistics.
    """

    def __init__(
        self,
        base_url: str = '',
        image_folder: str = 'assets',
        user_resolver: Optional[UserResolver] = None,
        logger: logging.Logger = None,
        **kwargs
    ):
        """Initialize markdown converter and register storage-format handlers."""
        markdownify_options = {
            'heading_style': 'ATX',
            'bullets': '-',
            'escape_asterisks': False,
            'escape_underscores': False,
            'wrap': False
        }
        markdownify_options.update(kwargs)
        super().__init__(**markdownify_options)

        self.logger = logger or logging.getLogger('confluence_md.converters.markdownconverter')
        self.base_url = base_url or ''
        self.image_folder = (image_folder or 'assets').rstrip('/')
        self.user_resolver = user_resolver or UserResolver(logger=self.logger)

        self.registry = HandlerRegistry()
        self.macro_handler = MacroHandler(self, self.logger)
        self.element_handler = ElementHandler(self, self.logger)
        self.table_handler = TableHandler(self, self.logger)
        self._register_handlers()

    def _register_handlers(self) -> None:
        elements = self.element_handler
        self.registry.register('ac:image', TagKind.INLINE, elements.handle_image)
        self.registry.register('ac:emoticon', TagKind.INLINE, elements.handle_emoticon)
        self.registry.register('ac:structured-macro', TagKind.BLOCK, self.macro_handler.handle)
        self.registry.register('ac:link', TagKind.INLINE, elements.handle_link)
        self.registry.register('ac:inline-comment-marker', TagKind.INLINE, elements.handle_inline_comment)
        self.registry.register('ac:placeholder', TagKind.INLINE, elements.handle_placeholder)
        self.registry.register('time', TagKind.INLINE, elements.handle_time)
        self.registry.register('table', TagKind.BLOCK, self.table_handler.handle, Priority.EARLY)

    @property
    def macro_stats(self) -> Dict[str, Any]:
        return self.macro_handler.stats

    def convert_document(self, soup: BeautifulSoup) -> str:
        """Convert a parsed document to raw (un-normalized) Markdown."""
        self.logger.debug("Converting to markdown")
        return self.convert_soup(soup)

    def process_tag(self, node, parent_tags=None):
        if parent_tags is None:
            parent_tags = set()

        if not self.registry.has_handlers(node.name):
            return super().process_tag(node, parent_tags=parent_tags)

        writer = io.StringIO()
        status = self.registry.dispatch(node, writer, parent_tags)
        if status is RenderStatus.SUCCESS:
            return writer.getvalue()
        return writer.getvalue() + super().process_tag(node, parent_tags=parent_tags)

    def process_text(self, el, parent_tags=None):
        # Whitespace between registered block tags carries no content
        if not str(el).strip() and (self._is_block(el.previous_sibling) or self._is_block(el.next_sibling)):
            return ''
        return super().process_text(el, parent_tags=parent_tags)

    def _is_block(self, node: Any) -> bool:
        if not isinstance(node, Tag) or self.registry.kind_of(node.name) is not TagKind.BLOCK:
            return False
        # Inline macros (status, jira, ...) sit inside running text
        if node.name == 'ac:structured-macro':
            return get_macro_name(node) in MacroHandler.BLOCK_MACROS
        return True

    def render_node(self, node: Any, parent_tags: Set[str]) -> str:
        """Render a single node (element or text) with the full handler chain."""
        return self.process_element(node, parent_tags=set(parent_tags))

    def render_children(self, node: Tag, parent_tags: Set[str]) -> str:
        """Render the children of ``node`` and join the results."""
        child_tags = set(parent_tags)
        child_tags.add(node.name)
        return ''.join(
            self.render_node(child, child_tags)
            for child in node.children
            if not isinstance(child, Comment)
        )


__all__ = ['MarkdownConverter']
