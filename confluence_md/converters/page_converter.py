"""Page-level conversion pipeline: storage markup in, Markdown document out."""

import logging
from typing import Any, Dict, Optional, Tuple

from bs4 import BeautifulSoup

from ..models import ConfluencePage, MarkdownDocument
from .extractors import preserve_cdata
from .image_extractor import extract_image_references
from .markdown_converter import MarkdownConverter
from .markdown_normalizer import normalize_markdown
from .user_resolver import UserResolver

logger = logging.getLogger('confluence_md.converters.pageconverter')


class PageConverter:
    """
    Converts Confluence pages to Markdown documents.

    Every call builds a fresh MarkdownConverter and UserResolver, so no state
    (user cache, macro statistics) leaks from one conversion into the next.
    """

    def __init__(
        self,
        client: Any = None,
        image_folder: str = 'assets',
        logger: logging.Logger = None,
        config: Dict[str, Any] = None
    ):
        """
        Initialize page converter.

        Args:
            client: Optional ConfluenceClient used to resolve unknown user mentions
            image_folder: Folder prefix used for attachment links
            logger: Optional logger
            config: Optional configuration; ``convert.image_folder`` overrides image_folder
        """
        self.client = client
        self.logger = logger or logging.getLogger('confluence_md.converters.pageconverter')
        self.config = config or {}
        self.image_folder = self.config.get('convert', {}).get('image_folder', image_folder)

    def convert_page(self, page: ConfluencePage, base_url: str = '') -> MarkdownDocument:
        """
        Convert a page to a Markdown document.

        Args:
            page: ConfluencePage with storage-format content
            base_url: Confluence base URL for attachment and Jira links

        Returns:
            MarkdownDocument with content, front matter and image references

        Raises:
            ValueError: If the page fails validation
        """
        page.validate()
        self.logger.info(f"Converting page {page.id} ({page.title}) to markdown")

        # Step 1: Seed the user cache with people already known from the page
        resolver = UserResolver(client=self.client)
        resolver.seed_from_page(page)

        # Step 2: Render the body
        content, macro_stats = self._convert(page.content, base_url, resolver)

        # Step 3: Collect attachment references from the raw markup
        images = extract_image_references(page.content, page.id, base_url)

        document = MarkdownDocument.for_page(page, content, images)
        document.macro_stats = macro_stats

        self.logger.info(
            f"Page {page.id} converted: {len(content)} characters, {len(images)} image references"
        )
        return document

    def convert_html(self, markup: str, base_url: str = '') -> str:
        """
        Convert a storage-format fragment to Markdown.

        Mentions resolve through the client when one is configured; otherwise
        they fall back to ``@user(<id>)``.
        """
        resolver = UserResolver(client=self.client)
        content, _ = self._convert(markup, base_url, resolver)
        return content

    def _convert(self, markup: str, base_url: str, resolver: UserResolver) -> Tuple[str, Dict[str, Any]]:
        converter = MarkdownConverter(
            base_url=base_url,
            image_folder=self.image_folder,
            user_resolver=resolver
        )

        soup = BeautifulSoup(preserve_cdata(markup or ''), 'html.parser')
        raw_markdown = converter.convert_document(soup)
        stats = converter.macro_stats
        if stats['macros_found']:
            self.logger.info(f"Macro conversion: {stats['macros_converted']}/{stats['macros_found']} succeeded")
        if stats['macros_failed']:
            self.logger.warning(f"Unsupported or failed macros: {', '.join(sorted(set(stats['macros_failed'])))}")

        return normalize_markdown(raw_markdown), stats


def convert_page(page: ConfluencePage, base_url: str = '', client: Any = None,
                 image_folder: str = 'assets', logger: Optional[logging.Logger] = None) -> MarkdownDocument:
    """Convenience wrapper around PageConverter.convert_page."""
    return PageConverter(client=client, image_folder=image_folder, logger=logger).convert_page(page, base_url)


def convert_html(markup: str, base_url: str = '', client: Any = None,
                 image_folder: str = 'assets', logger: Optional[logging.Logger] = None) -> str:
    """Convenience wrapper around PageConverter.convert_html."""
    return PageConverter(client=client, image_folder=image_folder, logger=logger).convert_html(markup, base_url)


__all__ = ['PageConverter', 'convert_page', 'convert_html']
