"""Handlers for inline storage-format elements (images, emoticons, links, ...)."""

import logging
from typing import Any, Set, TextIO

from bs4 import Tag

from .dispatch import RenderStatus
from .extractors import get_account_id, get_attachment_filename, slugify

logger = logging.getLogger('confluence_md.converters.elementhandler')


class ElementHandler:
    """Renders ``ac:image``, ``ac:emoticon``, ``ac:link``, comment markers, placeholders and ``time``."""

    def __init__(self, converter: Any, logger: logging.Logger = None):
        self.converter = converter
        self.logger = logger or logging.getLogger('confluence_md.converters.elementhandler')

    def handle_image(self, node: Tag, writer: TextIO, parent_tags: Set[str]) -> RenderStatus:
        file_name = node.get('ri:filename') or get_attachment_filename(node)
        if file_name:
            writer.write(f"![{file_name}]({self.converter.image_folder}/{file_name})")
            return RenderStatus.SUCCESS

        url = node.find('ri:url')
        if url is not None and url.get('ri:value'):
            writer.write(f"![{node.get('ac:alt', '')}]({url['ri:value']})")
            return RenderStatus.SUCCESS

        self.logger.warning("Image without attachment file name")
        writer.write('<!-- Image attachment not found -->')
        return RenderStatus.SUCCESS

    def handle_emoticon(self, node: Tag, writer: TextIO, parent_tags: Set[str]) -> RenderStatus:
        """Emoticons write their glyph and always defer to the generic pass."""
        fallback = node.get('ac:emoji-fallback')
        shortname = node.get('ac:emoji-shortname')
        name = node.get('ac:name')

        if fallback:
            writer.write(fallback + ' ')
        elif shortname:
            writer.write(shortname + ' ')
        elif name:
            writer.write(f":{name}:")
        else:
            writer.write(':emoji: ')
        return RenderStatus.TRY_NEXT

    def handle_link(self, node: Tag, writer: TextIO, parent_tags: Set[str]) -> RenderStatus:
        link_text = self._link_text(node)

        anchor = node.get('ac:anchor')
        if anchor and link_text:
            writer.write(f"[{link_text}](#{slugify(anchor)})")
            return RenderStatus.SUCCESS

        account_id = get_account_id(node)
        if account_id:
            writer.write(f" {self.converter.user_resolver.mention(account_id)} ")
            return RenderStatus.TRY_NEXT

        attachment = node.find('ri:attachment', recursive=False)
        if attachment is not None and attachment.get('ri:filename'):
            file_name = attachment['ri:filename']
            writer.write(f"[{link_text or file_name}]({self.converter.image_folder}/{file_name})")
            return RenderStatus.SUCCESS

        page = node.find('ri:page', recursive=False)
        if page is not None:
            text = link_text or page.get('ri:content-title', '')
            if text:
                writer.write(text)
                return RenderStatus.SUCCESS

        return RenderStatus.TRY_NEXT

    def handle_inline_comment(self, node: Tag, writer: TextIO, parent_tags: Set[str]) -> RenderStatus:
        writer.write(self.converter.render_children(node, parent_tags))
        ref = node.get('ac:ref')
        if ref:
            writer.write(f"<!-- comment-ref: {ref} -->")
        return RenderStatus.SUCCESS

    def handle_placeholder(self, node: Tag, writer: TextIO, parent_tags: Set[str]) -> RenderStatus:
        text = node.get_text().strip()
        if text:
            writer.write(f"<!-- {text} -->")
        return RenderStatus.SUCCESS

    def handle_time(self, node: Tag, writer: TextIO, parent_tags: Set[str]) -> RenderStatus:
        datetime_value = node.get('datetime')
        if datetime_value:
            writer.write(datetime_value + ' ')
        return RenderStatus.TRY_NEXT

    @staticmethod
    def _link_text(node: Tag) -> str:
        body = node.find('ac:plain-text-link-body') or node.find('ac:link-body')
        return body.get_text().strip() if body is not None else ''


__all__ = ['ElementHandler']
