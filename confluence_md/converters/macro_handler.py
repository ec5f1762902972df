"""Confluence macro handler for rendering structured macros as Markdown."""

import logging
import re
from typing import Any, Dict, Set, TextIO

from bs4 import Comment, NavigableString, Tag

from .dispatch import RenderStatus
from .extractors import (
    find_rich_text_body,
    get_attachment_filename,
    get_macro_name,
    get_parameter,
    get_plain_text_body,
    has_parameters,
    slugify,
)

logger = logging.getLogger('confluence_md.converters.macrohandler')


class MacroHandler:
    """Renders ``ac:structured-macro`` nodes through a fixed table of converters."""

    # Macros rendered as standalone blocks; everything else is emitted in place
    BLOCK_MACROS = {
        'info', 'warning', 'note', 'tip', 'panel',
        'code', 'noformat', 'mermaid-macro', 'mermaid',
        'expand', 'details', 'toc', 'children'
    }

    def __init__(self, converter: Any, logger: logging.Logger = None):
        """
        Initialize macro handler.

        Args:
            converter: MarkdownConverter used to render nested content; also
                provides ``base_url`` and ``image_folder``
            logger: Optional logger
        """
        self.converter = converter
        self.logger = logger or logging.getLogger('confluence_md.converters.macrohandler')

        self.macro_converters = {
            'info': self._convert_info_macro,
            'warning': self._convert_warning_macro,
            'note': self._convert_note_macro,
            'tip': self._convert_tip_macro,
            'panel': self._convert_panel_macro,
            'code': self._convert_code_macro,
            'noformat': self._convert_code_macro,
            'mermaid-macro': self._convert_mermaid_macro,
            'mermaid': self._convert_mermaid_macro,
            'expand': self._convert_expand_macro,
            'details': self._convert_expand_macro,
            'toc': self._convert_toc_macro,
            'status': self._convert_status_macro,
            'children': self._convert_children_macro,
            'jira': self._convert_jira_macro,
            'view-file': self._convert_view_file_macro,
            'anchor': self._convert_anchor_macro,
        }

        self._callouts = {
            'info': ('ℹ️', 'Info'),
            'warning': ('⚠️', 'Warning'),
            'note': ('📝', 'Note'),
            'tip': ('💡', 'Tip'),
        }

        self._status_colours = {
            'red': '🔴',
            'yellow': '🟡',
            'green': '🟢',
            'blue': '🔵',
            'grey': '⚪',
            'gray': '⚪',
        }

        self.stats: Dict[str, Any] = {
            'macros_found': 0,
            'macros_converted': 0,
            'macros_failed': [],
            'by_type': {}
        }

    def handle(self, node: Tag, writer: TextIO, parent_tags: Set[str]) -> RenderStatus:
        """Dispatcher entry point for ``ac:structured-macro``."""
        macro_name = get_macro_name(node) or 'unknown'
        result = self.render(node, parent_tags)
        writer.write(result)

        if macro_name == 'toc' and not has_parameters(node):
            # Nothing nested to leak; let the generic pass continue
            return RenderStatus.TRY_NEXT
        return RenderStatus.SUCCESS

    def render(self, node: Tag, parent_tags: Set[str]) -> str:
        """Render a macro node to Markdown text."""
        macro_name = get_macro_name(node) or 'unknown'
        self.stats['macros_found'] += 1
        self.logger.debug(f"Converting macro: {macro_name}")

        converter = self.macro_converters.get(macro_name)
        if converter is None:
            self.logger.warning(f"Unsupported macro: {macro_name}")
            self.stats['macros_failed'].append(macro_name)
            return f"<!-- Unsupported macro: {macro_name} -->"

        try:
            result = converter(node, macro_name, parent_tags)
        except Exception as e:
            self.logger.error(f"Failed to convert macro {macro_name}: {str(e)}")
            self.stats['macros_failed'].append(macro_name)
            return f"<!-- Failed to convert macro: {macro_name} -->"

        self.stats['macros_converted'] += 1
        self.stats['by_type'][macro_name] = self.stats['by_type'].get(macro_name, 0) + 1

        if result and macro_name in self.BLOCK_MACROS and '_inline' not in parent_tags:
            return f"\n\n{result}\n\n"
        return result

    def convert_nested(self, node: Tag, parent_tags: Set[str]) -> str:
        """
        Render the direct children of the macro's rich-text body.

        Whitespace-only text and empty ``<p/>`` terminators are skipped.
        """
        body = find_rich_text_body(node)
        if body is None:
            return ''

        child_tags = set(parent_tags)
        child_tags.update((node.name, body.name))

        parts = []
        for child in body.children:
            if isinstance(child, Tag):
                if child.name == 'p' and not child.contents:
                    continue
                parts.append(self.converter.render_node(child, child_tags))
            elif isinstance(child, NavigableString) and not isinstance(child, Comment):
                text = str(child).strip()
                if text:
                    parts.append(text)

        content = ''.join(parts)
        content = re.sub(r'\n{3,}', '\n\n', content)
        return content.strip()

    def _convert_callout(self, node: Tag, macro_name: str, parent_tags: Set[str]) -> str:
        emoji, label = self._callouts[macro_name]
        prefix = f"{emoji} **{label}:**"
        content = self.convert_nested(node, parent_tags)

        if not content:
            return f"> {prefix}"

        lines = content.split('\n')
        if len(lines) == 1:
            return f"> {prefix} {content}"

        return f"> {prefix}\n" + self._quote_lines(lines)

    def _convert_info_macro(self, node: Tag, macro_name: str, parent_tags: Set[str]) -> str:
        return self._convert_callout(node, macro_name, parent_tags)

    def _convert_warning_macro(self, node: Tag, macro_name: str, parent_tags: Set[str]) -> str:
        return self._convert_callout(node, macro_name, parent_tags)

    def _convert_note_macro(self, node: Tag, macro_name: str, parent_tags: Set[str]) -> str:
        return self._convert_callout(node, macro_name, parent_tags)

    def _convert_tip_macro(self, node: Tag, macro_name: str, parent_tags: Set[str]) -> str:
        return self._convert_callout(node, macro_name, parent_tags)

    def _convert_panel_macro(self, node: Tag, macro_name: str, parent_tags: Set[str]) -> str:
        """Convert panel macro to blockquote with optional bold title."""
        title = get_parameter(node, 'title')
        content = self.convert_nested(node, parent_tags)

        lines = []
        if title:
            lines.append(f"**{title}**")
        if content:
            if lines:
                lines.append('')
            lines.extend(content.split('\n'))

        return self._quote_lines(lines)

    def _convert_code_macro(self, node: Tag, macro_name: str, parent_tags: Set[str]) -> str:
        """Convert code/noformat macro to a fenced code block."""
        language = get_parameter(node, 'language')
        code = get_plain_text_body(node)
        if not code:
            self.logger.warning(f"Empty {macro_name} macro body")
        return f"```{language}\n{code}\n```\n"

    def _convert_mermaid_macro(self, node: Tag, macro_name: str, parent_tags: Set[str]) -> str:
        diagram = get_plain_text_body(node)
        if not diagram:
            return "<!-- Empty mermaid macro -->"
        return f"```mermaid\n{diagram}\n```\n"

    def _convert_expand_macro(self, node: Tag, macro_name: str, parent_tags: Set[str]) -> str:
        """Expand/details bodies are emitted as-is without a wrapper."""
        content = self.convert_nested(node, parent_tags)
        return content + '\n\n' if content else ''

    def _convert_toc_macro(self, node: Tag, macro_name: str, parent_tags: Set[str]) -> str:
        return '[toc]'

    def _convert_status_macro(self, node: Tag, macro_name: str, parent_tags: Set[str]) -> str:
        """Convert status lozenge to an inline badge."""
        title = get_parameter(node, 'title')
        if not title:
            return ''

        emoji = self._status_colours.get(get_parameter(node, 'colour').lower())
        if emoji:
            return f"{emoji} **{title}**"
        return f"**[{title}]**"

    def _convert_children_macro(self, node: Tag, macro_name: str, parent_tags: Set[str]) -> str:
        return '<!-- Child Pages -->'

    def _convert_jira_macro(self, node: Tag, macro_name: str, parent_tags: Set[str]) -> str:
        key = get_parameter(node, 'key')
        if not key:
            self.logger.warning("Jira macro without issue key")
            return '<!-- Jira issue key not found -->'

        base_url = self.converter.base_url
        if base_url:
            jira_url = base_url.rstrip('/').replace('confluence', 'jira', 1)
            return f"[{key}]({jira_url}/browse/{key})"
        return key

    def _convert_view_file_macro(self, node: Tag, macro_name: str, parent_tags: Set[str]) -> str:
        file_name = get_attachment_filename(node)
        if not file_name:
            return '<!-- file attachment not found -->'
        return f"[{file_name}]({self.converter.image_folder}/{file_name})"

    def _convert_anchor_macro(self, node: Tag, macro_name: str, parent_tags: Set[str]) -> str:
        anchor = slugify(node.get_text().strip())
        if not anchor:
            return '<!-- anchor macro has no anchor -->'
        return f"<a name={anchor}></a>"

    @staticmethod
    def _quote_lines(lines) -> str:
        """Prefix lines with ``> ``; blank lines become a bare ``>``."""
        quoted = ['> ' + line if line.strip() else '>' for line in lines]
        return '\n'.join(quoted).rstrip('\n')


__all__ = ['MacroHandler']
