"""Renders storage-format tables as rectangular Markdown tables."""

import io
import logging
import re
from typing import Any, List, Optional, Set, TextIO

from bs4 import Comment, NavigableString, Tag

from .dispatch import RenderStatus

logger = logging.getLogger('confluence_md.converters.tablehandler')

HEADING_TAGS = {'h1', 'h2', 'h3', 'h4', 'h5', 'h6'}
BLOCK_TEXT_TAGS = HEADING_TAGS | {'p'}
COMPLEX_DESCENDANTS = ['ul', 'ol', 'blockquote', 'table', 'pre', 'ac:task-list']
VERBATIM_INLINE_TAGS = {'strong', 'b', 'em', 'i', 'code', 'a'}


class TableHandler:
    """
    Converts ``table > tbody > tr > (th|td)`` structures.

    Simple cells are rendered through the regular conversion; cells holding
    lists, task lists, nested blocks or line breaks are flattened to a single
    line of inline HTML so the table stays valid Markdown.
    """

    def __init__(self, converter: Any, logger: logging.Logger = None):
        self.converter = converter
        self.logger = logger or logging.getLogger('confluence_md.converters.tablehandler')

    def handle(self, node: Tag, writer: TextIO, parent_tags: Set[str]) -> RenderStatus:
        tbody = node.find('tbody', recursive=False)
        if tbody is None:
            return RenderStatus.TRY_NEXT

        cell_tags = set(parent_tags)
        cell_tags.update(('table', 'tbody', 'tr', 'td', '_inline'))

        rows: List[List[str]] = []
        header_rows: List[bool] = []
        for tr in tbody.find_all('tr', recursive=False):
            cells = tr.find_all(['th', 'td'], recursive=False)
            if not cells:
                continue
            rows.append([self._render_cell(cell, cell_tags) for cell in cells])
            header_rows.append(all(cell.name == 'th' for cell in cells))

        if not rows:
            return RenderStatus.TRY_NEXT

        column_count = max(len(row) for row in rows)
        for row in rows:
            row.extend([' '] * (column_count - len(row)))

        separator_after = self._separator_position(header_rows)
        self.logger.debug(f"Rendering table with {len(rows)} rows and {column_count} columns")

        lines = []
        for index, row in enumerate(rows):
            lines.append('| ' + ' | '.join(row) + ' |')
            if index == separator_after:
                lines.append('|' + '---|' * column_count)

        writer.write('\n\n' + '\n'.join(lines) + '\n\n')
        return RenderStatus.SUCCESS

    @staticmethod
    def _separator_position(header_rows: List[bool]) -> int:
        """
        Index of the row followed by the separator line.

        Row 0 when it is a header row or when no row is a header row;
        otherwise the first all-header row. Confluence's own exporter writes
        no separator at all in that last case, which leaves an invalid
        Markdown table; here every table gets exactly one.
        """
        if header_rows[0] or not any(header_rows):
            return 0
        return header_rows.index(True)

    def is_complex(self, cell: Tag) -> bool:
        """True if the cell cannot be rendered as one Markdown fragment."""
        if cell.find(COMPLEX_DESCENDANTS) is not None:
            return True

        block_count = 0
        for child in cell.children:
            if not isinstance(child, Tag):
                continue
            if child.name in ('div', 'br'):
                return True
            if child.name in BLOCK_TEXT_TAGS:
                block_count += 1
                if block_count > 1 or child.find('br') is not None:
                    return True
        return False

    def _render_cell(self, cell: Tag, parent_tags: Set[str]) -> str:
        if self.is_complex(cell):
            content = self.flatten_cell(cell, parent_tags)
        else:
            first = self._first_content_child(cell)
            content = self.converter.render_node(first, parent_tags).strip() if first is not None else ''

        content = content.replace('|', '\\|')
        if not content.strip() or content.strip() in ('&nbsp;', '\xa0'):
            return ' '
        return content

    @staticmethod
    def _first_content_child(cell: Tag) -> Optional[Any]:
        for child in cell.children:
            if isinstance(child, Comment):
                continue
            if isinstance(child, NavigableString) and not str(child).strip():
                continue
            return child
        return None

    def flatten_cell(self, cell: Tag, parent_tags: Set[str]) -> str:
        """Flatten complex cell content to one line of inline HTML."""
        buffer = io.StringIO()
        self._flatten(cell, buffer, parent_tags)

        content = buffer.getvalue().replace('\n', ' ').replace('\r', '')
        return re.sub(r'\s+', ' ', content).strip()

    def _flatten(self, node: Tag, writer: TextIO, parent_tags: Set[str]) -> None:
        for child in node.children:
            self._flatten_node(child, writer, parent_tags)

    def _flatten_node(self, child: Any, writer: TextIO, parent_tags: Set[str]) -> None:
        if isinstance(child, Comment):
            return
        if isinstance(child, NavigableString):
            writer.write(str(child))
            return

        element_handler = self.converter.element_handler
        name = child.name
        if name in HEADING_TAGS:
            writer.write('<strong>')
            self._flatten(child, writer, parent_tags)
            writer.write('</strong>')
        elif name == 'br':
            writer.write('<br>')
        elif name == 'p':
            if child.contents:
                self._flatten(child, writer, parent_tags)
                if child.next_sibling is not None:
                    writer.write(' ')
        elif name in ('ul', 'ol'):
            self._flatten_list(child, writer, parent_tags, ordered=(name == 'ol'), depth=0)
        elif name == 'ac:task-list':
            self._flatten_task_list(child, writer, parent_tags)
        elif name in VERBATIM_INLINE_TAGS:
            writer.write(str(child))
        elif name == 'ac:structured-macro':
            writer.write(self.converter.macro_handler.render(child, parent_tags))
        elif name == 'ac:emoticon':
            element_handler.handle_emoticon(child, writer, parent_tags)
            self._flatten(child, writer, parent_tags)
        elif name == 'ac:link':
            element_handler.handle_link(child, writer, parent_tags)
        elif name == 'ac:image':
            element_handler.handle_image(child, writer, parent_tags)
        elif name == 'time':
            element_handler.handle_time(child, writer, parent_tags)
            self._flatten(child, writer, parent_tags)
        elif name == 'ac:placeholder':
            element_handler.handle_placeholder(child, writer, parent_tags)
        else:
            self._flatten(child, writer, parent_tags)

    def _flatten_list(self, list_node: Tag, writer: TextIO, parent_tags: Set[str], ordered: bool, depth: int) -> None:
        writer.write('<br>')
        index = 1
        for li in list_node.find_all('li', recursive=False):
            writer.write('&nbsp;&nbsp;' * depth)
            if ordered:
                writer.write(f"{index}. ")
                index += 1
            else:
                writer.write('• ')
            self._flatten_list_item(li, writer, parent_tags, depth)
            writer.write('<br>')

    def _flatten_list_item(self, li: Tag, writer: TextIO, parent_tags: Set[str], depth: int) -> None:
        for child in li.children:
            if isinstance(child, Comment):
                continue
            if isinstance(child, NavigableString):
                writer.write(str(child))
            elif child.name in ('ul', 'ol'):
                self._flatten_list(child, writer, parent_tags, ordered=(child.name == 'ol'), depth=depth + 1)
            elif child.name == 'p':
                if child.contents:
                    self._flatten(child, writer, parent_tags)
            else:
                self._flatten_node(child, writer, parent_tags)

    def _flatten_task_list(self, task_list: Tag, writer: TextIO, parent_tags: Set[str]) -> None:
        writer.write('<br>')
        for task in task_list.find_all('ac:task', recursive=False):
            status = task.find('ac:task-status', recursive=False)
            body = task.find('ac:task-body', recursive=False)

            complete = status is not None and status.get_text().strip() == 'complete'
            writer.write('☑ ' if complete else '☐ ')

            if body is not None:
                self._flatten(body, writer, parent_tags)
            writer.write('<br>')


__all__ = ['TableHandler']
