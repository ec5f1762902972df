"""Write converted documents to disk as Markdown files with YAML front matter."""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from ..converters.extractors import slugify
from ..models import ConfluencePage, MarkdownDocument

logger = logging.getLogger('confluence_md.exporters.markdown_writer')

MAX_FILE_NAME_LENGTH = 100


def sanitize_file_name(title: str) -> str:
    """
    Convert a page title to a filesystem-safe name.

    Args:
        title: Page title

    Returns:
        Slug of the title, truncated; "untitled" when nothing usable remains
    """
    if not title:
        return "untitled"

    sanitized = slugify(title)[:MAX_FILE_NAME_LENGTH].rstrip('-_')
    if not sanitized:
        sanitized = "untitled"
    return sanitized


def generate_file_name(page: ConfluencePage, template: Optional[str] = None) -> str:
    """
    Build the output file name for a page.

    Without a template the name is the title slug plus ``.md``. A template is a
    ``str.format`` string receiving ``page``, ``slug_title`` and ``label_names``,
    e.g. ``"{page.space_key}-{slug_title}"``.

    Raises:
        ValueError: If the template references unknown fields or renders empty
    """
    slug_title = sanitize_file_name(page.title)
    if not template or not template.strip():
        return f"{slug_title}.md"

    try:
        name = template.format(page=page, slug_title=slug_title, label_names=list(page.labels))
    except (KeyError, AttributeError, IndexError) as e:
        raise ValueError(f"Invalid output name template '{template}': {e}") from e

    name = name.strip()
    if not name or name in ('.', '..') or '/' in name or '\\' in name:
        raise ValueError(f"Output name template '{template}' produced an invalid file name: '{name}'")
    if not name.endswith('.md'):
        name += '.md'
    return name


def render_front_matter(front_matter: Dict[str, Any]) -> str:
    # Block style lists, no wrapping, keep insertion order
    yaml_str = yaml.dump(
        front_matter,
        default_flow_style=False,
        allow_unicode=True,
        sort_keys=False,
        width=1000
    )
    return f"---\n{yaml_str}---"


def save_markdown_document(
    doc: MarkdownDocument,
    path: Union[str, Path],
    include_metadata: bool = True
) -> Path:
    """
    Write a document to ``path``, creating parent directories.

    Args:
        doc: Converted document
        path: Target Markdown file
        include_metadata: Prepend YAML front matter

    Returns:
        The written path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    body = doc.content
    if include_metadata and doc.front_matter:
        body = f"{render_front_matter(doc.front_matter)}\n\n{doc.content}"
    if not body.endswith('\n'):
        body += '\n'

    path.write_text(body, encoding='utf-8')
    logger.debug(f"Wrote {len(body)} characters to {path}")
    return path


__all__ = ['generate_file_name', 'sanitize_file_name', 'save_markdown_document', 'render_front_matter']
