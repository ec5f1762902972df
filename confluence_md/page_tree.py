"""Fetch a page hierarchy and convert it into a matching directory tree."""

import fnmatch
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from tqdm import tqdm

from .config_loader import get_nested
from .confluence_client import ConfluenceClientError
from .exporters.markdown_writer import generate_file_name, sanitize_file_name
from .logger import ProgressTracker
from .models import ConfluencePage
from .pipeline import PageConversionResult, convert_single_page

logger = logging.getLogger('confluence_md.page_tree')

ERROR_TITLE = "Error loading page"


@dataclass
class PageNode:
    """A page in the fetched hierarchy."""

    id: str
    title: str
    level: int = 0
    path: List[str] = field(default_factory=list)
    children: List['PageNode'] = field(default_factory=list)
    error: Optional[str] = None

    def walk(self):
        """Yield this node and its descendants depth-first."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class TreeStats:
    total_pages: int = 0
    max_depth: int = 0
    estimated_size: int = 0


@dataclass
class TreeConversionResults:
    success: int = 0
    failed: int = 0
    results: List[PageConversionResult] = field(default_factory=list)


def should_exclude(title: str, patterns: Optional[List[str]]) -> bool:
    return any(fnmatch.fnmatchcase(title, pattern) for pattern in patterns or [])


def fetch_page_tree(
    client: Any,
    page_id: str,
    max_depth: int = -1,
    exclude: Optional[List[str]] = None,
    level: int = 0,
    parent_path: Optional[List[str]] = None
) -> Optional[PageNode]:
    """
    Fetch ``page_id`` and its descendants.

    Args:
        client: ConfluenceClient
        page_id: Root page id
        max_depth: Deepest level to fetch; -1 means unlimited
        exclude: Shell-style title patterns; matching pages and their subtrees are skipped
        level: Level of ``page_id`` (root is 0)
        parent_path: Titles from the root down to the parent

    Returns:
        The node, or None when it is excluded or beyond ``max_depth``.
        A page that cannot be fetched becomes a node with ``error`` set.
    """
    parent_path = parent_path or []
    if max_depth != -1 and level > max_depth:
        return None

    try:
        data = client.get_page(page_id, expand=[])
    except ConfluenceClientError as e:
        logger.warning(f"Failed to fetch page {page_id}: {e}")
        return PageNode(
            id=page_id,
            title=ERROR_TITLE,
            level=level,
            path=parent_path + [ERROR_TITLE],
            error=str(e)
        )

    title = data.get('title', '')
    if should_exclude(title, exclude):
        logger.info(f"Excluding page '{title}' ({page_id})")
        return None

    node = PageNode(id=str(page_id), title=title, level=level, path=parent_path + [title])

    if max_depth == -1 or level < max_depth:
        try:
            children = client.get_child_pages(page_id)
        except ConfluenceClientError as e:
            logger.warning(f"Failed to fetch children for '{title}': {e}")
            children = []

        for child in children:
            child_node = fetch_page_tree(
                client, str(child['id']), max_depth, exclude, level + 1, node.path
            )
            if child_node is not None:
                node.children.append(child_node)

    return node


def calculate_tree_stats(node: Optional[PageNode]) -> TreeStats:
    """Count pages and the deepest level; size is a rough guess from title lengths."""
    if node is None:
        return TreeStats()

    stats = TreeStats(total_pages=1, max_depth=node.level, estimated_size=len(node.title) * 100)
    for child in node.children:
        child_stats = calculate_tree_stats(child)
        stats.total_pages += child_stats.total_pages
        stats.max_depth = max(stats.max_depth, child_stats.max_depth)
        stats.estimated_size += child_stats.estimated_size
    return stats


def render_tree(node: Optional[PageNode], indent: int = 0) -> str:
    """Render the hierarchy as an indented listing."""
    if node is None:
        return ''

    prefix = '' if indent == 0 else '  ' * (indent - 1) + '├─ '
    line = f"{prefix}{node.title}"
    if node.error:
        line += f" (Error: {node.error})"

    lines = [line]
    for child in node.children:
        lines.append(render_tree(child, indent + 1))
    return '\n'.join(lines)


def get_output_path(node: PageNode, page: ConfluencePage, base_dir: Union[str, Path],
                    template: Optional[str] = None) -> Path:
    """Ancestor titles become directories; the page itself becomes the file."""
    path = Path(base_dir)
    for ancestor_title in node.path[:-1]:
        path = path / sanitize_file_name(ancestor_title)
    return path / generate_file_name(page, template)


def convert_page_tree(
    client: Any,
    root: PageNode,
    base_url: str,
    config: Dict[str, Any]
) -> TreeConversionResults:
    """
    Convert every node of the tree in parallel.

    Each page is fetched in full and converted with its own converter, so
    nodes are independent. Per-page failures are counted and logged.
    """
    nodes = list(root.walk())
    output_dir = get_nested(config, 'convert.output', './output')
    parallel = get_nested(config, 'tree.parallel', 3)
    results = TreeConversionResults()

    with ProgressTracker(len(nodes)) as tracker:
        with ThreadPoolExecutor(max_workers=parallel) as executor:
            future_to_node = {
                executor.submit(_convert_node, client, node, base_url, output_dir, config): node
                for node in nodes
            }

            futures = list(future_to_node.keys())
            if sys.stdout.isatty():
                futures = tqdm(futures, desc="Converting pages", total=len(nodes), unit="page")

            for future in futures:
                result = future.result()
                results.results.append(result)
                if result.success:
                    results.success += 1
                else:
                    results.failed += 1
                tracker.increment(result.success)

    return results


def _convert_node(client: Any, node: PageNode, base_url: str, output_dir: Union[str, Path],
                  config: Dict[str, Any]) -> PageConversionResult:
    if node.error:
        return PageConversionResult(page_id=node.id, title=node.title, error=node.error)

    try:
        page = ConfluencePage.from_api(client.get_page(node.id), base_url)
        output_path = get_output_path(
            node, page, output_dir, get_nested(config, 'convert.output_name_template')
        )
    except (ConfluenceClientError, ValueError) as e:
        logger.error(f"Failed to prepare page '{node.title}' ({node.id}): {e}")
        return PageConversionResult(page_id=node.id, title=node.title, error=str(e))

    return convert_single_page(client, page, base_url, config, output_path)


__all__ = [
    'PageNode',
    'TreeStats',
    'TreeConversionResults',
    'fetch_page_tree',
    'calculate_tree_stats',
    'render_tree',
    'get_output_path',
    'convert_page_tree',
    'should_exclude'
]
