#!/usr/bin/env python3
"""Command line interface: convert a Confluence page or page tree to Markdown."""

import argparse
import logging
import os
import sys
from typing import List, Optional

import yaml

from . import __version__
from .config_loader import ConfigLoader, get_nested
from .confluence_client import ConfluenceClient, ConfluenceClientError
from .logger import log_config, log_section, setup_logging
from .models import ConfluencePage, PageURLInfo
from .page_tree import calculate_tree_stats, convert_page_tree, fetch_page_tree, render_tree
from .pipeline import PageConversionResult, convert_single_page


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('url', help='Confluence page URL')

    parser.add_argument(
        '-t', '--api-token',
        type=str,
        default=os.getenv('CONFLUENCE_API_TOKEN'),
        help='Confluence API token (default: $CONFLUENCE_API_TOKEN)'
    )

    parser.add_argument(
        '-u', '--username',
        type=str,
        default=os.getenv('CONFLUENCE_USERNAME'),
        help='Confluence user name or email (default: $CONFLUENCE_USERNAME)'
    )

    parser.add_argument(
        '-o', '--output',
        type=str,
        help='Output directory (default: ./output)'
    )

    parser.add_argument(
        '--image-folder',
        type=str,
        help='Folder for downloaded images, relative to each Markdown file (default: assets)'
    )

    parser.add_argument(
        '--download-images',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Download referenced images (default: on)'
    )

    parser.add_argument(
        '--include-metadata',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Write YAML front matter (default: on)'
    )

    parser.add_argument(
        '--output-name-template',
        type=str,
        help='File name template, e.g. "{page.space_key}-{slug_title}"; '
             'fields: page, slug_title, label_names'
    )


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog='confluence-md',
        description="Convert Confluence pages to Markdown",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Convert a single page
  confluence-md page https://example.atlassian.net/wiki/spaces/SPACE/pages/12345/Title -u me@example.com -t TOKEN

  # Convert to a custom directory without images
  confluence-md page URL --output ./docs --no-download-images

  # Convert a page tree two levels deep, skipping drafts
  confluence-md tree URL --depth 2 --exclude "Draft*"

  # Preview a page tree
  confluence-md tree URL --dry-run

  # Verbose logging
  confluence-md -vv page URL
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--config',
        type=str,
        help='Path to configuration YAML file'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Also write logs to this file (rotated at 10MB)'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for INFO, -vv for DEBUG)'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    page_parser = subparsers.add_parser('page', help='Convert a single page')
    _add_common_arguments(page_parser)

    tree_parser = subparsers.add_parser('tree', help='Convert a page and all its descendants')
    _add_common_arguments(tree_parser)

    tree_parser.add_argument(
        '--depth',
        type=int,
        help='Maximum depth to traverse, -1 for unlimited (default: -1)'
    )

    tree_parser.add_argument(
        '--parallel',
        type=int,
        help='Number of pages converted concurrently (default: 3)'
    )

    tree_parser.add_argument(
        '--exclude',
        nargs='+',
        metavar='PATTERN',
        help='Glob patterns; matching page titles are skipped with their children'
    )

    tree_parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Show the page tree without converting'
    )

    return parser


def print_conversion_result(result: PageConversionResult) -> None:
    if result.success:
        print(f"✅ Successfully converted page: {result.output_path}")
        print(f"   Page ID: {result.page_id}")
        print(f"   Title: {result.title}")
        if result.images_count:
            print(f"   📥 Images downloaded: {result.images_count}")
        if result.images_failed:
            print(f"   ⚠️  Images failed: {result.images_failed}")
    else:
        print(f"❌ Failed to convert page: {result.title}")
        if result.error:
            print(f"   Error: {result.error}")
    print()


def resolve_page_id(client: ConfluenceClient, info: PageURLInfo) -> str:
    if info.page_id:
        return info.page_id
    return client.retrieve_page_id(info.space_key, info.title)


def run_page(client: ConfluenceClient, page_id: str, base_url: str, config: dict) -> int:
    page = ConfluencePage.from_api(client.get_page(page_id), base_url)
    result = convert_single_page(client, page, base_url, config)
    print_conversion_result(result)
    return 0 if result.success else 1


def run_tree(client: ConfluenceClient, page_id: str, base_url: str, config: dict, dry_run: bool) -> int:
    logger = logging.getLogger('confluence_md.cli')

    tree = fetch_page_tree(
        client,
        page_id,
        max_depth=get_nested(config, 'tree.max_depth', -1),
        exclude=get_nested(config, 'tree.exclude', [])
    )
    if tree is None:
        print("Root page is excluded; nothing to convert")
        return 0

    if dry_run:
        stats = calculate_tree_stats(tree)
        print("📊 Page tree structure:")
        print(render_tree(tree))
        print()
        print("📈 Statistics:")
        print(f"  Total pages: {stats.total_pages}")
        print(f"  Max depth: {stats.max_depth}")
        print(f"  Total size: ~{stats.estimated_size // 1024} KB")
        return 0

    log_section("Tree conversion")
    results = convert_page_tree(client, tree, base_url, config)
    for result in results.results:
        if not result.success:
            print_conversion_result(result)

    print("✅ Conversion complete!")
    print(f"  Successful: {results.success} pages")
    if results.failed:
        print(f"  Failed: {results.failed} pages")
        logger.warning(f"{results.failed} pages failed to convert")
    print(f"  Output: {get_nested(config, 'convert.output', './output')}")

    return 1 if results.failed else 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        setup_logging(verbosity=args.verbose, log_file=args.log_file)
        logger = logging.getLogger('confluence_md.cli')
        logger.info(f"confluence-md {__version__}")

        config = ConfigLoader.load(args.config)
        config = ConfigLoader.merge_with_args(config, args)

        # -v on the command line wins over logging.level from the config file
        setup_logging(
            verbosity=args.verbose,
            log_file=get_nested(config, 'logging.file'),
            level=None if args.verbose else get_nested(config, 'logging.level')
        )

        info = PageURLInfo.from_url(args.url)
        if not get_nested(config, 'confluence.base_url'):
            config['confluence']['base_url'] = info.base_url
        base_url = config['confluence']['base_url'].rstrip('/')

        ConfigLoader.validate(config)
        log_config(config)

        client = ConfluenceClient.from_config(config)
        page_id = resolve_page_id(client, info)

        if args.command == 'page':
            return run_page(client, page_id, base_url, config)
        return run_tree(client, page_id, base_url, config, args.dry_run)

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return 2
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    except yaml.YAMLError as e:
        print(f"ERROR: Invalid configuration file: {e}", file=sys.stderr)
        return 2
    except ConfluenceClientError as e:
        print(f"ERROR: Confluence request failed: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nConversion interrupted by user", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
