"""Single-page pipeline: convert, download images and save."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .config_loader import get_nested
from .confluence_client import ConfluenceClientError
from .converters.page_converter import PageConverter
from .exporters.attachment_manager import AttachmentManager
from .exporters.markdown_writer import generate_file_name, save_markdown_document
from .models import ConfluencePage

logger = logging.getLogger('confluence_md.pipeline')


@dataclass
class PageConversionResult:
    """Outcome of converting one page."""

    page_id: str
    title: str
    output_path: Optional[Path] = None
    images_count: int = 0
    images_failed: int = 0
    success: bool = False
    error: Optional[str] = None


def convert_single_page(
    client: Any,
    page: ConfluencePage,
    base_url: str,
    config: Dict[str, Any],
    output_path: Optional[Union[str, Path]] = None
) -> PageConversionResult:
    """
    Convert a page and write it to disk.

    Args:
        client: ConfluenceClient used for mentions and image downloads
        page: Page to convert
        base_url: Confluence base URL
        config: Merged configuration (``convert`` section)
        output_path: Target file; derived from ``convert.output`` and the
            output name template when omitted

    Returns:
        PageConversionResult; failures are reported, not raised
    """
    result = PageConversionResult(page_id=page.id, title=page.title)

    try:
        if output_path is None:
            file_name = generate_file_name(page, get_nested(config, 'convert.output_name_template'))
            output_path = Path(get_nested(config, 'convert.output', './output')) / file_name
        output_path = Path(output_path)
        result.output_path = output_path

        image_folder = get_nested(config, 'convert.image_folder', 'assets')
        converter = PageConverter(client=client, image_folder=image_folder)
        doc = converter.convert_page(page, base_url)

        if get_nested(config, 'convert.download_images', True) and doc.images:
            manager = AttachmentManager(client, image_folder=image_folder)
            stats = manager.download_images(doc, page, output_path.parent)
            result.images_count = stats['downloaded']
            result.images_failed = stats['failed']

        save_markdown_document(doc, output_path, get_nested(config, 'convert.include_metadata', True))
        result.success = True
        logger.info(f"Converted '{page.title}' -> {output_path}")

    except (ValueError, ConfluenceClientError, OSError) as e:
        result.error = str(e)
        logger.error(f"Failed to convert page '{page.title}' ({page.id}): {e}")

    return result


__all__ = ['PageConversionResult', 'convert_single_page']
