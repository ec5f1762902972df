"""Extracts attachment references from raw storage-format markup."""

import logging
import re
from typing import List
from urllib.parse import quote_plus

from ..models import ImageRef
from .extractors import parse_image_filename

logger = logging.getLogger('confluence_md.converters.imageextractor')

ATTACHMENT_PATTERN = re.compile(r'<ri:attachment[^>]*(ri:filename="[^"]+)"')


def build_attachment_url(base_url: str, page_id: str, file_name: str) -> str:
    """Download URL for an attachment of ``page_id``."""
    return f"{base_url.rstrip('/')}/download/attachments/{page_id}/{quote_plus(file_name)}"


def extract_image_references(markup: str, page_id: str, base_url: str) -> List[ImageRef]:
    """
    Find every ``ri:attachment`` reference in ``markup``.

    References are returned in document order without deduplication; a file
    referenced twice appears twice.
    """
    references = []
    for match in ATTACHMENT_PATTERN.finditer(markup):
        file_name = parse_image_filename(match.group(0))
        if not file_name:
            continue
        references.append(ImageRef(
            original_url=build_attachment_url(base_url, page_id, file_name),
            file_name=file_name
        ))

    logger.debug(f"Found {len(references)} attachment references in page {page_id}")
    return references


__all__ = ['build_attachment_url', 'extract_image_references']
