"""Attachment manager for downloading the images a converted page references."""

import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Union

from tqdm import tqdm

from ..confluence_client import ConfluenceClientError
from ..models import ConfluenceAttachment, ConfluencePage, ImageRef, MarkdownDocument

MAX_ATTACHMENT_SIZE = 50 * 1024 * 1024  # 50MB


class AttachmentError(Exception):
    """An attachment could not be downloaded or written."""


class AttachmentNotFoundError(AttachmentError):
    """The page has no attachment with the referenced file name."""


class AttachmentTooLargeError(AttachmentError):
    """The attachment exceeds the configured size limit."""


class AttachmentManager:
    """
    Downloads image attachments referenced by a converted page.

    For every image reference of a MarkdownDocument the manager:
    1. Resolves the attachment in the page inventory (refreshing it from the API once)
    2. Rejects files larger than the size limit before downloading
    3. Writes the bytes to ``<output_dir>/<image_folder>/<file name>``
    4. Records content type, size and local path on the reference

    Failures are logged and stored on the reference; they never abort the page.
    """

    def __init__(
        self,
        client: Any,
        image_folder: str = 'assets',
        max_file_size: int = MAX_ATTACHMENT_SIZE,
        show_progress: bool = True,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the attachment manager.

        Args:
            client: ConfluenceClient used for inventory refresh and downloads
            image_folder: Folder (relative to the Markdown file) receiving images
            max_file_size: Largest accepted attachment in bytes
            show_progress: Show a tqdm bar when stdout is a terminal
            logger: Logger instance
        """
        self.client = client
        self.image_folder = (image_folder or 'assets').strip('/')
        self.max_file_size = max_file_size
        self.show_progress = show_progress
        self.logger = logger or logging.getLogger('confluence_md.exporters.attachment_manager')

        self.stats = {
            'total_images': 0,
            'downloaded': 0,
            'failed': 0,
            'total_size_bytes': 0
        }

    def download_images(
        self,
        doc: MarkdownDocument,
        page: ConfluencePage,
        output_dir: Union[str, Path]
    ) -> Dict[str, int]:
        """
        Download every image the document references.

        Args:
            doc: Converted document whose ``images`` are processed in order
            page: Source page providing the attachment inventory
            output_dir: Directory holding the Markdown file

        Returns:
            Per-page statistics dictionary
        """
        page_stats = {'total_images': 0, 'downloaded': 0, 'failed': 0}
        if not doc.images:
            return page_stats

        images_dir = Path(output_dir) / self.image_folder
        inventory_refreshed = False

        images_iter = doc.images
        if self._should_show_progress():
            images_iter = tqdm(doc.images, desc=f"Images: {page.title[:30]}", leave=False)

        for ref in images_iter:
            self.stats['total_images'] += 1
            page_stats['total_images'] += 1

            try:
                attachment = page.find_attachment(ref.file_name)
                if attachment is None and not inventory_refreshed:
                    inventory_refreshed = True
                    self._refresh_inventory(page)
                    attachment = page.find_attachment(ref.file_name)
                if attachment is None:
                    raise AttachmentNotFoundError(
                        f"Attachment '{ref.file_name}' not found on page {page.id}"
                    )

                target = self._save(ref, attachment, images_dir)
                ref.local_path = str(Path(self.image_folder) / target.name)

                self.stats['downloaded'] += 1
                page_stats['downloaded'] += 1
                self.stats['total_size_bytes'] += ref.size
                self.logger.debug(f"Saved image '{ref.file_name}' -> {target}")

            except (AttachmentError, ConfluenceClientError, OSError) as e:
                ref.error = str(e)
                self.stats['failed'] += 1
                page_stats['failed'] += 1
                self.logger.warning(f"Failed to download image '{ref.file_name}': {e}")

        if page_stats['downloaded']:
            self.logger.info(
                f"Downloaded {page_stats['downloaded']}/{page_stats['total_images']} images for '{page.title}'"
            )
        return page_stats

    def _refresh_inventory(self, page: ConfluencePage) -> None:
        self.logger.debug(f"Refreshing attachment inventory for page {page.id}")
        results = self.client.get_attachments(page.id)
        page.attachments = [ConfluenceAttachment.from_api(item) for item in results]

    def _save(self, ref: ImageRef, attachment: ConfluenceAttachment, images_dir: Path) -> Path:
        if attachment.file_size > self.max_file_size:
            raise AttachmentTooLargeError(
                f"Image {ref.file_name} too large: {attachment.file_size} bytes (max {self.max_file_size})"
            )

        data = self.client.download_attachment(attachment.download_link or ref.original_url)
        if len(data) > self.max_file_size:
            raise AttachmentTooLargeError(
                f"Image {ref.file_name} too large: {len(data)} bytes (max {self.max_file_size})"
            )

        ref.content_type = attachment.media_type
        ref.size = attachment.file_size or len(data)

        # File names come from page markup; keep them inside the image folder
        target = images_dir / Path(ref.file_name).name
        images_dir.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return target

    def _should_show_progress(self) -> bool:
        return self.show_progress and sys.stdout.isatty()

    def get_stats(self) -> Dict[str, int]:
        """Get attachment processing statistics."""
        return self.stats.copy()


__all__ = [
    'AttachmentManager',
    'AttachmentError',
    'AttachmentNotFoundError',
    'AttachmentTooLargeError',
    'MAX_ATTACHMENT_SIZE'
]
