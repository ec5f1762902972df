"""Exporters writing converted pages and their images to disk."""

from .attachment_manager import (
    AttachmentError,
    AttachmentManager,
    AttachmentNotFoundError,
    AttachmentTooLargeError,
)
from .markdown_writer import generate_file_name, sanitize_file_name, save_markdown_document

__all__ = [
    'AttachmentManager',
    'AttachmentError',
    'AttachmentNotFoundError',
    'AttachmentTooLargeError',
    'generate_file_name',
    'sanitize_file_name',
    'save_markdown_document'
]
