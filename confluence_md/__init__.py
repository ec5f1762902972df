"""Convert Confluence storage-format pages to Markdown."""

__version__ = "0.1.0"
