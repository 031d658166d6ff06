"""
Printable PDF rendering of storybooks.
"""

from .builder import PAGE_SIZES, StorybookPDFBuilder

__all__ = ["PAGE_SIZES", "StorybookPDFBuilder"]
