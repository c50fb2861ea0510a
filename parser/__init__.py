"""Parser package for link extraction."""

from parser.links import extract_links

__all__ = ["extract_links"]
