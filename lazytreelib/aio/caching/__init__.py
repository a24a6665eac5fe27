"""
Caching layer for LazyTreeLib - Optional performance optimization.

This module provides opt-in caching of fetched children, so reopening a
tree or running several trees over one data source skips repeat fetches.
"""

from .adapter import CachingChildFetcher

__all__ = [
    'CachingChildFetcher',
]
