"""Testing utilities for LazyTreeLib consumers."""

from .fixtures import FlakyRecordSource, GatedFetcher

__all__ = ['FlakyRecordSource', 'GatedFetcher']
