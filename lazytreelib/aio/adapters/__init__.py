"""Child fetchers for concrete data sources.

This module contains fetchers that bridge specific data sources
(in-memory record sets, databases, APIs) to the lazy tree engine.
"""

from .records import (
    RecordSource,
    InMemoryRecordSource,
    RecordSetFetcher,
)

__all__ = [
    'RecordSource',
    'InMemoryRecordSource',
    'RecordSetFetcher',
]
