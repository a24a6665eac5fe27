"""Configuration system for LazyTreeLib.

This module defines how users describe a tree session: which value marks
a root node, how fetch latency is simulated, how many fetches may hit the
backing source at once, and how expand-all behaves.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, List


class ExpandAllMode(Enum):
    """What expand-all does with branches that were never fetched."""
    LOADED_ONLY = "loaded_only"      # Expand what is materialized, no fetches
    FETCH_MISSING = "fetch_missing"  # Fetch unloaded branches, then expand them


@dataclass
class TreeConfig:
    """Complete configuration for a lazy tree session.

    The defaults mirror an in-process data source: roots are records whose
    parent is ``None`` and fetches complete without artificial delay.
    """

    # Parent value that marks a root record
    root_id: Any = None

    # Simulated fetch latency in seconds (uniformly drawn per fetch)
    min_latency: float = 0.0
    max_latency: float = 0.0

    # Concurrent accesses allowed against the backing source
    max_concurrent: int = 100

    # Projection
    loading_label: str = "Loading..."

    # Error handling
    verbose_errors: bool = True

    # Bulk expansion
    expand_all_mode: ExpandAllMode = ExpandAllMode.LOADED_ONLY

    # Optional caching fetcher
    cache_size: int = 10000
    cache_ttl: float = 300.0  # 5 minutes

    @classmethod
    def instant(cls, **overrides) -> 'TreeConfig':
        """Create config with no simulated latency and quiet errors.

        Returns:
            TreeConfig suited for tests and synchronous-feeling demos
        """
        values = dict(min_latency=0.0, max_latency=0.0, verbose_errors=False)
        values.update(overrides)
        return cls(**values)

    @classmethod
    def simulated_network(cls, min_latency: float = 0.05, max_latency: float = 1.0) -> 'TreeConfig':
        """Create config that behaves like a slow, jittery remote source.

        Args:
            min_latency: Fastest fetch in seconds
            max_latency: Slowest fetch in seconds

        Returns:
            TreeConfig with variable latency
        """
        return cls(min_latency=min_latency, max_latency=max_latency)

    def validate(self) -> List[str]:
        """Validate configuration for consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if self.min_latency < 0:
            errors.append("min_latency cannot be negative")
        if self.max_latency < self.min_latency:
            errors.append("max_latency cannot be less than min_latency")

        if self.max_concurrent <= 0:
            errors.append("max_concurrent must be positive")

        if self.cache_size <= 0:
            errors.append("cache_size must be positive")
        if self.cache_ttl <= 0:
            errors.append("cache_ttl must be positive")

        if not isinstance(self.expand_all_mode, ExpandAllMode):
            errors.append("expand_all_mode must be an ExpandAllMode")

        return errors
