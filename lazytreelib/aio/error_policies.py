"""
Error handling policies for LazyTreeLib.

A fetch failure is always recorded on its node by the store first; the
controller then hands it to a policy, which decides how loudly to report
it. Policies follow the Policy pattern so callers can swap reporting
without touching the controller.
"""

from abc import ABC, abstractmethod
from typing import Any
import sys


class ErrorPolicy(ABC):
    """
    Base class for fetch error policies.

    Subclasses implement different strategies for reporting errors
    that occur while fetching a node's children.
    """

    @abstractmethod
    async def handle(self, error: Exception, method_name: str, node_id: Any) -> None:
        """
        Handle an error that occurred while fetching children.

        Args:
            error: The exception that was raised (usually a FetchError)
            method_name: Name of the operation that failed (e.g., 'fetch_children')
            node_id: Id of the node whose fetch failed

        Raises:
            Any exception the policy wants to propagate out of ``expand``.
            Returning normally keeps the failure contained at the node.
        """
        pass

    @staticmethod
    def _error_record(error: Exception, method_name: str, node_id: Any) -> dict:
        return {
            'node_id': node_id,
            'method': method_name,
            'error': error,
            'error_type': type(error).__name__,
            'error_message': str(error)
        }


class ContinueOnErrorsPolicy(ErrorPolicy):
    """
    Policy that logs errors and keeps the tree usable.

    Errors are collected for later inspection. This is the default:
    one failed branch never disturbs its siblings or ancestors.
    """

    def __init__(self, verbose: bool = True):
        """
        Initialize the policy.

        Args:
            verbose: If True, print warnings to stderr when errors occur
        """
        self.errors = []
        self.failed_nodes = []
        self.verbose = verbose

    async def handle(self, error: Exception, method_name: str, node_id: Any) -> None:
        """Record the error and print a warning if verbose."""
        self.errors.append(self._error_record(error, method_name, node_id))
        if node_id not in self.failed_nodes:
            self.failed_nodes.append(node_id)

        if self.verbose:
            print(f"\nWARNING: Error in {method_name} for node {node_id!r}: {error}", file=sys.stderr)

    def get_statistics(self) -> dict:
        """
        Get statistics about errors encountered.

        Returns:
            Dictionary with error counts and details
        """
        return {
            'total_errors': len(self.errors),
            'failed_nodes': len(self.failed_nodes),
            'errors': self.errors  # Full error details
        }


class CollectErrorsPolicy(ErrorPolicy):
    """
    Policy that collects all errors without logging, for batch reporting.

    Similar to ContinueOnErrorsPolicy but without verbose output.
    """

    def __init__(self):
        """Initialize the policy."""
        self.errors = []

    async def handle(self, error: Exception, method_name: str, node_id: Any) -> None:
        """Silently collect the error."""
        self.errors.append(self._error_record(error, method_name, node_id))


class ThresholdPolicy(ErrorPolicy):
    """
    Policy that tolerates errors up to a threshold, then fails fast.

    Useful when a few failing branches are expected but many indicate
    the data source itself is down.
    """

    def __init__(self, max_errors: int = 10, verbose: bool = True):
        """
        Initialize threshold policy.

        Args:
            max_errors: Maximum errors to tolerate before failing
            verbose: If True, print warnings for errors
        """
        self.max_errors = max_errors
        self.error_count = 0
        self.verbose = verbose
        self.errors = []

    async def handle(self, error: Exception, method_name: str, node_id: Any) -> None:
        """Handle error if under threshold, otherwise re-raise."""
        self.error_count += 1
        self.errors.append(error)

        if self.error_count > self.max_errors:
            raise RuntimeError(f"Error threshold exceeded ({self.max_errors} errors)") from error

        if self.verbose:
            print(f"\nWARNING [{self.error_count}/{self.max_errors}]: Error in {method_name} for node {node_id!r}: {error}",
                  file=sys.stderr)
