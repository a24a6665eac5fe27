"""
Tests for error types and error handling policies.
"""

import pytest

from lazytreelib.aio import (
    CollectErrorsPolicy,
    ContinueOnErrorsPolicy,
    FetchError,
    InvariantViolation,
    LazyTreeError,
    ThresholdPolicy,
    UnknownNodeError,
)


class TestErrorTypes:

    def test_fetch_error_carries_parent_and_cause(self):
        cause = OSError("connection reset")
        error = FetchError(7, cause)

        assert error.parent_id == 7
        assert error.cause is cause
        assert "7" in str(error)
        assert "connection reset" in str(error)

    def test_fetch_error_custom_message(self):
        assert str(FetchError(7, message="gave up")) == "gave up"

    def test_hierarchy(self):
        assert issubclass(FetchError, LazyTreeError)
        assert issubclass(InvariantViolation, LazyTreeError)
        assert issubclass(UnknownNodeError, LazyTreeError)
        assert issubclass(UnknownNodeError, KeyError)

    def test_unknown_node_message(self):
        assert str(UnknownNodeError('x')) == "Unknown node 'x'"


class TestErrorPolicies:
    """Test individual error policy behaviors."""

    @pytest.mark.asyncio
    async def test_continue_on_errors_policy(self, capsys):
        """ContinueOnErrorsPolicy should track errors and warn on stderr."""
        policy = ContinueOnErrorsPolicy(verbose=True)

        await policy.handle(FetchError(3), "fetch_children", 3)
        await policy.handle(FetchError(3), "fetch_children", 3)

        assert policy.failed_nodes == [3]
        stats = policy.get_statistics()
        assert stats['total_errors'] == 2
        assert stats['failed_nodes'] == 1

        captured = capsys.readouterr()
        assert "WARNING: Error in fetch_children for node 3" in captured.err

    @pytest.mark.asyncio
    async def test_quiet_continue_policy(self, capsys):
        policy = ContinueOnErrorsPolicy(verbose=False)
        await policy.handle(FetchError(3), "fetch_children", 3)
        assert capsys.readouterr().err == ""

    @pytest.mark.asyncio
    async def test_collect_errors_policy(self, capsys):
        """CollectErrorsPolicy should collect all errors silently."""
        policy = CollectErrorsPolicy()

        await policy.handle(FetchError(1), "fetch_children", 1)
        await policy.handle(FetchError(2, OSError("x")), "fetch_children", 2)

        assert [e['node_id'] for e in policy.errors] == [1, 2]
        assert all(e['error_type'] == 'FetchError' for e in policy.errors)
        assert capsys.readouterr().err == ""

    @pytest.mark.asyncio
    async def test_threshold_policy(self):
        """ThresholdPolicy should fail after threshold."""
        policy = ThresholdPolicy(max_errors=2, verbose=False)

        await policy.handle(FetchError(1), "fetch_children", 1)
        await policy.handle(FetchError(2), "fetch_children", 2)

        with pytest.raises(RuntimeError) as exc_info:
            await policy.handle(FetchError(3), "fetch_children", 3)

        assert "threshold exceeded" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, FetchError)
        assert policy.error_count == 3
