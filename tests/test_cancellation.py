"""Tests for CancellationToken."""

from unittest.mock import MagicMock

import pytest

from idguard.errors import OperationCancelledError
from idguard.security.cancellation import CancellationToken


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_initial_state(self):
        token = CancellationToken()
        assert not token.is_cancelled
        token.raise_if_cancelled()

    def test_cancel_raises(self):
        token = CancellationToken()
        token.cancel()
        assert token.is_cancelled
        with pytest.raises(OperationCancelledError) as exc_info:
            token.raise_if_cancelled()
        assert exc_info.value.code == "CANCELLED"

    def test_callbacks_run_once(self):
        token = CancellationToken()
        callback = MagicMock()
        token.on_cancel(callback)

        token.cancel()
        token.cancel()

        callback.assert_called_once()

    def test_late_registration_runs_immediately(self):
        token = CancellationToken()
        token.cancel()
        callback = MagicMock()
        token.on_cancel(callback)
        callback.assert_called_once()

    def test_failing_callback_does_not_block_others(self):
        token = CancellationToken()
        second = MagicMock()
        token.on_cancel(MagicMock(side_effect=RuntimeError("boom")))
        token.on_cancel(second)

        token.cancel()

        second.assert_called_once()
