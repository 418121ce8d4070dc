"""Unit tests for the backend lifecycle state machine."""

from __future__ import annotations

import pytest

from thinkgate.supervisor.state import InvalidTransitionError, ProcessState, check_transition


class TestTransitions:
    """Tests for allowed and rejected transitions."""

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (ProcessState.IDLE, ProcessState.STARTING),
            (ProcessState.STARTING, ProcessState.RUNNING),
            (ProcessState.STARTING, ProcessState.STOPPED),
            (ProcessState.RUNNING, ProcessState.STOPPING),
            (ProcessState.RUNNING, ProcessState.STOPPED),
            (ProcessState.STOPPING, ProcessState.STOPPED),
            (ProcessState.STOPPED, ProcessState.STARTING),
        ],
    )
    def test_allowed(self, current, target):
        check_transition(current, target)

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (ProcessState.IDLE, ProcessState.RUNNING),
            (ProcessState.IDLE, ProcessState.STOPPING),
            (ProcessState.STOPPING, ProcessState.RUNNING),
            (ProcessState.STOPPED, ProcessState.RUNNING),
            (ProcessState.RUNNING, ProcessState.STARTING),
        ],
    )
    def test_rejected(self, current, target):
        with pytest.raises(InvalidTransitionError):
            check_transition(current, target)

    def test_values_are_lowercase_names(self):
        assert [s.value for s in ProcessState] == ["idle", "starting", "running", "stopping", "stopped"]
