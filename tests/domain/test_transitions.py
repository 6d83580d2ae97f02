"""Tests for lifecycle transition validation."""

import pytest

from finiate.domain.agenda import AgendaStatus
from finiate.domain.log import LogType
from finiate.domain.transitions import (
    INITIAL_STATUS,
    TRANSITION_LOG_TYPES,
    Transition,
    TransitionResult,
    validate_transition,
)

pytestmark = pytest.mark.unit


class TestTransitionResult:
    def test_transition_result_defaults(self):
        result = TransitionResult(allowed=True, new_status=AgendaStatus.ONGOING)
        assert result.allowed is True
        assert result.reason == ""

    def test_transition_result_with_reason(self):
        result = TransitionResult(allowed=False, reason="Agenda is already terminated")
        assert result.new_status is None


class TestValidateTransition:
    def test_activate_stored_allowed(self):
        result = validate_transition(AgendaStatus.STORED, Transition.ACTIVATE)
        assert result.allowed is True
        assert result.new_status == AgendaStatus.ONGOING

    def test_put_off_ongoing_stays_ongoing(self):
        result = validate_transition(AgendaStatus.ONGOING, Transition.PUT_OFF)
        assert result.allowed is True
        assert result.new_status == AgendaStatus.ONGOING

    def test_terminate_ongoing_allowed(self):
        result = validate_transition(AgendaStatus.ONGOING, Transition.TERMINATE)
        assert result.allowed is True
        assert result.new_status == AgendaStatus.TERMINATED

    def test_terminate_terminated_rejected(self):
        """Re-terminating is a bug signal, not a no-op."""
        result = validate_transition(AgendaStatus.TERMINATED, Transition.TERMINATE)
        assert result.allowed is False
        assert "already terminated" in result.reason

    @pytest.mark.parametrize("transition", [Transition.ACTIVATE, Transition.PUT_OFF])
    def test_nothing_leaves_terminated(self, transition):
        result = validate_transition(AgendaStatus.TERMINATED, transition)
        assert result.allowed is False
        assert result.reason == "Terminated agendas are closed"

    @pytest.mark.parametrize("transition", [Transition.PUT_OFF, Transition.TERMINATE])
    def test_stored_must_be_activated_first(self, transition):
        result = validate_transition(AgendaStatus.STORED, transition)
        assert result.allowed is False
        assert "activate it first" in result.reason

    def test_activate_ongoing_rejected(self):
        result = validate_transition(AgendaStatus.ONGOING, Transition.ACTIVATE)
        assert result.allowed is False
        assert result.reason == "Agenda is already ongoing"


class TestTransitionTables:
    def test_every_transition_pairs_with_its_log_type(self):
        assert TRANSITION_LOG_TYPES == {
            Transition.ACTIVATE: LogType.ACTIVATE,
            Transition.PUT_OFF: LogType.PUT_OFF,
            Transition.TERMINATE: LogType.TERMINATE,
        }

    def test_initial_statuses(self):
        assert INITIAL_STATUS["add"] == AgendaStatus.ONGOING
        assert INITIAL_STATUS["shelve"] == AgendaStatus.STORED
