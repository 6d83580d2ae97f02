"""Tests for agenda/log entities and their text codecs."""

import uuid
from datetime import UTC, datetime, timedelta

import pytest

from finiate.core.exceptions import DataCorruptionError
from finiate.domain.agenda import Agenda, AgendaStatus, AgendaUpdate
from finiate.domain.log import LogType

pytestmark = pytest.mark.unit


class TestAgendaStatusCodec:
    """Status text encoding matches the persisted column values."""

    def test_encode_values(self):
        assert AgendaStatus.STORED.encode() == "stored"
        assert AgendaStatus.ONGOING.encode() == "ongoing"
        assert AgendaStatus.TERMINATED.encode() == "terminated"

    def test_decode_known_values(self):
        for status in AgendaStatus:
            assert AgendaStatus.decode(status.encode()) is status

    def test_decode_unknown_value_is_corruption(self):
        with pytest.raises(DataCorruptionError, match="agenda_status"):
            AgendaStatus.decode("paused")

    def test_decode_is_case_sensitive(self):
        """Stored text is exact; 'Ongoing' was never written by the codec."""
        with pytest.raises(DataCorruptionError):
            AgendaStatus.decode("Ongoing")

    def test_parse_user_input_is_lenient(self):
        assert AgendaStatus.parse(" Ongoing ") is AgendaStatus.ONGOING


class TestLogTypeCodec:
    def test_encode_values(self):
        assert LogType.ACTIVATE.encode() == "activate"
        assert LogType.PUT_OFF.encode() == "put_off"
        assert LogType.TERMINATE.encode() == "terminate"
        assert LogType.COMMON_LOG.encode() == "common_log"

    def test_decode_unknown_value_is_corruption(self):
        with pytest.raises(DataCorruptionError, match="log_type"):
            LogType.decode("reminder")


class TestAgendaUpdate:
    def test_default_update_is_empty(self):
        assert AgendaUpdate().is_empty() is True

    def test_update_with_one_field_is_not_empty(self):
        assert AgendaUpdate(status=AgendaStatus.TERMINATED).is_empty() is False


class TestAgenda:
    def _agenda(self, status: AgendaStatus, terminate_at: datetime | None) -> Agenda:
        return Agenda(
            id=uuid.uuid4(),
            title="Ship release",
            status=status,
            initiate_at=datetime(2026, 1, 1, tzinfo=UTC),
            terminate_at=terminate_at,
        )

    def test_stored_agenda_has_no_deadline(self):
        assert self._agenda(AgendaStatus.STORED, None).has_deadline is False

    def test_ongoing_past_deadline_is_overdue(self):
        now = datetime(2026, 6, 1, tzinfo=UTC)
        agenda = self._agenda(AgendaStatus.ONGOING, now - timedelta(hours=1))
        assert agenda.is_overdue(now) is True

    def test_terminated_agenda_is_never_overdue(self):
        now = datetime(2026, 6, 1, tzinfo=UTC)
        agenda = self._agenda(AgendaStatus.TERMINATED, now - timedelta(days=3))
        assert agenda.is_overdue(now) is False
