"""AgendaRow model, one row per agenda."""

from sqlalchemy import BigInteger, Column, String, Text

from finiate.db.base import Base


class AgendaRow(Base):
    __tablename__ = "agenda"

    id = Column(String(36), primary_key=True)
    title = Column(String(250), nullable=False, index=True)
    agenda_status = Column(Text, nullable=False, index=True)  # stored, ongoing, terminated

    initiate_at = Column(BigInteger, nullable=False)  # ms since epoch, set once
    terminate_at = Column(BigInteger, nullable=True, index=True)  # NULL while stored
