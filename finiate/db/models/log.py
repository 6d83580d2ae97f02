"""LogRow model: append-only audit entries."""

from sqlalchemy import BigInteger, Column, ForeignKey, String, Text

from finiate.db.base import Base


class LogRow(Base):
    __tablename__ = "log"

    id = Column(String(36), primary_key=True)
    # Cleared when the agenda is deleted; the log itself is kept
    agenda_id = Column(String(36), ForeignKey("agenda.id", ondelete="SET NULL"), nullable=True, index=True)

    content = Column(Text, nullable=False, default="")
    log_type = Column(Text, nullable=False)  # activate, put_off, terminate, common_log

    create_at = Column(BigInteger, nullable=False, index=True)
    # NO update column -- logs are immutable (append-only)
