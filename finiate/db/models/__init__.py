"""Re-export all models so Base.metadata sees them."""

from finiate.db.models.agenda import AgendaRow
from finiate.db.models.log import LogRow

__all__ = [
    "AgendaRow",
    "LogRow",
]
