"""Re-export all models so Base.metadata sees them."""

from bitacora.db.models.initiative import Initiative
from bitacora.db.models.initiative_member import InitiativeMember
from bitacora.db.models.log_entry import LogEntry
from bitacora.db.models.profile import Profile

__all__ = [
    "Initiative",
    "InitiativeMember",
    "LogEntry",
    "Profile",
]
