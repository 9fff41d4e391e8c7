"""Gateway Protocol: the capability-scoped access point to the managed backend.

Controllers never talk to the database, the object store or the session
directly. They receive a Gateway already bound to the caller's identity and
use these row-level operations:

- current_identity: session subject, or None without a session
- select / select_one: equality filters (a list value means "any of"), ordering
  on one or more columns
- insert / update / delete: writes, returning the affected rows
- upload: binary object upload returning a public URL

Failures surface as GatewayError; a uniqueness violation is the distinct
UniqueViolationError subclass and a rejected row-level policy is
PolicyViolationError.
"""

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

INITIATIVES = "iniciativas"
LOG_ENTRIES = "bitacora_registros"
PROFILES = "profiles"
MEMBERS = "initiative_members"

TABLES = (INITIATIVES, LOG_ENTRIES, PROFILES, MEMBERS)

Row = dict[str, Any]
Filters = dict[str, Any]
# One column, or several compared left to right
OrderBy = str | Sequence[str]


@runtime_checkable
class Gateway(Protocol):
    """Protocol for all remote reads and writes.

    Implementations: SqlGateway (SQLAlchemy + S3) and InMemoryGateway
    (deterministic in-process store for tests and local development).
    """

    async def current_identity(self) -> str | None:
        """Return the authenticated subject bound to this gateway, or None."""
        ...

    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        order_by: OrderBy | None = None,
        descending: bool = False,
    ) -> list[Row]:
        """Return all rows of ``table`` matching every filter."""
        ...

    async def select_one(self, table: str, filters: Filters) -> Row | None:
        """Return the single matching row, or None when nothing matches."""
        ...

    async def insert(self, table: str, values: Row) -> Row:
        """Insert one row and return it as stored (ids and defaults filled in)."""
        ...

    async def update(self, table: str, filters: Filters, values: Row) -> list[Row]:
        """Update matching rows and return them as stored."""
        ...

    async def delete(self, table: str, filters: Filters) -> int:
        """Delete matching rows and return how many were removed."""
        ...

    async def upload(self, path: str, data: bytes, content_type: str | None = None) -> str:
        """Upload an object under ``path`` and return its public URL."""
        ...
