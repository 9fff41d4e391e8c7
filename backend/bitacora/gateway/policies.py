"""Row-level write policies shared by every gateway implementation.

The client-side admin flag only hides affordances; these checks are what
actually rejects unauthorized writes.
"""

from enum import Enum

from bitacora.core.exceptions import PolicyViolationError
from bitacora.gateway.base import INITIATIVES, LOG_ENTRIES, MEMBERS, PROFILES, Row


class Access(str, Enum):
    AUTHENTICATED = "authenticated"
    ADMIN = "admin"
    OWNER = "owner"  # values["owner_id"] must be the caller
    SELF = "self"  # values["id"] must be the caller


WRITE_POLICIES: dict[tuple[str, str], Access] = {
    (INITIATIVES, "insert"): Access.OWNER,
    (INITIATIVES, "update"): Access.ADMIN,
    (INITIATIVES, "delete"): Access.ADMIN,
    (LOG_ENTRIES, "insert"): Access.AUTHENTICATED,
    (LOG_ENTRIES, "update"): Access.ADMIN,
    (LOG_ENTRIES, "delete"): Access.ADMIN,
    (MEMBERS, "insert"): Access.ADMIN,
    (MEMBERS, "delete"): Access.ADMIN,
    (PROFILES, "insert"): Access.SELF,
    (PROFILES, "update"): Access.ADMIN,
    (PROFILES, "delete"): Access.ADMIN,
}


def check_read(identity: str | None) -> None:
    if not identity:
        raise PolicyViolationError("Reads require an authenticated session")


def check_upload(identity: str | None) -> None:
    if not identity:
        raise PolicyViolationError("Uploads require an authenticated session")


def check_write(
    table: str,
    action: str,
    identity: str | None,
    role: str | None,
    values: Row | None = None,
) -> None:
    """Raise PolicyViolationError unless ``identity`` may perform the write.

    Writes with no registered policy are denied.
    """
    access = WRITE_POLICIES.get((table, action))
    if access is None:
        raise PolicyViolationError(f"No policy allows {action} on {table}")

    if not identity:
        raise PolicyViolationError(f"{action} on {table} requires an authenticated session")

    values = values or {}
    if access == Access.ADMIN and role != "admin":
        raise PolicyViolationError(f"{action} on {table} requires the admin role")
    if access == Access.OWNER and values.get("owner_id") != identity:
        raise PolicyViolationError(f"{action} on {table} must set owner_id to the caller")
    if access == Access.SELF and values.get("id") != identity:
        raise PolicyViolationError(f"{action} on {table} is only allowed for the caller's own row")
