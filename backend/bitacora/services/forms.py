"""Per-surface busy/error state shared by the controllers.

Each editable region (create form, delete dialog, log entry form, invite
form, ...) owns one FormState. While a call is in flight the surface is
busy and a second call is refused, which is the server-side equivalent of a
disabled submit button.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from bitacora.core.exceptions import BitacoraError, OperationInProgressError

GENERIC_FAILURE = "Something went wrong. Please try again."


@dataclass
class FormState:
    busy: bool = False
    error: str | None = None
    message: str | None = None

    def reset(self) -> None:
        self.error = None
        self.message = None


@asynccontextmanager
async def busy(state: FormState, surface: str) -> AsyncIterator[FormState]:
    """Mark ``state`` busy for the duration of the block.

    Failures are recorded on ``state.error`` and re-raised; the busy flag is
    always cleared so the surface can be re-attempted.
    """
    if state.busy:
        raise OperationInProgressError(surface)

    state.busy = True
    state.reset()
    try:
        yield state
    except BitacoraError as exc:
        state.error = str(exc) or GENERIC_FAILURE
        raise
    except Exception:
        # Unexpected failures still surface a message on the form
        state.error = GENERIC_FAILURE
        raise
    finally:
        state.busy = False
