class BitacoraError(Exception):
    """Base exception for the Bitácora application.

    ``status_code`` is the HTTP status the API layer answers with.
    """

    status_code = 500


class AuthenticationRequiredError(BitacoraError):
    """Raised when a mutating action runs without a resolved identity."""

    status_code = 401

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class PermissionDeniedError(BitacoraError):
    """Raised when an admin-only action is attempted by a non-admin."""

    status_code = 403

    def __init__(self, message: str = "Admin access required"):
        super().__init__(message)


class NotFoundError(BitacoraError):
    """Raised when a referenced row does not exist."""

    status_code = 404


class ProfileNotFoundError(NotFoundError):
    """Raised when a membership invite names an email with no profile."""

    def __init__(self, email: str):
        self.email = email
        super().__init__("User not found. Make sure they are registered.")


class AlreadyMemberError(BitacoraError):
    """Raised when the (initiative, user) membership pair already exists."""

    status_code = 409

    def __init__(self, email: str):
        self.email = email
        super().__init__("User is already a member.")


class OperationInProgressError(BitacoraError):
    """Raised when a surface is busy with a previous call."""

    status_code = 409

    def __init__(self, surface: str):
        self.surface = surface
        super().__init__(f"Another '{surface}' operation is still in progress")


class ValidationError(BitacoraError):
    """Raised when a required field is empty. No remote call is issued."""

    status_code = 422

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)


class InvalidTransitionError(BitacoraError):
    """Raised when the configured transition policy rejects a stage change."""

    status_code = 422


class ConfirmationRequiredError(BitacoraError):
    """Raised when a gated action is issued without confirmation."""

    status_code = 428

    def __init__(self, prompt: str):
        self.prompt = prompt
        super().__init__(prompt)


class GatewayError(BitacoraError):
    """Raised when the remote access gateway fails a call."""

    status_code = 502

    def __init__(self, message: str, code: str | None = None):
        self.code = code
        super().__init__(message)


class UniqueViolationError(GatewayError):
    """Raised when a write breaks a uniqueness constraint."""

    status_code = 409

    def __init__(self, message: str = "duplicate key value violates unique constraint"):
        super().__init__(message, code="23505")


class PolicyViolationError(GatewayError):
    """Raised when a row-level write policy rejects the caller."""

    status_code = 403

    def __init__(self, message: str):
        super().__init__(message, code="42501")
