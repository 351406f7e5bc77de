"""
Error taxonomy for the board core.

Every error carries a stable HTTP status and a short machine code so the
API layer can map it without inspecting messages.
"""


class BoardError(Exception):
    """Base class for all board errors."""
    status = 500
    code = "board_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"message": self.message, "error": self.code}


class NotFoundError(BoardError):
    """Referenced project, activity or column does not exist."""
    status = 404
    code = "not_found"


class ValidationError(BoardError):
    """Request payload is malformed or names a field that cannot be written."""
    status = 400
    code = "invalid_request"


class PermissionDeniedError(BoardError):
    """Caller is neither a member nor the creator of the project."""
    status = 403
    code = "forbidden"


class ConflictError(BoardError):
    """Write rejected because of concurrent ownership or state."""
    status = 409
    code = "conflict"


class ClaimConflictError(ConflictError):
    """Activity is already in development by another user."""
    # The board client treats 403 on the development endpoint as "taken"
    status = 403
    code = "claim_conflict"

    def __init__(self, message: str, holder: str = ""):
        super().__init__(message)
        self.holder = holder


class StaleWriteError(ConflictError):
    """Stored version moved on between read and commit."""
    code = "stale_write"


class InvalidStateError(BoardError):
    """Operation would leave the board structurally invalid."""
    status = 409
    code = "invalid_state"


class LastColumnError(InvalidStateError):
    """A project must keep at least one column."""
    code = "last_column"


class HasActivitiesError(InvalidStateError):
    """Column still has activities placed in it."""
    code = "column_not_empty"


class InvalidColumnError(InvalidStateError):
    """Target column does not belong to the activity's project."""
    code = "invalid_column"
