"""Domain errors raised by the services and their HTTP mapping.

Services never build HTTP responses themselves; they raise one of the
classes below and the handler registered in ``skillswap.main`` renders the
standard ``{success, message, error}`` envelope with the mapped status.
"""

from fastapi import status


class SkillSwapError(Exception):
    """Base exception for anticipated business outcomes."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, error_type: str = "skillswap_error"):
        self.message = message
        self.error_type = error_type
        super().__init__(message)


# ---------------------------------------------------------------------------
# Taxonomy
# ---------------------------------------------------------------------------


class ValidationError(SkillSwapError):
    """Malformed or oversized input, caught before persistence."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, error_type: str = "validation_error"):
        super().__init__(message, error_type)


class NotFoundError(SkillSwapError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Not found", error_type: str = "not_found"):
        super().__init__(message, error_type)


class AuthenticationError(SkillSwapError):
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Authentication required", error_type: str = "authentication_error"):
        super().__init__(message, error_type)


class AuthorizationError(SkillSwapError):
    """Actor lacks rights over the target, or the target is blocked/private."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str, error_type: str = "authorization_error"):
        super().__init__(message, error_type)


class ConflictError(SkillSwapError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, error_type: str = "conflict"):
        super().__init__(message, error_type)


# ---------------------------------------------------------------------------
# Specific kinds
# ---------------------------------------------------------------------------


class SelfActionError(ValidationError):
    """A user targeted themselves (request, message, history or report)."""

    def __init__(self, message: str, error_type: str = "self_action"):
        super().__init__(message, error_type)


class UserNotFoundError(NotFoundError):
    def __init__(self, message: str = "User not found"):
        super().__init__(message, "user_not_found")


class TargetBlockedError(AuthorizationError):
    def __init__(self, message: str):
        super().__init__(message, "target_blocked")


class TargetPrivateError(AuthorizationError):
    def __init__(self, message: str = "Cannot send request to private profile"):
        super().__init__(message, "target_private")


class NotCollaboratingError(AuthorizationError):
    """No accepted collaboration request exists between the two users."""

    def __init__(self, message: str = "Chat is only available after mutual collaboration acceptance"):
        super().__init__(message, "not_collaborating")


class AdminRequiredError(AuthorizationError):
    def __init__(self, message: str = "Access denied. Admin privileges required."):
        super().__init__(message, "admin_required")


class DuplicateRequestError(ConflictError):
    """Any request already exists for the unordered pair.

    The message depends on the status of the existing request; the kind does not.
    """

    def __init__(self, existing_status: str | None = None):
        if existing_status == "accepted":
            message = "You are already collaborating with this user"
        elif existing_status == "rejected":
            message = "Previous request was rejected"
        else:
            message = "Request already exists between these users"
        super().__init__(message, "duplicate_request")
        self.existing_status = existing_status


class AlreadyProcessedError(ConflictError):
    def __init__(self, message: str = "Request has already been processed"):
        super().__init__(message, "already_processed")


class DuplicateReportError(ConflictError):
    def __init__(self, message: str = "You have already reported this user"):
        super().__init__(message, "duplicate_report")
