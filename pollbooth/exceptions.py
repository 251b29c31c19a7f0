"""
Domain errors raised by the booth services.

Each error carries the HTTP status and machine code it is rendered with by
``register_error_handlers``; services raise them, routes let them propagate.
"""


class BoothError(Exception):
    status_code = 400
    code = "BOOTH_ERROR"
    message = "Request could not be completed"

    def __init__(self, message=None, details=None):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)


# ---- 400: malformed / out-of-range input ----

class ValidationError(BoothError):
    status_code = 400
    code = "VALIDATION_ERROR"
    message = "Validation error"


class InvalidCandidate(ValidationError):
    code = "INVALID_CANDIDATE"
    message = "Invalid candidate selection"


class InvalidInviteCode(ValidationError):
    code = "INVALID_INVITE_CODE_FORMAT"
    message = "Invalid invite code format"


class MissingEmail(ValidationError):
    code = "EMAIL_REQUIRED"
    message = "User account must have a valid email address to join this booth"


# ---- 404 ----

class NotFoundError(BoothError):
    status_code = 404
    code = "NOT_FOUND"
    message = "Resource not found"


class BoothNotFound(NotFoundError):
    message = "Booth not found"


class UserNotFound(NotFoundError):
    message = "User not found"


class InviteCodeNotFound(NotFoundError):
    message = "Invalid invite code"


# ---- 403 ----

class PermissionDenied(BoothError):
    status_code = 403
    code = "FORBIDDEN"
    message = "Forbidden"


class NotAMember(PermissionDenied):
    code = "NOT_A_MEMBER"
    message = "You must be a member to vote"


class NotBoothCreator(PermissionDenied):
    code = "NOT_BOOTH_CREATOR"
    message = "Only the booth creator can perform this action"


class EmailDomainNotAllowed(PermissionDenied):
    code = "EMAIL_DOMAIN_NOT_ALLOWED"

    def __init__(self, allowed_domains, details=None):
        domain_list = ", ".join("@" + d.lstrip("@") for d in allowed_domains)
        super().__init__(
            f"Only users with {domain_list} email addresses can join this booth",
            details=details or {"allowed_domains": list(allowed_domains)},
        )


class EmailNotVerified(PermissionDenied):
    code = "EMAIL_NOT_VERIFIED"
    message = "You must verify your email address before joining this booth"


class ResultsNotVisible(PermissionDenied):
    code = "RESULTS_NOT_VISIBLE"
    message = "Results are not visible to voters"


class BoothLimitReached(PermissionDenied):
    code = "BOOTH_LIMIT_REACHED"
    message = "Booth creation limit reached. Upgrade your account to create more booths."


# ---- 400: expected state conflicts ----

class StateConflictError(BoothError):
    status_code = 400
    code = "STATE_CONFLICT"
    message = "Request conflicts with the current booth state"


class BoothNotAcceptingMembers(StateConflictError):
    code = "BOOTH_NOT_ACCEPTING_MEMBERS"
    message = "This booth is not accepting new members"


class BoothFull(StateConflictError):
    code = "BOOTH_FULL"
    message = "This booth is full"


class VotingNotAllowed(StateConflictError):
    code = "VOTING_NOT_ALLOWED"
    message = "Voting is not allowed"


class AlreadyVoted(StateConflictError):
    code = "ALREADY_VOTED"
    message = "You have already voted in this booth"


class InvalidTransition(StateConflictError):
    code = "INVALID_TRANSITION"


# ---- 500 ----

class InternalError(BoothError):
    status_code = 500
    code = "INTERNAL_SERVER_ERROR"
    message = "An unexpected error occurred"


class InviteCodeExhausted(InternalError):
    code = "INVITE_CODE_EXHAUSTED"
    message = "Could not allocate a unique invite code"
