"""Error taxonomy shared by the membership, matchmaking and slot services.

Every failure a service can report is a subclass of ``ServiceError``. The
HTTP layer picks the response status from the class, never from the message.
"""
from typing import Optional


class ServiceError(Exception):
    status_code = 500
    code = "internal_error"
    message = "Internal Server Error"
    retryable = False

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(ServiceError):
    status_code = 400
    code = "validation_error"
    message = "Invalid request"


class ConflictError(ServiceError):
    status_code = 409
    code = "conflict"
    message = "Request conflicts with current state"


class NotFoundError(ServiceError):
    status_code = 404
    code = "not_found"
    message = "Not found"


class AuthenticationError(ServiceError):
    status_code = 401
    code = "not_authenticated"
    message = "Not authenticated"


class AuthorizationError(ServiceError):
    status_code = 403
    code = "forbidden"
    message = "Not allowed"


class InternalError(ServiceError):
    pass


# Validation

class InvalidName(ValidationError):
    code = "invalid_name"
    message = "Team name is required"


class InvalidRange(ValidationError):
    code = "invalid_range"
    message = "start_time must be before end_time and in the future"


class NotInTeam(ValidationError):
    code = "not_in_team"
    message = "You are not part of any team"


# Conflict

class AlreadyInTeam(ConflictError):
    code = "already_in_team"
    message = "User already belongs to a team"


class TeamFull(ConflictError):
    code = "team_full"
    message = "Team is full"


class AlreadyBooked(ConflictError):
    code = "already_booked"
    message = "Your team has already booked a slot. Please leave the current slot first."


class SlotUnavailable(ConflictError):
    code = "slot_unavailable"
    message = "Slot not available or already booked"


class DuplicateRange(ConflictError):
    code = "duplicate_range"
    message = "Slot with this time range already exists"


# Not found

class UserNotFound(NotFoundError):
    code = "user_not_found"
    message = "User not found"


class TeamNotFound(NotFoundError):
    code = "team_not_found"
    message = "Team not found"


class SlotNotFound(NotFoundError):
    code = "slot_not_found"
    message = "Slot not found"


class NotBookedByTeam(NotFoundError):
    code = "not_booked_by_team"
    message = "Slot not found or not booked by your team"


# Authorization

class NotAuthenticated(AuthenticationError):
    pass


class NotLeader(AuthorizationError):
    code = "not_leader"
    message = "Only the team leader can do this"


class AdminRequired(AuthorizationError):
    code = "admin_required"
    message = "Admin access required"


# Internal

class StoreTimeout(InternalError):
    status_code = 503
    code = "store_timeout"
    message = "The request timed out, please retry"
    retryable = True
