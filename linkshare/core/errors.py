"""Domain errors raised by the link store and the access evaluator.

Each error carries a stable ``code`` and HTTP ``status_code`` so clients can
tell an expired link from a wrong password. Messages never include the link
configuration (limits, instants, secrets).
"""


class LinkShareError(Exception):
    code = "error"
    status_code = 400
    message = "Request could not be processed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.detail = message or self.message


class LinkNotFound(LinkShareError):
    code = "not_found"
    status_code = 404
    message = "Link not found or inactive"


class FileNotFound(LinkShareError):
    code = "file_not_found"
    status_code = 404
    message = "File not found"


class LinkExpired(LinkShareError):
    code = "expired"
    status_code = 410
    message = "Link has expired"


class AccessLimitReached(LinkShareError):
    code = "limit_reached"
    status_code = 429
    message = "Access limit reached for this link"


class CapabilityDenied(LinkShareError):
    code = "capability_denied"
    status_code = 403
    message = "This link does not allow that kind of access"


class AuthenticationRequired(LinkShareError):
    code = "authentication_required"
    status_code = 401
    message = "Login is required to access this link"


class AccessForbidden(LinkShareError):
    code = "forbidden"
    status_code = 403
    message = "You are not authorized to access this link"


class InvalidCredential(LinkShareError):
    code = "invalid_credential"
    status_code = 401
    message = "Invalid credentials"


class InvalidConfiguration(LinkShareError):
    code = "invalid_configuration"
    status_code = 400
    message = "Invalid link configuration"


class DuplicateName(LinkShareError):
    code = "duplicate_name"
    status_code = 409
    message = "This custom name is already taken. Please choose another one."


class LinkBusy(LinkShareError):
    code = "busy"
    status_code = 503
    message = "Link is busy, please retry"


class ConflictRetryable(Exception):
    """A guarded commit lost a race; the caller re-reads and tries again."""
