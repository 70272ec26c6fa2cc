"""
Domain errors raised by the controllers.

Each error carries the HTTP status the routers answer with, so a route only
has to catch ``EventYukkError`` and copy ``status_code`` onto the response.
"""


class EventYukkError(Exception):
    status_code = 500
    title = "Internal server error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(EventYukkError):
    status_code = 400
    title = "Bad request"


class ForbiddenError(EventYukkError):
    status_code = 403
    title = "Forbidden"


class NotFoundError(EventYukkError):
    status_code = 404
    title = "Not found"


class ConflictError(EventYukkError):
    status_code = 409
    title = "Conflict"


class DependencyError(EventYukkError):
    """An outbound call (email, payment gateway) failed."""
    status_code = 502
    title = "Upstream service failed"
