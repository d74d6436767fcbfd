class AccountError(Exception):
    """Base for errors the API turns into a JSON error response."""

    status_code = 400
    default_message = "Bad request"

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)


class ValidationError(AccountError):
    status_code = 400
    default_message = "Invalid request"


class Forbidden(AccountError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(AccountError):
    status_code = 404
    default_message = "User not found"
