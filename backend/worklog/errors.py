"""Error taxonomy surfaced to API callers as ``{"error": message}``."""


class AppError(Exception):
    status_code = 500
    default_message = "Internal error."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request."


class AuthError(AppError):
    status_code = 401
    default_message = "Invalid session."


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Forbidden."


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found."


class ConflictError(AppError):
    status_code = 409
    default_message = "Conflict."


class PayloadTooLargeError(AppError):
    status_code = 413
    default_message = "Request body too large."


class RateLimitError(AppError):
    status_code = 429
    default_message = "Too many requests."


class InternalError(AppError):
    pass
