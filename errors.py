# errors.py
"""
Domain errors raised by the workflows.

Each error carries the HTTP status it maps to, so main.py can turn any of
them into the JSON error envelope without the workflows knowing about HTTP.
"""


class MarketplaceError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequest(MarketplaceError):
    status_code = 400


class Unauthorized(MarketplaceError):
    status_code = 401


class InsufficientCredits(MarketplaceError):
    status_code = 402

    def __init__(self, required, available):
        super().__init__(f"Not enough credits: {required} required, {available} available")
        self.required = required
        self.available = available


class PermissionDenied(MarketplaceError):
    status_code = 403


class NotFound(MarketplaceError):
    status_code = 404


class Conflict(MarketplaceError):
    status_code = 409
