"""
Domain errors raised below the route layer.

The application-level handler renders them with their ``status_code`` and
the usual ``{"success": false, "message": ...}`` body.
"""


class ReWearError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ReWearError):
    status_code = 404


class PermissionDeniedError(ReWearError):
    status_code = 403


class InsufficientPointsError(ReWearError):
    def __init__(self, message: str = "Insufficient points"):
        super().__init__(message)


class ItemUnavailableError(ReWearError):
    status_code = 409

    def __init__(self, message: str = "Item is not available for purchase"):
        super().__init__(message)


class InvalidTransitionError(ReWearError):
    pass


class PaymentGatewayError(ReWearError):
    status_code = 500
