"""Typed failures raised by the service layer.

Every error is raised before anything is committed, so a caller that sees one
knows the store is unchanged. ``ConflictError`` means the request was already
satisfied and is safe to ignore; the other kinds need the caller to correct
something.
"""


class ServiceError(Exception):
    """Base exception for service failures."""

    status_code = 400

    @property
    def kind(self) -> str:
        return type(self).__name__


class ValidationError(ServiceError):
    """Raised when a payload is malformed (bad number, date, status...)."""


class NotFoundError(ServiceError):
    """Raised when a row is missing or owned by another user."""

    status_code = 404


class PermissionDenied(ServiceError):
    """Raised when a non-admin calls an admin operation."""

    status_code = 403


class ConflictError(ServiceError):
    """Raised when the operation was already done; benign."""

    status_code = 409


class AlreadyPurchased(ConflictError):
    """Raised when buying a prize that is not restocked yet."""


class InsufficientPoints(ServiceError):
    """Raised when the derived balance cannot cover a prize."""

    status_code = 409

    def __init__(self, balance: int, cost_points: int):
        self.balance = balance
        self.cost_points = cost_points
        super().__init__(f"Insufficient points: balance {balance}, cost {cost_points}")


class StorageFailure(ServiceError):
    """Raised when the database aborts; the unit of work was rolled back."""

    status_code = 500


class AuthenticationFailed(ServiceError):
    """Raised when a username/PIN pair does not match."""

    status_code = 401
