class AppError(Exception):
    """Base app error."""


class ValidationError(AppError):
    pass


class NotFoundError(AppError):
    pass


class InsufficientStockError(AppError):
    pass


class DataAccessError(AppError):
    """Store unreachable, failed write or malformed stored record."""


class FxUnavailableError(AppError):
    pass
