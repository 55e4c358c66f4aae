"""Custom exception classes for the application."""


class AppError(Exception):
    """Base application error class."""

    retryable = False

    def __init__(self, message, status_code=400):
        """Initialize the error."""
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ValidationError(AppError):
    """Raised when user input fails validation."""

    def __init__(self, message="Validation failed."):
        """Initialize the error."""
        super().__init__(message, 400)


class InvalidAmountError(ValidationError):
    """Raised when a point amount is not a positive integer."""

    def __init__(self, message="Points must be a positive number."):
        """Initialize the error."""
        super().__init__(message)


class InsufficientPointsError(AppError):
    """Raised when a member cannot afford a redemption."""

    def __init__(self, message="Insufficient points for this transaction."):
        """Initialize the error."""
        super().__init__(message, 400)


class UnauthorizedError(AppError):
    """Raised when a request carries no valid identity token."""

    def __init__(self, message="Authentication required."):
        """Initialize the error."""
        super().__init__(message, 401)


class ForbiddenError(AppError):
    """Raised when the caller lacks the role an action needs."""

    def __init__(self, message="Only group admin can perform this action."):
        """Initialize the error."""
        super().__init__(message, 403)


class NotFoundError(AppError):
    """Raised when a resource is not found."""

    def __init__(self, message="Resource not found."):
        """Initialize the error."""
        super().__init__(message, 404)


class AlreadyProcessedError(AppError):
    """Raised when a completion, join request or invitation is no longer pending."""

    def __init__(self, message="Task completion already processed."):
        """Initialize the error."""
        super().__init__(message, 409)


class DuplicateResourceError(AppError):
    """Raised when trying to create a resource that already exists."""

    def __init__(self, message="Resource already exists."):
        """Initialize the error."""
        super().__init__(message, 409)


class StorageTransactionError(AppError):
    """Raised when the backing store fails to commit a transaction.

    Nothing was written, so the caller may retry the same operation.
    """

    retryable = True

    def __init__(self, message="Failed to process transaction."):
        """Initialize the error."""
        super().__init__(message, 503)
