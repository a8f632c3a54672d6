"""Error taxonomy for the judging engine.

Business-rule failures (validation, access, closed group, missing entity)
are expected and carry enough detail for the caller to correct the input.
``TransientError`` marks infrastructure failures a caller may retry.
"""


class JudgingError(Exception):
    """Base class for all judging errors."""
    pass


class ValidationError(JudgingError, ValueError):
    """Raised when input breaks one or more rules.

    Attributes:
        violations: Every rule the input broke, in the order checked
    """

    def __init__(self, violations: list[str] | str):
        if isinstance(violations, str):
            violations = [violations]
        self.violations = list(violations)
        super().__init__("; ".join(self.violations))


class RatingRangeError(ValidationError):
    """Raised when a rating falls outside the group's scale."""

    def __init__(self, rating, scale_max: int):
        self.rating = rating
        self.scale_max = scale_max
        super().__init__(f"Rating must be an integer between 1 and {scale_max}, got {rating!r}")


class AccessDeniedError(JudgingError):
    """Raised when a caller may not use a resource or operation."""

    def __init__(self, message: str, reason: str = "AccessDenied"):
        self.reason = reason
        super().__init__(message)


class InvalidCredential(AccessDeniedError):
    """Raised when a protected resource gets a missing or wrong password."""

    def __init__(self, message: str = "Invalid password"):
        super().__init__(message, reason="InvalidCredential")


class GroupClosedError(JudgingError):
    """Raised when scoring is attempted while a group is not accepting scores.

    Attributes:
        reason: One of ``inactive``, ``not_started`` or ``ended``
    """

    def __init__(self, message: str, reason: str):
        self.reason = reason
        super().__init__(message)


class NotFoundError(JudgingError, LookupError):
    """Raised when a group, criterion, judge, score or submission is missing."""
    pass


class TransientError(JudgingError):
    """Raised when a backing service is unavailable; safe to retry."""
    pass


class StoreUnavailableError(TransientError):
    pass


class DirectoryUnavailableError(TransientError):
    pass
