"""Referral domain errors.

Every ReferralError carries a message that is safe to show to the user.
Infrastructure failures are logged where they happen and surface only as
ReferralUnavailableError with a generic message.
"""


class ReferralError(Exception):
    """Base class. `str(error)` is the user-facing message."""

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ReferralValidationError(ReferralError):
    """Caller-supplied fields failed a shape rule. Nothing was written."""


class ReferralNotFoundError(ReferralError):
    """The referenced referral does not exist."""


class ReferralOwnershipError(ReferralError):
    """The referral belongs to another referrer. Nothing was changed."""


class ReferralUnavailableError(ReferralError):
    """Unexpected database failure. The transaction was rolled back."""
