"""Domain exceptions for RefHub.

Services raise these; the HTTP layer maps them to status codes in
``refhub.api.main``. Nothing below the API layer raises HTTPException.
"""


class RefHubError(Exception):
    """Base class for all RefHub domain errors."""

    message = "Internal server error"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(RefHubError):
    """Input has the wrong shape."""

    message = "Validation failed"


class DuplicateUserError(RefHubError):
    """Email or username is already registered."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"{field.capitalize()} already in use")


class DuplicateReferralError(RefHubError):
    """A referral already exists for this (referrer, referred user) pair."""

    def __init__(self, referrer_id: int, referred_user_id: int):
        self.referrer_id = referrer_id
        self.referred_user_id = referred_user_id
        super().__init__(
            f"Referral already recorded for referrer {referrer_id} and user {referred_user_id}"
        )


class DuplicateRewardError(RefHubError):
    """The referral has already been rewarded."""

    def __init__(self, referral_id: int):
        self.referral_id = referral_id
        super().__init__(f"Referral {referral_id} has already been rewarded")


class ReferralNotFoundError(RefHubError):
    """No pending referral matches the requested transition."""

    def __init__(self, referrer_id: int, referred_user_id: int):
        self.referrer_id = referrer_id
        self.referred_user_id = referred_user_id
        super().__init__(
            f"No pending referral for referrer {referrer_id} and user {referred_user_id}"
        )


class UnauthenticatedError(RefHubError):
    message = "No token provided"


class InvalidTokenError(RefHubError):
    message = "Invalid token"


class InvalidResetTokenError(RefHubError):
    message = "Invalid or expired token"


class PersistenceError(RefHubError):
    """Storage is unavailable or failed unexpectedly."""


class NotificationError(RefHubError):
    """An email could not be delivered."""

    message = "Notification could not be delivered"


class GenerationExhaustedError(RefHubError):
    """No unique referral code was found within the attempt budget."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Could not generate a unique referral code after {attempts} attempts")


class ReferralCodeTakenError(RefHubError):
    """A freshly generated referral code lost an insert race to another user."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Referral code {code} is already taken")
