"""Kitchen Gate error hierarchy."""


class KitchenGateError(Exception):
    """Base exception for all Kitchen Gate errors."""


class StoreUnavailableError(KitchenGateError):
    """The key-value store could not be reached or rejected a command."""


class VerificationError(KitchenGateError):
    """Base class for user-correctable verification failures."""

    message = "Verification failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class InvalidContactError(VerificationError):
    """Submitted contact address does not look like an email address."""

    message = "Invalid email"


class InvalidCodeError(VerificationError):
    """Submitted code is not exactly four digits."""

    message = "Invalid code"


class NoPendingVerificationError(VerificationError):
    """No unexpired code is waiting for this browser."""

    message = "No pending verification"


class IncorrectCodeError(VerificationError):
    """Submitted code does not match the issued one."""

    message = "Incorrect code"


class TextGenerationError(KitchenGateError):
    """Upstream text-generation call failed or timed out."""


class DeliveryError(KitchenGateError):
    """Verification code could not be handed to the mail server."""
