class DomainError(Exception):
    """Base exception class for all domain-specific exceptions."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)


class ValidationError(DomainError):
    """Exception raised when validation fails."""


class WebhookVerificationError(DomainError):
    """Exception raised when an inbound webhook signature cannot be verified."""
