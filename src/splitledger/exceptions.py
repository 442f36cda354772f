"""Custom exceptions for splitledger."""


class LedgerError(Exception):
    """Base exception for all splitledger errors."""

    pass


class ConfigurationError(LedgerError):
    """Raised when configuration is invalid or missing."""

    pass


class ValidationError(LedgerError):
    """Raised when input is malformed or amounts don't add up."""

    def __init__(self, reason: str, field: str | None = None):
        self.reason = reason
        self.field = field
        super().__init__(f"{field}: {reason}" if field else reason)


class NotFoundError(LedgerError):
    """Raised when a referenced expense or obligation does not exist."""

    def __init__(self, kind: str, entity_id: int | str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind.capitalize()} {entity_id} not found")


class AuthorizationError(LedgerError):
    """Raised when the caller lacks the relationship an operation requires."""

    def __init__(self, message: str = "not authorized"):
        super().__init__(message)


class AlreadySettledError(LedgerError):
    """Raised when settling an obligation that is no longer pending."""

    def __init__(self, obligation_id: int):
        self.obligation_id = obligation_id
        super().__init__(f"Obligation {obligation_id} is already settled")


class StorageError(LedgerError):
    """Raised when a storage operation fails. The unit of work is rolled back."""

    pass


class GroupServiceError(LedgerError):
    """Raised when the group membership service request fails."""

    pass
