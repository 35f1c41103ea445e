class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class NotFoundError(DomainError):
    """Raised when a reminder record or policy does not exist."""


class ConfigurationMissingError(DomainError):
    """Raised when a policy or calendar entry is required but absent."""


class StaleRecordError(DomainError):
    """Raised when a compare-and-set update lost against a concurrent writer."""
