"""Domain-level exceptions.

Services raise these errors to express business rule violations.
The API error handlers catch them and map to HTTP status codes.
"""


class DomainError(Exception):
    """Base class for all domain errors."""


class NotFoundError(DomainError):
    """Requested entity does not exist."""

    def __init__(self, resource: str = "Resource"):
        self.resource = resource
        super().__init__(f"{resource} not found")


class DuplicateError(DomainError):
    """Entity with the same unique key already exists."""


class ValidationError(DomainError):
    """Input violates a validation rule.

    Carries every failed rule as an ordered list so callers can report
    them together.
    """

    def __init__(self, messages: str | list[str]):
        if isinstance(messages, str):
            messages = [messages]
        self.messages = list(messages)
        super().__init__("; ".join(self.messages))


class AuthenticationError(DomainError):
    """Caller did not present a valid credential."""

    def __init__(self, message: str, hint: str | None = None):
        self.hint = hint
        super().__init__(message)


class ConfigurationError(DomainError):
    """Server is missing configuration required to serve the request."""
