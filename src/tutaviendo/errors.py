"""Custom exceptions for tutaviendo."""


class TutaviendoError(Exception):
    """Base exception for all tutaviendo errors."""

    pass


class ValidationError(TutaviendoError):
    """Raised when user input (checkout form, date range) is invalid."""

    def __init__(self, errors: dict[str, str]):
        self.errors = errors
        details = "; ".join(f"{field}: {msg}" for field, msg in errors.items())
        super().__init__(f"Invalid input ({details})")


class EncodingError(TutaviendoError):
    """Raised when a message deep link cannot be built."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Could not encode message link: {reason}")


class PersistenceError(TutaviendoError):
    """Raised when a key-value backend fails for a reason other than quota."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Storage operation failed for '{key}': {reason}")


class UnknownRangeError(TutaviendoError):
    """Raised when a date range preset name is not recognized."""

    def __init__(self, name: str, available: list[str]):
        self.name = name
        self.available = available
        super().__init__(
            f"Unknown date range '{name}'. Available: {', '.join(available)}"
        )
