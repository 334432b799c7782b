"""Exception hierarchy for the booking pipeline."""


class BookingServiceError(Exception):
    """Base exception for booking pipeline failures."""

    pass


class ConfigurationError(BookingServiceError):
    """A backend is missing required configuration."""

    pass
