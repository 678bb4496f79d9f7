"""Exception classes for ath_returns."""


class AthReturnsError(Exception):
    """Base exception for ath_returns."""


# Price series ingestion


class SeriesValidationError(AthReturnsError):
    """Raised when a price series fails validation at ingestion."""


class DuplicateDateError(SeriesValidationError):
    """Raised when more than one record shares a trade date."""

    def __init__(self, message: str, dates=None) -> None:
        self.dates = list(dates or [])
        super().__init__(message)


class InvalidPriceError(SeriesValidationError):
    """Raised when a close price is missing, non-numeric, zero or negative."""


class EmptySeriesError(SeriesValidationError):
    """Raised when a price series has no records."""


# Configuration


class ConfigError(AthReturnsError):
    """Raised when an analysis config is malformed."""
