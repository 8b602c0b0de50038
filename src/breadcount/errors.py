"""Exception types raised by the ingestion pipeline and the count estimator."""


class BreadCountError(Exception):
    """Base class for every failure the core reports to its callers."""


class ConfigurationError(BreadCountError):
    """Required vision-service settings (credentials) are missing."""


class ProcessingError(BreadCountError):
    """The vision-service call failed; nothing was persisted."""


class InvalidSubmissionError(BreadCountError):
    """A submission lacks an employee id or image payload."""
