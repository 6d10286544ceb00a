"""Exception types for the media analysis pipeline."""


class MediaAnalysisError(Exception):
    """Base class for media analysis errors."""


class OracleResponseError(MediaAnalysisError):
    """An oracle answered, but the response could not be parsed into the expected shape."""


class InvalidPeriodError(MediaAnalysisError, ValueError):
    """Unsupported news search period."""
