"""
Exception types for NewsDigest.

Fetch and parse failures are raised by article sources and absorbed by the
aggregator. Validation failures are raised at the service boundary before a
request reaches the aggregator. Missing records are never exceptions: lookups
return None, False or an empty result instead.
"""


class NewsDigestError(Exception):
    """Base class for all NewsDigest errors."""


class FetchError(NewsDigestError):
    """The news provider could not be reached or answered with an error."""

    def __init__(self, message: str, status: int = None):
        super().__init__(message)
        self.status = status


class ParseError(NewsDigestError):
    """The news provider answered with a payload we could not understand."""


class ValidationError(NewsDigestError):
    """A preference payload failed validation."""
