"""Exception hierarchy shared by connectors and the extraction library.

- ConnectorError: base for all ingestion errors
- RateLimitError: API rate limit hit (HTTP 429)
- DataParsingError: payload, workbook or response could not be parsed
- FetchError: HTTP fetch failure after retries exhausted
- MissingCredentialError: a required API key is not configured
"""


class ConnectorError(Exception):
    """Base exception for all connector errors."""


class RateLimitError(ConnectorError):
    """Raised when the API returns a 429 rate limit response."""


class DataParsingError(ConnectorError):
    """Raised when response data cannot be parsed into the expected format."""


class FetchError(ConnectorError):
    """Raised when an HTTP request fails after all retry attempts."""


class MissingCredentialError(ConnectorError):
    """Raised when a connector needs an API key that is not configured.

    The refresh pipeline treats this as a skip, not a failure.
    """
