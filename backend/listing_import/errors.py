"""
Error taxonomy for listing import.

Only UnsupportedDomainError, FetchError (for the listing page itself) and
ExtractionFailedError ever reach callers of extract_listing(). Everything
else is recovered inside a strategy or per photo.
"""

from typing import Optional, Sequence


class ListingImportError(Exception):
    """Base class for every error raised by this package."""


class FetchError(ListingImportError):
    """HTTP or network failure while fetching a document."""

    def __init__(self, message: str, status: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.url = url

    def __str__(self):
        if self.status is not None:
            return f"HTTP {self.status}: {self.message}"
        return self.message


class UnsupportedDomainError(ListingImportError):
    """The URL does not belong to a supported marketplace."""

    def __init__(self, url: str, supported_domains: Sequence[str]):
        self.url = url
        self.supported_domains = list(supported_domains)
        super().__init__(
            f"Unsupported marketplace URL: {url}. "
            f"Supported domains: {', '.join(self.supported_domains)}"
        )


class ParseError(ListingImportError):
    """A strategy could not parse the document. Never escapes the strategy chain."""


class AIServiceError(ListingImportError):
    """The language model call failed on every attempt."""


class AIExtractionError(ListingImportError):
    """AI photo selection produced nothing usable."""


class ImageDownloadError(ListingImportError):
    """A single photo could not be downloaded."""

    def __init__(self, message: str, url: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status = status


class StorageError(ListingImportError):
    """Upload to or delete from object storage failed."""


class ExtractionFailedError(ListingImportError):
    """Every strategy was exhausted without producing listing data."""

    def __init__(self, url: str, message: str = "no listing data could be extracted"):
        super().__init__(f"{message} ({url})")
        self.url = url
