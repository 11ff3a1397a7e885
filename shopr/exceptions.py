"""Errors and warnings raised by the Shopify client.

Errors abort the call that raised them. Warnings are advisories emitted with
``warnings.warn`` next to a best-effort result.
"""


class ShopifyError(Exception):
    """Base class for every error raised by shopr."""


class ValidationError(ShopifyError, ValueError):
    """An accessor parameter is out of range or malformed."""


class InvalidPagerConfig(ShopifyError, ValueError):
    """The pager was called with a template or page counts it cannot use."""


class TransientFetchError(ShopifyError):
    """A response body could not be read. Retried by the pager."""


class RemoteRequestError(ShopifyError):
    """Shopify answered with an error status or an ``errors`` payload."""

    def __init__(self, message: str, status_code: int | None = None, url: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class MalformedHeader(ShopifyError, ValueError):
    """A call-limit or link header could not be parsed."""


class ExtractionError(ShopifyError):
    """A nested column could not be lifted into a child table."""


class FetchCancelled(ShopifyError):
    """The caller cancelled a paginated fetch between two rounds."""


class ShopifyWarning(UserWarning):
    pass


class ApiVersionWarning(ShopifyWarning):
    """Shopify served a different API version than the one requested."""


class PartialResultWarning(ShopifyWarning):
    """More ids were requested than max_pages * limit_per_page can return."""


class ExtractionWarning(ShopifyWarning):
    """A nested column was skipped while building child tables."""
