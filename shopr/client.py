"""Shopify Admin REST API client - handles auth, session, and base requests.

Environment variables:
    SHOPIFY_SHOP_URL: Shop URL, e.g. https://superstore-1.myshopify.com
    SHOPIFY_API_KEY: Private app API key (basic auth user)
    SHOPIFY_API_PASSWORD: Private app password (basic auth password)
    SHOPIFY_ACCESS_TOKEN: Optional, sent as X-Shopify-Access-Token instead of basic auth
    SHOPIFY_API_VERSION: Optional, defaults to the latest stable version
    SHOPIFY_TIMEOUT: Optional request timeout in seconds (default 30)

API Docs: https://shopify.dev/docs/api/admin-rest
"""
import logging
import os
import warnings
from datetime import datetime
from zoneinfo import ZoneInfo

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .exceptions import ApiVersionWarning, RemoteRequestError, TransientFetchError
from .headers import API_VERSION_HEADER

logger = logging.getLogger(__name__)

# Stable versions are released quarterly at 17:00 Central time.
RELEASE_MONTHS = (1, 4, 7, 10)
RELEASE_TZ = ZoneInfo("America/Chicago")


def latest_api_version(now: datetime | None = None) -> str:
    """Return the latest stable API version name (e.g. "2020-01") at ``now``."""
    if now is None:
        now = datetime.now(RELEASE_TZ)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=RELEASE_TZ)

    year = now.year
    latest = None
    for month in RELEASE_MONTHS:
        release = datetime(year, month, 1, 17, tzinfo=RELEASE_TZ)
        if now >= release:
            latest = (year, month)
    if latest is None:
        latest = (year - 1, RELEASE_MONTHS[-1])
    return f"{latest[0]}-{latest[1]:02d}"


def _transport_retry() -> Retry:
    # Transport-level retries; the pager has its own retry for unreadable bodies.
    return Retry(
        total=3,
        backoff_factor=1,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET"],
        respect_retry_after_header=True,
        raise_on_status=False,
    )


class ShopifyAPI:
    """Shopify Admin REST API client."""

    def __init__(
        self,
        shop_url: str | None = None,
        api_key: str | None = None,
        api_password: str | None = None,
        api_version: str | None = None,
        access_token: str | None = None,
        timeout: float | None = None,
    ):
        self.shop_url = (shop_url or os.environ["SHOPIFY_SHOP_URL"]).rstrip("/")
        if not self.shop_url.startswith(("http://", "https://")):
            self.shop_url = f"https://{self.shop_url}"

        # Only a version the caller asked for is checked against the response
        self.requested_version = api_version or os.environ.get("SHOPIFY_API_VERSION") or None
        self.api_version = self.requested_version or latest_api_version()
        self.timeout = timeout or float(os.environ.get("SHOPIFY_TIMEOUT", "30"))

        self.session = requests.Session()
        self.session.headers.update({"Accept": "application/json"})

        access_token = access_token or os.environ.get("SHOPIFY_ACCESS_TOKEN")
        if access_token:
            self.session.headers.update({"X-Shopify-Access-Token": access_token})
        else:
            self.session.auth = (
                api_key or os.environ["SHOPIFY_API_KEY"],
                api_password or os.environ["SHOPIFY_API_PASSWORD"],
            )

        adapter = HTTPAdapter(max_retries=_transport_retry())
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

    def endpoint_url(self, endpoint: str) -> str:
        """Full URL for an endpoint path like "orders" or "orders/count"."""
        return f"{self.shop_url}/admin/api/{self.api_version}/{endpoint}.json"

    def get_response(self, url: str, params: dict | None = None) -> requests.Response:
        """GET a URL and return the response once it is known to be usable.

        Raises:
            TransientFetchError: the body could not be read (retryable)
            RemoteRequestError: error status, or an ``errors`` key in the body
        """
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except (requests.exceptions.ChunkedEncodingError, requests.exceptions.ContentDecodingError) as e:
            raise TransientFetchError(f"could not read response from {url}: {e}") from e

        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            raise RemoteRequestError(
                f"Shopify returned HTTP {response.status_code} for {response.url}: {response.text[:500]}",
                status_code=response.status_code,
                url=response.url,
            ) from e

        payload = response.json()
        if isinstance(payload, dict) and "errors" in payload:
            raise RemoteRequestError(
                f"Shopify returned errors for {response.url}: {payload['errors']}",
                status_code=response.status_code,
                url=response.url,
            )
        return response

    def get(self, endpoint: str, params: dict | None = None) -> dict:
        """GET request to a Shopify endpoint. Returns the decoded JSON body.

        Args:
            endpoint: Endpoint path without version or suffix (e.g., "orders/count")
            params: Query parameters; None values are omitted

        Returns:
            Decoded JSON response dict
        """
        response = self.get_response(self.endpoint_url(endpoint), params=params)
        self.check_api_version(response)
        return response.json()

    def check_api_version(self, response: requests.Response) -> None:
        """Warn when Shopify served a different version than the one requested."""
        if not self.requested_version:
            return
        served = response.headers.get(API_VERSION_HEADER)
        if served and served != self.requested_version:
            logger.warning(f"API version mismatch: requested {self.requested_version}, used {served}")
            warnings.warn(
                "Shopify processed this request with a different API version than the one you "
                f"requested. Requested: {self.requested_version}, used: {served}",
                ApiVersionWarning,
                stacklevel=3,
            )

    def test_connection(self) -> dict:
        """Test API connection by fetching the shop profile.

        Returns:
            Shop profile dict if successful
        """
        return self.get("shop").get("shop", {})
