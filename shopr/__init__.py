"""Read-only client for the Shopify Admin REST API.

    from shopr import ShopifyAPI, get_orders

    api = ShopifyAPI()  # reads SHOPIFY_* environment variables
    tables = get_orders(api, updated_at_min="2024-01-01T00:00:00-00:00", max_pages=5)
    tables["orders"], tables["line_items"]
"""
from .accessors import (
    get_inventory_items,
    get_inventory_levels,
    get_locations,
    get_orders,
    get_orders_count,
    get_products,
    get_products_count,
)
from .client import ShopifyAPI, latest_api_version
from .clean import utc_offset_to_datetime
from .exceptions import (
    ApiVersionWarning,
    ExtractionError,
    ExtractionWarning,
    FetchCancelled,
    InvalidPagerConfig,
    MalformedHeader,
    PartialResultWarning,
    RemoteRequestError,
    ShopifyError,
    ShopifyWarning,
    TransientFetchError,
    ValidationError,
)
from .flatten import flatten, normalize_table

__all__ = [
    "ShopifyAPI",
    "latest_api_version",
    "get_orders",
    "get_orders_count",
    "get_products",
    "get_products_count",
    "get_inventory_items",
    "get_inventory_levels",
    "get_locations",
    "flatten",
    "normalize_table",
    "utc_offset_to_datetime",
    "ShopifyError",
    "ValidationError",
    "InvalidPagerConfig",
    "TransientFetchError",
    "RemoteRequestError",
    "MalformedHeader",
    "ExtractionError",
    "FetchCancelled",
    "ShopifyWarning",
    "ApiVersionWarning",
    "PartialResultWarning",
    "ExtractionWarning",
]
