"""Resource accessors: orders, products, inventory items/levels, locations.

Each accessor validates its parameters, sizes the fetch from the resource's
count endpoint where there is one, pages through the endpoint and returns
``{table name: DataFrame}``.

API Docs: https://shopify.dev/docs/api/admin-rest
"""
import logging
import math
import warnings
from datetime import datetime
from typing import Iterable

import pandas as pd

from .clean import (
    clean_datetime,
    clean_fields,
    clean_financial_status,
    clean_fulfillment_status,
    clean_ids,
    clean_limit,
    clean_max_pages,
    clean_order_status,
    clean_published_status,
)
from .exceptions import PartialResultWarning, ValidationError
from .flatten import flatten
from .pager import ID_BATCH_SIZE, Cancellation, fetch_id_batches, fetch_pages, since_id_cursor

logger = logging.getLogger(__name__)

DateLike = str | datetime | None


def _join_ids(ids: list[int] | None) -> str | None:
    return ",".join(str(i) for i in ids) if ids else None


def _warn_if_partial(ids: list[int] | None, max_pages: int | None, limit_per_page: int) -> None:
    if ids and max_pages is not None and len(ids) > max_pages * limit_per_page:
        warnings.warn(
            "Requesting more ids than max_pages * limit_per_page. Some ids may not be included in the result",
            PartialResultWarning,
            stacklevel=3,
        )


def _pages_needed(count: int, limit_per_page: int, max_pages: int | None) -> int:
    pages_required = math.ceil(count / limit_per_page)
    if max_pages is not None:
        pages_required = min(pages_required, max_pages)
    return max(1, pages_required)


def _order_filters(
    ids, since_id, created_at_min, created_at_max, updated_at_min, updated_at_max,
    processed_at_min, processed_at_max, status, financial_status, fulfillment_status,
) -> dict:
    return {
        "ids": _join_ids(ids),
        "since_id": since_id,
        "created_at_min": clean_datetime(created_at_min),
        "created_at_max": clean_datetime(created_at_max),
        "updated_at_min": clean_datetime(updated_at_min),
        "updated_at_max": clean_datetime(updated_at_max),
        "processed_at_min": clean_datetime(processed_at_min),
        "processed_at_max": clean_datetime(processed_at_max),
        "status": clean_order_status(status),
        "financial_status": clean_financial_status(financial_status),
        "fulfillment_status": clean_fulfillment_status(fulfillment_status),
    }


def _product_filters(
    ids, since_id, title, vendor, handle, product_type, collection_id,
    created_at_min, created_at_max, updated_at_min, updated_at_max,
    published_at_min, published_at_max, published_status,
) -> dict:
    return {
        "ids": _join_ids(ids),
        "since_id": since_id,
        "title": title,
        "vendor": vendor,
        "handle": handle,
        "product_type": product_type,
        "collection_id": collection_id,
        "created_at_min": clean_datetime(created_at_min),
        "created_at_max": clean_datetime(created_at_max),
        "updated_at_min": clean_datetime(updated_at_min),
        "updated_at_max": clean_datetime(updated_at_max),
        "published_at_min": clean_datetime(published_at_min),
        "published_at_max": clean_datetime(published_at_max),
        "published_status": clean_published_status(published_status),
    }


def _count(api, endpoint: str, params: dict) -> int:
    payload = api.get(endpoint, params={k: v for k, v in params.items() if v is not None})
    return int(payload["count"])


def get_orders_count(
    api,
    ids: Iterable[int | str] | None = None,
    since_id: int | None = None,
    created_at_min: DateLike = None,
    created_at_max: DateLike = None,
    updated_at_min: DateLike = None,
    updated_at_max: DateLike = None,
    processed_at_min: DateLike = None,
    processed_at_max: DateLike = None,
    status: str | None = "any",
    financial_status: str | None = None,
    fulfillment_status: str | None = None,
) -> int:
    """Number of orders matching the filters."""
    filters = _order_filters(
        clean_ids(ids, "orders"), since_id, created_at_min, created_at_max, updated_at_min,
        updated_at_max, processed_at_min, processed_at_max, status, financial_status,
        fulfillment_status,
    )
    return _count(api, "orders/count", filters)


def get_products_count(
    api,
    ids: Iterable[int | str] | None = None,
    since_id: int | None = None,
    title: str | None = None,
    vendor: str | None = None,
    handle: str | None = None,
    product_type: str | None = None,
    collection_id: int | None = None,
    created_at_min: DateLike = None,
    created_at_max: DateLike = None,
    updated_at_min: DateLike = None,
    updated_at_max: DateLike = None,
    published_at_min: DateLike = None,
    published_at_max: DateLike = None,
    published_status: str | None = None,
) -> int:
    """Number of products matching the filters."""
    filters = _product_filters(
        clean_ids(ids, "products"), since_id, title, vendor, handle, product_type, collection_id,
        created_at_min, created_at_max, updated_at_min, updated_at_max, published_at_min,
        published_at_max, published_status,
    )
    return _count(api, "products/count", filters)


def get_orders(
    api,
    max_pages: int | None = None,
    limit_per_page: int = 250,
    ids: Iterable[int | str] | None = None,
    since_id: int = 0,
    created_at_min: DateLike = None,
    created_at_max: DateLike = None,
    updated_at_min: DateLike = None,
    updated_at_max: DateLike = None,
    processed_at_min: DateLike = None,
    processed_at_max: DateLike = None,
    status: str | None = "any",
    financial_status: str | None = None,
    fulfillment_status: str | None = None,
    fields: str | Iterable[str] | None = None,
    on_extraction_error: str = "drop",
    cancel: Cancellation | None = None,
) -> dict[str, pd.DataFrame]:
    """Orders plus one child table per nested record column.

    Child tables (line_items, refunds, fulfillments, tax_lines, ...) carry an
    ``order_id`` column. Nested objects such as ``customer`` or
    ``shipping_address`` stay as dict values in the orders table.

    Pages are followed through the Link header, so only the first request
    carries the filters.
    """
    limit_per_page = clean_limit(limit_per_page)
    max_pages = clean_max_pages(max_pages)
    ids = clean_ids(ids, "orders")
    fields = clean_fields(fields, "orders")
    filters = _order_filters(
        ids, since_id, created_at_min, created_at_max, updated_at_min, updated_at_max,
        processed_at_min, processed_at_max, status, financial_status, fulfillment_status,
    )
    _warn_if_partial(ids, max_pages, limit_per_page)

    count = _count(api, "orders/count", filters)
    pages_n = _pages_needed(count, limit_per_page, max_pages)
    logger.info(f"[orders] {count} orders, ~{pages_n} pages of {limit_per_page}")

    params = {**filters, "limit": limit_per_page, "fields": fields}
    responses = fetch_pages(
        api,
        api.endpoint_url("orders"),
        params,
        pages_hint=pages_n,
        max_pages=max_pages,
        cancel=cancel,
    )
    api.check_api_version(responses[0])

    return flatten(responses, "orders", on_error=on_extraction_error)


def get_products(
    api,
    max_pages: int | None = None,
    limit_per_page: int = 250,
    ids: Iterable[int | str] | None = None,
    since_id: int = 0,
    title: str | None = None,
    vendor: str | None = None,
    handle: str | None = None,
    product_type: str | None = None,
    collection_id: int | None = None,
    created_at_min: DateLike = None,
    created_at_max: DateLike = None,
    updated_at_min: DateLike = None,
    updated_at_max: DateLike = None,
    published_at_min: DateLike = None,
    published_at_max: DateLike = None,
    published_status: str | None = None,
    fields: str | Iterable[str] | None = None,
    on_extraction_error: str = "drop",
    cancel: Cancellation | None = None,
) -> dict[str, pd.DataFrame]:
    """Products plus variants, options, images (each keyed by ``product_id``).

    Paged on ``since_id``: each round asks for products above the largest id
    seen so far, for as many rounds as the count endpoint says are needed.
    Nested objects (``image``) are expanded into dotted columns.
    """
    limit_per_page = clean_limit(limit_per_page)
    max_pages = clean_max_pages(max_pages)
    ids = clean_ids(ids, "products")
    fields = clean_fields(fields, "products")
    filters = _product_filters(
        ids, since_id, title, vendor, handle, product_type, collection_id,
        created_at_min, created_at_max, updated_at_min, updated_at_max,
        published_at_min, published_at_max, published_status,
    )
    _warn_if_partial(ids, max_pages, limit_per_page)

    count = _count(api, "products/count", filters)
    pages_n = _pages_needed(count, limit_per_page, max_pages)
    logger.info(f"[products] {count} products, {pages_n} pages of {limit_per_page}")

    params = {**filters, "limit": limit_per_page, "fields": fields}
    responses = fetch_pages(
        api,
        api.endpoint_url("products"),
        params,
        pages_hint=pages_n,
        max_pages=pages_n,
        advance=since_id_cursor("products"),
        cancel=cancel,
    )
    api.check_api_version(responses[0])

    return flatten(responses, "products", on_error=on_extraction_error, expand_objects=True)


def get_inventory_items(
    api,
    ids: Iterable[int | str],
    max_pages: int | None = None,
    limit_per_page: int = 250,
    since_id: int = 0,
    cancel: Cancellation | None = None,
) -> dict[str, pd.DataFrame]:
    """Inventory items for the given ids.

    The endpoint only filters by ids in the query string, so ids are sent in
    sorted batches of at most min(50, limit_per_page).
    """
    limit_per_page = clean_limit(limit_per_page)
    max_pages = clean_max_pages(max_pages)
    ids = sorted(clean_ids(ids, "inventory", since_id=since_id))
    _warn_if_partial(ids, max_pages, limit_per_page)

    batch_size = min(ID_BATCH_SIZE, limit_per_page)
    logger.info(f"[inventory_items] {len(ids)} ids in batches of {batch_size}")

    responses = fetch_id_batches(
        api,
        api.endpoint_url("inventory_items"),
        {"limit": limit_per_page, "since_id": since_id},
        ids_a=ids,
        param_a="ids",
        batch_size=batch_size,
        max_pages=max_pages,
        cancel=cancel,
    )
    api.check_api_version(responses[0])

    return flatten(responses, "inventory_items", expand_objects=True)


def get_inventory_levels(
    api,
    inventory_item_ids: Iterable[int | str] | None = None,
    location_ids: Iterable[int | str] | None = None,
    updated_at_min: DateLike = None,
    max_pages: int | None = None,
    limit_per_page: int = 250,
    cancel: Cancellation | None = None,
) -> dict[str, pd.DataFrame]:
    """Inventory levels for items and/or locations.

    At least one id set is required. Both are sent in batches of 50 and every
    item batch is crossed with every location batch.
    """
    limit_per_page = clean_limit(limit_per_page)
    max_pages = clean_max_pages(max_pages)
    item_ids = clean_ids(inventory_item_ids, "inventory_levels")
    loc_ids = clean_ids(location_ids, "inventory_levels")
    if item_ids is None and loc_ids is None:
        raise ValidationError("Must provide 'inventory_item_ids' or 'location_ids' or both")
    _warn_if_partial(item_ids, max_pages, limit_per_page)

    responses = fetch_id_batches(
        api,
        api.endpoint_url("inventory_levels"),
        {"limit": limit_per_page, "updated_at_min": clean_datetime(updated_at_min)},
        ids_a=item_ids,
        param_a="inventory_item_ids",
        ids_b=loc_ids,
        param_b="location_ids",
        max_pages=max_pages,
        cancel=cancel,
    )
    api.check_api_version(responses[0])

    return flatten(responses, "inventory_levels", expand_objects=True)


def get_locations(api) -> dict[str, pd.DataFrame]:
    """All locations of the shop. The endpoint is not paginated."""
    response = api.get_response(api.endpoint_url("locations"))
    api.check_api_version(response)
    return flatten([response], "locations", expand_objects=True)
