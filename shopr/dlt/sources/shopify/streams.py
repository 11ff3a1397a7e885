"""Shopify dlt resources - each function is a stream.

Each stream calls one accessor and yields every table it returns: the parent
rows under the stream name, child rows under ``<stream>__<child>`` (e.g.
``orders__line_items``), so the destination gets the same normalized tables
as the library.
"""
import dlt
import pandas as pd

from shopr.accessors import (
    get_inventory_items,
    get_inventory_levels,
    get_locations,
    get_orders,
    get_products,
)
from shopr.client import ShopifyAPI

# Runner options each stream takes (see shopr/dlt/pipeline.py)
STREAM_OPTIONS = {
    "orders": ("updated_at_min", "limit", "max_pages"),
    "products": ("updated_at_min", "limit", "max_pages"),
    "locations": (),
    "inventory_items": ("limit", "max_pages"),
    "inventory_levels": ("updated_at_min", "limit", "max_pages"),
}


def table_name(resource_key: str, name: str) -> str:
    """Destination table for one accessor table (orders, line_items -> orders__line_items)."""
    return resource_key if name == resource_key else f"{resource_key}__{name}"


def table_rows(table: pd.DataFrame) -> list[dict]:
    """DataFrame rows as dicts with nulls as None."""
    return table.astype(object).where(table.notna(), None).to_dict("records")


def table_items(resource_key: str, tables: dict[str, pd.DataFrame], _log=print):
    """Yield each non-empty table as one batch routed to its destination table.

    Tables with an ``id`` column are merged on it, the rest are appended.
    """
    for name, table in tables.items():
        rows = table_rows(table)
        if not rows:
            _log(f"[{resource_key}] {name}: no rows")
            continue
        has_id = "id" in table.columns
        _log(f"[{resource_key}] {name}: {len(rows)} rows")
        yield dlt.mark.with_hints(
            rows,
            dlt.mark.make_hints(
                table_name=table_name(resource_key, name),
                write_disposition="merge" if has_id else "append",
                primary_key="id" if has_id else None,
            ),
            create_table_variant=True,
        )


def _logger(log):
    def _log(msg):
        if log:
            log.info(msg)
        else:
            print(msg)
    return _log


@dlt.resource(write_disposition="merge", primary_key="id")
def orders(
    updated_at_min: str | None = None,
    limit: int = 250,
    max_pages: int | None = None,
    status: str = "any",
    log=None,
):
    """Orders stream with line_items, refunds, fulfillments, ... child tables.

    Args:
        updated_at_min: Only orders updated at or after this time
            (e.g. "2024-01-01T00:00:00-00:00")
        limit: Orders per page (1-250)
        max_pages: Page cap (None = all pages)
        status: Order status filter (open, closed, any)
        log: Optional logger with an info() method

    Yields:
        One batch per table
    """
    _log = _logger(log)
    api = ShopifyAPI()
    _log(f"[orders] updated_at_min={updated_at_min} api_version={api.api_version}")

    tables = get_orders(
        api,
        updated_at_min=updated_at_min,
        limit_per_page=limit,
        max_pages=max_pages,
        status=status,
    )
    yield from table_items("orders", tables, _log)


@dlt.resource(write_disposition="merge", primary_key="id")
def products(
    updated_at_min: str | None = None,
    limit: int = 250,
    max_pages: int | None = None,
    log=None,
):
    """Products stream with variants, options and images child tables."""
    _log = _logger(log)
    api = ShopifyAPI()
    _log(f"[products] updated_at_min={updated_at_min} api_version={api.api_version}")

    tables = get_products(api, updated_at_min=updated_at_min, limit_per_page=limit, max_pages=max_pages)
    yield from table_items("products", tables, _log)


@dlt.resource(write_disposition="merge", primary_key="id")
def locations(log=None):
    """Locations stream (single request)."""
    _log = _logger(log)
    yield from table_items("locations", get_locations(ShopifyAPI()), _log)


@dlt.resource(write_disposition="merge", primary_key="id")
def inventory_items(
    limit: int = 250,
    max_pages: int | None = None,
    log=None,
):
    """Inventory items of every product variant.

    The inventory item endpoint needs explicit ids, so variants are read
    first and their ``inventory_item_id`` values requested in batches.
    """
    _log = _logger(log)
    api = ShopifyAPI()
    variants = get_products(api, fields=["id", "variants"]).get("variants")
    if variants is None or "inventory_item_id" not in variants.columns:
        _log("[inventory_items] no variants, nothing to fetch")
        return

    item_ids = variants["inventory_item_id"].dropna().astype("int64").unique().tolist()
    if not item_ids:
        _log("[inventory_items] variants have no inventory items")
        return
    _log(f"[inventory_items] {len(item_ids)} inventory item ids from variants")
    tables = get_inventory_items(api, ids=item_ids, limit_per_page=limit, max_pages=max_pages)
    yield from table_items("inventory_items", tables, _log)


@dlt.resource(write_disposition="append")
def inventory_levels(
    updated_at_min: str | None = None,
    limit: int = 250,
    max_pages: int | None = None,
    log=None,
):
    """Inventory levels at every location of the shop."""
    _log = _logger(log)
    api = ShopifyAPI()
    shop_locations = get_locations(api)["locations"]
    if shop_locations.empty:
        _log("[inventory_levels] no locations, nothing to fetch")
        return

    location_ids = shop_locations["id"].astype("int64").tolist()
    _log(f"[inventory_levels] {len(location_ids)} locations")
    tables = get_inventory_levels(
        api,
        location_ids=location_ids,
        updated_at_min=updated_at_min,
        limit_per_page=limit,
        max_pages=max_pages,
    )
    yield from table_items("inventory_levels", tables, _log)
