"""Parameter validation for the accessors.

Every function returns the value in the form the API expects (or None to omit
the parameter) and raises ValidationError before any request is made.
"""
import re
from datetime import datetime, timezone
from typing import Iterable

import pandas as pd

from .exceptions import ValidationError

MAX_LIMIT = 250

_DATETIME_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}[+-]\d{2}:\d{2}$")
_DIGITS_RE = re.compile(r"^\d+$")

ORDER_STATUSES = ("open", "closed", "any")
FINANCIAL_STATUSES = ("any", "authorized", "pending", "paid", "refunded", "voided")
FULFILLMENT_STATUSES = ("any", "shipped", "partial", "unshipped")
PUBLISHED_STATUSES = ("any", "published", "unpublished")

ORDER_FIELDS = frozenset({
    "id", "email", "closed_at", "created_at", "updated_at", "number",
    "note", "token", "gateway", "test", "total_price", "subtotal_price",
    "total_weight", "total_tax", "taxes_included", "currency", "financial_status",
    "confirmed", "total_discounts", "total_line_items_price", "cart_token",
    "buyer_accepts_marketing", "name", "referring_site", "landing_site",
    "cancelled_at", "cancel_reason", "total_price_usd", "checkout_token",
    "reference", "user_id", "location_id", "source_identifier", "source_url",
    "processed_at", "device_id", "phone", "customer_locale", "app_id",
    "browser_ip", "landing_site_ref", "order_number", "discount_applications",
    "discount_codes", "note_attributes", "payment_gateway_names",
    "processing_method", "checkout_id", "source_name", "fulfillment_status",
    "tax_lines", "tags", "contact_email", "order_status_url", "presentment_currency",
    "total_line_items_price_set", "total_discounts_set", "total_shipping_price_set",
    "subtotal_price_set", "total_price_set", "total_tax_set", "total_tip_received",
    "admin_graphql_api_id", "line_items", "shipping_lines", "billing_address",
    "shipping_address", "fulfillments", "client_details", "refunds",
    "payment_details", "customer",
})

PRODUCT_FIELDS = frozenset({
    "id", "title", "body_html", "vendor", "product_type", "created_at",
    "handle", "updated_at", "published_at", "template_suffix", "tags",
    "published_scope", "admin_graphql_api_id", "variants", "options",
    "images", "image",
})

FIELDS_BY_RESOURCE = {
    "orders": ORDER_FIELDS,
    "products": PRODUCT_FIELDS,
}


def clean_limit(limit_per_page: int) -> int:
    if isinstance(limit_per_page, bool) or not isinstance(limit_per_page, int):
        raise ValidationError(f"'limit_per_page' should be an integer, got {limit_per_page!r}")
    if not 1 <= limit_per_page <= MAX_LIMIT:
        raise ValidationError(f"'limit_per_page' should be in the range [1, {MAX_LIMIT}]")
    return limit_per_page


def clean_max_pages(max_pages: int | None) -> int | None:
    """None means no page cap."""
    if max_pages is None:
        return None
    if isinstance(max_pages, bool) or not isinstance(max_pages, int) or max_pages < 1:
        raise ValidationError(f"'max_pages' should be None or an integer >= 1, got {max_pages!r}")
    return max_pages


def clean_datetime(value: str | datetime | None) -> str | None:
    """Validate a datetime filter.

    Strings must look like ``2014-04-25T16:15:47-04:00``. datetime objects are
    converted to UTC; naive ones are taken to be UTC already.
    """
    if value is None:
        return None
    if isinstance(value, str):
        if not _DATETIME_RE.match(value):
            raise ValidationError(
                f"Improper datetime format {value!r}. Should be like 2014-04-25T16:15:47-04:00"
            )
        return value
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S+00:00")
    raise ValidationError(f"Improper datetime type {type(value).__name__}. Should be str or datetime")


def clean_ids(
    ids: Iterable[int | str] | None,
    resource: str,
    since_id: int | None = None,
) -> list[int] | None:
    """Validate an id filter and return it as a list of ints.

    Inventory endpoints require ids; for every other resource an empty
    value means "no filter". Ids at or below ``since_id`` are dropped.
    """
    if ids is None:
        ids = []
    elif isinstance(ids, (str, int)):
        ids = [ids]
    ids = list(ids)

    if not ids:
        if resource == "inventory":
            raise ValidationError("'ids' cannot be None or empty")
        return None

    cleaned = []
    for value in ids:
        if isinstance(value, bool):
            raise ValidationError(f"'ids' contains a non integer value: {value!r}")
        if isinstance(value, int):
            cleaned.append(value)
        elif isinstance(value, str) and _DIGITS_RE.match(value):
            cleaned.append(int(value))
        else:
            raise ValidationError(f"'ids' contains a non integer value: {value!r}")

    if len(set(cleaned)) != len(cleaned):
        raise ValidationError("'ids' contains at least one duplicate")

    if since_id is not None:
        cleaned = [i for i in cleaned if i > int(since_id)]
        if not cleaned:
            raise ValidationError("No ids left after removing those <= since_id")

    return cleaned


def clean_fields(fields: str | Iterable[str] | None, resource: str) -> str | None:
    """Validate top-level fields and return them comma-joined, with ``id`` first."""
    if fields is None:
        return None
    if isinstance(fields, str):
        fields = [f.strip() for f in fields.split(",") if f.strip()]
    else:
        fields = list(fields)
    if not fields:
        return None
    if not all(isinstance(f, str) for f in fields):
        raise ValidationError("'fields' should be strings")

    if "id" not in fields:
        fields = ["id", *fields]

    allowed = FIELDS_BY_RESOURCE[resource]
    unknown = [f for f in fields if f not in allowed]
    if unknown:
        raise ValidationError(f"One or more fields not recognized: {', '.join(unknown)}")

    return ",".join(fields)


def _clean_choice(value: str | None, name: str, choices: tuple[str, ...]) -> str | None:
    if value is None:
        return None
    if value not in choices:
        raise ValidationError(
            f"{name} = {value!r} is not one of the allowed values {{{', '.join(choices)}}}"
        )
    return value


def clean_order_status(status: str | None) -> str | None:
    return _clean_choice(status, "status", ORDER_STATUSES)


def clean_financial_status(financial_status: str | None) -> str | None:
    return _clean_choice(financial_status, "financial_status", FINANCIAL_STATUSES)


def clean_fulfillment_status(fulfillment_status: str | None) -> str | None:
    return _clean_choice(fulfillment_status, "fulfillment_status", FULFILLMENT_STATUSES)


def clean_published_status(published_status: str | None) -> str | None:
    return _clean_choice(published_status, "published_status", PUBLISHED_STATUSES)


def utc_offset_to_datetime(values, tz: str = "UTC"):
    """Convert offset timestamps like ``2019-01-01T13:15:00-04:00`` to tz-aware values.

    Accepts a single string or a list/Series of strings and returns a
    Timestamp or Series converted to ``tz``.
    """
    if isinstance(values, str):
        return pd.Timestamp(values).tz_convert(tz)
    return pd.to_datetime(pd.Series(values), utc=True).dt.tz_convert(tz)
