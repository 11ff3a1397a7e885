"""Flatten Shopify JSON pages into normalized tables.

All pages of a resource are concatenated into one parent DataFrame. Every
column holding arrays of records (line_items, variants, refunds, ...) is lifted
into its own child table with a foreign key back to the parent ``id``:

    {"orders": [{"id": 1, "line_items": [{"id": 10}, {"id": 11}]}]}

becomes

    orders:      id
                 1
    line_items:  order_id  id
                 1         10
                 1         11
"""
import logging
import math
import warnings
from typing import Any, Iterable, Mapping

import pandas as pd

from .exceptions import ExtractionError, ExtractionWarning

logger = logging.getLogger(__name__)

ON_ERROR_POLICIES = ("drop", "keep")


class RecordArray(list):
    """A non-empty JSON array whose items are all objects.

    Tagged once when a record is decoded so the flattener never has to guess
    whether a cell is a list of child records or a list of scalars.
    """


def _is_record_array(value: Any) -> bool:
    return isinstance(value, list) and bool(value) and all(isinstance(item, dict) for item in value)


def decode_record(record: Mapping[str, Any], expand_objects: bool = False, prefix: str = "") -> dict:
    """Tag nested record arrays in one record.

    With ``expand_objects``, nested objects become dotted columns
    (``{"image": {"id": 1}}`` -> ``{"image.id": 1}``); otherwise they stay as
    opaque dict values.
    """
    decoded = {}
    for key, value in record.items():
        name = f"{prefix}{key}"
        if _is_record_array(value):
            decoded[name] = RecordArray(value)
        elif expand_objects and isinstance(value, dict) and value:
            decoded.update(decode_record(value, expand_objects=True, prefix=f"{name}."))
        else:
            decoded[name] = value
    return decoded


def decode_page(page: Any, resource_key: str, expand_objects: bool = False) -> list[dict]:
    """Decoded records of one page (a requests.Response or a parsed body)."""
    payload = page.json() if hasattr(page, "json") else page
    records = (payload or {}).get(resource_key) or []
    return [decode_record(record, expand_objects=expand_objects) for record in records]


def foreign_key(resource_key: str) -> str:
    """Foreign-key column for children of a resource (orders -> order_id)."""
    singular = resource_key[:-1] if resource_key.endswith("s") else resource_key
    return f"{singular}_id"


def _is_empty_cell(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, list) and not value


def _is_nested_column(values: pd.Series) -> bool:
    lists = [value for value in values if isinstance(value, list)]
    if not lists:
        return False
    if any(isinstance(value, RecordArray) for value in lists):
        return True
    # Every row holds [] (e.g. no order has refunds yet): still a child table
    return not any(lists) and all(isinstance(value, list) or _is_empty_cell(value) for value in values)


def nested_columns(table: pd.DataFrame) -> list[str]:
    """Columns holding record arrays, or nothing but empty lists and nulls.

    Lists of scalars (``payment_gateway_names``) are not nested columns.
    """
    return [column for column in table.columns if _is_nested_column(table[column])]


def extract_child_table(table: pd.DataFrame, column: str, fk: str) -> pd.DataFrame:
    """Build the child table for one nested column.

    Each child row gets ``fk`` = parent ``id`` as its first column. A child's
    own field of the same name is replaced by the parent id.

    Raises:
        ExtractionError: the parent has no ``id`` column, or the column mixes
            record arrays with other non-empty values
    """
    if "id" not in table.columns:
        raise ExtractionError(f"cannot extract {column!r}: parent table has no 'id' column")

    rows = []
    for parent_id, cell in zip(table["id"], table[column]):
        if isinstance(cell, RecordArray):
            for child in cell:
                row = {fk: parent_id}
                row.update((k, v) for k, v in decode_record(child).items() if k != fk)
                rows.append(row)
        elif not _is_empty_cell(cell):
            raise ExtractionError(
                f"cannot extract {column!r}: row {parent_id!r} holds {type(cell).__name__}, not records"
            )
    if not rows:
        return pd.DataFrame(columns=[fk])
    return pd.DataFrame(rows)


def normalize_table(
    table: pd.DataFrame,
    resource_key: str,
    on_error: str = "drop",
) -> dict[str, pd.DataFrame]:
    """Lift every nested record column of ``table`` into a child table.

    Args:
        table: Parent table, one row per resource record
        resource_key: Name of the parent table (e.g. "orders")
        on_error: What to do with a column that cannot be extracted:
            "drop" removes it from the parent, "keep" leaves it in place.
            Both emit an ExtractionWarning.

    Returns:
        {resource_key: parent table, <column>: child table, ...}
    """
    if on_error not in ON_ERROR_POLICIES:
        raise ValueError(f"on_error should be one of {ON_ERROR_POLICIES}, got {on_error!r}")

    result = {resource_key: table}
    if table.empty:
        return result

    fk = foreign_key(resource_key)
    lifted = []
    for column in nested_columns(table):
        try:
            result[column] = extract_child_table(table, column, fk)
        except ExtractionError as e:
            logger.warning(f"[{resource_key}] skipping nested column {column!r} ({on_error}): {e}")
            warnings.warn(str(e), ExtractionWarning, stacklevel=2)
            if on_error == "keep":
                continue
        lifted.append(column)

    if lifted:
        result[resource_key] = table.drop(columns=lifted)
    return result


def flatten(
    pages: Iterable[Any],
    resource_key: str,
    on_error: str = "drop",
    expand_objects: bool = False,
) -> dict[str, pd.DataFrame]:
    """Concatenate pages of a resource and split out its nested tables.

    Columns are unioned across pages; a record missing a field gets a null
    there. Returns ``{resource_key: empty DataFrame}`` when there are no records.
    """
    records = []
    for page in pages:
        records.extend(decode_page(page, resource_key, expand_objects=expand_objects))

    table = pd.DataFrame(records)
    logger.debug(f"[{resource_key}] flattened {len(records)} records into {len(table.columns)} columns")
    return normalize_table(table, resource_key, on_error=on_error)
