"""Response header parsing: leaky-bucket call limit and Link pagination.

Shopify reports the call budget as ``X-Shopify-Shop-Api-Call-Limit: 39/40``
(calls used / bucket size) and the next page as
``Link: <https://...page_info=abc>; rel="next"``.
"""
import re
from dataclasses import dataclass

from .exceptions import MalformedHeader

CALL_LIMIT_HEADER = "X-Shopify-Shop-Api-Call-Limit"
LINK_HEADER = "Link"
API_VERSION_HEADER = "X-Shopify-API-Version"

# Fixed pause when the bucket is full. No backoff growth.
PAUSE_SECONDS = 0.5

_CALL_LIMIT_RE = re.compile(r"^(\d+)/(\d+)$")
_NEXT_LINK_RE = re.compile(r'<(https?://[^<>\s]+)>;\s*rel="next"')


@dataclass(frozen=True)
class CallBudget:
    """Snapshot of the leaky bucket, read from one response."""

    used: int
    capacity: int


def parse_call_limit(value: str | None) -> CallBudget:
    """Parse ``"<used>/<capacity>"`` into a CallBudget.

    Raises MalformedHeader for anything that is not exactly two integers
    separated by one slash.
    """
    if value is None:
        raise MalformedHeader("call limit header is missing")
    match = _CALL_LIMIT_RE.match(value.strip())
    if not match:
        raise MalformedHeader(f"could not parse call limit header: {value!r}")
    used, capacity = int(match.group(1)), int(match.group(2))
    if capacity == 0:
        raise MalformedHeader(f"call limit header has zero capacity: {value!r}")
    return CallBudget(used=used, capacity=capacity)


def should_pause(budget: CallBudget) -> bool:
    return budget.used == budget.capacity


def parse_next_link(value: str | None) -> str:
    """Return the URL tagged ``rel="next"`` in a Link header.

    A Link header can also carry ``rel="previous"``; only the next URL is
    returned. Raises MalformedHeader when there is no next URL.
    """
    if not value:
        raise MalformedHeader("link header is missing")
    match = _NEXT_LINK_RE.search(value)
    if not match:
        raise MalformedHeader(f'no rel="next" url in link header: {value!r}')
    return match.group(1)
