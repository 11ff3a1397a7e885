"""Paginated GET requests against Shopify collection endpoints.

Two pagers:
- fetch_pages: one request template, followed round by round until there is
  no next page, the page cap is reached, or an id set is exhausted.
- fetch_id_batches: for endpoints that take ids in the query string. Splits the
  id sets into batches of 50 and runs fetch_pages per batch combination under
  one global page budget.

Rounds are strictly sequential. The leaky bucket is shared by every request
made with the same credentials, so pages are never fetched concurrently.
"""
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable, Iterator, Mapping, Protocol
from urllib.parse import parse_qs, urlsplit

import requests

from .exceptions import FetchCancelled, InvalidPagerConfig, MalformedHeader, TransientFetchError
from .headers import CALL_LIMIT_HEADER, LINK_HEADER, PAUSE_SECONDS, parse_call_limit, parse_next_link, should_pause

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
ID_BATCH_SIZE = 50

# Query parameters that still apply once the server hands out next-page URLs
CARRIED_PARAMS = ("limit", "fields")


class Cancellation(Protocol):
    def is_set(self) -> bool: ...


@dataclass(frozen=True)
class PageState:
    """Where the next round points. A new state is built for every round."""

    url: str
    params: Mapping[str, Any]
    template: Mapping[str, Any] = field(default_factory=dict)
    page: int = 1


Advance = Callable[[PageState, requests.Response], "PageState | None"]


def follow_next_link(state: PageState, response: requests.Response) -> PageState | None:
    """Next round from the response's Link header, or None on the last page.

    The next URL carries its own cursor (page_info); only ``limit`` and
    ``fields`` are sent along, and only when the URL does not already have them.
    """
    try:
        next_url = parse_next_link(response.headers.get(LINK_HEADER))
    except MalformedHeader:
        return None

    in_url = parse_qs(urlsplit(next_url).query)
    params = {
        name: state.template[name]
        for name in CARRIED_PARAMS
        if state.template.get(name) is not None and name not in in_url
    }
    return PageState(url=next_url, params=params, template=state.template, page=state.page + 1)


def since_id_cursor(resource_key: str) -> Advance:
    """Keyset pagination on ``since_id``.

    The next round asks for ids above the largest id of this page. When the
    template filters on ``ids``, only the ids not yet passed are requested and
    paging stops once none are left.
    """

    def advance(state: PageState, response: requests.Response) -> PageState | None:
        records = response.json().get(resource_key) or []
        if not records:
            return None

        since_id = max(record["id"] for record in records)
        params = {**state.params, "since_id": since_id}

        if state.params.get("ids"):
            remaining = [i for i in _split_ids(state.params["ids"]) if i > since_id]
            if not remaining:
                return None
            params["ids"] = ",".join(str(i) for i in remaining)

        return replace(state, params=params, page=state.page + 1)

    return advance


def _split_ids(value) -> list[int]:
    if isinstance(value, str):
        return [int(i) for i in value.split(",") if i]
    return [int(i) for i in value]


def _request(api, state: PageState) -> requests.Response:
    """Issue one round, retrying unreadable responses up to MAX_ATTEMPTS times."""
    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            return api.get_response(state.url, params=dict(state.params))
        except TransientFetchError as e:
            if attempt == MAX_ATTEMPTS:
                raise
            logger.warning(f"[pager] page={state.page} attempt {attempt}/{MAX_ATTEMPTS} failed: {e}")


def _bucket_full(response: requests.Response) -> bool:
    try:
        budget = parse_call_limit(response.headers.get(CALL_LIMIT_HEADER))
    except MalformedHeader:
        # Throttling is an optimization; an unreadable header means "not full"
        return False
    return should_pause(budget)


def fetch_pages(
    api,
    url: str,
    params: Mapping[str, Any],
    pages_hint: int = 1,
    max_pages: int | None = None,
    advance: Advance = follow_next_link,
    cancel: Cancellation | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> list[requests.Response]:
    """Fetch pages of a collection endpoint.

    Args:
        api: Client exposing ``get_response(url, params)``
        url: Endpoint URL for the first round
        params: Query parameters for the first round; must include ``limit``
        pages_hint: Expected number of pages, used for progress logging only
        max_pages: Stop after this many rounds (None = no cap)
        advance: Builds the next round from the current one, None to stop
        cancel: Optional token (e.g. threading.Event) checked before each round
        sleep: Called with PAUSE_SECONDS when the call bucket is full

    Returns:
        Responses in round order
    """
    if pages_hint < 1:
        raise InvalidPagerConfig("pages_hint should be at least 1")
    if max_pages is not None and max_pages < 1:
        raise InvalidPagerConfig("max_pages should be at least 1")
    if "limit" not in params:
        raise InvalidPagerConfig("params should include 'limit'")

    template = {name: value for name, value in params.items() if value is not None}
    state = PageState(url=url, params=template, template=template)
    responses = []

    while True:
        if cancel is not None and cancel.is_set():
            raise FetchCancelled(f"fetch cancelled before page {state.page}")

        logger.debug(f"[pager] requesting page {state.page} of ~{pages_hint}")
        response = _request(api, state)
        responses.append(response)

        next_state = advance(state, response)
        if next_state is None:
            break

        if max_pages is not None and state.page >= max_pages:
            logger.debug(f"[pager] reached max_pages={max_pages}")
            break

        if _bucket_full(response):
            logger.info(f"[pager] call bucket full after page {state.page}, pausing {PAUSE_SECONDS}s")
            sleep(PAUSE_SECONDS)
        state = next_state

    return responses


def batch_ids(ids: Iterable, size: int = ID_BATCH_SIZE) -> Iterator[list]:
    """Split ids into consecutive batches of at most ``size``."""
    if size < 1:
        raise InvalidPagerConfig("batch size should be at least 1")

    current_batch = []
    for value in ids:
        current_batch.append(value)
        if len(current_batch) == size:
            yield current_batch
            current_batch = []

    if current_batch:
        yield current_batch


def fetch_id_batches(
    api,
    url: str,
    params: Mapping[str, Any],
    ids_a: Iterable | None = None,
    param_a: str = "ids",
    ids_b: Iterable | None = None,
    param_b: str | None = None,
    batch_size: int = ID_BATCH_SIZE,
    max_pages: int | None = None,
    cancel: Cancellation | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> list[requests.Response]:
    """Fetch pages for every combination of id batches.

    A missing id set counts as one batch without that filter. The global
    ``max_pages`` budget is shared by every combination; once it is used up
    no further batches are requested.
    """
    if max_pages is not None and max_pages < 1:
        raise InvalidPagerConfig("max_pages should be at least 1")
    if ids_b is not None and param_b is None:
        raise InvalidPagerConfig("param_b is required when ids_b is given")

    batches_a = list(batch_ids(ids_a, batch_size)) if ids_a else [None]
    batches_b = list(batch_ids(ids_b, batch_size)) if ids_b else [None]
    total = len(batches_a) * len(batches_b)

    responses = []
    combination = 0
    for batch_b in batches_b:
        for batch_a in batches_a:
            remaining = None if max_pages is None else max_pages - len(responses)
            if remaining is not None and remaining <= 0:
                logger.info(f"[pager] page budget {max_pages} used up after {combination}/{total} batches")
                return responses

            combination += 1
            batch_params = dict(params)
            if batch_a is not None:
                batch_params[param_a] = ",".join(str(i) for i in batch_a)
            if batch_b is not None:
                batch_params[param_b] = ",".join(str(i) for i in batch_b)

            logger.debug(f"[pager] batch {combination}/{total}")
            responses.extend(
                fetch_pages(
                    api,
                    url,
                    batch_params,
                    max_pages=remaining,
                    cancel=cancel,
                    sleep=sleep,
                )
            )

    return responses
