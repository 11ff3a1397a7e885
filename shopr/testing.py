"""Helpers for tests: canned Shopify responses and a scripted client."""
import json

import requests

SHOP_URL = "https://superstore-1.myshopify.com"
API_VERSION = "2024-01"


def endpoint(resource: str) -> str:
    return f"{SHOP_URL}/admin/api/{API_VERSION}/{resource}.json"


def shop_headers(extra=None, call_limit="1/40"):
    """Headers a healthy shop sends back."""
    headers = {
        "X-Shopify-API-Version": API_VERSION,
        "X-Shopify-Shop-Api-Call-Limit": call_limit,
    }
    headers.update(extra or {})
    return headers


def next_link(page_info: str, limit: int = 250, resource: str = "orders") -> dict:
    url = f"{endpoint(resource)}?limit={limit}&page_info={page_info}"
    return {"Link": f'<{url}>; rel="next"'}


def make_response(payload, headers=None, status_code=200, url=None):
    """A real requests.Response carrying ``payload`` as its JSON body."""
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(payload).encode("utf-8")
    response.encoding = "utf-8"
    response.headers.update(shop_headers() if headers is None else headers)
    response.url = url or endpoint("orders")
    return response


class ScriptedAPI:
    """Stands in for ShopifyAPI in pager tests.

    Serves queued responses in order and records every (url, params) call.
    Queued exceptions are raised instead of returned.
    """

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def get_response(self, url, params=None):
        self.calls.append((url, dict(params or {})))
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item
