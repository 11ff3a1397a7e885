"""Tests for ShopifyAPI and API version selection."""
from datetime import datetime, timezone

import pytest
import requests

from shopr.client import RELEASE_TZ, ShopifyAPI, latest_api_version
from shopr.exceptions import ApiVersionWarning, RemoteRequestError, TransientFetchError
from shopr.testing import API_VERSION, SHOP_URL, endpoint, make_response, shop_headers


@pytest.mark.parametrize(
    "now, expected",
    [
        (datetime(2020, 2, 11, tzinfo=timezone.utc), "2020-01"),
        (datetime(2020, 1, 1, 12, tzinfo=RELEASE_TZ), "2019-10"),
        (datetime(2020, 1, 1, 17, tzinfo=RELEASE_TZ), "2020-01"),
        (datetime(2020, 10, 1, 16, 59), "2020-07"),
        (datetime(2020, 12, 31, 23, tzinfo=RELEASE_TZ), "2020-10"),
    ],
)
def test_latest_api_version(now, expected):
    assert latest_api_version(now) == expected


def test_config_from_environment(monkeypatch):
    monkeypatch.setenv("SHOPIFY_SHOP_URL", "superstore-1.myshopify.com/")
    monkeypatch.setenv("SHOPIFY_API_KEY", "env-key")
    monkeypatch.setenv("SHOPIFY_API_PASSWORD", "env-password")
    monkeypatch.setenv("SHOPIFY_API_VERSION", "2023-10")
    monkeypatch.delenv("SHOPIFY_ACCESS_TOKEN", raising=False)
    monkeypatch.delenv("SHOPIFY_TIMEOUT", raising=False)

    api = ShopifyAPI()

    assert api.shop_url == "https://superstore-1.myshopify.com"
    assert api.session.auth == ("env-key", "env-password")
    assert api.api_version == api.requested_version == "2023-10"
    assert api.timeout == 30
    assert api.endpoint_url("orders/count") == (
        "https://superstore-1.myshopify.com/admin/api/2023-10/orders/count.json"
    )


def test_access_token_replaces_basic_auth(monkeypatch):
    monkeypatch.delenv("SHOPIFY_API_VERSION", raising=False)
    api = ShopifyAPI(shop_url=SHOP_URL, access_token="shpat_123")

    assert api.session.headers["X-Shopify-Access-Token"] == "shpat_123"
    assert api.session.auth is None
    assert api.requested_version is None
    assert api.api_version == latest_api_version()


def test_transport_retries_mounted(api):
    retry = api.session.get_adapter(SHOP_URL).max_retries
    assert retry.total == 3
    assert 429 in retry.status_forcelist


def test_get_returns_json(api):
    api.session.get.return_value = make_response({"count": 12})

    assert api.get("orders/count", params={"status": "any"}) == {"count": 12}
    api.session.get.assert_called_once_with(
        endpoint("orders/count"), params={"status": "any"}, timeout=api.timeout
    )


def test_error_status_raises(api):
    api.session.get.return_value = make_response(
        {"errors": "Not Found"}, status_code=404, url=endpoint("orders")
    )
    with pytest.raises(RemoteRequestError) as exc_info:
        api.get_response(endpoint("orders"))

    assert exc_info.value.status_code == 404
    assert exc_info.value.url == endpoint("orders")


def test_errors_payload_raises(api):
    api.session.get.return_value = make_response({"errors": {"ids": ["is invalid"]}})
    with pytest.raises(RemoteRequestError, match="is invalid"):
        api.get_response(endpoint("orders"))


def test_unreadable_body_is_transient(api):
    api.session.get.side_effect = requests.exceptions.ChunkedEncodingError("connection broken")
    with pytest.raises(TransientFetchError):
        api.get_response(endpoint("orders"))


def test_connection_errors_propagate(api):
    api.session.get.side_effect = requests.exceptions.ConnectionError("refused")
    with pytest.raises(requests.exceptions.ConnectionError):
        api.get_response(endpoint("orders"))


def test_version_mismatch_warns(api):
    response = make_response({}, headers=shop_headers({"X-Shopify-API-Version": "2023-07"}))
    with pytest.warns(ApiVersionWarning, match="2023-07"):
        api.check_api_version(response)


def test_matching_version_is_silent(api, recwarn):
    api.check_api_version(make_response({}))
    assert not [w for w in recwarn if issubclass(w.category, ApiVersionWarning)]


def test_unrequested_version_is_not_checked(api, recwarn):
    api.requested_version = None
    api.check_api_version(make_response({}, headers={"X-Shopify-API-Version": "2019-04"}))
    assert not [w for w in recwarn if issubclass(w.category, ApiVersionWarning)]


def test_test_connection(api):
    api.session.get.return_value = make_response({"shop": {"name": "Superstore"}})
    assert api.test_connection() == {"name": "Superstore"}
    assert api.session.get.call_args.args[0] == endpoint("shop")
    assert API_VERSION in api.session.get.call_args.args[0]
