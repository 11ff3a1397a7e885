"""End-to-end accessor tests against a mocked requests session."""
import threading

import pytest

from shopr import (
    ApiVersionWarning,
    FetchCancelled,
    PartialResultWarning,
    RemoteRequestError,
    ValidationError,
    get_inventory_items,
    get_inventory_levels,
    get_locations,
    get_orders,
    get_orders_count,
    get_products,
    get_products_count,
)
from shopr.testing import endpoint, make_response, next_link, shop_headers


def count(n):
    return make_response({"count": n})


def calls(api):
    """(url, params) of every request the session made."""
    return [(c.args[0], c.kwargs["params"]) for c in api.session.get.call_args_list]


def test_orders_count(api):
    api.session.get.side_effect = [count(42)]
    assert get_orders_count(api, financial_status="paid") == 42
    assert calls(api) == [(endpoint("orders/count"), {"status": "any", "financial_status": "paid"})]


def test_products_count(api):
    api.session.get.side_effect = [count(3)]
    assert get_products_count(api, vendor="Acme") == 3
    assert calls(api) == [(endpoint("products/count"), {"vendor": "Acme"})]


def test_orders_follow_links(api):
    api.session.get.side_effect = [
        count(3),
        make_response(
            {"orders": [
                {"id": 1, "line_items": [{"id": 10}, {"id": 11}]},
                {"id": 2, "line_items": [{"id": 12}]},
            ]},
            headers=shop_headers(next_link("p2", limit=2)),
        ),
        make_response({"orders": [{"id": 3, "line_items": [{"id": 13}]}]}),
    ]
    tables = get_orders(api, limit_per_page=2, updated_at_min="2024-01-01T00:00:00-05:00")

    assert tables["orders"]["id"].tolist() == [1, 2, 3]
    assert tables["line_items"]["order_id"].tolist() == [1, 1, 2, 3]

    count_call, first, second = calls(api)
    assert count_call == (
        endpoint("orders/count"),
        {"since_id": 0, "updated_at_min": "2024-01-01T00:00:00-05:00", "status": "any"},
    )
    assert first == (
        endpoint("orders"),
        {"since_id": 0, "updated_at_min": "2024-01-01T00:00:00-05:00", "status": "any", "limit": 2},
    )
    assert second == (f"{endpoint('orders')}?limit=2&page_info=p2", {})


def test_orders_max_pages(api):
    api.session.get.side_effect = [
        count(500),
        make_response({"orders": [{"id": 1}]}, headers=shop_headers(next_link("p2"))),
    ]
    tables = get_orders(api, max_pages=1)

    assert len(tables["orders"]) == 1
    assert api.session.get.call_count == 2


def test_orders_fields_sent_on_every_page(api):
    api.session.get.side_effect = [
        count(2),
        make_response({"orders": [{"id": 1, "email": "a"}]}, headers=shop_headers(next_link("p2", limit=1))),
        make_response({"orders": [{"id": 2, "email": "b"}]}),
    ]
    tables = get_orders(api, limit_per_page=1, fields=["email"])

    assert list(tables["orders"].columns) == ["id", "email"]
    assert calls(api)[1][1]["fields"] == "id,email"
    assert calls(api)[2][1] == {"fields": "id,email"}


def test_orders_without_results(api):
    api.session.get.side_effect = [count(0), make_response({"orders": []})]
    tables = get_orders(api)
    assert list(tables) == ["orders"]
    assert tables["orders"].empty


def test_products_since_id_rounds(api):
    api.session.get.side_effect = [
        count(3),
        make_response({"products": [
            {"id": 101, "variants": [{"id": 1, "inventory_item_id": 501}]},
            {"id": 102, "variants": [{"id": 2, "inventory_item_id": 502}]},
        ]}),
        make_response({"products": [
            {"id": 103, "image": {"id": 9, "src": "x.png"}, "variants": [{"id": 3, "inventory_item_id": 503}]},
        ]}),
    ]
    tables = get_products(api, ids=[101, 102, 103], limit_per_page=2)

    assert api.session.get.call_count == 3
    _, first, second = calls(api)
    assert first[1] == {"ids": "101,102,103", "since_id": 0, "limit": 2}
    assert second == (endpoint("products"), {"ids": "103", "since_id": 102, "limit": 2})

    assert tables["products"]["id"].tolist() == [101, 102, 103]
    assert tables["products"].loc[2, "image.src"] == "x.png"
    assert tables["variants"]["product_id"].tolist() == [101, 102, 103]


def test_products_stop_at_counted_pages(api):
    api.session.get.side_effect = [
        count(2),
        make_response({"products": [{"id": 1}, {"id": 2}]}),
    ]
    tables = get_products(api, limit_per_page=2)

    assert len(tables["products"]) == 2
    assert api.session.get.call_count == 2


def test_partial_result_warning(api):
    api.session.get.side_effect = [count(3), make_response({"orders": [{"id": 1}, {"id": 2}]})]
    with pytest.warns(PartialResultWarning):
        get_orders(api, ids=[1, 2, 3], limit_per_page=2, max_pages=1)


def test_version_mismatch_warns(api):
    served_old = shop_headers({"X-Shopify-API-Version": "2023-04"})
    api.session.get.side_effect = [
        make_response({"count": 1}, headers=served_old),
        make_response({"orders": [{"id": 1}]}, headers=served_old),
    ]
    with pytest.warns(ApiVersionWarning):
        get_orders(api)


def test_remote_error_aborts(api):
    api.session.get.side_effect = [
        count(2),
        make_response({"orders": [{"id": 1}]}, headers=shop_headers(next_link("p2", limit=1))),
        make_response({"errors": "Exceeded 2 calls per second"}, status_code=429),
    ]
    with pytest.raises(RemoteRequestError) as exc_info:
        get_orders(api, limit_per_page=1)
    assert exc_info.value.status_code == 429


def test_cancelled_fetch(api):
    cancel = threading.Event()
    cancel.set()
    api.session.get.side_effect = [count(10)]
    with pytest.raises(FetchCancelled):
        get_orders(api, cancel=cancel)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"limit_per_page": 0},
        {"limit_per_page": 251},
        {"max_pages": 0},
        {"ids": [1, 1]},
        {"status": "pending"},
        {"fields": ["nope"]},
        {"created_at_min": "2024-01-01"},
    ],
)
def test_orders_validation_before_any_request(api, kwargs):
    with pytest.raises(ValidationError):
        get_orders(api, **kwargs)
    api.session.get.assert_not_called()


def test_inventory_items_batches(api):
    ids = list(range(1000, 1120))
    api.session.get.side_effect = [
        make_response({"inventory_items": [{"id": i, "sku": f"S{i}", "cost": "1.00"}]}) for i in (1000, 1050, 1100)
    ]
    tables = get_inventory_items(api, ids=list(reversed(ids)))

    sent = [params["ids"].split(",") for _, params in calls(api)]
    assert [len(batch) for batch in sent] == [50, 50, 20]
    assert sent[0][0] == "1000"
    assert all(params["limit"] == 250 and params["since_id"] == 0 for _, params in calls(api))
    assert tables["inventory_items"]["id"].tolist() == [1000, 1050, 1100]


def test_inventory_items_batch_follows_limit(api):
    api.session.get.side_effect = [make_response({"inventory_items": []}) for _ in range(3)]
    get_inventory_items(api, ids=[1, 2, 3, 4, 5], limit_per_page=2)
    assert [params["ids"] for _, params in calls(api)] == ["1,2", "3,4", "5"]


def test_inventory_items_since_id(api):
    api.session.get.side_effect = [make_response({"inventory_items": []})]
    get_inventory_items(api, ids=[1, 2, 3], since_id=1)
    assert calls(api)[0][1]["ids"] == "2,3"


def test_inventory_items_need_ids(api):
    with pytest.raises(ValidationError):
        get_inventory_items(api, ids=[])
    api.session.get.assert_not_called()


def test_inventory_levels_need_an_id_set(api):
    with pytest.raises(ValidationError):
        get_inventory_levels(api)
    api.session.get.assert_not_called()


def test_inventory_levels_crossed(api):
    api.session.get.side_effect = [
        make_response({"inventory_levels": [
            {"inventory_item_id": 1, "location_id": 7, "available": 4, "updated_at": "2024-01-02T00:00:00-05:00"},
        ]}),
        make_response({"inventory_levels": [
            {"inventory_item_id": 60, "location_id": 7, "available": 0, "updated_at": "2024-01-02T00:00:00-05:00"},
        ]}),
    ]
    tables = get_inventory_levels(
        api,
        inventory_item_ids=range(1, 61),
        location_ids=[7, 8],
        updated_at_min="2024-01-01T00:00:00-05:00",
    )

    assert api.session.get.call_count == 2
    for url, params in calls(api):
        assert url == endpoint("inventory_levels")
        assert params["location_ids"] == "7,8"
        assert params["updated_at_min"] == "2024-01-01T00:00:00-05:00"
    assert tables["inventory_levels"]["available"].tolist() == [4, 0]


def test_locations(api):
    api.session.get.side_effect = [
        make_response({"locations": [
            {"id": 7, "name": "Main St", "active": True},
            {"id": 8, "name": "Warehouse", "active": False},
        ]}),
    ]
    tables = get_locations(api)

    assert calls(api) == [(endpoint("locations"), None)]
    assert tables["locations"]["name"].tolist() == ["Main St", "Warehouse"]
