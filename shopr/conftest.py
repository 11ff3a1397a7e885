from unittest.mock import MagicMock

import pytest

from shopr.client import ShopifyAPI
from shopr.testing import API_VERSION, SHOP_URL


@pytest.fixture
def api():
    """ShopifyAPI with its session.get replaced by a MagicMock."""
    client = ShopifyAPI(
        shop_url=SHOP_URL,
        api_key="key",
        api_password="password",
        api_version=API_VERSION,
    )
    client.session.get = MagicMock()
    return client
