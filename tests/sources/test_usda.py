"""Tests for the USDA FoodData Central client."""

import pytest

from scanscore.core.errors import NotFoundError
from scanscore.sources import BrandedFoodsClient


def test_fetch_by_code_matches_gtin(make_session, usda_branded_food):
    other = dict(usda_branded_food, gtinUpc="999999999999", description="OTHER")
    session = make_session(payload={"totalHits": 2, "foods": [other, usda_branded_food]})
    client = BrandedFoodsClient(api_key="test-key", base_url="https://usda.test", session=session)

    food = client.fetch_by_code("041331024778")

    assert food["description"] == "ROASTED SALTED PEANUTS"
    call = session.calls[0]
    assert call["url"] == "https://usda.test/fdc/v1/foods/search"
    assert call["params"]["dataType"] == "Branded"
    assert call["params"]["api_key"] == "test-key"
    assert call["params"]["pageSize"] == 10
    assert "sortBy" not in call["params"]


def test_fetch_by_code_ignores_leading_zeros(make_session, usda_branded_food):
    """UPC-A and EAN-13 forms of the same code should match."""
    session = make_session(payload={"foods": [usda_branded_food]})
    client = BrandedFoodsClient(session=session)

    food = client.fetch_by_code("0041331024778")

    assert food["fdcId"] == 2345678


def test_fetch_by_code_without_match_is_not_found(make_session, usda_branded_food):
    session = make_session(payload={"foods": [usda_branded_food]})
    client = BrandedFoodsClient(session=session)

    with pytest.raises(NotFoundError):
        client.fetch_by_code("123")


def test_search_uses_all_data_types(make_session, usda_branded_food):
    session = make_session(payload={"foods": [usda_branded_food]})
    client = BrandedFoodsClient(session=session)

    foods = client.search("peanuts", page=3, page_size=10)

    params = session.calls[0]["params"]
    assert len(foods) == 1
    assert params["query"] == "peanuts"
    assert params["pageNumber"] == 3
    assert params["pageSize"] == 10
    assert params["dataType"] == "Branded,Foundation,Survey (FNDDS)"
    assert params["sortBy"] == "dataType.keyword"
    assert params["sortOrder"] == "asc"


def test_default_api_key(make_session, monkeypatch):
    from scanscore.sources import usda

    monkeypatch.setattr(usda, "USDA_API_KEY", "DEMO_KEY")
    client = BrandedFoodsClient(session=make_session())
    assert client.api_key == "DEMO_KEY"
