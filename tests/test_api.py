"""Tests for the MedFeed HTTP API.

Every endpoint is exercised against in-memory stores injected through the
application factory.
"""

import numpy as np
from fastapi.testclient import TestClient

from medfeed.api.main import create_app
from medfeed.personalization.engine import build_services

from conftest import (
    USER_ID,
    InMemoryCatalog,
    InMemoryEphemeralStore,
    InMemoryProfiles,
)

MISSING_ID = "64f000000000000000000000"


def assert_envelope(response, status_code: int) -> dict:
    """Check the uniform response envelope and return its data."""
    assert response.status_code == status_code
    body = response.json()
    assert set(body) == {"success", "message", "data"}
    assert body["success"] is (200 <= status_code < 300)
    assert isinstance(body["message"], str)
    return body["data"]


def test_ping_endpoint(client):
    """Test that the /ping endpoint returns correct status and JSON."""
    response = client.get("/ping")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_metrics_endpoint(client, auth_headers):
    client.get("/items/feed", headers=auth_headers)
    metrics = client.get("/metrics").json()

    assert metrics["feed_regenerations"] == 1
    assert "feed.next_page" in metrics["operations"]


def test_request_id_header(client):
    response = client.get("/items/deals-of-the-day")
    assert response.headers.get("X-Request-ID")


def test_feed_requires_user(client):
    data = assert_envelope(client.get("/items/feed"), 401)
    assert data is None


def test_feed_returns_a_page(client, auth_headers):
    data = assert_envelope(client.get("/items/feed", headers=auth_headers), 200)
    assert data["count"] == 20
    assert len({item["_id"] for item in data["items"]}) == 20


def test_feed_on_empty_catalog_is_success():
    services = build_services(InMemoryEphemeralStore(), InMemoryCatalog([]), InMemoryProfiles([USER_ID]))
    client = TestClient(create_app(services))

    data = assert_envelope(client.get("/items/feed", headers={"x-user-id": USER_ID}), 200)
    assert data == {"items": [], "count": 0}


def test_recently_viewed_round_trip(client, auth_headers, sample_items):
    a, b, c = (sample_items[i]["_id"] for i in (0, 1, 2))
    for item_id in (a, b, c, a):
        response = client.post("/items/recently-viewed", json={"itemId": item_id}, headers=auth_headers)
        assert_envelope(response, 200)

    data = assert_envelope(client.get("/items/recently-viewed", headers=auth_headers), 200)
    assert [i["_id"] for i in data["items"]] == [a, c, b]
    assert data["totalCount"] == 3


def test_recently_viewed_rejects_bad_ids(client, auth_headers):
    assert_envelope(client.post("/items/recently-viewed", json={"itemId": "nope"}, headers=auth_headers), 400)
    assert_envelope(client.post("/items/recently-viewed", json={}, headers=auth_headers), 400)
    assert_envelope(
        client.post("/items/recently-viewed", json={"itemId": "wishlistitemnope"}, headers=auth_headers), 400
    )


def test_wishlist_flow(client, auth_headers, sample_items):
    first, second = sample_items[0]["_id"], sample_items[1]["_id"]

    for item_id in (first, second, first):
        response = client.post(
            "/items/recently-viewed", json={"itemId": f"wishlistitem{item_id}"}, headers=auth_headers
        )
        assert assert_envelope(response, 200)["operation"] == "wishlist"

    data = assert_envelope(client.get("/items/wishlist", headers=auth_headers), 200)
    assert [i["_id"] for i in data["items"]] == [first, second]
    assert data["totalCount"] == 2

    status = assert_envelope(client.get(f"/items/wishlist/{second}/status", headers=auth_headers), 200)
    assert status["inWishlist"] is True

    removed = assert_envelope(client.delete(f"/items/wishlist/{second}", headers=auth_headers), 200)
    assert removed["totalCount"] == 1

    data = assert_envelope(client.get("/items/wishlist", headers=auth_headers), 200)
    assert [i["_id"] for i in data["items"]] == [first]

    assert_envelope(client.delete("/items/wishlist", headers=auth_headers), 200)
    data = assert_envelope(client.get("/items/wishlist", headers=auth_headers), 200)
    assert data["items"] == []


def test_wishlist_page_past_the_end(client, auth_headers, sample_items):
    """A page far beyond the wishlist is empty, not a server error."""
    item_id = sample_items[0]["_id"]
    client.post("/items/recently-viewed", json={"itemId": f"wishlistitem{item_id}"}, headers=auth_headers)

    data = assert_envelope(
        client.get("/items/wishlist", params={"page": 10**12, "limit": 50}, headers=auth_headers), 200
    )
    assert data["items"] == []
    assert data["totalCount"] == 1
    assert data["hasNextPage"] is False


def test_wishlist_add_for_missing_item(client, auth_headers):
    response = client.post(
        "/items/recently-viewed", json={"itemId": f"wishlistitem{MISSING_ID}"}, headers=auth_headers
    )
    assert_envelope(response, 404)


def test_wishlist_clear_for_unknown_user(client):
    assert_envelope(client.delete("/items/wishlist", headers={"x-user-id": "ghost"}), 404)


def test_trending_anonymous_and_personalized(client, auth_headers):
    anonymous = assert_envelope(client.get("/items/trending/ai"), 200)
    assert anonymous["personalized"] is False
    assert anonymous["count"] == 15

    first = assert_envelope(client.get("/items/trending/ai", headers=auth_headers), 200)
    second = assert_envelope(client.get("/items/trending/ai", headers=auth_headers), 200)
    assert first["cached"] is False
    assert second["cached"] is True
    assert first["items"] == second["items"]


def test_similar_products(client, catalog, sample_items):
    anchor = sample_items[4]
    data = assert_envelope(client.get(f"/items/{anchor['_id']}/similar?limit=500"), 200)

    assert data["sourceProduct"]["_id"] == anchor["_id"]
    assert data["pagination"]["itemsPerPage"] == 50
    low, high = data["meta"]["priceRange"]["min"], data["meta"]["priceRange"]["max"]
    assert all(low <= i["itemFinalPrice"] <= high for i in data["items"])

    assert_envelope(client.get("/items/not-an-id/similar"), 400)
    assert_envelope(client.get(f"/items/{MISSING_ID}/similar"), 404)


def test_item_details(client, sample_items):
    data = assert_envelope(client.get(f"/items/{sample_items[0]['_id']}"), 200)
    assert data["itemName"] == sample_items[0]["itemName"]

    assert_envelope(client.get(f"/items/{MISSING_ID}"), 404)
    assert_envelope(client.get("/items/xyz"), 400)


def test_listing_and_deals(client):
    listing = assert_envelope(client.get("/items?category=64c000000000000000000002&limit=3"), 200)
    assert listing["totalCount"] == 10
    assert len(listing["items"]) == 3

    assert_envelope(client.get("/items?category=bad"), 400)
    assert_envelope(client.get("/items?page=0"), 400)

    deals = assert_envelope(client.get("/items/deals-of-the-day"), 200)
    assert len(deals) == 10


def test_search_suggestions(client):
    data = assert_envelope(client.get("/items/search/suggestions", params={"q": "Item 1", "limit": 100}), 200)
    assert data["found"] is True
    assert data["count"] <= 20

    empty = assert_envelope(client.get("/items/search/suggestions?q=qqqq"), 200)
    assert empty["found"] is False
    assert len(empty["alternativeSuggestions"]) == 5

    assert_envelope(client.get("/items/search/suggestions?q=%20"), 400)

    popular = assert_envelope(client.get("/items/search/popular"), 200)
    assert len(popular["terms"]) == 10


def test_recent_search_flow(client, auth_headers):
    saved = assert_envelope(
        client.post("/search/recent", json={"query": "Paracetamol"}, headers=auth_headers), 201
    )
    assert saved["query"] == "paracetamol"
    client.post("/search/recent", json={"query": "zinc"}, headers=auth_headers)
    client.post("/search/recent", json={"query": "PARACETAMOL"}, headers=auth_headers)

    data = assert_envelope(client.get("/search/recent?limit=50", headers=auth_headers), 200)
    assert [s["query"] for s in data["searches"]] == ["PARACETAMOL", "zinc"]
    assert data["source"] == "redis"

    removed = assert_envelope(client.delete("/search/recent/zinc", headers=auth_headers), 200)
    assert removed == {"query": "zinc", "deleted": True}
    missing = assert_envelope(client.delete("/search/recent/zinc", headers=auth_headers), 200)
    assert missing == {"query": "zinc", "deleted": False}

    assert_envelope(client.delete("/search/recent", headers=auth_headers), 200)
    data = assert_envelope(client.get("/search/recent", headers=auth_headers), 200)
    assert data["searches"] == []


def test_recent_search_validation(client, auth_headers):
    assert_envelope(client.post("/search/recent", json={"query": " a "}, headers=auth_headers), 400)
    assert_envelope(client.post("/search/recent", json={"query": "zinc"}), 401)


def test_category_views(client, auth_headers):
    for category_id in ("64c000000000000000000001", "64c000000000000000000003"):
        assert_envelope(client.post(f"/categories/{category_id}/view", headers=auth_headers), 200)

    data = assert_envelope(client.get("/categories/recently-viewed", headers=auth_headers), 200)
    assert [c["name"] for c in data["categories"]] == ["Vitamins", "Pain Relief"]

    assert_envelope(client.post("/categories/bad/view", headers=auth_headers), 400)


def test_unhandled_error_uses_envelope(store, profiles):
    class BrokenCatalog(InMemoryCatalog):
        async def top_discounted(self, limit):
            raise RuntimeError("catalog offline")

    services = build_services(store, BrokenCatalog([]), profiles, rng=np.random.default_rng(0))
    client = TestClient(create_app(services), raise_server_exceptions=False)

    data = assert_envelope(client.get("/items/deals-of-the-day"), 500)
    assert data is None
