from storefront.pricing.catalog import CATALOG_VERSION


def test_products_in_display_order(client):
    r = client.get("/api/v1/products")
    assert r.status_code == 200
    data = r.get_json()
    assert data["version"] == CATALOG_VERSION
    products = data["products"]
    assert len(products) == 13
    orders = [p["sortOrder"] for p in products]
    assert orders == sorted(orders)
    call = next(p for p in products if p["sku"] == "breakthrough-call")
    assert call["msrp"] == 800
    assert call["type"] == "consultation"


def test_pricing_config(client):
    r = client.get("/api/v1/pricing/config")
    assert r.status_code == 200
    data = r.get_json()
    assert [t["minCourses"] for t in data["tiers"]] == [1, 2, 3]
    assert data["tiers"][2]["giftCount"] == 1
    assert data["giftPool"] == ["GUIDE_BOND_AVOIDANT", "MINI_TALK_AVOIDANT", "GUIDE_4_STYLES", "CONVERSATION_CARDS"]


def test_health():
    from storefront.app import app
    r = app.test_client().get("/api/v1/health")
    assert r.status_code == 200
    assert r.get_json()["status"] == "ok"
