from typing import Any

import pytest
from fastapi.testclient import TestClient

from qrmenu.main import app
from qrmenu.services.orders import GuestOrderService, MemoryShopDirectory, get_order_service


@pytest.fixture
def api_client(service: GuestOrderService) -> TestClient:
    app.dependency_overrides[get_order_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def order_body(at_table) -> dict[str, Any]:
    return {
        "shopId": "shop-1",
        "sessionId": "session-1",
        "customerName": "Table 4",
        "customerContact": "555-0100",
        "items": [
            {"productId": "prod-masala-dosa", "quantity": 2, "price": 120.0},
            {"productId": "prod-paneer-tikka", "quantity": 1, "price": 210.0},
        ],
        "totalAmount": 450.0,
        "latitude": at_table.latitude,
        "longitude": at_table.longitude,
    }


def _place(client: TestClient, body: dict[str, Any]) -> dict[str, Any]:
    response = client.post("/api/orders/guest", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def test_root_and_health(api_client: TestClient) -> None:
    assert api_client.get("/").json()["health"] == "/health"

    health = api_client.get("/health").json()
    assert health["status"] == "operational"
    assert health["orderRepository"] == "memory: healthy"
    assert health["orderRadiusMeters"] == 200


def test_get_shop_uses_camel_case(api_client: TestClient) -> None:
    response = api_client.get("/api/shops/shop-1")

    assert response.status_code == 200
    assert response.json() == {
        "id": "shop-1",
        "name": "Dosa Corner",
        "latitude": 12.9716,
        "longitude": 77.5946,
        "isActive": True,
    }


def test_unknown_shop(api_client: TestClient) -> None:
    response = api_client.get("/api/shops/shop-404")

    assert response.status_code == 404
    assert response.json()["error"] == "shop_not_found"
    assert response.json()["success"] is False


def test_place_guest_order(api_client: TestClient, order_body: dict[str, Any]) -> None:
    order = _place(api_client, order_body)

    assert order["status"] == "pending"
    assert order["shopId"] == "shop-1"
    assert order["sessionId"] == "session-1"
    assert order["totalAmount"] == 450.0
    assert order["items"][0] == {"productId": "prod-masala-dosa", "quantity": 2, "price": 120.0}
    assert "createdAt" in order


def test_order_from_too_far(api_client: TestClient, order_body: dict[str, Any], across_town) -> None:
    order_body.update(latitude=across_town.latitude, longitude=across_town.longitude)

    response = api_client.post("/api/orders/guest", json=order_body)

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "too_far"
    assert body["radiusMeters"] == 200
    assert 1050 < body["distanceMeters"] < 1120


def test_order_without_location(api_client: TestClient, order_body: dict[str, Any]) -> None:
    del order_body["latitude"]
    del order_body["longitude"]

    response = api_client.post("/api/orders/guest", json=order_body)

    assert response.status_code == 400
    assert response.json()["error"] == "location_unavailable"
    assert response.json()["reason"] == "missing"


def test_order_at_inactive_shop(
    api_client: TestClient, shops: MemoryShopDirectory, order_body: dict[str, Any]
) -> None:
    shops.set_active("shop-1", False)

    response = api_client.post("/api/orders/guest", json=order_body)

    assert response.status_code == 403
    assert response.json()["error"] == "shop_inactive"


@pytest.mark.parametrize(
    "change",
    [
        {"totalAmount": 999.0},
        {"items": []},
        {"customerName": ""},
    ],
)
def test_invalid_order_body(api_client: TestClient, order_body: dict[str, Any], change) -> None:
    order_body.update(change)

    assert api_client.post("/api/orders/guest", json=order_body).status_code == 422


def test_guest_orders_by_session(api_client: TestClient, order_body: dict[str, Any]) -> None:
    mine = _place(api_client, order_body)
    _place(api_client, {**order_body, "sessionId": "session-2"})

    response = api_client.get("/api/orders/guest", params={"shopId": "shop-1", "sessionId": "session-1"})

    assert [o["id"] for o in response.json()] == [mine["id"]]


def test_guest_orders_without_session_is_empty(api_client: TestClient, order_body: dict[str, Any]) -> None:
    _place(api_client, order_body)

    response = api_client.get("/api/orders/guest", params={"shopId": "shop-1"})

    assert response.status_code == 200
    assert response.json() == []


def test_staff_moves_order_along(api_client: TestClient, order_body: dict[str, Any]) -> None:
    order = _place(api_client, order_body)

    transitions = api_client.get(f"/api/orders/{order['id']}/transitions").json()
    assert transitions == {
        "orderId": order["id"],
        "status": "pending",
        "allowed": ["preparing", "cancelled"],
        "terminal": False,
    }

    for status in ("preparing", "ready", "completed"):
        response = api_client.patch(f"/api/orders/{order['id']}/status", json={"status": status})
        assert response.status_code == 200
        assert response.json()["status"] == status

    transitions = api_client.get(f"/api/orders/{order['id']}/transitions").json()
    assert transitions["allowed"] == []
    assert transitions["terminal"] is True


def test_invalid_transition_is_409(api_client: TestClient, order_body: dict[str, Any]) -> None:
    order = _place(api_client, order_body)

    response = api_client.patch(f"/api/orders/{order['id']}/status", json={"status": "completed"})

    assert response.status_code == 409
    assert response.json() == {
        "success": False,
        "error": "invalid_transition",
        "detail": "Cannot move order from 'pending' to 'completed'",
        "currentStatus": "pending",
        "requestedStatus": "completed",
    }
    assert api_client.get(f"/api/orders/{order['id']}").json()["status"] == "pending"


def test_unknown_status_value(api_client: TestClient, order_body: dict[str, Any]) -> None:
    order = _place(api_client, order_body)

    response = api_client.patch(f"/api/orders/{order['id']}/status", json={"status": "eaten"})

    assert response.status_code == 422


def test_unknown_order(api_client: TestClient) -> None:
    response = api_client.get("/api/orders/missing")

    assert response.status_code == 404
    assert response.json()["error"] == "order_not_found"

    response = api_client.patch("/api/orders/missing/status", json={"status": "preparing"})
    assert response.status_code == 404


def test_staff_list_filters(api_client: TestClient, order_body: dict[str, Any]) -> None:
    first = _place(api_client, order_body)
    second = _place(api_client, {**order_body, "sessionId": "session-2"})
    api_client.patch(f"/api/orders/{first['id']}/status", json={"status": "cancelled"})

    pending = api_client.get("/api/orders", params={"shopId": "shop-1", "status": "pending"}).json()
    everything = api_client.get("/api/orders", params={"shopId": "shop-1"}).json()

    assert [o["id"] for o in pending] == [second["id"]]
    assert {o["id"] for o in everything} == {first["id"], second["id"]}


def test_large_quantity_order(api_client: TestClient, order_body: dict[str, Any]) -> None:
    order_body["items"] = [{"productId": "prod-idli", "quantity": 150, "price": 60.0}]
    order_body["totalAmount"] = 9000.0

    order = _place(api_client, order_body)

    assert order["items"][0]["quantity"] == 150
