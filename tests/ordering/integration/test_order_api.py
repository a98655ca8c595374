"""Integration tests for Order API endpoints via TestClient."""

from ordering.catalogue.product import Product
from protean import current_domain


def as_user(user_id="customer-1", role="customer"):
    return {"X-User-Id": user_id, "X-User-Role": role}


def _checkout(client, make_product, make_address, user_id="customer-1", quantity=2, stock=10, seller_id="seller-1"):
    product = make_product(price=100.0, stock_quantity=stock, user_id=seller_id)
    address = make_address(user_id=user_id)
    client.post("/cart/items", json={"productId": str(product.id), "quantity": quantity}, headers=as_user(user_id))
    response = client.post(
        "/orders",
        json={"shippingAddressId": str(address.id), "paymentMethod": "card"},
        headers=as_user(user_id),
    )
    return response, product


class TestCreateOrder:
    def test_returns_201_with_order(self, client, make_product, make_address):
        response, product = _checkout(client, make_product, make_address)

        assert response.status_code == 201
        body = response.json()
        assert body["orderNumber"].startswith("ORD-")
        assert body["status"] == "pending"
        assert body["paymentStatus"] == "pending"
        assert body["subtotal"] == 200.0
        assert body["shippingAddressSnapshot"]["city"] == "Cape Town"
        assert body["items"][0]["productSnapshot"]["name"] == product.name
        assert current_domain.repository_for(Product).get(product.id).stock_quantity == 8

    def test_snapshots_use_camel_case_keys(self, client, make_product, make_address):
        response, _ = _checkout(client, make_product, make_address)

        address = response.json()["shippingAddressSnapshot"]
        assert address["recipientName"] == "Thandi Mokoena"
        assert address["streetAddress"] == "12 Long Street"
        assert address["postalCode"] == "8001"
        assert "postal_code" not in address
        assert "sku" in response.json()["items"][0]["productSnapshot"]

    def test_requires_a_caller(self, client, make_address):
        address = make_address()
        response = client.post("/orders", json={"shippingAddressId": str(address.id)})
        assert response.status_code == 401

    def test_empty_cart(self, client, make_address):
        address = make_address()
        response = client.post("/orders", json={"shippingAddressId": str(address.id)}, headers=as_user())
        assert response.status_code == 400

    def test_insufficient_stock(self, client, make_product, make_address):
        product = make_product(stock_quantity=5)
        address = make_address()
        client.post("/cart/items", json={"productId": str(product.id), "quantity": 5}, headers=as_user())
        product.stock_quantity = 2
        current_domain.repository_for(Product).add(product)

        response = client.post("/orders", json={"shippingAddressId": str(address.id)}, headers=as_user())

        assert response.status_code == 400

    def test_unknown_address(self, client, make_product):
        product = make_product()
        client.post("/cart/items", json={"productId": str(product.id), "quantity": 1}, headers=as_user())
        response = client.post("/orders", json={"shippingAddressId": "missing"}, headers=as_user())
        assert response.status_code == 404


class TestReadOrders:
    def test_get_own_order(self, client, make_product, make_address):
        order_id = _checkout(client, make_product, make_address)[0].json()["id"]

        response = client.get(f"/orders/{order_id}", headers=as_user())

        assert response.status_code == 200
        assert response.json()["id"] == order_id

    def test_get_someone_elses_order(self, client, make_product, make_address):
        order_id = _checkout(client, make_product, make_address)[0].json()["id"]
        assert client.get(f"/orders/{order_id}", headers=as_user("customer-2")).status_code == 403

    def test_get_missing_order(self, client):
        assert client.get("/orders/missing", headers=as_user(role="admin")).status_code == 404

    def test_list_with_pagination(self, client, make_product, make_address):
        _checkout(client, make_product, make_address)
        _checkout(client, make_product, make_address)

        response = client.get("/orders", params={"page": 1, "limit": 1}, headers=as_user())

        assert response.status_code == 200
        body = response.json()
        assert len(body["orders"]) == 1
        assert body["pagination"] == {"total": 2, "page": 1, "limit": 1, "totalPages": 2}

    def test_list_filters_by_payment_status(self, client, make_product, make_address):
        _checkout(client, make_product, make_address)
        response = client.get("/orders", params={"paymentStatus": "paid"}, headers=as_user())
        assert response.json()["orders"] == []

    def test_seller_list(self, client, make_product, make_address):
        _checkout(client, make_product, make_address, seller_id="seller-7")
        response = client.get("/orders", headers=as_user("seller-7", "seller"))
        assert response.json()["pagination"]["total"] == 1


class TestUpdateOrders:
    def test_seller_ships_order(self, client, make_product, make_address):
        order_id = _checkout(client, make_product, make_address)[0].json()["id"]

        response = client.put(f"/orders/{order_id}/status", json={"status": "shipped"}, headers=as_user("seller-1", "seller"))

        assert response.status_code == 200
        assert response.json()["status"] == "shipped"

    def test_customer_cannot_ship(self, client, make_product, make_address):
        order_id = _checkout(client, make_product, make_address)[0].json()["id"]
        response = client.put(f"/orders/{order_id}/status", json={"status": "shipped"}, headers=as_user())
        assert response.status_code == 403

    def test_terminal_order_returns_409(self, client, make_product, make_address):
        order_id = _checkout(client, make_product, make_address)[0].json()["id"]
        admin = as_user("admin-1", "admin")
        client.put(f"/orders/{order_id}/status", json={"status": "cancelled"}, headers=admin)

        response = client.put(f"/orders/{order_id}/status", json={"status": "processing"}, headers=admin)

        assert response.status_code == 409

    def test_unknown_status_returns_400(self, client, make_product, make_address):
        order_id = _checkout(client, make_product, make_address)[0].json()["id"]
        response = client.put(f"/orders/{order_id}/status", json={"status": "lost"}, headers=as_user(role="admin"))
        assert response.status_code == 400

    def test_shipping_info(self, client, make_product, make_address):
        order_id = _checkout(client, make_product, make_address)[0].json()["id"]

        response = client.put(
            f"/orders/{order_id}/shipping",
            json={"trackingNumber": "TRK-9", "shippingCarrier": "PostNet"},
            headers=as_user("seller-1", "seller"),
        )

        assert response.status_code == 200
        assert response.json()["trackingNumber"] == "TRK-9"
        assert response.json()["shippingCarrier"] == "PostNet"


class TestCancelOrder:
    def test_cancel_restores_stock(self, client, make_product, make_address):
        response, product = _checkout(client, make_product, make_address, quantity=3)
        order_id = response.json()["id"]

        cancelled = client.post(f"/orders/{order_id}/cancel", headers=as_user())

        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "cancelled"
        assert current_domain.repository_for(Product).get(product.id).stock_quantity == 10

    def test_customer_cannot_cancel_shipped_order(self, client, make_product, make_address):
        order_id = _checkout(client, make_product, make_address)[0].json()["id"]
        client.put(f"/orders/{order_id}/status", json={"status": "shipped"}, headers=as_user(role="admin"))

        response = client.post(f"/orders/{order_id}/cancel", headers=as_user())

        assert response.status_code == 400

    def test_stranger_cannot_cancel(self, client, make_product, make_address):
        order_id = _checkout(client, make_product, make_address)[0].json()["id"]
        assert client.post(f"/orders/{order_id}/cancel", headers=as_user("customer-2")).status_code == 403
