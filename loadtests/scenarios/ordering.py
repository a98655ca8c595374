"""Ordering load test scenarios.

Journeys run against data created by ``python src/manage.py seed-demo``:
demo products with deep stock, one scarce product, and one address per
demo customer. Start the API with ``PROTEAN_ENV=loadtest`` so every worker
shares PostgreSQL and Redis locks.

- CheckoutAndPayJourney: cart → order → payment intent → signed webhook
- CancellationJourney: cart → order → cancel (stock is restored)
- ScarceStockRush: many shoppers race for the last units of one product;
  400s with a stock message are the expected losers, never 5xx
"""

import json
import random
import uuid

from locust import HttpUser, SequentialTaskSet, between, task

from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import ShopperState

DEMO_CUSTOMERS = 100
DEMO_PRODUCTS = 20
SCARCE_PRODUCT_ID = "demo-product-scarce"
WEBHOOK_SIGNATURE = "test-signature"


def _headers(state: ShopperState, role: str = "customer") -> dict:
    return {"X-User-Id": f"demo-customer-{state.customer_number:03d}", "X-User-Role": role}


def _address_id(state: ShopperState) -> str:
    return f"demo-address-{state.customer_number:03d}"


def _random_product_id() -> str:
    return f"demo-product-{random.randint(1, DEMO_PRODUCTS):03d}"


class _ShopperJourney(SequentialTaskSet):
    def on_start(self):
        self.state = ShopperState(customer_number=random.randint(1, DEMO_CUSTOMERS))

    def _add_to_cart(self, product_id: str, quantity: int) -> bool:
        with self.client.post(
            "/cart/items",
            json={"productId": product_id, "quantity": quantity},
            headers=_headers(self.state),
            catch_response=True,
            name="POST /cart/items",
        ) as resp:
            if resp.status_code == 201:
                return True
            resp.failure(f"Add to cart failed: {resp.status_code}: {extract_error_detail(resp)}")
            return False

    def _place_order(self) -> bool:
        with self.client.post(
            "/orders",
            json={"shippingAddressId": _address_id(self.state), "paymentMethod": "card"},
            headers=_headers(self.state),
            catch_response=True,
            name="POST /orders",
        ) as resp:
            if resp.status_code == 201:
                body = resp.json()
                self.state.order_id = body["id"]
                self.state.order_number = body["orderNumber"]
                return True
            resp.failure(f"Place order failed: {resp.status_code}: {extract_error_detail(resp)}")
            return False


class CheckoutAndPayJourney(_ShopperJourney):
    """Fill a cart, place the order, pay for it and replay the webhook."""

    @task
    def fill_cart(self):
        for _ in range(random.randint(1, 3)):
            if not self._add_to_cart(_random_product_id(), random.randint(1, 3)):
                self.interrupt()

    @task
    def place_order(self):
        if not self._place_order():
            self.interrupt()

    @task
    def create_intent(self):
        with self.client.post(
            "/payments/create-intent",
            json={"orderId": self.state.order_id},
            headers=_headers(self.state),
            catch_response=True,
            name="POST /payments/create-intent",
        ) as resp:
            if resp.status_code == 200:
                self.state.payment_intent_id = resp.json()["paymentIntentId"]
            else:
                resp.failure(f"Create intent failed: {resp.status_code}: {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def deliver_webhook_twice(self):
        event = {
            "id": f"evt_{uuid.uuid4().hex[:16]}",
            "type": "payment_intent.succeeded",
            "data": {
                "object": {
                    "id": self.state.payment_intent_id,
                    "metadata": {"orderId": self.state.order_id},
                }
            },
        }
        # Providers redeliver; the second delivery must be a harmless no-op
        for _ in range(2):
            with self.client.post(
                "/payments/webhook",
                data=json.dumps(event),
                headers={"Stripe-Signature": WEBHOOK_SIGNATURE, "Content-Type": "application/json"},
                catch_response=True,
                name="POST /payments/webhook",
            ) as resp:
                if resp.status_code != 200:
                    resp.failure(f"Webhook failed: {resp.status_code}: {extract_error_detail(resp)}")

    @task
    def check_payment_status(self):
        with self.client.get(
            f"/payments/status/{self.state.order_id}",
            headers=_headers(self.state),
            catch_response=True,
            name="GET /payments/status/{id}",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Payment status failed: {resp.status_code}: {extract_error_detail(resp)}")
            elif resp.json()["paymentStatus"] != "paid":
                resp.failure(f"Order {self.state.order_number} not paid after webhook")

    @task
    def done(self):
        self.interrupt()


class CancellationJourney(_ShopperJourney):
    """Place an order and cancel it straight away."""

    @task
    def fill_cart(self):
        if not self._add_to_cart(_random_product_id(), random.randint(1, 5)):
            self.interrupt()

    @task
    def place_order(self):
        if not self._place_order():
            self.interrupt()

    @task
    def cancel_order(self):
        with self.client.post(
            f"/orders/{self.state.order_id}/cancel",
            headers=_headers(self.state),
            catch_response=True,
            name="POST /orders/{id}/cancel",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Cancel failed: {resp.status_code}: {extract_error_detail(resp)}")

    @task
    def done(self):
        self.interrupt()


class ScarceStockRush(_ShopperJourney):
    """Compete for the scarce product. Losing on stock is a success."""

    @task
    def grab_scarce_product(self):
        with self.client.post(
            "/cart/items",
            json={"productId": SCARCE_PRODUCT_ID, "quantity": 1},
            headers=_headers(self.state),
            catch_response=True,
            name="POST /cart/items (scarce)",
        ) as resp:
            if resp.status_code == 400:
                resp.success()
                self.interrupt()
            elif resp.status_code != 201:
                resp.failure(f"Add scarce failed: {resp.status_code}: {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def place_order(self):
        with self.client.post(
            "/orders",
            json={"shippingAddressId": _address_id(self.state)},
            headers=_headers(self.state),
            catch_response=True,
            name="POST /orders (scarce)",
        ) as resp:
            if resp.status_code in (201, 400):
                resp.success()
            else:
                resp.failure(f"Scarce order failed: {resp.status_code}: {extract_error_detail(resp)}")

    @task
    def done(self):
        self.interrupt()


class OrderingUser(HttpUser):
    """Locust user simulating shoppers.

    Weighted distribution:
    - 60% Checkout and pay (happy path)
    - 25% Cancellation
    - 15% Scarce stock rush
    """

    wait_time = between(0.5, 2.0)
    tasks = {
        CheckoutAndPayJourney: 12,
        CancellationJourney: 5,
        ScarceStockRush: 3,
    }
