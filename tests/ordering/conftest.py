import itertools

import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def gateway():
    """A fresh in-memory payment gateway for every test."""
    from ordering.payment.gateway import reset_gateway, set_gateway
    from ordering.payment.gateway.fake_adapter import FakeGateway

    fake = FakeGateway()
    set_gateway(fake)
    yield fake
    reset_gateway()


@pytest.fixture(autouse=True)
def _locks():
    from ordering.utils.locks import LocalLockManager, reset_lock_manager, set_lock_manager

    set_lock_manager(LocalLockManager(timeout=2))
    yield
    reset_lock_manager()


@pytest.fixture
def make_product():
    """Persist a Product; keyword arguments override the defaults."""
    from ordering.catalogue.product import Product
    from protean import current_domain

    counter = itertools.count(1)

    def _make(**overrides):
        n = next(counter)
        data = {
            "name": f"Product {n}",
            "sku": f"SKU-{n:04d}",
            "description": f"Description of product {n}",
            "brand": "Acme",
            "price": 100.0,
            "stock_quantity": 10,
            "user_id": "seller-1",
        }
        data.update(overrides)
        product = Product(**data)
        current_domain.repository_for(Product).add(product)
        return product

    return _make


@pytest.fixture
def make_address():
    """Persist an Address owned by ``user_id``."""
    from ordering.customer.address import Address
    from protean import current_domain

    def _make(user_id="customer-1", **overrides):
        data = {
            "user_id": user_id,
            "recipient_name": "Thandi Mokoena",
            "phone": "+27821234567",
            "street_address": "12 Long Street",
            "suburb": "City Centre",
            "city": "Cape Town",
            "province": "Western Cape",
            "postal_code": "8001",
        }
        data.update(overrides)
        address = Address(**data)
        current_domain.repository_for(Address).add(address)
        return address

    return _make


@pytest.fixture
def fill_cart():
    """Add ``(product, quantity)`` pairs to the user's cart through the cart service."""
    from ordering.cart.items import add_to_cart

    def _fill(user_id, *lines):
        cart = None
        for product, quantity in lines:
            cart = add_to_cart(user_id, str(product.id), quantity)
        return cart

    return _fill


@pytest.fixture
def placed_order(make_product, make_address, fill_cart):
    """An order for 2 x a 100.00 product (stock 10), placed by customer-1."""
    from ordering.order.creation import place_order

    def _place(user_id="customer-1", lines=None, seller_id="seller-1"):
        address = make_address(user_id=user_id)
        if lines is None:
            lines = [(make_product(price=100.0, stock_quantity=10, user_id=seller_id), 2)]
        fill_cart(user_id, *lines)
        return place_order(user_id=user_id, shipping_address_id=str(address.id), payment_method="card")

    return _place
