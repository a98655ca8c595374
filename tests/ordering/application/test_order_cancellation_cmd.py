"""Application tests for cancelling orders and restoring stock."""

import pytest
from ordering.catalogue.product import Product
from ordering.errors import ForbiddenError, OrderNotCancellableError
from ordering.order.cancellation import cancel_order
from ordering.order.lifecycle import update_order_status
from ordering.order.order import OrderStatus
from protean import current_domain


def _stock(product):
    return current_domain.repository_for(Product).get(product.id).stock_quantity


class TestCustomerCancellation:
    def test_restores_stock_for_every_item(self, make_product, placed_order):
        first = make_product(stock_quantity=10)
        second = make_product(stock_quantity=10)
        order = placed_order(lines=[(first, 2), (second, 1)])
        assert _stock(first) == 8
        assert _stock(second) == 9

        cancelled = cancel_order(str(order.id), "customer-1", "customer")

        assert cancelled.status == OrderStatus.CANCELLED.value
        assert _stock(first) == 10
        assert _stock(second) == 10

    def test_cancelling_twice_restores_once(self, make_product, placed_order):
        product = make_product(stock_quantity=10)
        order = placed_order(lines=[(product, 2)])

        cancel_order(str(order.id), "customer-1", "customer")
        cancel_order(str(order.id), "customer-1", "customer")

        assert _stock(product) == 10

    def test_confirmed_order_can_be_cancelled(self, placed_order):
        order = placed_order()
        update_order_status(str(order.id), "confirmed", "admin-1", "admin")

        assert cancel_order(str(order.id), "customer-1", "customer").status == OrderStatus.CANCELLED.value

    def test_shipped_order_cannot_be_cancelled_by_customer(self, make_product, placed_order):
        product = make_product(stock_quantity=10)
        order = placed_order(lines=[(product, 2)])
        update_order_status(str(order.id), "shipped", "seller-1", "seller")

        with pytest.raises(OrderNotCancellableError):
            cancel_order(str(order.id), "customer-1", "customer")
        assert _stock(product) == 8

    def test_other_customers_cannot_cancel(self, placed_order):
        order = placed_order()
        with pytest.raises(ForbiddenError):
            cancel_order(str(order.id), "customer-2", "customer")


class TestStaffCancellation:
    def test_seller_cancels_shipped_order(self, make_product, placed_order):
        product = make_product(stock_quantity=10)
        order = placed_order(lines=[(product, 3)])
        update_order_status(str(order.id), "shipped", "seller-1", "seller")

        cancelled = cancel_order(str(order.id), "seller-1", "seller")

        assert cancelled.status == OrderStatus.CANCELLED.value
        assert _stock(product) == 10

    def test_unrelated_seller_is_refused(self, placed_order):
        order = placed_order()
        with pytest.raises(ForbiddenError):
            cancel_order(str(order.id), "seller-2", "seller")

    def test_missing_product_is_skipped(self, make_product, placed_order):
        kept = make_product(stock_quantity=10)
        removed = make_product(stock_quantity=10)
        order = placed_order(lines=[(kept, 1), (removed, 1)])

        repo = current_domain.repository_for(Product)
        repo._dao.delete(repo.get(removed.id))

        cancelled = cancel_order(str(order.id), "admin-1", "admin")

        assert cancelled.status == OrderStatus.CANCELLED.value
        assert _stock(kept) == 10
