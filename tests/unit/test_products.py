"""
Unit Tests - Product Aggregator
"""
from datetime import datetime
from decimal import Decimal

from erp_insights.insights.periods import DateWindow
from erp_insights.insights.products import (
    compute_category_performance,
    compute_inventory_health,
    compute_inventory_turnover,
    compute_top_products,
)


class TestTopProducts:
    """Tests for compute_top_products"""

    def test_tie_resolves_to_lower_id(self, make_order, make_product, make_item):
        order = make_order()
        products = [make_product(7), make_product(3)]
        items = [
            make_item(order, product_id=7, quantity=10, unit_price=100),
            make_item(order, product_id=3, quantity=4, unit_price=250),
        ]

        top = compute_top_products(items, products, limit=1)

        assert [p.product_id for p in top] == [3]

    def test_aggregates(self, make_order, make_product, make_item):
        first, second = make_order(), make_order()
        products = [make_product(1), make_product(2)]
        items = [
            make_item(first, product_id=1, quantity=2, unit_price=100),
            make_item(second, product_id=1, quantity=3, unit_price=80),
            make_item(second, product_id=2, quantity=1, unit_price=50),
        ]

        top = compute_top_products(items, products, limit=10)

        assert [p.product_id for p in top] == [1, 2]
        widget = top[0]
        assert widget.times_ordered == 2
        assert widget.total_quantity_sold == 5
        assert widget.total_revenue == Decimal("440.00")
        assert widget.average_selling_price == Decimal("88.00")

    def test_revenue_uses_line_total(self, make_order, make_product, make_item):
        order = make_order()
        items = [
            make_item(order, product_id=1, quantity=10, unit_price=100,
                      discount_amount=200, total=800),
        ]

        top = compute_top_products(items, [make_product(1)], limit=5)

        assert top[0].total_revenue == Decimal("800.00")
        assert top[0].average_selling_price == Decimal("80.00")

    def test_unknown_products_are_skipped(self, make_order, make_product, make_item):
        order = make_order()
        items = [make_item(order, product_id=99, quantity=1, unit_price=10)]

        assert compute_top_products(items, [make_product(1)], limit=5) == []


class TestCategoryPerformance:
    """Tests for compute_category_performance"""

    def test_shares_and_stock_value(self, make_order, make_product, make_item):
        order = make_order()
        products = [
            make_product(1, category="Hardware", price=100, stock_quantity=10),
            make_product(2, category="Hardware", price=50, stock_quantity=4, is_active=False),
            make_product(3, category="Services", price=200, stock_quantity=1),
            make_product(4, category="Books", price=20, stock_quantity=0),
        ]
        items = [
            make_item(order, product_id=1, quantity=1, unit_price=100),
            make_item(order, product_id=3, quantity=1, unit_price=200),
        ]

        rows = compute_category_performance(items, products)

        assert [r.category for r in rows] == ["Services", "Hardware", "Books"]
        hardware = rows[1]
        assert hardware.total_products == 2
        assert hardware.total_stock_value == Decimal("1000.00")
        assert hardware.average_price == Decimal("75.00")
        assert rows[0].revenue_share == "66.67"
        assert hardware.revenue_share == "33.33"
        assert rows[2].revenue_share == "0.00"

        total_share = sum(Decimal(r.revenue_share) for r in rows)
        assert abs(total_share - 100) <= Decimal("0.1")

    def test_discounted_lines(self, make_order, make_product, make_item):
        order = make_order()
        products = [
            make_product(1, category="Hardware"),
            make_product(2, category="Services"),
        ]
        items = [
            make_item(order, product_id=1, quantity=10, unit_price=100, discount_amount=200),
            make_item(order, product_id=2, quantity=2, unit_price=100),
        ]

        rows = compute_category_performance(items, products)

        assert rows[0].category == "Hardware"
        assert rows[0].total_revenue == Decimal("800.00")
        assert rows[0].revenue_share == "80.00"
        assert rows[1].revenue_share == "20.00"


class TestInventoryHealth:
    """Tests for compute_inventory_health"""

    def test_stockout_and_health_rates(self, make_product):
        products = [
            make_product(1, stock_quantity=0, low_stock_threshold=10),
            make_product(2, stock_quantity=5, low_stock_threshold=10),
        ]

        health = compute_inventory_health(products)

        assert health.stockout_rate == "50.00"
        assert health.stock_health_rate == "0.00"
        assert health.out_of_stock_products == 1
        assert health.low_stock_products == 2

    def test_inactive_products_are_ignored(self, make_product):
        products = [
            make_product(1, stock_quantity=100, price=10),
            make_product(2, stock_quantity=0, is_active=False),
        ]

        health = compute_inventory_health(products)

        assert health.total_products == 2
        assert health.active_products == 1
        assert health.stockout_rate == "0.00"
        assert health.stock_health_rate == "100.00"
        assert health.total_inventory_value == Decimal("1000.00")
        assert health.total_units_in_stock == 100

    def test_missing_threshold_defaults_to_ten(self, make_product):
        products = [
            make_product(1, stock_quantity=10, low_stock_threshold=None),
            make_product(2, stock_quantity=11, low_stock_threshold=None),
        ]

        health = compute_inventory_health(products)

        assert health.low_stock_products == 1
        assert health.stock_health_rate == "50.00"

    def test_no_active_products(self, make_product):
        health = compute_inventory_health([make_product(1, is_active=False)])

        assert health.stock_health_rate == "0.00"
        assert health.stockout_rate == "0.00"
        assert health.average_stock_level == 0


class TestInventoryTurnover:
    """Tests for compute_inventory_turnover"""

    def test_two_point_average(self, make_order, make_product, make_item):
        window = DateWindow(datetime(2024, 10, 1), datetime(2024, 11, 1))
        in_window = make_order(order_date=datetime(2024, 10, 10))
        after_window = make_order(order_date=datetime(2024, 11, 5))
        products = [make_product(1, price=25, cost_price=10, stock_quantity=20)]
        items = [
            make_item(in_window, product_id=1, quantity=10, unit_price=25),
            make_item(after_window, product_id=1, quantity=5, unit_price=25),
        ]

        turnover = compute_inventory_turnover(items, products, window)

        # Closing stock 20 + 5, opening stock 25 + 10
        assert turnover.closing_inventory_value == Decimal("250.00")
        assert turnover.opening_inventory_value == Decimal("350.00")
        assert turnover.average_inventory_value == Decimal("300.00")
        assert turnover.cost_of_goods_sold == Decimal("100.00")
        assert turnover.turnover_ratio == "0.33"

    def test_cost_falls_back_to_price(self, make_order, make_product, make_item):
        order = make_order(order_date=datetime(2024, 10, 10))
        products = [make_product(1, price=40, cost_price=None, stock_quantity=0)]
        items = [make_item(order, product_id=1, quantity=2, unit_price=40)]

        turnover = compute_inventory_turnover(items, products, DateWindow())

        assert turnover.cost_of_goods_sold == Decimal("80.00")
        assert turnover.turnover_ratio == "2.00"

    def test_no_inventory(self):
        turnover = compute_inventory_turnover([], [], DateWindow())

        assert turnover.turnover_ratio == "0.00"
