"""
Product Aggregator

Top products, category performance, inventory health and turnover.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Dict, Iterable, List, Sequence, Set

from erp_insights.database.models import OrderItem, Product
from erp_insights.insights.calculations import (
    ZERO,
    format_rate,
    quantize_money,
    rate,
    safe_divide,
    to_decimal,
)
from erp_insights.insights.periods import DateWindow
from erp_insights.insights.ranking import top_n
from erp_insights.insights.schemas import (
    CategoryPerformance,
    InventoryHealth,
    InventoryTurnover,
    TopProduct,
)

DEFAULT_LOW_STOCK_THRESHOLD = 10


def low_stock_threshold(product: Product) -> int:
    if product.low_stock_threshold is None:
        return DEFAULT_LOW_STOCK_THRESHOLD
    return product.low_stock_threshold


def unit_cost(product: Product) -> Decimal:
    """Cost price, falling back to the selling price"""
    if product.cost_price is not None:
        return to_decimal(product.cost_price)
    return to_decimal(product.price)


def _line_revenue(item: OrderItem) -> Decimal:
    """Stored line total, after line discount and tax"""
    return to_decimal(item.total)


class _Sales:
    __slots__ = ("orders", "units", "revenue")

    def __init__(self):
        self.orders: Set[int] = set()
        self.units = 0
        self.revenue = ZERO


def _sales_by_product(items: Iterable[OrderItem]) -> Dict[int, _Sales]:
    sales: Dict[int, _Sales] = defaultdict(_Sales)
    for item in items:
        entry = sales[item.product_id]
        entry.orders.add(item.order_id)
        entry.units += item.quantity or 0
        entry.revenue += _line_revenue(item)
    return sales


def compute_top_products(
    items: Sequence[OrderItem],
    products: Sequence[Product],
    limit: int = 10,
) -> List[TopProduct]:
    """
    Products ranked by revenue in scope.

    Revenue is the sum of line totals. Ties are broken by
    ascending product id.
    """
    catalog = {p.id: p for p in products}
    rows = []
    for product_id, entry in _sales_by_product(items).items():
        product = catalog.get(product_id)
        if product is None:
            continue
        rows.append(TopProduct(
            product_id=product_id,
            name=product.name,
            sku=product.sku,
            category=product.category,
            times_ordered=len(entry.orders),
            total_quantity_sold=entry.units,
            total_revenue=quantize_money(entry.revenue),
            average_selling_price=quantize_money(safe_divide(entry.revenue, entry.units)),
        ))

    return top_n(rows, metric=lambda r: r.total_revenue, key=lambda r: r.product_id, limit=limit)


def compute_category_performance(
    items: Sequence[OrderItem],
    products: Sequence[Product],
) -> List[CategoryPerformance]:
    """Per-category sales and stock value, ordered by revenue then name"""
    sales = _sales_by_product(items)
    by_category: Dict[str, List[Product]] = defaultdict(list)
    for product in products:
        by_category[product.category].append(product)

    rows = []
    total_revenue = sum(
        (sales[p.id].revenue for p in products if p.id in sales), ZERO
    )
    for category, members in by_category.items():
        orders: Set[int] = set()
        units = 0
        revenue = ZERO
        for product in members:
            entry = sales.get(product.id)
            if entry is None:
                continue
            orders |= entry.orders
            units += entry.units
            revenue += entry.revenue

        active = [p for p in members if p.is_active]
        stock_value = sum(
            (to_decimal(p.price) * (p.stock_quantity or 0) for p in active), ZERO
        )
        average_price = safe_divide(
            sum((to_decimal(p.price) for p in members), ZERO), len(members)
        )

        rows.append(CategoryPerformance(
            category=category,
            total_products=len(members),
            total_orders=len(orders),
            total_units_sold=units,
            total_revenue=quantize_money(revenue),
            average_price=quantize_money(average_price),
            total_stock_value=quantize_money(stock_value),
            revenue_share=rate(revenue, total_revenue),
        ))

    rows.sort(key=lambda r: r.category)
    rows.sort(key=lambda r: r.total_revenue, reverse=True)
    return rows


def compute_inventory_health(products: Sequence[Product]) -> InventoryHealth:
    """
    Stock levels of the catalog.

    Rates are over active products only: stockHealthRate counts stock above
    the low-stock threshold, stockoutRate counts zero stock.
    """
    active = [p for p in products if p.is_active]

    low_stock = healthy = out_of_stock = units = 0
    value = ZERO
    for product in active:
        stock = product.stock_quantity or 0
        threshold = low_stock_threshold(product)
        units += stock
        value += to_decimal(product.price) * stock
        if stock <= 0:
            out_of_stock += 1
        if stock <= threshold:
            low_stock += 1
        else:
            healthy += 1

    return InventoryHealth(
        total_products=len(products),
        active_products=len(active),
        low_stock_products=low_stock,
        out_of_stock_products=out_of_stock,
        total_inventory_value=quantize_money(value),
        average_stock_level=quantize_money(safe_divide(units, len(active))),
        total_units_in_stock=units,
        stock_health_rate=rate(healthy, len(active)),
        stockout_rate=rate(out_of_stock, len(active)),
    )


def compute_inventory_turnover(
    items: Sequence[OrderItem],
    products: Sequence[Product],
    window: DateWindow,
) -> InventoryTurnover:
    """
    Inventory turnover = COGS in window / average inventory value.

    The row store only keeps current stock, so period-end stock is current
    stock plus units sold after the window and period-start stock is
    period-end stock plus units sold inside it. Average inventory is the
    mean of the two valuations at unit cost.

    Args:
        items: Non-cancelled order lines from the window start onwards
        products: Catalog of the organization
        window: Reporting window
    """
    catalog = {p.id: p for p in products if p.is_active}
    sold_in_window: Dict[int, int] = defaultdict(int)
    sold_after_window: Dict[int, int] = defaultdict(int)

    cogs = ZERO
    for item in items:
        product = catalog.get(item.product_id)
        if product is None:
            continue
        order_date = item.order.order_date
        if window.contains(order_date):
            sold_in_window[item.product_id] += item.quantity or 0
            cogs += Decimal(item.quantity or 0) * unit_cost(product)
        elif window.end is not None and order_date >= window.end:
            sold_after_window[item.product_id] += item.quantity or 0

    opening = closing = ZERO
    for product in catalog.values():
        end_stock = (product.stock_quantity or 0) + sold_after_window[product.id]
        start_stock = end_stock + sold_in_window[product.id]
        closing += unit_cost(product) * end_stock
        opening += unit_cost(product) * start_stock

    average = (opening + closing) / 2

    return InventoryTurnover(
        cost_of_goods_sold=quantize_money(cogs),
        opening_inventory_value=quantize_money(opening),
        closing_inventory_value=quantize_money(closing),
        average_inventory_value=quantize_money(average),
        turnover_ratio=format_rate(safe_divide(cogs, average)),
    )
