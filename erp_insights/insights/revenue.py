"""
Revenue Aggregator

Revenue, collection and monthly sales over non-cancelled orders, and gross
margin over order lines.
"""

from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Sequence

from erp_insights.database.models import Order, OrderItem, PaymentStatus, Product
from erp_insights.insights.calculations import (
    ZERO,
    quantize_money,
    rate,
    safe_divide,
    to_decimal,
)
from erp_insights.insights.schemas import GrossMargin, MonthlySales, RevenueMetrics

OPEN_PAYMENT_STATUSES = {PaymentStatus.PENDING.value, PaymentStatus.PARTIAL.value}


def outstanding_balance(order: Order) -> Decimal:
    """Unpaid part of an order; zero once paid or refunded"""
    if order.payment_status not in OPEN_PAYMENT_STATUSES:
        return ZERO
    balance = to_decimal(order.total) - to_decimal(order.paid_amount)
    return balance if balance > 0 else ZERO


def compute_revenue_metrics(
    orders: Sequence[Order],
    now: datetime,
    overdue_grace_days: int = 30,
    discount_rate_base: str = "subtotal",
) -> RevenueMetrics:
    """
    Revenue and collection totals.

    Args:
        orders: Non-cancelled orders in scope
        now: Reference instant for the overdue rule
        overdue_grace_days: Days after order date before a balance is overdue
        discount_rate_base: "subtotal" or "total"
    """
    total = subtotal = tax = discounts = collected = pending = overdue = ZERO
    customers = set()
    overdue_cutoff = now - timedelta(days=overdue_grace_days)

    for order in orders:
        total += to_decimal(order.total)
        subtotal += to_decimal(order.subtotal)
        tax += to_decimal(order.tax_amount)
        discounts += to_decimal(order.discount_amount)
        collected += to_decimal(order.paid_amount)
        customers.add(order.customer_id)

        balance = outstanding_balance(order)
        pending += balance
        if balance and order.order_date < overdue_cutoff:
            overdue += balance

    discount_base = subtotal if discount_rate_base == "subtotal" else total

    return RevenueMetrics(
        total_orders=len(orders),
        total_revenue=quantize_money(total),
        subtotal_revenue=quantize_money(subtotal),
        total_tax=quantize_money(tax),
        total_discounts=quantize_money(discounts),
        average_order_value=quantize_money(safe_divide(total, len(orders))),
        collected_revenue=quantize_money(collected),
        pending_revenue=quantize_money(pending),
        overdue_revenue=quantize_money(overdue),
        unique_customers=len(customers),
        collection_rate=rate(collected, total),
        discount_rate=rate(discounts, discount_base),
    )


def compute_monthly_sales(orders: Iterable[Order]) -> List[MonthlySales]:
    """One row per calendar month present, newest first"""
    months: Dict[str, List[Order]] = defaultdict(list)
    for order in orders:
        months[order.order_date.strftime("%Y-%m")].append(order)

    rows = []
    for month in sorted(months, reverse=True):
        bucket = months[month]
        total = sum((to_decimal(o.total) for o in bucket), ZERO)
        paid = sum((to_decimal(o.paid_amount) for o in bucket), ZERO)
        pending = sum((outstanding_balance(o) for o in bucket), ZERO)
        rows.append(MonthlySales(
            month=month,
            total_sales=quantize_money(total),
            total_orders=len(bucket),
            average_order_value=quantize_money(safe_divide(total, len(bucket))),
            unique_customers=len({o.customer_id for o in bucket}),
            paid_amount=quantize_money(paid),
            pending_amount=quantize_money(pending),
            collection_rate=rate(paid, total),
        ))
    return rows


def compute_gross_margin(
    items: Iterable[OrderItem],
    products: Iterable[Product],
) -> GrossMargin:
    """
    Gross margin = (revenue - COGS) / revenue * 100.

    Revenue is quantity * unit_price; a product without cost price adds no COGS.
    """
    cost_by_product = {p.id: to_decimal(p.cost_price) for p in products}

    revenue = cogs = ZERO
    for item in items:
        quantity = Decimal(item.quantity or 0)
        revenue += quantity * to_decimal(item.unit_price)
        cogs += quantity * cost_by_product.get(item.product_id, ZERO)

    profit = revenue - cogs
    return GrossMargin(
        total_revenue=quantize_money(revenue),
        total_cogs=quantize_money(cogs),
        gross_profit=quantize_money(profit),
        gross_margin_percentage=rate(profit, revenue),
    )
