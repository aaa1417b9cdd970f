"""
Order / Payment / AR Aggregator

Order status breakdowns, payment method analysis and Days Sales Outstanding.
"""

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import polars as pl

from erp_insights.database.models import Order, OrderStatus, PaymentStatus
from erp_insights.insights.calculations import (
    ZERO,
    format_rate,
    quantize_money,
    rate,
    safe_divide,
    to_decimal,
)
from erp_insights.insights.periods import DateWindow
from erp_insights.insights.revenue import outstanding_balance
from erp_insights.insights.schemas import (
    DsoMetrics,
    OrderMetrics,
    PaymentAnalysis,
    PaymentGroup,
    StatusBreakdown,
)

SETTLED_PAYMENT_STATUSES = {PaymentStatus.PAID.value, PaymentStatus.PARTIAL.value}
SECONDS_PER_DAY = 86400


def days_to_payment(order: Order) -> Optional[float]:
    """Days from order to payment, ``None`` unless paid or partially paid"""
    if order.payment_status not in SETTLED_PAYMENT_STATUSES or order.paid_at is None:
        return None
    return (order.paid_at - order.order_date).total_seconds() / SECONDS_PER_DAY


def _breakdown(
    orders: Iterable[Order],
    attribute: str,
    known: List[str],
) -> List[StatusBreakdown]:
    counts: Dict[str, int] = defaultdict(int)
    values: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    for order in orders:
        key = getattr(order, attribute)
        counts[key] += 1
        values[key] += to_decimal(order.total)

    labels = known + sorted(k for k in counts if k not in known and k is not None)
    return [
        StatusBreakdown(status=label, count=counts[label], total_value=quantize_money(values[label]))
        for label in labels
    ]


def compute_order_metrics(orders: Sequence[Order]) -> OrderMetrics:
    """
    Status and payment status breakdowns over all orders in scope.

    Cancelled orders are included; fulfillmentRate counts delivered orders.
    """
    delivered = sum(1 for o in orders if o.status == OrderStatus.DELIVERED.value)
    cancelled = sum(1 for o in orders if o.status == OrderStatus.CANCELLED.value)

    return OrderMetrics(
        total_orders=len(orders),
        by_status=_breakdown(orders, "status", [s.value for s in OrderStatus]),
        by_payment_status=_breakdown(
            orders, "payment_status", [s.value for s in PaymentStatus]
        ),
        fulfillment_rate=rate(delivered, len(orders)),
        cancellation_rate=rate(cancelled, len(orders)),
    )


def compute_payment_analysis(orders: Sequence[Order]) -> PaymentAnalysis:
    """
    Group non-cancelled orders by (payment status, payment method).

    averageDaysToPayment only counts paid/partial orders with a payment
    timestamp; groups without any report "0.00".
    """
    groups: Dict[Tuple[str, Optional[str]], List[Order]] = defaultdict(list)
    for order in orders:
        groups[(order.payment_status, order.payment_method)].append(order)

    total_amount = sum((to_decimal(o.total) for o in orders), ZERO)

    breakdown = []
    for (status, method), members in groups.items():
        amount = sum((to_decimal(o.total) for o in members), ZERO)
        waits = [d for d in (days_to_payment(o) for o in members) if d is not None]
        average_wait = sum(waits) / len(waits) if waits else 0
        breakdown.append(PaymentGroup(
            payment_status=status,
            payment_method=method,
            count=len(members),
            total_amount=quantize_money(amount),
            percentage=rate(amount, total_amount),
            average_days_to_payment=format_rate(average_wait),
        ))

    breakdown.sort(key=lambda g: (g.payment_status, g.payment_method or ""))
    breakdown.sort(key=lambda g: g.total_amount, reverse=True)

    return PaymentAnalysis(
        total_amount=quantize_money(total_amount),
        total_transactions=len(orders),
        breakdown=breakdown,
    )


def _period_days(orders: Sequence[Order], window: DateWindow, now: datetime) -> int:
    """Window length, or earliest order to window end (or now) when unbounded"""
    if window.is_bounded:
        return window.days
    end = window.end or now
    start = window.start
    if start is None:
        dates = [o.order_date for o in orders]
        if not dates:
            return 0
        start = min(dates)
    return max((end - start).days, 0)


def compute_dso(
    orders: Sequence[Order],
    window: DateWindow,
    now: datetime,
) -> DsoMetrics:
    """
    DSO = accounts receivable / credit revenue * days in period.

    Every non-cancelled order is a credit sale; accounts receivable is the
    outstanding balance of pending and partial orders. Days-to-payment
    statistics cover paid/partial orders with a payment timestamp.
    """
    receivable = sum((outstanding_balance(o) for o in orders), ZERO)
    credit_revenue = sum((to_decimal(o.total) for o in orders), ZERO)
    days = _period_days(orders, window, now)

    waits = pl.Series(
        "days_to_payment",
        [d for d in (days_to_payment(o) for o in orders) if d is not None],
        dtype=pl.Float64,
    )

    metrics = DsoMetrics(
        accounts_receivable=quantize_money(receivable),
        credit_revenue=quantize_money(credit_revenue),
        days_in_period=days,
        dso=format_rate(safe_divide(receivable, credit_revenue) * days),
        total_paid_orders=waits.len(),
    )
    if waits.len():
        metrics.average_days_to_payment = format_rate(waits.mean())
        metrics.median_days_to_payment = format_rate(waits.median())
        metrics.max_days_to_payment = format_rate(waits.max())
        metrics.min_days_to_payment = format_rate(waits.min())
    return metrics
