"""
Customer Aggregator

Segmentation, top customers, retention and churn. Purchase statistics are
recomputed from order rows; the cached lifetime value and order count on
the customer row are not trusted.
"""

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set

from erp_insights.database.models import Customer, CustomerSegment, CustomerType, Order
from erp_insights.insights.calculations import (
    ZERO,
    quantize_money,
    rate,
    safe_divide,
    to_decimal,
)
from erp_insights.insights.periods import DateWindow, trailing_window
from erp_insights.insights.ranking import top_n
from erp_insights.insights.schemas import (
    ChurnMetrics,
    CustomerTypeBreakdown,
    RetentionMetrics,
    SegmentAnalysis,
    SegmentBreakdown,
    TopCustomer,
)

UNSEGMENTED = "Unsegmented"
UNSPECIFIED_TYPE = "Unspecified"


class _Bucket:
    """Running totals for one group of customers"""

    __slots__ = ("customers", "orders", "revenue", "active")

    def __init__(self):
        self.customers = 0
        self.orders = 0
        self.revenue = ZERO
        self.active = 0


def _ordered_labels(known: List[str], present: Iterable[str]) -> List[str]:
    """Known labels in declaration order, then any others alphabetically"""
    extra = sorted(set(present) - set(known))
    return known + extra


def _group(
    customers: Sequence[Customer],
    orders: Sequence[Order],
    active_ids: Set[int],
    label_of: Callable[[Customer], str],
) -> Dict[str, _Bucket]:
    buckets: Dict[str, _Bucket] = defaultdict(_Bucket)
    label_by_customer = {}

    for customer in customers:
        label = label_of(customer)
        label_by_customer[customer.customer_id] = label
        bucket = buckets[label]
        bucket.customers += 1
        if customer.customer_id in active_ids:
            bucket.active += 1

    for order in orders:
        label = label_by_customer.get(order.customer_id)
        if label is None:
            continue
        bucket = buckets[label]
        bucket.orders += 1
        bucket.revenue += to_decimal(order.total)

    return buckets


def active_customer_ids(orders: Iterable[Order], window: DateWindow) -> Set[int]:
    """Customers with at least one order dated inside ``window``"""
    return {o.customer_id for o in orders if window.contains(o.order_date)}


def compute_segment_analysis(
    customers: Sequence[Customer],
    orders: Sequence[Order],
    reference: datetime,
    active_days: int = 30,
    activity_orders: Optional[Sequence[Order]] = None,
) -> SegmentAnalysis:
    """
    Group customers by segment and by customer type.

    Every known segment is listed, empty ones with zeros. Shares are
    rounded independently and sum to 100 within 0.1.

    Args:
        customers: All customers of the organization
        orders: Non-cancelled orders in the reporting period
        reference: End of the trailing activity window
        active_days: Length of the trailing activity window
        activity_orders: Orders covering the activity window, defaults to ``orders``
    """
    window = trailing_window(reference, active_days)
    active_ids = active_customer_ids(
        orders if activity_orders is None else activity_orders, window
    )

    by_segment = _group(
        customers, orders, active_ids, lambda c: c.segment or UNSEGMENTED
    )
    by_type = _group(
        customers, orders, active_ids, lambda c: c.customer_type or UNSPECIFIED_TYPE
    )

    total_customers = len(customers)
    total_revenue = sum((b.revenue for b in by_segment.values()), ZERO)

    segments = []
    for label in _ordered_labels([s.value for s in CustomerSegment], by_segment):
        bucket = by_segment.get(label, _Bucket())
        segments.append(SegmentBreakdown(
            segment=label,
            customer_count=bucket.customers,
            total_orders=bucket.orders,
            total_revenue=quantize_money(bucket.revenue),
            average_order_value=quantize_money(safe_divide(bucket.revenue, bucket.orders)),
            active_last_30_days=bucket.active,
            customer_share=rate(bucket.customers, total_customers),
            revenue_share=rate(bucket.revenue, total_revenue),
        ))

    customer_types = []
    for label in _ordered_labels([t.value for t in CustomerType], by_type):
        bucket = by_type.get(label, _Bucket())
        if bucket.customers == 0:
            continue
        customer_types.append(CustomerTypeBreakdown(
            customer_type=label,
            customer_count=bucket.customers,
            total_orders=bucket.orders,
            total_revenue=quantize_money(bucket.revenue),
            customer_share=rate(bucket.customers, total_customers),
            revenue_share=rate(bucket.revenue, total_revenue),
        ))

    return SegmentAnalysis(
        total_customers=total_customers,
        total_revenue=quantize_money(total_revenue),
        segments=segments,
        customer_types=customer_types,
    )


def compute_top_customers(
    customers: Sequence[Customer],
    orders: Sequence[Order],
    limit: int,
) -> List[TopCustomer]:
    """
    Customers ranked by total sales in scope.

    Only customers with at least one order qualify. Ties are broken by
    ascending customer id.
    """
    orders_by_customer: Dict[int, List[Order]] = defaultdict(list)
    for order in orders:
        orders_by_customer[order.customer_id].append(order)

    rows = []
    for customer in customers:
        history = orders_by_customer.get(customer.customer_id)
        if not history:
            continue
        total = sum((to_decimal(o.total) for o in history), ZERO)
        first = min(o.order_date for o in history)
        last = max(o.order_date for o in history)
        rows.append(TopCustomer(
            customer_id=customer.customer_id,
            customer_code=customer.customer_code,
            name=customer.name,
            email=customer.email,
            segment=customer.segment,
            customer_type=customer.customer_type,
            total_sales=quantize_money(total),
            total_orders=len(history),
            average_order_value=quantize_money(safe_divide(total, len(history))),
            first_order_date=first,
            last_order_date=last,
            customer_lifetime_days=(last - first).days,
        ))

    return top_n(rows, metric=lambda r: r.total_sales, key=lambda r: r.customer_id, limit=limit)


def _consecutive_windows(now: datetime, days: int):
    boundary = now - timedelta(days=days)
    previous = DateWindow(boundary - timedelta(days=days), boundary)
    current = DateWindow(boundary, now)
    return previous, current


def compute_retention(
    orders: Sequence[Order],
    now: datetime,
    days: int = 30,
) -> RetentionMetrics:
    """
    Retention between two consecutive windows of ``days`` ending at ``now``.

    retentionRate = customers active in both / customers active in the
    earlier window * 100. New customers are active in the later window only.
    """
    previous, current = _consecutive_windows(now, days)
    at_start = active_customer_ids(orders, previous)
    at_end = active_customer_ids(orders, current)
    retained = at_start & at_end

    return RetentionMetrics(
        period_days=days,
        customers_at_start=len(at_start),
        customers_at_end=len(at_end),
        retained_customers=len(retained),
        new_customers=len(at_end - at_start),
        retention_rate=rate(len(retained), len(at_start)),
    )


def compute_churn(
    orders: Sequence[Order],
    now: datetime,
    days: int = 90,
) -> ChurnMetrics:
    """
    Churn = 100 - retention over the same pair of windows.

    Reported as "0.00" when nobody was active in the earlier window.
    """
    previous, current = _consecutive_windows(now, days)
    at_start = active_customer_ids(orders, previous)
    churned = at_start - active_customer_ids(orders, current)

    return ChurnMetrics(
        period_days=days,
        customers_at_start=len(at_start),
        churned_customers=len(churned),
        churn_rate=rate(len(churned), len(at_start)),
    )
