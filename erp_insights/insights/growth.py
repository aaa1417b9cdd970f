"""
Growth Aggregator

Month-over-month growth of revenue, orders and customers.
"""

from datetime import datetime
from typing import Optional, Sequence

from erp_insights.database.models import Order
from erp_insights.insights.calculations import ZERO, growth_rate, quantize_money, to_decimal
from erp_insights.insights.periods import DateWindow, month_window, previous_month_window
from erp_insights.insights.schemas import CountGrowth, GrowthMetrics, MoneyGrowth, PeriodInfo


def growth_windows(
    now: datetime,
    latest_order_date: Optional[datetime] = None,
) -> tuple:
    """
    Current and previous calendar months.

    The current month contains ``latest_order_date`` when given, else ``now``.
    The service anchors on ``now`` (the calendar month in progress) unless
    ``INSIGHTS_GROWTH_ANCHOR=latest_data``, which anchors on the month of the
    most recent non-cancelled order so stale data still yields a comparison.
    """
    anchor = latest_order_date or now
    return month_window(anchor), previous_month_window(anchor)


def _window_info(window: DateWindow) -> PeriodInfo:
    return PeriodInfo(start_date=window.start, end_date=window.end)


def compute_growth_metrics(
    current_orders: Sequence[Order],
    previous_orders: Sequence[Order],
    current_window: DateWindow,
    previous_window: DateWindow,
) -> GrowthMetrics:
    """
    Growth of revenue, order count and distinct customers between two months.

    Args:
        current_orders: Non-cancelled orders of the current month
        previous_orders: Non-cancelled orders of the previous month
    """
    current_revenue = sum((to_decimal(o.total) for o in current_orders), ZERO)
    previous_revenue = sum((to_decimal(o.total) for o in previous_orders), ZERO)
    current_customers = len({o.customer_id for o in current_orders})
    previous_customers = len({o.customer_id for o in previous_orders})

    return GrowthMetrics(
        current_period=_window_info(current_window),
        previous_period=_window_info(previous_window),
        revenue=MoneyGrowth(
            current=quantize_money(current_revenue),
            previous=quantize_money(previous_revenue),
            growth_rate=growth_rate(current_revenue, previous_revenue),
        ),
        orders=CountGrowth(
            current=len(current_orders),
            previous=len(previous_orders),
            growth_rate=growth_rate(len(current_orders), len(previous_orders)),
        ),
        customers=CountGrowth(
            current=current_customers,
            previous=previous_customers,
            growth_rate=growth_rate(current_customers, previous_customers),
        ),
    )
