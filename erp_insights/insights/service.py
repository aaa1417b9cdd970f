"""
Insights Service - Response Composer

One coroutine per insights endpoint plus the full dashboard. Inputs are
validated before any row is fetched; independent fetches run concurrently
and a store failure or timeout aborts the whole request.
"""

import asyncio
from datetime import date, datetime, timedelta
from typing import Callable, Coroutine, List, Optional, Sequence

import structlog

from erp_insights.config.settings import InsightsSettings
from erp_insights.database.models import Order, OrderItem, OrderStatus
from erp_insights.insights import customers as customer_metrics
from erp_insights.insights import orders as order_metrics
from erp_insights.insights import products as product_metrics
from erp_insights.insights import revenue as revenue_metrics
from erp_insights.insights.exceptions import ComputationError, InsightsError, InvalidInputError
from erp_insights.insights.growth import compute_growth_metrics, growth_windows
from erp_insights.insights.periods import (
    DateWindow,
    ReportingPeriod,
    resolve_period,
    trailing_window,
    utcnow,
)
from erp_insights.insights.ranking import validate_limit
from erp_insights.insights.repository import InsightsRepository
from erp_insights.insights.rfm import score_customers
from erp_insights.insights import schemas

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def _in_window(orders: Sequence[Order], window: DateWindow) -> List[Order]:
    return [o for o in orders if window.contains(o.order_date)]


def _not_cancelled(orders: Sequence[Order]) -> List[Order]:
    return [o for o in orders if o.status != OrderStatus.CANCELLED.value]


def _items_in_window(items: Sequence[OrderItem], window: DateWindow) -> List[OrderItem]:
    return [i for i in items if window.contains(i.order.order_date)]


def _dashboard_period(
    period: ReportingPeriod,
    start_date: Optional[date],
    end_date: Optional[date],
    now: datetime,
) -> schemas.DashboardPeriod:
    """Echo the requested dates; the comparison period uses inclusive end dates"""
    previous = period.previous
    return schemas.DashboardPeriod(
        start_date=start_date,
        end_date=end_date,
        previous_start_date=previous.start.date() if previous else None,
        previous_end_date=(previous.end - timedelta(days=1)).date() if previous else None,
        generated_at=now,
    )


class InsightsService:
    """
    Computes insights for one organization per call.

    Args:
        repository: Row fetchers over the ERP store
        settings: Aggregation settings
        clock: Source of the reference instant ("now")
    """

    def __init__(
        self,
        repository: InsightsRepository,
        settings: InsightsSettings,
        clock: Clock = utcnow,
    ):
        self.repository = repository
        self.settings = settings
        self.clock = clock

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def _period(self, start_date: Optional[date], end_date: Optional[date]) -> ReportingPeriod:
        return resolve_period(start_date, end_date, self.settings.max_range_days)

    def _limit(self, limit: Optional[int]) -> int:
        if limit is None:
            limit = self.settings.default_limit
        return validate_limit(limit, self.settings.max_limit)

    def _days(self, days: Optional[int], default: int) -> int:
        if days is None:
            return default
        if days < 1:
            raise InvalidInputError("days must be a positive integer")
        if days > self.settings.max_window_days:
            raise InvalidInputError(
                f"days must not exceed {self.settings.max_window_days}"
            )
        return days

    def _segment_reference(self, period: ReportingPeriod, now: datetime) -> datetime:
        """Activity is measured back from the period end when bounded"""
        if period.current.end is not None:
            return period.current.end
        return now

    # -------------------------------------------------------------------------
    # Fan-out
    # -------------------------------------------------------------------------

    async def _gather(self, org_id: int, *fetches: Coroutine) -> list:
        """
        Run fetches concurrently under the request timeout.

        The first failure cancels the remaining fetches.

        Raises:
            ComputationError: If a fetch fails or the timeout expires
        """
        try:
            async with asyncio.timeout(self.settings.query_timeout_seconds):
                async with asyncio.TaskGroup() as group:
                    tasks = [group.create_task(fetch) for fetch in fetches]
        except TimeoutError as e:
            logger.error(
                "Insights fetch timed out",
                org_id=org_id,
                timeout=self.settings.query_timeout_seconds,
            )
            raise ComputationError("Insights computation timed out") from e
        except ExceptionGroup as group_error:
            logger.error(
                "Insights fetch failed",
                org_id=org_id,
                errors=[repr(e) for e in group_error.exceptions],
            )
            for error in group_error.exceptions:
                if isinstance(error, InsightsError):
                    raise error from group_error
            raise ComputationError() from group_error

        return [task.result() for task in tasks]

    # -------------------------------------------------------------------------
    # Customers
    # -------------------------------------------------------------------------

    async def get_top_customers(
        self,
        org_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> List[schemas.TopCustomer]:
        period = self._period(start_date, end_date)
        limit = self._limit(limit)

        customers, orders = await self._gather(
            org_id,
            self.repository.fetch_customers(org_id),
            self.repository.fetch_orders(org_id, period.current),
        )
        return customer_metrics.compute_top_customers(customers, orders, limit)

    async def get_customer_segments(
        self,
        org_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> schemas.SegmentAnalysis:
        period = self._period(start_date, end_date)
        reference = self._segment_reference(period, self.clock())
        activity = trailing_window(reference, self.settings.active_customer_days)

        customers, orders, recent = await self._gather(
            org_id,
            self.repository.fetch_customers(org_id),
            self.repository.fetch_orders(org_id, period.current),
            self.repository.fetch_orders(org_id, activity),
        )
        return customer_metrics.compute_segment_analysis(
            customers,
            orders,
            reference,
            self.settings.active_customer_days,
            activity_orders=recent,
        )

    async def get_retention(
        self,
        org_id: int,
        days: Optional[int] = None,
    ) -> schemas.RetentionMetrics:
        days = self._days(days, self.settings.retention_window_days)
        now = self.clock()

        (orders,) = await self._gather(
            org_id,
            self.repository.fetch_orders(org_id, trailing_window(now, 2 * days)),
        )
        return customer_metrics.compute_retention(orders, now, days)

    async def get_churn(
        self,
        org_id: int,
        days: Optional[int] = None,
    ) -> schemas.ChurnMetrics:
        days = self._days(days, self.settings.churn_window_days)
        now = self.clock()

        (orders,) = await self._gather(
            org_id,
            self.repository.fetch_orders(org_id, trailing_window(now, 2 * days)),
        )
        return customer_metrics.compute_churn(orders, now, days)

    async def get_rfm(
        self,
        org_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> schemas.RfmAnalysis:
        period = self._period(start_date, end_date)
        now = self.clock()

        customers, orders = await self._gather(
            org_id,
            self.repository.fetch_customers(org_id),
            self.repository.fetch_orders(org_id, period.current),
        )
        names = {c.customer_id: c.name for c in customers}
        return score_customers(orders, now, self.settings.rfm_segment_bands, names)

    # -------------------------------------------------------------------------
    # Revenue
    # -------------------------------------------------------------------------

    async def get_monthly_sales(
        self,
        org_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[schemas.MonthlySales]:
        period = self._period(start_date, end_date)
        (orders,) = await self._gather(
            org_id, self.repository.fetch_orders(org_id, period.current)
        )
        return revenue_metrics.compute_monthly_sales(orders)

    async def get_revenue_metrics(
        self,
        org_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> schemas.RevenueMetrics:
        period = self._period(start_date, end_date)
        (orders,) = await self._gather(
            org_id, self.repository.fetch_orders(org_id, period.current)
        )
        return revenue_metrics.compute_revenue_metrics(
            orders,
            self.clock(),
            self.settings.overdue_grace_days,
            self.settings.discount_rate_base,
        )

    async def get_gross_margin(
        self,
        org_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> schemas.GrossMargin:
        period = self._period(start_date, end_date)
        items, products = await self._gather(
            org_id,
            self.repository.fetch_order_items(org_id, period.current),
            self.repository.fetch_products(org_id),
        )
        return revenue_metrics.compute_gross_margin(items, products)

    # -------------------------------------------------------------------------
    # Products
    # -------------------------------------------------------------------------

    async def get_top_products(
        self,
        org_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> List[schemas.TopProduct]:
        period = self._period(start_date, end_date)
        limit = self._limit(limit)

        items, products = await self._gather(
            org_id,
            self.repository.fetch_order_items(org_id, period.current),
            self.repository.fetch_products(org_id),
        )
        return product_metrics.compute_top_products(items, products, limit)

    async def get_category_performance(
        self,
        org_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[schemas.CategoryPerformance]:
        period = self._period(start_date, end_date)
        items, products = await self._gather(
            org_id,
            self.repository.fetch_order_items(org_id, period.current),
            self.repository.fetch_products(org_id),
        )
        return product_metrics.compute_category_performance(items, products)

    async def get_inventory_health(self, org_id: int) -> schemas.InventoryHealth:
        (products,) = await self._gather(org_id, self.repository.fetch_products(org_id))
        return product_metrics.compute_inventory_health(products)

    async def get_inventory_turnover(
        self,
        org_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> schemas.InventoryTurnover:
        period = self._period(start_date, end_date)
        # Lines after the window are needed to rebuild period-end stock
        items, products = await self._gather(
            org_id,
            self.repository.fetch_order_items(org_id, DateWindow(start=period.current.start)),
            self.repository.fetch_products(org_id),
        )
        return product_metrics.compute_inventory_turnover(items, products, period.current)

    # -------------------------------------------------------------------------
    # Orders and payments
    # -------------------------------------------------------------------------

    async def get_order_metrics(
        self,
        org_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> schemas.OrderMetrics:
        period = self._period(start_date, end_date)
        (orders,) = await self._gather(
            org_id,
            self.repository.fetch_orders(org_id, period.current, include_cancelled=True),
        )
        return order_metrics.compute_order_metrics(orders)

    async def get_payment_analysis(
        self,
        org_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> schemas.PaymentAnalysis:
        period = self._period(start_date, end_date)
        (orders,) = await self._gather(
            org_id, self.repository.fetch_orders(org_id, period.current)
        )
        return order_metrics.compute_payment_analysis(orders)

    async def get_dso(
        self,
        org_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> schemas.DsoMetrics:
        period = self._period(start_date, end_date)
        (orders,) = await self._gather(
            org_id, self.repository.fetch_orders(org_id, period.current)
        )
        return order_metrics.compute_dso(orders, period.current, self.clock())

    # -------------------------------------------------------------------------
    # Growth
    # -------------------------------------------------------------------------

    async def _growth_windows(self, org_id: int, now: datetime):
        latest = None
        if self.settings.growth_anchor == "latest_data":
            (latest,) = await self._gather(
                org_id, self.repository.fetch_latest_order_date(org_id)
            )
        return growth_windows(now, latest)

    async def get_growth_metrics(self, org_id: int) -> schemas.GrowthMetrics:
        now = self.clock()
        current, previous = await self._growth_windows(org_id, now)

        current_orders, previous_orders = await self._gather(
            org_id,
            self.repository.fetch_orders(org_id, current),
            self.repository.fetch_orders(org_id, previous),
        )
        return compute_growth_metrics(current_orders, previous_orders, current, previous)

    # -------------------------------------------------------------------------
    # Dashboard
    # -------------------------------------------------------------------------

    async def get_dashboard(
        self,
        org_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> schemas.Dashboard:
        """
        Every metric group in one payload.

        All rows are fetched in a single fan-out; if any fetch fails the
        whole dashboard fails.
        """
        period = self._period(start_date, end_date)
        limit = self._limit(limit)
        settings = self.settings
        now = self.clock()

        reference = self._segment_reference(period, now)
        activity = trailing_window(reference, settings.active_customer_days)
        cohort_days = max(settings.retention_window_days, settings.churn_window_days)
        cohort = trailing_window(now, 2 * cohort_days)
        growth_current, growth_previous = await self._growth_windows(org_id, now)

        (
            customers,
            products,
            all_orders,
            items,
            recent_orders,
            cohort_orders,
            growth_orders,
        ) = await self._gather(
            org_id,
            self.repository.fetch_customers(org_id),
            self.repository.fetch_products(org_id),
            self.repository.fetch_orders(org_id, period.current, include_cancelled=True),
            self.repository.fetch_order_items(org_id, DateWindow(start=period.current.start)),
            self.repository.fetch_orders(org_id, activity),
            self.repository.fetch_orders(org_id, cohort),
            self.repository.fetch_orders(
                org_id, DateWindow(growth_previous.start, growth_current.end)
            ),
        )

        orders = _not_cancelled(all_orders)
        period_items = _items_in_window(items, period.current)

        revenue = revenue_metrics.compute_revenue_metrics(
            orders, now, settings.overdue_grace_days, settings.discount_rate_base
        )
        gross_margin = revenue_metrics.compute_gross_margin(period_items, products)
        segments = customer_metrics.compute_segment_analysis(
            customers,
            orders,
            reference,
            settings.active_customer_days,
            activity_orders=recent_orders,
        )
        retention = customer_metrics.compute_retention(
            cohort_orders, now, settings.retention_window_days
        )
        churn = customer_metrics.compute_churn(
            cohort_orders, now, settings.churn_window_days
        )
        dso = order_metrics.compute_dso(orders, period.current, now)
        turnover = product_metrics.compute_inventory_turnover(items, products, period.current)

        dashboard = schemas.Dashboard(
            period=_dashboard_period(period, start_date, end_date, now),
            sales_performance=schemas.SalesPerformance(
                top_customers=customer_metrics.compute_top_customers(customers, orders, limit),
                monthly_sales=revenue_metrics.compute_monthly_sales(orders),
                top_products=product_metrics.compute_top_products(period_items, products, limit),
                category_performance=product_metrics.compute_category_performance(
                    period_items, products
                ),
            ),
            customer_analytics=schemas.extend(
                schemas.CustomerAnalytics,
                segments,
                retention_rate=retention.retention_rate,
                churn_rate=churn.churn_rate,
            ),
            revenue_analytics=schemas.extend(
                schemas.RevenueAnalytics,
                revenue,
                gross_margin_percentage=gross_margin.gross_margin_percentage,
                gross_profit=gross_margin.gross_profit,
            ),
            order_analytics=schemas.extend(
                schemas.OrderAnalytics,
                order_metrics.compute_order_metrics(all_orders),
                average_dso=dso.dso,
            ),
            inventory_insights=schemas.extend(
                schemas.InventoryInsights,
                product_metrics.compute_inventory_health(products),
                turnover_ratio=turnover.turnover_ratio,
            ),
            growth_metrics=compute_growth_metrics(
                _in_window(growth_orders, growth_current),
                _in_window(growth_orders, growth_previous),
                growth_current,
                growth_previous,
            ),
            payment_analysis=order_metrics.compute_payment_analysis(orders),
        )

        logger.info(
            "Dashboard computed",
            org_id=org_id,
            orders=len(all_orders),
            customers=len(customers),
            products=len(products),
        )
        return dashboard
