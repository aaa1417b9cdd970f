"""
Insights Payload Models

Pydantic models for every metric bundle. Fields are snake_case in Python
and camelCase on the wire. Money is ``Decimal`` internally and a JSON number
on output; rates are two-decimal strings.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

Money = Annotated[
    Decimal, PlainSerializer(float, return_type=float, when_used="json")
]

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base model emitting camelCase keys"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiResponse(BaseModel, Generic[T]):
    """``{success, data}`` envelope"""

    success: bool = True
    data: T


class ErrorResponse(BaseModel):
    """``{success: false, error}`` envelope"""

    success: bool = False
    error: str


# =============================================================================
# PERIOD
# =============================================================================

class PeriodInfo(CamelModel):
    """Half-open window boundaries"""

    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class DashboardPeriod(CamelModel):
    """Requested dates plus the equal-length comparison period, inclusive"""

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    previous_start_date: Optional[date] = None
    previous_end_date: Optional[date] = None
    generated_at: datetime


# =============================================================================
# REVENUE
# =============================================================================

class RevenueMetrics(CamelModel):
    """Revenue and collection totals over non-cancelled orders"""

    total_orders: int = 0
    total_revenue: Money = Decimal("0")
    subtotal_revenue: Money = Decimal("0")
    total_tax: Money = Decimal("0")
    total_discounts: Money = Decimal("0")
    average_order_value: Money = Decimal("0")
    collected_revenue: Money = Decimal("0")
    pending_revenue: Money = Decimal("0")
    overdue_revenue: Money = Decimal("0")
    unique_customers: int = 0
    collection_rate: str = "0.00"
    discount_rate: str = "0.00"


class MonthlySales(CamelModel):
    month: str
    total_sales: Money
    total_orders: int
    average_order_value: Money
    unique_customers: int
    paid_amount: Money
    pending_amount: Money
    collection_rate: str


class GrossMargin(CamelModel):
    total_revenue: Money = Decimal("0")
    total_cogs: Money = Field(default=Decimal("0"), alias="totalCOGS")
    gross_profit: Money = Decimal("0")
    gross_margin_percentage: str = "0.00"


# =============================================================================
# CUSTOMERS
# =============================================================================

class SegmentBreakdown(CamelModel):
    segment: str
    customer_count: int = 0
    total_orders: int = 0
    total_revenue: Money = Decimal("0")
    average_order_value: Money = Decimal("0")
    active_last_30_days: int = Field(default=0, alias="activeLast30Days")
    customer_share: str = "0.00"
    revenue_share: str = "0.00"


class CustomerTypeBreakdown(CamelModel):
    customer_type: str
    customer_count: int = 0
    total_orders: int = 0
    total_revenue: Money = Decimal("0")
    customer_share: str = "0.00"
    revenue_share: str = "0.00"


class SegmentAnalysis(CamelModel):
    total_customers: int = 0
    total_revenue: Money = Decimal("0")
    segments: List[SegmentBreakdown] = Field(default_factory=list)
    customer_types: List[CustomerTypeBreakdown] = Field(default_factory=list)


class TopCustomer(CamelModel):
    customer_id: int
    customer_code: Optional[str] = None
    name: str
    email: Optional[str] = None
    segment: Optional[str] = None
    customer_type: Optional[str] = None
    total_sales: Money
    total_orders: int
    average_order_value: Money
    first_order_date: Optional[datetime] = None
    last_order_date: Optional[datetime] = None
    customer_lifetime_days: int = 0


class RetentionMetrics(CamelModel):
    period_days: int
    customers_at_start: int = 0
    customers_at_end: int = 0
    retained_customers: int = 0
    new_customers: int = 0
    retention_rate: str = "0.00"


class ChurnMetrics(CamelModel):
    period_days: int
    customers_at_start: int = 0
    churned_customers: int = 0
    churn_rate: str = "0.00"


class RfmCustomerScore(CamelModel):
    customer_id: int
    name: Optional[str] = None
    recency_days: int
    frequency: int
    monetary: Money
    recency_score: int
    frequency_score: int
    monetary_score: int
    rfm_score: int
    rfm_code: str
    rfm_segment: str


class RfmSegmentSummary(CamelModel):
    segment: str
    count: int
    percentage: str
    avg_recency: Money
    avg_frequency: Money
    avg_monetary: Money


class RfmAnalysis(CamelModel):
    total_customers: int = 0
    segments: List[RfmSegmentSummary] = Field(default_factory=list)
    customers: List[RfmCustomerScore] = Field(default_factory=list)


# =============================================================================
# PRODUCTS
# =============================================================================

class TopProduct(CamelModel):
    product_id: int
    name: str
    sku: Optional[str] = None
    category: Optional[str] = None
    times_ordered: int
    total_quantity_sold: int
    total_revenue: Money
    average_selling_price: Money


class CategoryPerformance(CamelModel):
    category: str
    total_products: int = 0
    total_orders: int = 0
    total_units_sold: int = 0
    total_revenue: Money = Decimal("0")
    average_price: Money = Decimal("0")
    total_stock_value: Money = Decimal("0")
    revenue_share: str = "0.00"


class InventoryHealth(CamelModel):
    total_products: int = 0
    active_products: int = 0
    low_stock_products: int = 0
    out_of_stock_products: int = 0
    total_inventory_value: Money = Decimal("0")
    average_stock_level: Money = Decimal("0")
    total_units_in_stock: int = 0
    stock_health_rate: str = "0.00"
    stockout_rate: str = "0.00"


class InventoryTurnover(CamelModel):
    cost_of_goods_sold: Money = Decimal("0")
    opening_inventory_value: Money = Decimal("0")
    closing_inventory_value: Money = Decimal("0")
    average_inventory_value: Money = Decimal("0")
    turnover_ratio: str = "0.00"


# =============================================================================
# ORDERS / PAYMENTS
# =============================================================================

class StatusBreakdown(CamelModel):
    status: str
    count: int = 0
    total_value: Money = Decimal("0")


class OrderMetrics(CamelModel):
    total_orders: int = 0
    by_status: List[StatusBreakdown] = Field(default_factory=list)
    by_payment_status: List[StatusBreakdown] = Field(default_factory=list)
    fulfillment_rate: str = "0.00"
    cancellation_rate: str = "0.00"


class PaymentGroup(CamelModel):
    payment_status: str
    payment_method: Optional[str] = None
    count: int
    total_amount: Money
    percentage: str
    average_days_to_payment: str = "0.00"


class PaymentAnalysis(CamelModel):
    total_amount: Money = Decimal("0")
    total_transactions: int = 0
    breakdown: List[PaymentGroup] = Field(default_factory=list)


class DsoMetrics(CamelModel):
    accounts_receivable: Money = Decimal("0")
    credit_revenue: Money = Decimal("0")
    days_in_period: int = 0
    dso: str = "0.00"
    average_days_to_payment: str = "0.00"
    median_days_to_payment: str = "0.00"
    max_days_to_payment: str = "0.00"
    min_days_to_payment: str = "0.00"
    total_paid_orders: int = 0


# =============================================================================
# GROWTH
# =============================================================================

class MoneyGrowth(CamelModel):
    current: Money = Decimal("0")
    previous: Money = Decimal("0")
    growth_rate: str = "0.00"


class CountGrowth(CamelModel):
    current: int = 0
    previous: int = 0
    growth_rate: str = "0.00"


class GrowthMetrics(CamelModel):
    current_period: PeriodInfo
    previous_period: PeriodInfo
    revenue: MoneyGrowth
    orders: CountGrowth
    customers: CountGrowth


# =============================================================================
# DASHBOARD
# =============================================================================

class SalesPerformance(CamelModel):
    top_customers: List[TopCustomer] = Field(default_factory=list)
    monthly_sales: List[MonthlySales] = Field(default_factory=list)
    top_products: List[TopProduct] = Field(default_factory=list)
    category_performance: List[CategoryPerformance] = Field(default_factory=list)


class CustomerAnalytics(SegmentAnalysis):
    retention_rate: str = "0.00"
    churn_rate: str = "0.00"


class RevenueAnalytics(RevenueMetrics):
    gross_margin_percentage: str = "0.00"
    gross_profit: Money = Decimal("0")


class OrderAnalytics(OrderMetrics):
    average_dso: str = Field(default="0.00", alias="averageDSO")


class InventoryInsights(InventoryHealth):
    turnover_ratio: str = "0.00"


class Dashboard(CamelModel):
    period: DashboardPeriod
    sales_performance: SalesPerformance
    customer_analytics: CustomerAnalytics
    revenue_analytics: RevenueAnalytics
    order_analytics: OrderAnalytics
    inventory_insights: InventoryInsights
    growth_metrics: GrowthMetrics
    payment_analysis: PaymentAnalysis


def extend(model_cls: type, base: BaseModel, **extra: Any) -> BaseModel:
    """Build a dashboard section from a metric bundle plus extra fields"""
    return model_cls(**base.model_dump(), **extra)
