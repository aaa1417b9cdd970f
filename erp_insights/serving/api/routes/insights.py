"""
Insights API Endpoints

Dashboard and single-metric endpoints. Every response is wrapped in the
``{success, data}`` envelope.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
import structlog

from erp_insights.insights import schemas
from erp_insights.insights.schemas import ApiResponse
from erp_insights.insights.service import InsightsService
from erp_insights.serving.api.dependencies import get_insights_service, get_organization_id

router = APIRouter()
logger = structlog.get_logger(__name__)

StartDate = Query(None, alias="startDate", description="First day of the period (YYYY-MM-DD)")
EndDate = Query(None, alias="endDate", description="Last day of the period, inclusive (YYYY-MM-DD)")
Limit = Query(None, description="Number of entries to return")
Days = Query(None, description="Window length in days")


@router.get("", response_model=ApiResponse[schemas.Dashboard])
async def get_dashboard(
    start_date: Optional[date] = StartDate,
    end_date: Optional[date] = EndDate,
    limit: Optional[int] = Limit,
    org_id: int = Depends(get_organization_id),
    service: InsightsService = Depends(get_insights_service),
):
    """
    Full dashboard: sales performance, customer, revenue, order, inventory,
    growth and payment analytics in one payload.
    """
    logger.info("get_dashboard called", org_id=org_id, start_date=str(start_date), end_date=str(end_date))
    data = await service.get_dashboard(org_id, start_date, end_date, limit)
    return ApiResponse(data=data)


@router.get("/customers/top", response_model=ApiResponse[List[schemas.TopCustomer]])
async def get_top_customers(
    start_date: Optional[date] = StartDate,
    end_date: Optional[date] = EndDate,
    limit: Optional[int] = Limit,
    org_id: int = Depends(get_organization_id),
    service: InsightsService = Depends(get_insights_service),
):
    """Customers ranked by total sales"""
    data = await service.get_top_customers(org_id, start_date, end_date, limit)
    return ApiResponse(data=data)


@router.get("/customers/segments", response_model=ApiResponse[schemas.SegmentAnalysis])
async def get_customer_segments(
    start_date: Optional[date] = StartDate,
    end_date: Optional[date] = EndDate,
    org_id: int = Depends(get_organization_id),
    service: InsightsService = Depends(get_insights_service),
):
    """Customers grouped by segment and by customer type"""
    data = await service.get_customer_segments(org_id, start_date, end_date)
    return ApiResponse(data=data)


@router.get("/customers/retention", response_model=ApiResponse[schemas.RetentionMetrics])
async def get_customer_retention(
    days: Optional[int] = Days,
    org_id: int = Depends(get_organization_id),
    service: InsightsService = Depends(get_insights_service),
):
    data = await service.get_retention(org_id, days)
    return ApiResponse(data=data)


@router.get("/customers/churn", response_model=ApiResponse[schemas.ChurnMetrics])
async def get_customer_churn(
    days: Optional[int] = Days,
    org_id: int = Depends(get_organization_id),
    service: InsightsService = Depends(get_insights_service),
):
    data = await service.get_churn(org_id, days)
    return ApiResponse(data=data)


@router.get("/customers/rfm", response_model=ApiResponse[schemas.RfmAnalysis])
async def get_customer_rfm(
    start_date: Optional[date] = StartDate,
    end_date: Optional[date] = EndDate,
    org_id: int = Depends(get_organization_id),
    service: InsightsService = Depends(get_insights_service),
):
    """RFM scores and segment summary"""
    data = await service.get_rfm(org_id, start_date, end_date)
    return ApiResponse(data=data)


@router.get("/sales/monthly", response_model=ApiResponse[List[schemas.MonthlySales]])
async def get_monthly_sales(
    start_date: Optional[date] = StartDate,
    end_date: Optional[date] = EndDate,
    org_id: int = Depends(get_organization_id),
    service: InsightsService = Depends(get_insights_service),
):
    """One row per calendar month, newest first"""
    data = await service.get_monthly_sales(org_id, start_date, end_date)
    return ApiResponse(data=data)


@router.get("/products/top", response_model=ApiResponse[List[schemas.TopProduct]])
async def get_top_products(
    start_date: Optional[date] = StartDate,
    end_date: Optional[date] = EndDate,
    limit: Optional[int] = Limit,
    org_id: int = Depends(get_organization_id),
    service: InsightsService = Depends(get_insights_service),
):
    """Products ranked by revenue, ties by ascending id"""
    data = await service.get_top_products(org_id, start_date, end_date, limit)
    return ApiResponse(data=data)


@router.get("/categories/performance", response_model=ApiResponse[List[schemas.CategoryPerformance]])
async def get_category_performance(
    start_date: Optional[date] = StartDate,
    end_date: Optional[date] = EndDate,
    org_id: int = Depends(get_organization_id),
    service: InsightsService = Depends(get_insights_service),
):
    data = await service.get_category_performance(org_id, start_date, end_date)
    return ApiResponse(data=data)


@router.get("/revenue/metrics", response_model=ApiResponse[schemas.RevenueMetrics])
async def get_revenue_metrics(
    start_date: Optional[date] = StartDate,
    end_date: Optional[date] = EndDate,
    org_id: int = Depends(get_organization_id),
    service: InsightsService = Depends(get_insights_service),
):
    """Revenue, collection and discount metrics"""
    data = await service.get_revenue_metrics(org_id, start_date, end_date)
    return ApiResponse(data=data)


@router.get("/revenue/gross-margin", response_model=ApiResponse[schemas.GrossMargin])
async def get_gross_margin(
    start_date: Optional[date] = StartDate,
    end_date: Optional[date] = EndDate,
    org_id: int = Depends(get_organization_id),
    service: InsightsService = Depends(get_insights_service),
):
    data = await service.get_gross_margin(org_id, start_date, end_date)
    return ApiResponse(data=data)


@router.get("/payments/analysis", response_model=ApiResponse[schemas.PaymentAnalysis])
async def get_payment_analysis(
    start_date: Optional[date] = StartDate,
    end_date: Optional[date] = EndDate,
    org_id: int = Depends(get_organization_id),
    service: InsightsService = Depends(get_insights_service),
):
    """Orders grouped by payment status and method"""
    data = await service.get_payment_analysis(org_id, start_date, end_date)
    return ApiResponse(data=data)


@router.get("/payments/dso", response_model=ApiResponse[schemas.DsoMetrics])
async def get_dso(
    start_date: Optional[date] = StartDate,
    end_date: Optional[date] = EndDate,
    org_id: int = Depends(get_organization_id),
    service: InsightsService = Depends(get_insights_service),
):
    """Days Sales Outstanding and days-to-payment statistics"""
    data = await service.get_dso(org_id, start_date, end_date)
    return ApiResponse(data=data)


@router.get("/orders/metrics", response_model=ApiResponse[schemas.OrderMetrics])
async def get_order_metrics(
    start_date: Optional[date] = StartDate,
    end_date: Optional[date] = EndDate,
    org_id: int = Depends(get_organization_id),
    service: InsightsService = Depends(get_insights_service),
):
    data = await service.get_order_metrics(org_id, start_date, end_date)
    return ApiResponse(data=data)


@router.get("/inventory/health", response_model=ApiResponse[schemas.InventoryHealth])
async def get_inventory_health(
    org_id: int = Depends(get_organization_id),
    service: InsightsService = Depends(get_insights_service),
):
    """Stock health and stockout rates over active products"""
    data = await service.get_inventory_health(org_id)
    return ApiResponse(data=data)


@router.get("/inventory/turnover", response_model=ApiResponse[schemas.InventoryTurnover])
async def get_inventory_turnover(
    start_date: Optional[date] = StartDate,
    end_date: Optional[date] = EndDate,
    org_id: int = Depends(get_organization_id),
    service: InsightsService = Depends(get_insights_service),
):
    data = await service.get_inventory_turnover(org_id, start_date, end_date)
    return ApiResponse(data=data)


@router.get("/growth/metrics", response_model=ApiResponse[schemas.GrowthMetrics])
async def get_growth_metrics(
    org_id: int = Depends(get_organization_id),
    service: InsightsService = Depends(get_insights_service),
):
    """Month-over-month growth of revenue, orders and customers"""
    data = await service.get_growth_metrics(org_id)
    return ApiResponse(data=data)
