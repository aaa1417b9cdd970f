"""
Row Fetchers

Organization-scoped, period-scoped reads of the ERP row store. Every fetch
takes the organization id as a required argument and opens its own session,
so concurrent fetches of one request never share a session.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import Select, and_, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import contains_eager
import structlog

from erp_insights.database.models import (
    Customer,
    Order,
    OrderItem,
    OrderStatus,
    Product,
)
from erp_insights.insights.exceptions import ComputationError
from erp_insights.insights.periods import DateWindow

logger = structlog.get_logger(__name__)


def _within(stmt: Select, column, window: Optional[DateWindow]) -> Select:
    """Apply a half-open window filter on ``column``"""
    if window is None:
        return stmt
    if window.start is not None:
        stmt = stmt.where(column >= window.start)
    if window.end is not None:
        stmt = stmt.where(column < window.end)
    return stmt


class InsightsRepository:
    """Read-only access to orders, order items, customers and products"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def _scalars(self, stmt: Select, entity: str, org_id: int) -> list:
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return list(result.scalars().unique().all())
        except SQLAlchemyError as e:
            logger.error("Row fetch failed", entity=entity, org_id=org_id, error=str(e))
            raise ComputationError() from e

    async def fetch_orders(
        self,
        org_id: int,
        window: Optional[DateWindow] = None,
        include_cancelled: bool = False,
    ) -> List[Order]:
        """Orders of one organization dated inside ``window``"""
        stmt = select(Order).where(Order.org_id == org_id)
        if not include_cancelled:
            stmt = stmt.where(Order.status != OrderStatus.CANCELLED.value)
        stmt = _within(stmt, Order.order_date, window).order_by(Order.id)

        orders = await self._scalars(stmt, "orders", org_id)
        logger.debug("Fetched orders", org_id=org_id, count=len(orders))
        return orders

    async def fetch_order_items(
        self,
        org_id: int,
        window: Optional[DateWindow] = None,
    ) -> List[OrderItem]:
        """
        Line items of non-cancelled orders of one organization.

        Items are scoped through their order and joined only to products of
        the same organization. ``item.order`` is loaded with the row.
        """
        stmt = (
            select(OrderItem)
            .join(OrderItem.order)
            .join(
                Product,
                and_(Product.id == OrderItem.product_id, Product.org_id == org_id),
            )
            .where(
                Order.org_id == org_id,
                Order.status != OrderStatus.CANCELLED.value,
            )
            .options(contains_eager(OrderItem.order))
        )
        stmt = _within(stmt, Order.order_date, window).order_by(OrderItem.id)

        items = await self._scalars(stmt, "order_items", org_id)
        logger.debug("Fetched order items", org_id=org_id, count=len(items))
        return items

    async def fetch_customers(self, org_id: int) -> List[Customer]:
        stmt = (
            select(Customer)
            .where(Customer.org_id == org_id)
            .order_by(Customer.customer_id)
        )
        customers = await self._scalars(stmt, "customers", org_id)
        logger.debug("Fetched customers", org_id=org_id, count=len(customers))
        return customers

    async def fetch_products(self, org_id: int) -> List[Product]:
        stmt = select(Product).where(Product.org_id == org_id).order_by(Product.id)
        products = await self._scalars(stmt, "products", org_id)
        logger.debug("Fetched products", org_id=org_id, count=len(products))
        return products

    async def fetch_latest_order_date(self, org_id: int) -> Optional[datetime]:
        """Date of the most recent non-cancelled order, ``None`` without orders"""
        stmt = select(func.max(Order.order_date)).where(
            Order.org_id == org_id,
            Order.status != OrderStatus.CANCELLED.value,
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Row fetch failed", entity="latest_order", org_id=org_id, error=str(e))
            raise ComputationError() from e
