"""
Test Suite Configuration
"""
from datetime import datetime, timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from erp_insights.config import InsightsSettings
from erp_insights.database.models import (
    Base,
    Customer,
    Order,
    OrderItem,
    Organization,
    Product,
)

NOW = datetime(2024, 10, 20, 12, 0, 0)


def _money(value) -> Decimal:
    return Decimal(str(value))


@pytest.fixture
def now() -> datetime:
    """Fixed reference instant"""
    return NOW


@pytest.fixture
def insights_settings() -> InsightsSettings:
    """Aggregation settings with defaults"""
    return InsightsSettings()


# =============================================================================
# TRANSIENT ROW FACTORIES
# =============================================================================

@pytest.fixture
def make_order():
    """Build a transient Order; total defaults to subtotal - discount + tax"""
    counter = {"id": 0}

    def _make(
        customer_id: int = 1,
        order_date: datetime = NOW - timedelta(days=1),
        subtotal=100,
        discount_amount=0,
        tax_amount=0,
        total=None,
        paid_amount=0,
        status: str = "delivered",
        payment_status: str = "pending",
        payment_method: str = "card",
        paid_at: datetime = None,
        org_id: int = 1,
        id: int = None,
    ) -> Order:
        counter["id"] += 1
        order_id = id if id is not None else counter["id"]
        if total is None:
            total = _money(subtotal) - _money(discount_amount) + _money(tax_amount)
        return Order(
            id=order_id,
            org_id=org_id,
            customer_id=customer_id,
            order_number=f"ORD-{order_id:05d}",
            order_date=order_date,
            status=status,
            payment_status=payment_status,
            payment_method=payment_method,
            subtotal=_money(subtotal),
            discount_amount=_money(discount_amount),
            tax_amount=_money(tax_amount),
            total=_money(total),
            paid_amount=_money(paid_amount),
            paid_at=paid_at,
        )

    return _make


@pytest.fixture
def make_customer():
    """Build a transient Customer"""

    def _make(
        customer_id: int,
        segment: str = None,
        customer_type: str = None,
        name: str = None,
        org_id: int = 1,
    ) -> Customer:
        return Customer(
            customer_id=customer_id,
            org_id=org_id,
            customer_code=f"C-{customer_id:04d}",
            name=name or f"Customer {customer_id}",
            segment=segment,
            customer_type=customer_type,
        )

    return _make


@pytest.fixture
def make_product():
    """Build a transient Product"""

    def _make(
        id: int,
        category: str = "Hardware",
        price=100,
        cost_price=None,
        stock_quantity: int = 50,
        low_stock_threshold=10,
        is_active: bool = True,
        org_id: int = 1,
    ) -> Product:
        return Product(
            id=id,
            org_id=org_id,
            name=f"Product {id}",
            sku=f"SKU-{id:04d}",
            category=category,
            base_price=_money(price),
            price=_money(price),
            cost_price=_money(cost_price) if cost_price is not None else None,
            stock_quantity=stock_quantity,
            low_stock_threshold=low_stock_threshold,
            is_active=is_active,
        )

    return _make


@pytest.fixture
def make_item():
    """Build a transient OrderItem attached to its order"""
    counter = {"id": 0}

    def _make(order: Order, product_id: int, quantity: int, unit_price,
              discount_amount=0, total=None) -> OrderItem:
        counter["id"] += 1
        subtotal = _money(unit_price) * quantity
        if total is None:
            total = subtotal - _money(discount_amount)
        return OrderItem(
            id=counter["id"],
            order_id=order.id,
            product_id=product_id,
            quantity=quantity,
            unit_price=_money(unit_price),
            subtotal=subtotal,
            tax_amount=Decimal("0"),
            discount_amount=_money(discount_amount),
            total=_money(total),
            order=order,
        )

    return _make


# =============================================================================
# ROW STORE
# =============================================================================

@pytest.fixture
async def test_engine(tmp_path):
    """SQLite file database; every fetch opens its own connection"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'insights.db'}",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


def _order(id, org_id, customer_id, order_date, subtotal, discount, tax, paid,
           status, payment_status, method, paid_at=None) -> Order:
    total = _money(subtotal) - _money(discount) + _money(tax)
    return Order(
        id=id,
        org_id=org_id,
        customer_id=customer_id,
        order_number=f"ORD-{id}",
        order_date=order_date,
        status=status,
        payment_status=payment_status,
        payment_method=method,
        subtotal=_money(subtotal),
        discount_amount=_money(discount),
        tax_amount=_money(tax),
        total=total,
        paid_amount=_money(paid),
        paid_at=paid_at,
    )


def _item(id, order_id, product_id, quantity, unit_price) -> OrderItem:
    subtotal = _money(unit_price) * quantity
    return OrderItem(
        id=id,
        order_id=order_id,
        product_id=product_id,
        quantity=quantity,
        unit_price=_money(unit_price),
        tax_amount=Decimal("0"),
        discount_amount=Decimal("0"),
        subtotal=subtotal,
        total=subtotal,
    )


@pytest.fixture
async def seeded_store(session_factory) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """
    Two organizations.

    Organization 1:
        orders 101 (Oct, paid 990), 102 (Oct, partial 200 of 550),
        103 (Sep, pending 330), 104 (Oct, cancelled 400)
    Organization 2:
        order 201 (Oct, paid 99999) with one line on its own product and
        one line pointing at a product of organization 1
    """
    async with session_factory() as session:
        session.add_all([
            Organization(org_id=1, name="Acme Holdings"),
            Organization(org_id=2, name="Other Tenant"),
        ])
        await session.flush()

        session.add_all([
            Customer(customer_id=1, org_id=1, customer_code="C-1", name="Acme Corp",
                     segment="VIP", customer_type="Corporate"),
            Customer(customer_id=2, org_id=1, customer_code="C-2", name="Bob Buyer",
                     segment="Standard", customer_type="Individual"),
            Customer(customer_id=3, org_id=1, customer_code="C-3", name="City Council",
                     segment=None, customer_type="Government"),
            Customer(customer_id=20, org_id=2, customer_code="C-20", name="Foreign Co",
                     segment="VIP", customer_type="Corporate"),
            Product(id=10, org_id=1, name="Widget", sku="W-1", category="Hardware",
                    base_price=_money(100), price=_money(100), cost_price=_money(60),
                    stock_quantity=50, low_stock_threshold=10, is_active=True),
            Product(id=11, org_id=1, name="Gadget", sku="G-1", category="Hardware",
                    base_price=_money(50), price=_money(50), cost_price=None,
                    stock_quantity=0, low_stock_threshold=10, is_active=True),
            Product(id=12, org_id=1, name="Service Plan", sku="S-1", category="Services",
                    base_price=_money(250), price=_money(250), cost_price=_money(80),
                    stock_quantity=5, low_stock_threshold=10, is_active=True),
            Product(id=30, org_id=2, name="Foreign Widget", sku="W-1", category="Hardware",
                    base_price=_money(999), price=_money(999), cost_price=_money(500),
                    stock_quantity=1, low_stock_threshold=10, is_active=True),
        ])
        await session.flush()

        session.add_all([
            _order(101, 1, 1, datetime(2024, 10, 5), 1000, 100, 90, 990,
                   "delivered", "paid", "card", paid_at=datetime(2024, 10, 10)),
            _order(102, 1, 2, datetime(2024, 10, 12), 500, 0, 50, 200,
                   "shipped", "partial", "bank_transfer", paid_at=datetime(2024, 10, 15)),
            _order(103, 1, 1, datetime(2024, 9, 10), 300, 0, 30, 0,
                   "delivered", "pending", "bank_transfer"),
            _order(104, 1, 3, datetime(2024, 10, 15), 400, 0, 0, 0,
                   "cancelled", "pending", "card"),
            _order(201, 2, 20, datetime(2024, 10, 6), 99999, 0, 0, 99999,
                   "delivered", "paid", "card", paid_at=datetime(2024, 10, 6)),
        ])
        await session.flush()

        session.add_all([
            _item(1, 101, 10, 5, 100),
            _item(2, 101, 12, 2, 250),
            _item(3, 102, 11, 10, 50),
            _item(4, 103, 10, 3, 100),
            _item(5, 104, 10, 4, 100),
            _item(6, 201, 30, 100, "999.99"),
            _item(7, 201, 10, 7, 100),
        ])
        await session.commit()

    yield session_factory
