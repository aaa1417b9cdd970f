"""
Database Models - ERP Transactional Schema

Read-only mappings of the rows owned by the order, customer and product
management subsystem. The insights engine never writes them.

Tables:
- organizations: tenants
- customers: CRM customers with cached purchase statistics
- products: catalog with pricing and stock levels
- orders: order headers with lifecycle and payment status
- order_items: order lines
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, List

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# ENUMERATIONS
# =============================================================================

class OrderStatus(str, Enum):
    """Order lifecycle status"""
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Order payment status"""
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    REFUNDED = "refunded"


class CustomerSegment(str, Enum):
    """Commercial customer segment"""
    VIP = "VIP"
    PREMIUM = "Premium"
    STANDARD = "Standard"
    BASIC = "Basic"
    POTENTIAL = "Potential"


class CustomerType(str, Enum):
    """Customer legal type"""
    CORPORATE = "Corporate"
    INDIVIDUAL = "Individual"
    GOVERNMENT = "Government"
    OTHER = "Other"


# =============================================================================
# TABLES
# =============================================================================

class Organization(Base):
    """Tenant owning every other row"""
    __tablename__ = "organizations"

    org_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class Customer(Base):
    """
    Customer Table

    ``total_lifetime_value`` and ``total_orders`` are maintained by the order
    subsystem and may lag behind the live order rows.
    """
    __tablename__ = "customers"

    customer_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    org_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("organizations.org_id"), nullable=False
    )
    customer_code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255))

    segment: Mapped[Optional[str]] = mapped_column(String(50))
    customer_type: Mapped[Optional[str]] = mapped_column(String(50))
    payment_terms: Mapped[Optional[int]] = mapped_column(Integer, default=30)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Cached purchase statistics
    first_purchase_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    last_purchase_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    total_lifetime_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), default=0)
    total_orders: Mapped[Optional[int]] = mapped_column(Integer, default=0)
    rfm_score: Mapped[Optional[str]] = mapped_column(String(10))
    rfm_segment: Mapped[Optional[str]] = mapped_column(String(50))

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("org_id", "customer_code", name="unique_customer_code_per_org"),
        Index("ix_customers_org_id", "org_id"),
        Index("ix_customers_segment", "segment"),
    )


class Product(Base):
    """
    Product Table

    ``price`` is tax-inclusive, ``base_price`` excludes tax.
    """
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    org_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("organizations.org_id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)

    # Pricing
    base_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    cost_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    tax_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), default=0)

    # Inventory
    stock_quantity: Mapped[int] = mapped_column(Integer, default=0)
    low_stock_threshold: Mapped[Optional[int]] = mapped_column(Integer, default=10)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("org_id", "sku", name="unique_sku_per_org"),
        Index("ix_products_org_id", "org_id"),
        Index("ix_products_category", "category"),
        Index("ix_products_low_stock", "stock_quantity", "low_stock_threshold"),
    )


class Order(Base):
    """
    Order Table

    Invariant maintained upstream: total = subtotal - discount_amount + tax_amount.
    """
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    org_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("organizations.org_id"), nullable=False
    )
    customer_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("customers.customer_id"), nullable=False
    )
    order_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    order_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Status
    status: Mapped[str] = mapped_column(String(20), default=OrderStatus.DRAFT.value)
    payment_status: Mapped[str] = mapped_column(String(20), default=PaymentStatus.PENDING.value)
    payment_method: Mapped[Optional[str]] = mapped_column(String(50))

    # Financials
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    discount_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), default=0)
    tax_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), default=0)
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    paid_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), default=0)

    # Timestamps
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    shipped_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Relationships
    items: Mapped[List["OrderItem"]] = relationship(back_populates="order")

    __table_args__ = (
        Index("ix_orders_org_id", "org_id"),
        Index("ix_orders_customer_id", "customer_id"),
        Index("ix_orders_status", "status"),
        Index("ix_orders_payment_status", "payment_status"),
        Index("ix_orders_date_range", "org_id", "order_date"),
    )


class OrderItem(Base):
    """
    Order Item Table

    Line amounts are stored at order time: subtotal = quantity * unit_price,
    total = subtotal - discount_amount + tax_amount.
    """
    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("orders.id"), nullable=False
    )
    product_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("products.id"), nullable=False
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    tax_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), default=0)
    discount_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), default=0)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    order: Mapped["Order"] = relationship(back_populates="items")

    __table_args__ = (
        Index("ix_order_items_order_id", "order_id"),
        Index("ix_order_items_product_id", "product_id"),
    )
