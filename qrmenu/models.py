"""
SQLAlchemy Database Models

Tables used by the guest ordering workflow:
- Shops (read-only here, managed by the admin backend)
- Guest and staff-visible orders with their line items

Author: Khalil Bannouri
Version: 1.0.0
"""

import enum
import uuid

from sqlalchemy import Column, Integer, String, Float, DateTime, Enum, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from qrmenu.database import Base


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def _new_id() -> str:
    return str(uuid.uuid4())


class Shop(Base):
    """
    Restaurant location with its registered coordinates.

    A shop with is_active = False has its QR menu switched off.
    """
    __tablename__ = "shops"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(100), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    orders = relationship("Order", back_populates="shop")

    def __repr__(self):
        return f"<Shop {self.id} - {self.name} - {'active' if self.is_active else 'inactive'}>"


class Order(Base):
    """
    Main Order table.

    Guest orders carry the session id of the diner who placed them;
    orders from authenticated users carry owner_user_id instead.
    Only status changes after creation.
    """
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_new_id)
    shop_id = Column(String(36), ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True)

    # =========================================================================
    # CUSTOMER INFORMATION
    # =========================================================================
    session_id = Column(String(64), nullable=True, index=True)
    owner_user_id = Column(String(36), nullable=True, index=True)
    customer_name = Column(String(100), nullable=True)
    customer_contact = Column(String(100), nullable=True)

    # =========================================================================
    # PRICING
    # =========================================================================
    total_amount = Column(Float, nullable=False)

    # =========================================================================
    # ORDER STATUS
    # =========================================================================
    status = Column(
        Enum(OrderStatus, values_callable=lambda e: [s.value for s in e]),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True
    )

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    shop = relationship("Shop", back_populates="orders")
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<Order {self.id} - {self.customer_name} - {self.status.value}>"


class OrderItem(Base):
    """
    One line of an order.

    unit_price is the price at the time of ordering, kept even if the
    product's price changes later.
    """
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=_new_id)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(100), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)

    order = relationship("Order", back_populates="items")

    def __repr__(self):
        return f"<OrderItem {self.product_id} x{self.quantity}>"
