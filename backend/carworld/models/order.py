from sqlalchemy import Column, String, DateTime, Float, ForeignKey, Enum as SQLEnum, Text, JSON
from datetime import datetime
import enum

from carworld.core.database import Base
from carworld.core.types import GUID, generate_uuid


class OrderPaymentStatus(str, enum.Enum):
    PAID = "paid"
    PARTIAL = "partial"
    DUE = "due"


class DeliveryStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class Order(Base):
    """Counter sale of parts; items are [{product_id, quantity, price}]"""
    __tablename__ = "orders"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    order_number = Column(String(30), unique=True, nullable=False)  # ORD-202500001

    customer_id = Column(GUID, ForeignKey("customers.id", ondelete="SET NULL"), index=True, nullable=True)
    customer_name = Column(String(255), nullable=True)
    items = Column(JSON, default=list, nullable=False)

    total = Column(Float, nullable=False)
    discount = Column(Float, default=0, nullable=False)
    payment_status = Column(SQLEnum(OrderPaymentStatus), default=OrderPaymentStatus.DUE, nullable=False)
    paid_amount = Column(Float, default=0, nullable=False)

    salesperson_id = Column(GUID, ForeignKey("employees.id", ondelete="SET NULL"), index=True, nullable=True)

    delivery_status = Column(SQLEnum(DeliveryStatus), default=DeliveryStatus.PENDING, nullable=False)
    shipping_address = Column(Text, nullable=True)
    tracking_number = Column(String(100), nullable=True)
    delivery_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def net_amount(self) -> float:
        return round((self.total or 0) - (self.discount or 0), 2)

    def __repr__(self):
        return f"<Order {self.order_number}>"
