"""
Product catalog, stock movements and customer returns
"""

from sqlalchemy import (
    Column, String, Boolean, DateTime, Integer, Float, ForeignKey,
    Enum as SQLEnum, Text, JSON, Index,
)
from datetime import datetime
import enum

from carworld.core.database import Base
from carworld.core.types import GUID, generate_uuid


class ProductStatus(str, enum.Enum):
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    DISCONTINUED = "discontinued"


class TransactionType(str, enum.Enum):
    """Stock movement kind"""
    IN = "IN"                   # Purchase / restock
    OUT = "OUT"                 # Sale / consumption
    RETURN = "RETURN"           # Customer return put back on the shelf
    ADJUSTMENT = "ADJUSTMENT"   # Stock count correction (absolute)


class ReturnReason(str, enum.Enum):
    DEFECTIVE = "defective"
    DAMAGED = "damaged"
    WRONG_ITEM = "wrong_item"
    NOT_AS_DESCRIBED = "not_as_described"
    OTHER = "other"


class ReturnStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSED = "processed"


class Product(Base):
    __tablename__ = "products"

    __table_args__ = (
        Index('ix_products_category', 'category'),
        Index('ix_products_status', 'status'),
        Index('ix_products_name_brand', 'name', 'brand'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=False)
    brand = Column(String(100), nullable=False)
    model_compatibility = Column(JSON, default=list, nullable=False)
    warranty = Column(String(255), nullable=True)

    # Pricing (INR)
    mrp = Column(Float, nullable=False)
    selling_price = Column(Float, nullable=False)
    discount = Column(Float, default=0, nullable=False)

    # Stock
    stock_qty = Column(Integer, default=0, nullable=False)
    min_stock_level = Column(Integer, default=10, nullable=False)
    status = Column(SQLEnum(ProductStatus), default=ProductStatus.IN_STOCK, nullable=False)

    variants = Column(JSON, default=list, nullable=False)
    images = Column(JSON, default=list, nullable=False)
    warehouse_location = Column(String(100), nullable=True)
    barcode = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Product {self.name} ({self.stock_qty})>"


class InventoryTransaction(Base):
    """Audit trail of every stock change"""
    __tablename__ = "inventory_transactions"

    __table_args__ = (
        Index('ix_inventory_transactions_product', 'product_id'),
        Index('ix_inventory_transactions_type', 'type'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    product_id = Column(GUID, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    type = Column(SQLEnum(TransactionType), nullable=False)
    quantity = Column(Integer, nullable=False)
    reason = Column(String(255), nullable=False)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    previous_stock = Column(Integer, nullable=False)
    new_stock = Column(Integer, nullable=False)

    batch_number = Column(String(100), nullable=True)
    unit_cost = Column(Float, nullable=True)
    warehouse_location = Column(String(100), nullable=True)
    return_id = Column(GUID, ForeignKey("product_returns.id", ondelete="SET NULL"), nullable=True)
    notes = Column(Text, nullable=True)

    date = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<InventoryTransaction {self.type.value} {self.quantity} of {self.product_id}>"


class ProductReturn(Base):
    __tablename__ = "product_returns"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    product_id = Column(GUID, ForeignKey("products.id", ondelete="CASCADE"), index=True, nullable=False)
    order_id = Column(GUID, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True)
    customer_id = Column(GUID, ForeignKey("customers.id", ondelete="SET NULL"), nullable=True)

    quantity = Column(Integer, nullable=False)
    reason = Column(String(255), nullable=False)
    condition = Column(SQLEnum(ReturnReason), default=ReturnReason.OTHER, nullable=False)
    status = Column(SQLEnum(ReturnStatus), default=ReturnStatus.PENDING, nullable=False)

    refund_amount = Column(Float, nullable=True)
    restockable = Column(Boolean, default=False, nullable=False)
    notes = Column(Text, nullable=True)

    return_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    processed_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    processed_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
