"""
Inventory Service - product catalog and stock movements

Handles:
- Product CRUD with stock-derived status
- Stock transactions (IN / OUT / RETURN / ADJUSTMENT)
- Bulk import and duplicate cleanup
- Customer returns
"""

from datetime import datetime
from typing import Optional, List, Tuple, Dict, Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select, func, or_, delete
from sqlalchemy.ext.asyncio import AsyncSession

from carworld.core.exceptions import (
    ProductNotFoundError, InsufficientStockError, InvalidStateTransitionError,
    ResourceNotFoundError, ValidationError,
)
from carworld.core.logging_config import logger
from carworld.models.product import (
    Product, ProductStatus, InventoryTransaction, TransactionType,
    ProductReturn, ReturnStatus,
)
from carworld.schemas.product import (
    ProductCreate, ProductUpdate, InventoryTransactionCreate,
    ProductReturnCreate, ProductReturnUpdate,
)
from carworld.services.notification_service import notification_service


def derive_status(stock_qty: int, min_stock_level: int, current: Optional[ProductStatus] = None) -> ProductStatus:
    """
    Stock driven status. DISCONTINUED stays put once set.
    """
    if current == ProductStatus.DISCONTINUED:
        return current
    if stock_qty <= 0:
        return ProductStatus.OUT_OF_STOCK
    if stock_qty <= min_stock_level:
        return ProductStatus.LOW_STOCK
    return ProductStatus.IN_STOCK


def apply_quantity(tx_type: TransactionType, current: int, quantity: int) -> int:
    if tx_type in (TransactionType.IN, TransactionType.RETURN):
        return current + quantity
    if tx_type == TransactionType.OUT:
        return current - quantity
    return quantity  # ADJUSTMENT sets an absolute count


RETURN_TRANSITIONS = {
    ReturnStatus.PENDING: {ReturnStatus.APPROVED, ReturnStatus.REJECTED},
    ReturnStatus.APPROVED: {ReturnStatus.PROCESSED},
    ReturnStatus.REJECTED: set(),
    ReturnStatus.PROCESSED: set(),
}


class InventoryService:

    # ==================== PRODUCTS ====================

    async def get_product(self, db: AsyncSession, product_id: str) -> Product:
        product = await db.get(Product, product_id)
        if not product:
            raise ProductNotFoundError(product_id)
        return product

    def list_products_query(
        self,
        search: Optional[str] = None,
        category: Optional[str] = None,
        status: Optional[ProductStatus] = None,
        brand: Optional[str] = None,
    ):
        query = select(Product)
        if search:
            term = f"%{search}%"
            query = query.where(or_(
                Product.name.ilike(term),
                Product.brand.ilike(term),
                Product.category.ilike(term),
                Product.barcode.ilike(term),
            ))
        if category:
            query = query.where(Product.category == category)
        if status:
            query = query.where(Product.status == status)
        if brand:
            query = query.where(Product.brand == brand)
        return query.order_by(Product.created_at.desc())

    async def create_product(self, db: AsyncSession, data: ProductCreate) -> Product:
        values = data.model_dump(exclude={"status"})
        product = Product(**values)
        product.status = derive_status(product.stock_qty, product.min_stock_level, data.status)
        db.add(product)
        await db.commit()
        await db.refresh(product)
        logger.info(f"Created product {product.name} ({product.brand})")
        return product

    async def update_product(self, db: AsyncSession, product_id: str, data: ProductUpdate) -> Product:
        product = await self.get_product(db, product_id)
        stock_before = (product.stock_qty, product.min_stock_level)
        update_dict = data.model_dump(exclude_unset=True)
        explicit_status = update_dict.pop("status", None)
        for field, value in update_dict.items():
            setattr(product, field, value)

        # An explicit status wins (this is how a product gets discontinued or revived)
        if explicit_status is not None:
            product.status = ProductStatus(explicit_status)
            if product.status != ProductStatus.DISCONTINUED:
                product.status = derive_status(product.stock_qty, product.min_stock_level)
        else:
            product.status = derive_status(product.stock_qty, product.min_stock_level, product.status)

        product.updated_at = datetime.utcnow()
        if (product.stock_qty, product.min_stock_level) != stock_before:
            notification_service.notify_low_stock(db, product)
        await db.commit()
        await db.refresh(product)
        return product

    async def delete_product(self, db: AsyncSession, product_id: str) -> None:
        product = await self.get_product(db, product_id)
        await db.delete(product)
        await db.commit()

    async def low_stock(self, db: AsyncSession) -> List[Product]:
        result = await db.execute(
            select(Product)
            .where(
                Product.stock_qty <= Product.min_stock_level,
                Product.status != ProductStatus.DISCONTINUED,
            )
            .order_by(Product.stock_qty.asc())
        )
        return list(result.scalars().all())

    async def resolve_by_ids(self, db: AsyncSession, ids: List[str]) -> List[Product]:
        if not ids:
            return []
        result = await db.execute(select(Product).where(Product.id.in_(ids)))
        return list(result.scalars().all())

    async def import_products(self, db: AsyncSession, rows: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Create products row by row. Invalid rows are reported, valid ones kept.
        """
        created = 0
        errors = []
        for index, row in enumerate(rows, start=1):
            try:
                data = ProductCreate(**row)
            except PydanticValidationError as e:
                first = e.errors()[0]
                field = ".".join(str(p) for p in first.get("loc", ()))
                errors.append({"row": index, "error": f"{field}: {first.get('msg')}"})
                continue
            product = Product(**data.model_dump(exclude={"status"}))
            product.status = derive_status(product.stock_qty, product.min_stock_level, data.status)
            db.add(product)
            created += 1

        await db.commit()
        logger.info(f"Product import: {created} created, {len(errors)} failed")
        return {"created": created, "failed": len(errors), "errors": errors}

    async def delete_duplicates(self, db: AsyncSession) -> Dict[str, int]:
        """Products sharing name + brand (case-insensitive): keep the oldest"""
        result = await db.execute(select(Product).order_by(Product.created_at.asc()))
        seen: Dict[Tuple[str, str], str] = {}
        duplicate_ids = []
        groups = set()
        for product in result.scalars().all():
            key = (product.name.strip().lower(), product.brand.strip().lower())
            if key in seen:
                duplicate_ids.append(product.id)
                groups.add(key)
            else:
                seen[key] = product.id

        if duplicate_ids:
            await db.execute(delete(Product).where(Product.id.in_(duplicate_ids)))
            await db.commit()
        logger.info(f"Deleted {len(duplicate_ids)} duplicate products in {len(groups)} groups")
        return {"deleted": len(duplicate_ids), "groups": len(groups)}

    async def categories(self, db: AsyncSession) -> List[Dict[str, Any]]:
        result = await db.execute(
            select(Product.category, func.count(Product.id), func.coalesce(func.sum(Product.stock_qty), 0))
            .group_by(Product.category)
            .order_by(func.count(Product.id).desc())
        )
        return [
            {"category": category, "products": count, "stock": int(stock)}
            for category, count, stock in result.all()
        ]

    # ==================== STOCK MOVEMENTS ====================

    async def apply_transaction(
        self,
        db: AsyncSession,
        product: Product,
        tx_type: TransactionType,
        quantity: int,
        reason: str,
        user_id: Optional[str] = None,
        **extra,
    ) -> InventoryTransaction:
        """
        Move stock and stage the audit row on the session without committing,
        so callers can bundle several movements into one unit of work.
        """
        if quantity < 0:
            raise ValidationError("Quantity cannot be negative", field="quantity")
        if tx_type != TransactionType.ADJUSTMENT and quantity == 0:
            raise ValidationError("Quantity must be greater than zero", field="quantity")

        previous = product.stock_qty
        new_stock = apply_quantity(tx_type, previous, quantity)
        if new_stock < 0:
            raise InsufficientStockError(product.name, previous, quantity)

        product.stock_qty = new_stock
        product.status = derive_status(new_stock, product.min_stock_level, product.status)
        product.updated_at = datetime.utcnow()

        transaction = InventoryTransaction(
            product_id=product.id,
            type=tx_type,
            quantity=quantity,
            reason=reason,
            user_id=user_id,
            previous_stock=previous,
            new_stock=new_stock,
            **extra,
        )
        db.add(transaction)

        notification_service.notify_low_stock(db, product)
        return transaction

    async def record_transaction(
        self,
        db: AsyncSession,
        data: InventoryTransactionCreate,
        user_id: Optional[str] = None,
    ) -> InventoryTransaction:
        product = await self.get_product(db, data.product_id)
        transaction = await self.apply_transaction(
            db, product, data.type, data.quantity, data.reason, user_id,
            batch_number=data.batch_number,
            unit_cost=data.unit_cost,
            warehouse_location=data.warehouse_location,
            notes=data.notes,
        )
        await db.commit()
        await db.refresh(transaction)
        logger.info(
            f"Stock {data.type.value} {data.quantity} for {product.name}: "
            f"{transaction.previous_stock} -> {transaction.new_stock}"
        )
        return transaction

    def list_transactions_query(
        self,
        product_id: Optional[str] = None,
        tx_type: Optional[TransactionType] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ):
        query = select(InventoryTransaction)
        if product_id:
            query = query.where(InventoryTransaction.product_id == product_id)
        if tx_type:
            query = query.where(InventoryTransaction.type == tx_type)
        if start_date:
            query = query.where(InventoryTransaction.date >= start_date)
        if end_date:
            query = query.where(InventoryTransaction.date <= end_date)
        return query.order_by(InventoryTransaction.date.desc())

    # ==================== RETURNS ====================

    async def get_return(self, db: AsyncSession, return_id: str) -> ProductReturn:
        product_return = await db.get(ProductReturn, return_id)
        if not product_return:
            raise ResourceNotFoundError("Product Return", return_id)
        return product_return

    def list_returns_query(self, status: Optional[ReturnStatus] = None, product_id: Optional[str] = None):
        query = select(ProductReturn)
        if status:
            query = query.where(ProductReturn.status == status)
        if product_id:
            query = query.where(ProductReturn.product_id == product_id)
        return query.order_by(ProductReturn.return_date.desc())

    async def create_return(self, db: AsyncSession, data: ProductReturnCreate) -> ProductReturn:
        await self.get_product(db, data.product_id)
        product_return = ProductReturn(**data.model_dump(), status=ReturnStatus.PENDING)
        db.add(product_return)
        await db.commit()
        await db.refresh(product_return)
        return product_return

    async def update_return(
        self,
        db: AsyncSession,
        return_id: str,
        data: ProductReturnUpdate,
        user_id: Optional[str] = None,
    ) -> ProductReturn:
        """
        Status moves pending -> approved|rejected -> processed. Processing a
        restockable return puts the quantity back on the shelf.
        """
        product_return = await self.get_return(db, return_id)
        update_dict = data.model_dump(exclude_unset=True)
        target = update_dict.pop("status", None)

        for field, value in update_dict.items():
            setattr(product_return, field, value)

        if target is not None and ReturnStatus(target) != product_return.status:
            target = ReturnStatus(target)
            if target not in RETURN_TRANSITIONS[product_return.status]:
                raise InvalidStateTransitionError(
                    "Product Return", product_return.status.value, target.value
                )
            product_return.status = target
            product_return.processed_by = user_id
            product_return.processed_date = datetime.utcnow()

            if target == ReturnStatus.PROCESSED and product_return.restockable:
                product = await self.get_product(db, product_return.product_id)
                await self.apply_transaction(
                    db, product, TransactionType.RETURN, product_return.quantity,
                    f"Customer return: {product_return.reason}", user_id,
                    return_id=product_return.id,
                )

        product_return.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(product_return)
        return product_return


inventory_service = InventoryService()
