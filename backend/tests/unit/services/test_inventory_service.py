"""
Unit Tests for stock movements and orders
"""
import pytest
from sqlalchemy import select, func

from carworld.core.exceptions import InsufficientStockError, InvalidStateTransitionError, ValidationError
from carworld.models.order import Order, OrderPaymentStatus
from carworld.models.notification import Notification, NotificationType
from carworld.models.product import Product, ProductStatus, TransactionType, InventoryTransaction, ReturnStatus
from carworld.schemas.order import OrderCreate, OrderItem
from carworld.schemas.product import ProductUpdate, ProductReturnCreate, ProductReturnUpdate
from carworld.services.inventory_service import inventory_service, derive_status, apply_quantity
from carworld.services.order_service import order_service, derive_payment_status


class TestDeriveStatus:

    @pytest.mark.parametrize("qty,expected", [
        (0, ProductStatus.OUT_OF_STOCK),
        (-2, ProductStatus.OUT_OF_STOCK),
        (3, ProductStatus.LOW_STOCK),
        (4, ProductStatus.IN_STOCK),
    ])
    def test_stock_driven(self, qty, expected):
        assert derive_status(qty, 3) == expected

    def test_discontinued_is_sticky(self):
        assert derive_status(50, 3, ProductStatus.DISCONTINUED) == ProductStatus.DISCONTINUED


class TestApplyQuantity:

    def test_movements(self):
        assert apply_quantity(TransactionType.IN, 10, 5) == 15
        assert apply_quantity(TransactionType.RETURN, 10, 1) == 11
        assert apply_quantity(TransactionType.OUT, 10, 4) == 6
        assert apply_quantity(TransactionType.ADJUSTMENT, 10, 7) == 7


class TestApplyTransaction:
    """Test stock movements against the database"""

    @pytest.mark.asyncio
    async def test_out_updates_stock_and_status(self, db_session, product):
        tx = await inventory_service.apply_transaction(db_session, product, TransactionType.OUT, 8, "Counter sale")
        await db_session.commit()

        assert tx.previous_stock == 10
        assert tx.new_stock == 2
        assert product.stock_qty == 2
        assert product.status == ProductStatus.LOW_STOCK

    @pytest.mark.asyncio
    async def test_cannot_go_negative(self, db_session, product):
        with pytest.raises(InsufficientStockError):
            await inventory_service.apply_transaction(db_session, product, TransactionType.OUT, 11, "Too many")

        assert product.stock_qty == 10

    @pytest.mark.asyncio
    async def test_zero_quantity_rejected(self, db_session, product):
        with pytest.raises(ValidationError):
            await inventory_service.apply_transaction(db_session, product, TransactionType.IN, 0, "Nothing")

    @pytest.mark.asyncio
    async def test_adjustment_to_zero_allowed(self, db_session, product):
        await inventory_service.apply_transaction(db_session, product, TransactionType.ADJUSTMENT, 0, "Stock count")

        assert product.stock_qty == 0
        assert product.status == ProductStatus.OUT_OF_STOCK


class TestOrders:
    """Orders take stock out in the same unit of work"""

    def test_payment_status(self):
        assert derive_payment_status(0, 1000) == OrderPaymentStatus.DUE
        assert derive_payment_status(400, 1000) == OrderPaymentStatus.PARTIAL
        assert derive_payment_status(900, 1000, discount=100) == OrderPaymentStatus.PAID

    @pytest.mark.asyncio
    async def test_create_order_moves_stock(self, db_session, product, customer):
        order = await order_service.create_order(db_session, OrderCreate(
            customer_id=customer.id,
            items=[OrderItem(product_id=product.id, quantity=3, price=2500)],
            paid_amount=7500,
        ))

        await db_session.refresh(product)
        assert order.order_number.startswith("ORD-")
        assert order.customer_name == customer.full_name
        assert order.payment_status == OrderPaymentStatus.PAID
        assert product.stock_qty == 7
        count = await db_session.scalar(select(func.count(InventoryTransaction.id)))
        assert count == 1

    @pytest.mark.asyncio
    async def test_insufficient_stock_rolls_back_order(self, db_session, product):
        with pytest.raises(InsufficientStockError):
            await order_service.create_order(db_session, OrderCreate(
                customer_name="Walk-in",
                items=[OrderItem(product_id=product.id, quantity=50, price=2500)],
            ))

        await db_session.refresh(product)
        assert product.stock_qty == 10
        assert await db_session.scalar(select(func.count(Order.id))) == 0

    @pytest.mark.asyncio
    async def test_discount_cannot_exceed_total(self, db_session, product):
        with pytest.raises(ValidationError):
            await order_service.create_order(db_session, OrderCreate(
                items=[OrderItem(product_id=product.id, quantity=1, price=100)],
                discount=150,
            ))


async def low_stock_alerts(db_session) -> int:
    return await db_session.scalar(
        select(func.count(Notification.id)).where(Notification.type == NotificationType.LOW_STOCK)
    )


class TestLowStockAlerts:
    """Alerts follow the stock level, not the kind of movement"""

    @pytest.mark.asyncio
    async def test_restock_still_below_minimum_alerts(self, db_session, product):
        await inventory_service.apply_transaction(db_session, product, TransactionType.ADJUSTMENT, 0, "Stock count")
        await db_session.commit()
        before = await low_stock_alerts(db_session)

        await inventory_service.apply_transaction(db_session, product, TransactionType.IN, 2, "Partial delivery")
        await db_session.commit()

        assert product.stock_qty == 2
        assert await low_stock_alerts(db_session) == before + 1

    @pytest.mark.asyncio
    async def test_restock_above_minimum_is_quiet(self, db_session, product):
        await inventory_service.apply_transaction(db_session, product, TransactionType.IN, 5, "Delivery")
        await db_session.commit()

        assert await low_stock_alerts(db_session) == 0

    @pytest.mark.asyncio
    async def test_editing_other_fields_does_not_repeat_alert(self, db_session, product):
        await inventory_service.update_product(db_session, product.id, ProductUpdate(stock_qty=2))
        for name in ("Seat Cover Deluxe", "Seat Cover Royal", "Seat Cover Classic"):
            await inventory_service.update_product(db_session, product.id, ProductUpdate(name=name))

        assert await low_stock_alerts(db_session) == 1

    @pytest.mark.asyncio
    async def test_raising_minimum_alerts(self, db_session, product):
        await inventory_service.update_product(db_session, product.id, ProductUpdate(min_stock_level=12))

        assert await low_stock_alerts(db_session) == 1


class TestProductReturns:

    @pytest.mark.asyncio
    async def test_processed_restockable_return_restocks(self, db_session, product, customer):
        product_return = await inventory_service.create_return(db_session, ProductReturnCreate(
            product_id=product.id,
            customer_id=customer.id,
            quantity=2,
            reason="Wrong size",
            restockable=True,
        ))

        await inventory_service.update_return(db_session, product_return.id, ProductReturnUpdate(status=ReturnStatus.APPROVED))
        processed = await inventory_service.update_return(
            db_session, product_return.id, ProductReturnUpdate(status=ReturnStatus.PROCESSED),
        )

        await db_session.refresh(product)
        assert processed.status == ReturnStatus.PROCESSED
        assert processed.processed_date is not None
        assert product.stock_qty == 12
        tx = (await db_session.execute(select(InventoryTransaction))).scalar_one()
        assert tx.type == TransactionType.RETURN
        assert tx.return_id == product_return.id
        assert tx.quantity == 2

    @pytest.mark.asyncio
    async def test_pending_return_cannot_jump_to_processed(self, db_session, product):
        product_return = await inventory_service.create_return(db_session, ProductReturnCreate(
            product_id=product.id, quantity=1, reason="Damaged", restockable=True,
        ))

        with pytest.raises(InvalidStateTransitionError):
            await inventory_service.update_return(
                db_session, product_return.id, ProductReturnUpdate(status=ReturnStatus.PROCESSED),
            )

        await db_session.refresh(product)
        assert product.stock_qty == 10


class TestCatalogMaintenance:

    @pytest.mark.asyncio
    async def test_import_reports_bad_rows(self, db_session):
        result = await inventory_service.import_products(db_session, [
            {"name": "Floor Mats", "category": "Interior", "brand": "3M", "mrp": 1800, "selling_price": 1500},
            {"name": "Wiper Blades", "brand": "Bosch", "mrp": 900, "selling_price": 850},
            {"name": "Car Perfume", "category": "Accessories", "brand": "Godrej", "mrp": 300,
             "selling_price": 250, "stock_qty": 0},
        ])

        assert result["created"] == 2
        assert result["failed"] == 1
        assert result["errors"][0]["row"] == 2
        assert "category" in result["errors"][0]["error"]
        perfume = (await db_session.execute(select(Product).where(Product.name == "Car Perfume"))).scalar_one()
        assert perfume.status == ProductStatus.OUT_OF_STOCK

    @pytest.mark.asyncio
    async def test_delete_duplicates_keeps_one_per_name_and_brand(self, db_session, product):
        await inventory_service.import_products(db_session, [
            {"name": "seat cover premium", "category": "Interior", "brand": "AUTOFORM", "mrp": 2800, "selling_price": 2400},
            {"name": "Seat Cover Premium", "category": "Interior", "brand": "Autoform", "mrp": 2800, "selling_price": 2300},
            {"name": "Seat Cover Premium", "category": "Interior", "brand": "Elegant", "mrp": 2600, "selling_price": 2200},
        ])

        result = await inventory_service.delete_duplicates(db_session)

        assert result == {"deleted": 2, "groups": 1}
        remaining = await db_session.scalar(select(func.count(Product.id)))
        assert remaining == 2
