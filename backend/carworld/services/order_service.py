"""
Order Service - counter sales of parts
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from carworld.core.exceptions import ResourceNotFoundError, ValidationError
from carworld.core.logging_config import logger
from carworld.models.customer import Customer
from carworld.models.notification import Notification
from carworld.models.order import Order, OrderPaymentStatus, DeliveryStatus
from carworld.models.product import TransactionType
from carworld.schemas.order import OrderCreate, OrderUpdate
from carworld.services.inventory_service import inventory_service
from carworld.services.notification_service import notification_service
from carworld.services.sequence_service import next_order_number


def derive_payment_status(paid_amount: float, total: float, discount: float = 0) -> OrderPaymentStatus:
    net = round((total or 0) - (discount or 0), 2)
    paid = round(paid_amount or 0, 2)
    if paid >= net:
        return OrderPaymentStatus.PAID
    if paid > 0:
        return OrderPaymentStatus.PARTIAL
    return OrderPaymentStatus.DUE


class OrderService:

    async def get_order(self, db: AsyncSession, order_id: str) -> Order:
        order = await db.get(Order, order_id)
        if not order:
            raise ResourceNotFoundError("Order", order_id)
        return order

    def list_query(
        self,
        search: Optional[str] = None,
        payment_status: Optional[OrderPaymentStatus] = None,
        delivery_status: Optional[DeliveryStatus] = None,
        salesperson_id: Optional[str] = None,
    ):
        query = select(Order)
        if search:
            term = f"%{search}%"
            query = query.where(or_(Order.order_number.ilike(term), Order.customer_name.ilike(term)))
        if payment_status:
            query = query.where(Order.payment_status == payment_status)
        if delivery_status:
            query = query.where(Order.delivery_status == delivery_status)
        if salesperson_id:
            query = query.where(Order.salesperson_id == salesperson_id)
        return query.order_by(Order.created_at.desc())

    async def create_order(self, db: AsyncSession, data: OrderCreate, user_id: Optional[str] = None) -> Order:
        """
        Take every item out of stock and create the order in one commit.
        Any InsufficientStockError rolls the whole order back.
        """
        customer_name = data.customer_name
        if data.customer_id:
            customer = await db.get(Customer, data.customer_id)
            if not customer:
                raise ResourceNotFoundError("Customer", data.customer_id)
            customer_name = customer_name or customer.full_name
        customer_name = customer_name or "Walk-in customer"

        total = round(sum(item.quantity * item.price for item in data.items), 2)
        if data.discount > total:
            raise ValidationError("Discount cannot exceed the order total", field="discount")

        order = Order(
            order_number=await next_order_number(db),
            customer_id=data.customer_id,
            customer_name=customer_name,
            items=[item.model_dump() for item in data.items],
            total=total,
            discount=data.discount,
            paid_amount=data.paid_amount,
            payment_status=derive_payment_status(data.paid_amount, total, data.discount),
            salesperson_id=data.salesperson_id,
            delivery_status=DeliveryStatus.PENDING,
            shipping_address=data.shipping_address,
        )
        db.add(order)
        await db.flush()

        try:
            for item in data.items:
                product = await inventory_service.get_product(db, item.product_id)
                await inventory_service.apply_transaction(
                    db, product, TransactionType.OUT, item.quantity,
                    f"Order {order.order_number}", user_id,
                )
        except Exception:
            await db.rollback()
            raise

        notification_service.notify_new_order(db, order, customer_name)
        if order.payment_status != OrderPaymentStatus.PAID:
            notification_service.notify_payment_due(db, order, customer_name)

        await db.commit()
        await db.refresh(order)
        logger.info(f"Created order {order.order_number} for {customer_name}: {order.net_amount}")
        return order

    async def update_order(self, db: AsyncSession, order_id: str, data: OrderUpdate) -> Order:
        order = await self.get_order(db, order_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(order, field, value)

        order.payment_status = derive_payment_status(order.paid_amount, order.total, order.discount)
        if order.delivery_status == DeliveryStatus.DELIVERED and not order.delivery_date:
            order.delivery_date = datetime.utcnow()
        order.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(order)
        return order

    async def delete_order(self, db: AsyncSession, order_id: str) -> None:
        order = await self.get_order(db, order_id)
        await db.delete(order)
        await db.commit()

    async def flag_overdue_orders(self, db: AsyncSession, days: int = 30, now: Optional[datetime] = None) -> int:
        """
        Raise an overdue notification for unpaid orders older than `days`.
        Orders already flagged in the last 24 hours are skipped.
        """
        now = now or datetime.utcnow()
        cutoff = now - timedelta(days=days)
        result = await db.execute(
            select(Order).where(
                Order.payment_status != OrderPaymentStatus.PAID,
                Order.created_at <= cutoff,
            )
        )
        orders = list(result.scalars().all())
        if not orders:
            return 0

        recent = await db.execute(
            select(Notification.related_id).where(
                Notification.related_id.in_([str(o.id) for o in orders]),
                Notification.message.like("Payment overdue:%"),
                Notification.created_at >= now - timedelta(days=1),
            )
        )
        already_flagged = set(recent.scalars().all())

        flagged = 0
        for order in orders:
            if str(order.id) in already_flagged:
                continue
            days_overdue = (now - order.created_at).days
            notification_service.notify_payment_overdue(
                db, order, order.customer_name or "Walk-in customer", days_overdue
            )
            flagged += 1

        await db.commit()
        if flagged:
            logger.info(f"Flagged {flagged} overdue orders")
        return flagged


order_service = OrderService()
