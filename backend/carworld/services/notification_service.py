"""
In-app notifications addressed to a staff role.

Helpers only stage the row on the caller's session; it is persisted with
the business change that produced it.
"""

from typing import Optional, List, Tuple

from sqlalchemy import select, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from carworld.models.notification import Notification, NotificationType
from carworld.models.user import User, UserRole

SERVICE_STATUS_MESSAGES = {
    "inquired": "New service inquiry from {name}",
    "working": "Service work started for {name}",
    "completed": "Service completed for {name}",
    "waiting": "Service waiting for parts - {name}",
}


class NotificationService:

    def create(
        self,
        db: AsyncSession,
        message: str,
        type: NotificationType = NotificationType.INFO,
        target_role: Optional[UserRole] = None,
        related_id: Optional[str] = None,
    ) -> Notification:
        notification = Notification(
            message=message,
            type=type,
            read=False,
            target_role=target_role.value if target_role else None,
            related_id=str(related_id) if related_id else None,
        )
        db.add(notification)
        return notification

    # ==================== DOMAIN HELPERS ====================

    def notify_low_stock(self, db: AsyncSession, product) -> Optional[Notification]:
        if product.stock_qty > product.min_stock_level:
            return None
        return self.create(
            db,
            f"Low stock alert: {product.name} ({product.stock_qty} units remaining)",
            NotificationType.LOW_STOCK,
            UserRole.INVENTORY_MANAGER,
            product.id,
        )

    def notify_new_order(self, db: AsyncSession, order, customer_name: str) -> Notification:
        return self.create(
            db,
            f"New order received from {customer_name} - Order #{order.order_number or order.id}",
            NotificationType.NEW_ORDER,
            UserRole.SALES_EXECUTIVE,
            order.id,
        )

    def notify_payment_due(self, db: AsyncSession, order, customer_name: str) -> Notification:
        return self.create(
            db,
            f"Payment due: Order #{order.order_number or order.id} - {customer_name}",
            NotificationType.PAYMENT_DUE,
            UserRole.SALES_EXECUTIVE,
            order.id,
        )

    def notify_payment_overdue(self, db: AsyncSession, order, customer_name: str, days_overdue: int) -> Notification:
        return self.create(
            db,
            f"Payment overdue: Order #{order.order_number or order.id} - {customer_name} ({days_overdue} days overdue)",
            NotificationType.PAYMENT_DUE,
            UserRole.ADMIN,
            order.id,
        )

    def notify_service_status(self, db: AsyncSession, visit, customer_name: str, new_status: str) -> Notification:
        template = SERVICE_STATUS_MESSAGES.get(new_status)
        message = (
            template.format(name=customer_name) if template
            else f"Service status updated for {customer_name}: {new_status}"
        )
        return self.create(db, message, NotificationType.INFO, UserRole.SERVICE_STAFF, visit.id)

    # ==================== READ SIDE ====================

    def _visible_to(self, user: User):
        if user.role == UserRole.ADMIN:
            return None
        return or_(Notification.target_role == user.role.value, Notification.target_role.is_(None))

    async def list_for_user(
        self,
        db: AsyncSession,
        user: User,
        unread_only: bool = False,
        limit: int = 50,
    ) -> Tuple[List[Notification], int]:
        """Newest notifications visible to the user plus the unread count"""
        query = select(Notification)
        count_query = select(func.count(Notification.id)).where(Notification.read == False)  # noqa: E712
        visibility = self._visible_to(user)
        if visibility is not None:
            query = query.where(visibility)
            count_query = count_query.where(visibility)
        if unread_only:
            query = query.where(Notification.read == False)  # noqa: E712

        result = await db.execute(query.order_by(Notification.created_at.desc()).limit(limit))
        unread = await db.scalar(count_query)
        return list(result.scalars().all()), unread or 0

    async def mark_read(self, db: AsyncSession, user: User, notification_id: str) -> Optional[Notification]:
        query = select(Notification).where(Notification.id == notification_id)
        visibility = self._visible_to(user)
        if visibility is not None:
            query = query.where(visibility)
        notification = (await db.execute(query)).scalar_one_or_none()
        if notification is None:
            return None
        notification.read = True
        await db.commit()
        return notification

    async def mark_all_read(self, db: AsyncSession, user: User) -> int:
        stmt = update(Notification).where(Notification.read == False)  # noqa: E712
        visibility = self._visible_to(user)
        if visibility is not None:
            stmt = stmt.where(visibility)
        result = await db.execute(stmt.values(read=True).execution_options(synchronize_session=False))
        await db.commit()
        return result.rowcount or 0


notification_service = NotificationService()
