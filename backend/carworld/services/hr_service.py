"""
HR Service - employees, attendance, leaves, tasks and monthly performance
"""

import calendar
from datetime import datetime, date
from typing import Optional, List, Tuple

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from carworld.core.exceptions import (
    EmployeeNotFoundError, ResourceNotFoundError, DuplicateResourceError,
    InvalidStateTransitionError, UserNotFoundError,
)
from carworld.core.logging_config import logger
from carworld.models.employee import (
    Employee, Attendance, AttendanceStatus, Leave, LeaveStatus,
    Task, TaskStatus, PerformanceLog,
)
from carworld.models.order import Order
from carworld.models.otp import OTPPurpose
from carworld.models.support import Feedback
from carworld.models.user import User
from carworld.schemas.employee import (
    EmployeeCreate, EmployeeUpdate, AttendanceCreate, AttendanceUpdate,
    LeaveCreate, LeaveDecision, TaskCreate, TaskUpdate,
)
from carworld.services.otp_service import otp_service, OTPResult
from carworld.services.sequence_service import next_employee_code

# Weights of the monthly performance score (each component is 0-100)
ATTENDANCE_WEIGHT = 0.4
TASKS_WEIGHT = 0.3
ORDERS_WEIGHT = 0.3
POINTS_PER_TASK = 10
POINTS_PER_ORDER = 5


def performance_score(attendance_rate: float, tasks_completed: int, order_count: int) -> float:
    tasks_points = min(100, tasks_completed * POINTS_PER_TASK)
    order_points = min(100, order_count * POINTS_PER_ORDER)
    return round(
        ATTENDANCE_WEIGHT * attendance_rate + TASKS_WEIGHT * tasks_points + ORDERS_WEIGHT * order_points,
        2,
    )


def attendance_rate(statuses: List[AttendanceStatus]) -> float:
    """Present and late count fully, half days count half"""
    if not statuses:
        return 0.0
    credit = 0.0
    for status in statuses:
        if status in (AttendanceStatus.PRESENT, AttendanceStatus.LATE):
            credit += 1
        elif status == AttendanceStatus.HALF_DAY:
            credit += 0.5
    return round(credit / len(statuses) * 100, 2)


def month_bounds(month: int, year: int) -> Tuple[datetime, datetime]:
    last_day = calendar.monthrange(year, month)[1]
    return datetime(year, month, 1), datetime(year, month, last_day, 23, 59, 59, 999999)


class HRService:

    # ==================== EMPLOYEES ====================

    async def get_employee(self, db: AsyncSession, employee_id: str) -> Employee:
        employee = await db.get(Employee, employee_id)
        if not employee:
            raise EmployeeNotFoundError(employee_id)
        return employee

    def employees_query(self, search: Optional[str] = None, role=None, active: Optional[bool] = None):
        query = select(Employee)
        if search:
            term = f"%{search}%"
            query = query.where(or_(
                Employee.name.ilike(term),
                Employee.employee_code.ilike(term),
                Employee.contact.ilike(term),
            ))
        if role:
            query = query.where(Employee.role == role)
        if active is not None:
            query = query.where(Employee.is_active == active)
        return query.order_by(Employee.created_at.desc())

    async def create_employee(self, db: AsyncSession, data: EmployeeCreate) -> Employee:
        employee = Employee(
            employee_code=await next_employee_code(db),
            is_active=True,
            contact_verified=False,
            **data.model_dump(exclude_none=True),
        )
        db.add(employee)
        await db.commit()
        await db.refresh(employee)
        logger.info(f"Created employee {employee.employee_code} ({employee.name})")
        return employee

    async def update_employee(self, db: AsyncSession, employee_id: str, data: EmployeeUpdate) -> Employee:
        employee = await self.get_employee(db, employee_id)
        update_dict = data.model_dump(exclude_unset=True)
        if "contact" in update_dict and update_dict["contact"] != employee.contact:
            employee.contact_verified = False
        for field, value in update_dict.items():
            setattr(employee, field, value)
        employee.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(employee)
        return employee

    async def delete_employee(self, db: AsyncSession, employee_id: str) -> None:
        employee = await self.get_employee(db, employee_id)
        await db.delete(employee)
        await db.commit()

    async def send_contact_otp(self, db: AsyncSession, mobile_number: str) -> OTPResult:
        return await otp_service.issue_otp(db, mobile_number, OTPPurpose.EMPLOYEE_VERIFICATION)

    async def verify_contact_otp(
        self,
        db: AsyncSession,
        mobile_number: str,
        otp: str,
        employee_id: Optional[str] = None,
    ) -> Optional[Employee]:
        await otp_service.verify_otp(db, mobile_number, otp, OTPPurpose.EMPLOYEE_VERIFICATION)
        if not employee_id:
            return None
        employee = await self.get_employee(db, employee_id)
        if employee.contact == mobile_number:
            employee.contact_verified = True
            await db.commit()
            await db.refresh(employee)
        return employee

    # ==================== ATTENDANCE ====================

    def attendance_query(
        self,
        employee_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[AttendanceStatus] = None,
    ):
        query = select(Attendance)
        if employee_id:
            query = query.where(Attendance.employee_id == employee_id)
        if start_date:
            query = query.where(Attendance.date >= start_date)
        if end_date:
            query = query.where(Attendance.date <= end_date)
        if status:
            query = query.where(Attendance.status == status)
        return query.order_by(Attendance.date.desc())

    async def mark_attendance(self, db: AsyncSession, data: AttendanceCreate) -> Attendance:
        await self.get_employee(db, data.employee_id)
        existing = await db.execute(
            select(Attendance.id).where(
                Attendance.employee_id == data.employee_id,
                Attendance.date == data.date,
            )
        )
        if existing.scalar_one_or_none():
            raise DuplicateResourceError("Attendance", "date", data.date.isoformat())

        record = Attendance(**data.model_dump())
        db.add(record)
        await db.commit()
        await db.refresh(record)
        return record

    async def update_attendance(self, db: AsyncSession, attendance_id: str, data: AttendanceUpdate) -> Attendance:
        record = await db.get(Attendance, attendance_id)
        if not record:
            raise ResourceNotFoundError("Attendance", attendance_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(record, field, value)
        await db.commit()
        await db.refresh(record)
        return record

    async def delete_attendance(self, db: AsyncSession, attendance_id: str) -> None:
        record = await db.get(Attendance, attendance_id)
        if not record:
            raise ResourceNotFoundError("Attendance", attendance_id)
        await db.delete(record)
        await db.commit()

    # ==================== LEAVES ====================

    def leaves_query(self, user_id: Optional[str] = None, status: Optional[LeaveStatus] = None):
        query = select(Leave)
        if user_id:
            query = query.where(Leave.user_id == user_id)
        if status:
            query = query.where(Leave.status == status)
        return query.order_by(Leave.created_at.desc())

    async def request_leave(self, db: AsyncSession, data: LeaveCreate, user: User) -> Leave:
        user_id = data.user_id or user.id
        if user_id != user.id and not await db.get(User, user_id):
            raise UserNotFoundError(user_id)
        leave = Leave(
            user_id=user_id,
            leave_type=data.leave_type,
            start_date=data.start_date,
            end_date=data.end_date,
            reason=data.reason,
            status=LeaveStatus.PENDING,
        )
        db.add(leave)
        await db.commit()
        await db.refresh(leave)
        return leave

    async def decide_leave(self, db: AsyncSession, leave_id: str, data: LeaveDecision, approver: User) -> Leave:
        leave = await db.get(Leave, leave_id)
        if not leave:
            raise ResourceNotFoundError("Leave", leave_id)
        if leave.status != LeaveStatus.PENDING or data.status == LeaveStatus.PENDING:
            raise InvalidStateTransitionError("Leave", leave.status.value, data.status.value)

        leave.status = data.status
        leave.approved_by = approver.id
        leave.approval_date = datetime.utcnow()
        if data.notes is not None:
            leave.notes = data.notes
        await db.commit()
        await db.refresh(leave)
        logger.info(f"Leave {leave.id} {leave.status.value} by {approver.email}")
        return leave

    async def delete_leave(self, db: AsyncSession, leave_id: str) -> None:
        leave = await db.get(Leave, leave_id)
        if not leave:
            raise ResourceNotFoundError("Leave", leave_id)
        await db.delete(leave)
        await db.commit()

    # ==================== TASKS ====================

    def tasks_query(
        self,
        assigned_to: Optional[str] = None,
        status: Optional[TaskStatus] = None,
    ):
        query = select(Task)
        if assigned_to:
            query = query.where(Task.assigned_to == assigned_to)
        if status:
            query = query.where(Task.status == status)
        return query.order_by(Task.created_at.desc())

    async def get_task(self, db: AsyncSession, task_id: str) -> Task:
        task = await db.get(Task, task_id)
        if not task:
            raise ResourceNotFoundError("Task", task_id)
        return task

    async def create_task(self, db: AsyncSession, data: TaskCreate, user: User) -> Task:
        if data.assigned_to and not await db.get(User, data.assigned_to):
            raise UserNotFoundError(data.assigned_to)
        task = Task(**data.model_dump(), assigned_by=user.id, status=TaskStatus.PENDING)
        db.add(task)
        await db.commit()
        await db.refresh(task)
        return task

    async def update_task(self, db: AsyncSession, task_id: str, data: TaskUpdate) -> Task:
        task = await self.get_task(db, task_id)
        update_dict = data.model_dump(exclude_unset=True)
        for field, value in update_dict.items():
            setattr(task, field, value)
        if task.status == TaskStatus.COMPLETED and not task.completed_date:
            task.completed_date = datetime.utcnow()
        elif task.status != TaskStatus.COMPLETED:
            task.completed_date = None
        task.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(task)
        return task

    async def delete_task(self, db: AsyncSession, task_id: str) -> None:
        task = await self.get_task(db, task_id)
        await db.delete(task)
        await db.commit()

    # ==================== PERFORMANCE ====================

    async def _linked_user_ids(self, db: AsyncSession, employee: Employee) -> List[str]:
        """Staff logins that belong to this employee (same email or mobile)"""
        conditions = [User.mobile_number == employee.contact]
        if employee.email:
            conditions.append(User.email == employee.email.lower())
        result = await db.execute(select(User.id).where(or_(*conditions)))
        return list(result.scalars().all())

    async def compute_performance(
        self,
        db: AsyncSession,
        employee: Employee,
        month: int,
        year: int,
        created_by: Optional[str] = None,
    ) -> PerformanceLog:
        start, end = month_bounds(month, year)

        sales = await db.execute(
            select(func.count(Order.id), func.coalesce(func.sum(Order.total - Order.discount), 0))
            .where(Order.salesperson_id == employee.id, Order.created_at >= start, Order.created_at <= end)
        )
        order_count, total_sales = sales.one()
        total_sales = round(float(total_sales or 0), 2)

        statuses = await db.execute(
            select(Attendance.status).where(
                Attendance.employee_id == employee.id,
                Attendance.date >= start.date(),
                Attendance.date <= end.date(),
            )
        )
        rate = attendance_rate(list(statuses.scalars().all()))

        tasks_completed = 0
        user_ids = await self._linked_user_ids(db, employee)
        if user_ids:
            tasks_completed = await db.scalar(
                select(func.count(Task.id)).where(
                    Task.assigned_to.in_(user_ids),
                    Task.status == TaskStatus.COMPLETED,
                    Task.completed_date >= start,
                    Task.completed_date <= end,
                )
            ) or 0

        feedback_score = await db.scalar(
            select(func.avg(Feedback.rating)).where(
                Feedback.assigned_to == employee.id,
                Feedback.rating.is_not(None),
                Feedback.created_at >= start,
                Feedback.created_at <= end,
            )
        )

        existing = await db.execute(
            select(PerformanceLog).where(
                PerformanceLog.employee_id == employee.id,
                PerformanceLog.month == month,
                PerformanceLog.year == year,
            )
        )
        log = existing.scalar_one_or_none()
        if log is None:
            log = PerformanceLog(employee_id=employee.id, month=month, year=year)
            db.add(log)

        log.employee_name = employee.name
        log.employee_code = employee.employee_code
        log.total_sales = total_sales
        log.order_count = order_count or 0
        log.avg_order_value = round(total_sales / order_count, 2) if order_count else 0
        log.attendance_rate = rate
        log.tasks_completed = tasks_completed
        log.customer_feedback_score = round(float(feedback_score), 2) if feedback_score else 0
        log.performance_score = performance_score(rate, tasks_completed, order_count or 0)
        log.created_by = created_by
        log.updated_at = datetime.utcnow()
        return log

    async def generate_performance(
        self,
        db: AsyncSession,
        month: int,
        year: int,
        user: Optional[User] = None,
    ) -> List[PerformanceLog]:
        result = await db.execute(select(Employee).where(Employee.is_active == True))  # noqa: E712
        logs = []
        for employee in result.scalars().all():
            logs.append(await self.compute_performance(db, employee, month, year, user.id if user else None))
        await db.commit()
        for log in logs:
            await db.refresh(log)
        logger.info(f"Generated {len(logs)} performance logs for {month:02d}/{year}")
        return logs

    def performance_query(
        self,
        month: Optional[int] = None,
        year: Optional[int] = None,
        employee_id: Optional[str] = None,
    ):
        query = select(PerformanceLog)
        if month:
            query = query.where(PerformanceLog.month == month)
        if year:
            query = query.where(PerformanceLog.year == year)
        if employee_id:
            query = query.where(PerformanceLog.employee_id == employee_id)
        return query.order_by(PerformanceLog.performance_score.desc())


hr_service = HRService()
