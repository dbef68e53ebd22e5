"""
HR models - employees, attendance, leaves, tasks and monthly performance
"""

from sqlalchemy import (
    Column, String, Boolean, DateTime, Date, Integer, Float, ForeignKey,
    Enum as SQLEnum, Text, JSON, UniqueConstraint,
)
from datetime import datetime
import enum

from carworld.core.database import Base
from carworld.core.types import GUID, generate_uuid
from carworld.models.user import UserRole


class AttendanceStatus(str, enum.Enum):
    PRESENT = "present"
    ABSENT = "absent"
    HALF_DAY = "half_day"
    LATE = "late"


class LeaveType(str, enum.Enum):
    CASUAL = "casual"
    SICK = "sick"
    ANNUAL = "annual"
    UNPAID = "unpaid"


class LeaveStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class TaskPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TaskStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Employee(Base):
    __tablename__ = "employees"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    employee_code = Column(String(20), unique=True, nullable=False)  # EMP001
    name = Column(String(255), nullable=False)
    role = Column(SQLEnum(UserRole), nullable=False)
    contact = Column(String(20), nullable=False)
    email = Column(String(255), nullable=True)
    salary = Column(Float, nullable=True)
    joining_date = Column(DateTime, default=datetime.utcnow)
    is_active = Column(Boolean, default=True, nullable=False)
    pan_number = Column(String(20), nullable=True)
    aadhar_number = Column(String(20), nullable=True)
    photo = Column(Text, nullable=True)
    documents = Column(JSON, default=list, nullable=False)
    contact_verified = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Employee {self.employee_code} {self.name}>"


class Attendance(Base):
    __tablename__ = "attendance"

    __table_args__ = (
        UniqueConstraint('employee_id', 'date', name='uq_attendance_employee_date'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    employee_id = Column(GUID, ForeignKey("employees.id", ondelete="CASCADE"), index=True, nullable=False)
    date = Column(Date, nullable=False)
    status = Column(SQLEnum(AttendanceStatus), nullable=False)
    check_in_time = Column(DateTime, nullable=True)
    check_out_time = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Leave(Base):
    """Leave request raised by a staff user"""
    __tablename__ = "leaves"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    leave_type = Column(SQLEnum(LeaveType), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(Text, nullable=False)
    status = Column(SQLEnum(LeaveStatus), default=LeaveStatus.PENDING, nullable=False)
    approved_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approval_date = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Task(Base):
    __tablename__ = "tasks"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    assigned_to = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True)
    assigned_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    priority = Column(SQLEnum(TaskPriority), default=TaskPriority.MEDIUM, nullable=False)
    status = Column(SQLEnum(TaskStatus), default=TaskStatus.PENDING, nullable=False)
    due_date = Column(DateTime, nullable=True)
    completed_date = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class PerformanceLog(Base):
    """Monthly performance snapshot for one employee"""
    __tablename__ = "performance_logs"

    __table_args__ = (
        UniqueConstraint('employee_id', 'month', 'year', name='uq_performance_employee_month'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    employee_id = Column(GUID, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    employee_name = Column(String(255), nullable=False)
    employee_code = Column(String(20), nullable=True)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)

    total_sales = Column(Float, default=0, nullable=False)
    order_count = Column(Integer, default=0, nullable=False)
    avg_order_value = Column(Float, default=0, nullable=False)
    attendance_rate = Column(Float, default=0, nullable=False)
    tasks_completed = Column(Integer, default=0, nullable=False)
    customer_feedback_score = Column(Float, default=0, nullable=False)
    performance_score = Column(Float, default=0, nullable=False)
    notes = Column(Text, nullable=True)
    created_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
