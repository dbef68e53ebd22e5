from pydantic import BaseModel, EmailStr, Field, model_validator
from typing import Optional, List
from datetime import datetime, date

from carworld.models.user import UserRole
from carworld.models.employee import (
    AttendanceStatus, LeaveType, LeaveStatus, TaskPriority, TaskStatus,
)


# ============== Employees ==============

class EmployeeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    role: UserRole
    contact: str = Field(..., min_length=10, max_length=15)
    email: Optional[EmailStr] = None
    salary: Optional[float] = Field(None, ge=0)
    joining_date: Optional[datetime] = None
    pan_number: Optional[str] = None
    aadhar_number: Optional[str] = None
    photo: Optional[str] = None
    documents: List[str] = []


class EmployeeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    role: Optional[UserRole] = None
    contact: Optional[str] = Field(None, min_length=10, max_length=15)
    email: Optional[EmailStr] = None
    salary: Optional[float] = Field(None, ge=0)
    joining_date: Optional[datetime] = None
    is_active: Optional[bool] = None
    pan_number: Optional[str] = None
    aadhar_number: Optional[str] = None
    photo: Optional[str] = None
    documents: Optional[List[str]] = None


class EmployeeResponse(BaseModel):
    id: str
    employee_code: str
    name: str
    role: UserRole
    contact: str
    email: Optional[str] = None
    salary: Optional[float] = None
    joining_date: Optional[datetime] = None
    is_active: bool
    pan_number: Optional[str] = None
    aadhar_number: Optional[str] = None
    photo: Optional[str] = None
    documents: List[str] = []
    contact_verified: bool
    created_at: datetime

    class Config:
        from_attributes = True


class EmployeeOTPVerify(BaseModel):
    mobile_number: str = Field(..., min_length=10, max_length=15)
    otp: str
    employee_id: Optional[str] = None


# ============== Attendance ==============

class AttendanceCreate(BaseModel):
    employee_id: str
    date: date
    status: AttendanceStatus
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    notes: Optional[str] = None


class AttendanceUpdate(BaseModel):
    status: Optional[AttendanceStatus] = None
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    notes: Optional[str] = None


class AttendanceResponse(BaseModel):
    id: str
    employee_id: str
    date: date
    status: AttendanceStatus
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


# ============== Leaves ==============

class LeaveCreate(BaseModel):
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: str = Field(..., min_length=1)
    user_id: Optional[str] = None  # HR may file on behalf of someone

    @model_validator(mode='after')
    def end_after_start(self):
        if self.end_date < self.start_date:
            raise ValueError("End date must be on or after start date")
        return self


class LeaveDecision(BaseModel):
    status: LeaveStatus
    notes: Optional[str] = None


class LeaveResponse(BaseModel):
    id: str
    user_id: str
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: str
    status: LeaveStatus
    approved_by: Optional[str] = None
    approval_date: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ============== Tasks ==============

class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    assigned_to: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[datetime] = None
    notes: Optional[str] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    assigned_to: Optional[str] = None
    priority: Optional[TaskPriority] = None
    status: Optional[TaskStatus] = None
    due_date: Optional[datetime] = None
    notes: Optional[str] = None


class TaskResponse(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    assigned_to: Optional[str] = None
    assigned_by: Optional[str] = None
    priority: TaskPriority
    status: TaskStatus
    due_date: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ============== Performance ==============

class PerformanceGenerateRequest(BaseModel):
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2000, le=2100)


class PerformanceLogResponse(BaseModel):
    id: str
    employee_id: str
    employee_name: str
    employee_code: Optional[str] = None
    month: int
    year: int
    total_sales: float
    order_count: int
    avg_order_value: float
    attendance_rate: float
    tasks_completed: int
    customer_feedback_score: float
    performance_score: float
    notes: Optional[str] = None

    class Config:
        from_attributes = True
