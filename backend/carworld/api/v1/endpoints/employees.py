"""
HR endpoints: employees, attendance, leaves, tasks and monthly performance.
"""

from datetime import date
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from carworld.core.database import get_db
from carworld.core.exceptions import AuthorizationError
from carworld.core.rate_limiter import limiter
from carworld.models.employee import AttendanceStatus, LeaveStatus, TaskStatus
from carworld.models.user import User, UserRole
from carworld.modules.auth.dependencies import get_current_user, require_permission
from carworld.modules.auth.permissions import has_permission
from carworld.schemas.auth import SendOTPRequest, OTPSentResponse
from carworld.schemas.common import MessageResponse
from carworld.schemas.employee import (
    EmployeeCreate,
    EmployeeUpdate,
    EmployeeResponse,
    EmployeeOTPVerify,
    AttendanceCreate,
    AttendanceUpdate,
    AttendanceResponse,
    LeaveCreate,
    LeaveDecision,
    LeaveResponse,
    TaskCreate,
    TaskUpdate,
    TaskResponse,
    PerformanceGenerateRequest,
    PerformanceLogResponse,
)
from carworld.services.activity_logger import log_activity
from carworld.services.hr_service import hr_service
from carworld.utils.pagination import paginate, paginated

router = APIRouter(prefix="/employees", tags=["Employees"])
attendance_router = APIRouter(prefix="/attendance", tags=["Attendance"])
leaves_router = APIRouter(prefix="/leaves", tags=["Leaves"])
tasks_router = APIRouter(prefix="/tasks", tags=["Tasks"])
performance_router = APIRouter(prefix="/performance", tags=["Performance"])


# ============================================
# Employees
# ============================================

@router.get("")
async def list_employees(
    search: Optional[str] = None,
    role: Optional[UserRole] = None,
    is_active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_permission("employees", "read")),
    db: AsyncSession = Depends(get_db)
):
    data = await paginate(db, hr_service.employees_query(search, role, is_active), page, page_size)
    return paginated(data, EmployeeResponse)


@router.post("/send-otp", response_model=OTPSentResponse)
@limiter.limit("3/minute")
async def send_employee_otp(
    request: Request,
    data: SendOTPRequest,
    current_user: User = Depends(require_permission("employees", "create")),
    db: AsyncSession = Depends(get_db)
):
    """Send an employee_verification OTP to confirm the contact number"""
    result = await hr_service.send_contact_otp(db, data.mobile_number)
    return OTPSentResponse(
        success=result.success,
        message="OTP sent successfully" if result.success else result.error,
        otp=result.otp,
    )


@router.post("/verify-otp", response_model=MessageResponse)
@limiter.limit("5/minute")
async def verify_employee_otp(
    request: Request,
    data: EmployeeOTPVerify,
    current_user: User = Depends(require_permission("employees", "create")),
    db: AsyncSession = Depends(get_db)
):
    employee = await hr_service.verify_contact_otp(db, data.mobile_number, data.otp, data.employee_id)
    if employee:
        await log_activity(
            db, current_user, "verify", "employee",
            f"Verified contact of {employee.name}", employee.id, request=request,
        )
    return MessageResponse(message="Mobile number verified")


@router.post("", response_model=EmployeeResponse, status_code=status.HTTP_201_CREATED)
async def create_employee(
    request: Request,
    data: EmployeeCreate,
    current_user: User = Depends(require_permission("employees", "create")),
    db: AsyncSession = Depends(get_db)
):
    employee = await hr_service.create_employee(db, data)
    await log_activity(
        db, current_user, "create", "employee",
        f"Added employee {employee.name} ({employee.employee_code})", employee.id, request=request,
    )
    return employee


@router.get("/{employee_id}", response_model=EmployeeResponse)
async def get_employee(
    employee_id: str,
    current_user: User = Depends(require_permission("employees", "read")),
    db: AsyncSession = Depends(get_db)
):
    return await hr_service.get_employee(db, employee_id)


@router.put("/{employee_id}", response_model=EmployeeResponse)
async def update_employee(
    employee_id: str,
    request: Request,
    data: EmployeeUpdate,
    current_user: User = Depends(require_permission("employees", "update")),
    db: AsyncSession = Depends(get_db)
):
    employee = await hr_service.update_employee(db, employee_id, data)
    await log_activity(
        db, current_user, "update", "employee", f"Updated employee {employee.name}", employee.id,
        details={"fields": sorted(data.model_dump(exclude_unset=True))}, request=request,
    )
    return employee


@router.delete("/{employee_id}", response_model=MessageResponse)
async def delete_employee(
    employee_id: str,
    request: Request,
    current_user: User = Depends(require_permission("employees", "delete")),
    db: AsyncSession = Depends(get_db)
):
    await hr_service.delete_employee(db, employee_id)
    await log_activity(db, current_user, "delete", "employee", f"Deleted employee {employee_id}", employee_id, request=request)
    return MessageResponse(message="Employee deleted")


# ============================================
# Attendance
# ============================================

@attendance_router.get("")
async def list_attendance(
    employee_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    status: Optional[AttendanceStatus] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    current_user: User = Depends(require_permission("attendance", "read")),
    db: AsyncSession = Depends(get_db)
):
    query = hr_service.attendance_query(employee_id, start_date, end_date, status)
    data = await paginate(db, query, page, page_size)
    return paginated(data, AttendanceResponse)


@attendance_router.post("", response_model=AttendanceResponse, status_code=status.HTTP_201_CREATED)
async def mark_attendance(
    request: Request,
    data: AttendanceCreate,
    current_user: User = Depends(require_permission("attendance", "create")),
    db: AsyncSession = Depends(get_db)
):
    """One record per employee per day; a second one is a 409"""
    record = await hr_service.mark_attendance(db, data)
    await log_activity(
        db, current_user, "create", "attendance",
        f"Marked {data.status.value} on {data.date.isoformat()}", record.id,
        details={"employee_id": data.employee_id}, request=request,
    )
    return record


@attendance_router.put("/{attendance_id}", response_model=AttendanceResponse)
async def update_attendance(
    attendance_id: str,
    data: AttendanceUpdate,
    current_user: User = Depends(require_permission("attendance", "update")),
    db: AsyncSession = Depends(get_db)
):
    return await hr_service.update_attendance(db, attendance_id, data)


@attendance_router.delete("/{attendance_id}", response_model=MessageResponse)
async def delete_attendance(
    attendance_id: str,
    current_user: User = Depends(require_permission("attendance", "delete")),
    db: AsyncSession = Depends(get_db)
):
    await hr_service.delete_attendance(db, attendance_id)
    return MessageResponse(message="Attendance record deleted")


# ============================================
# Leaves
# ============================================

@leaves_router.get("")
async def list_leaves(
    user_id: Optional[str] = None,
    status: Optional[LeaveStatus] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """HR sees every request; everyone else only their own"""
    if not has_permission(current_user.role, "leaves", "read"):
        user_id = current_user.id
    data = await paginate(db, hr_service.leaves_query(user_id, status), page, page_size)
    return paginated(data, LeaveResponse)


@leaves_router.post("", response_model=LeaveResponse, status_code=status.HTTP_201_CREATED)
async def request_leave(
    request: Request,
    data: LeaveCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if data.user_id and data.user_id != current_user.id and not has_permission(current_user.role, "leaves", "create"):
        raise AuthorizationError("You can only request leave for yourself")
    leave = await hr_service.request_leave(db, data, current_user)
    await log_activity(
        db, current_user, "create", "leave",
        f"{data.leave_type.value} leave {data.start_date.isoformat()} to {data.end_date.isoformat()}",
        leave.id, request=request,
    )
    return leave


@leaves_router.post("/{leave_id}/decision", response_model=LeaveResponse)
async def decide_leave(
    leave_id: str,
    request: Request,
    data: LeaveDecision,
    current_user: User = Depends(require_permission("leaves", "update")),
    db: AsyncSession = Depends(get_db)
):
    """Approve or reject a pending leave"""
    leave = await hr_service.decide_leave(db, leave_id, data, current_user)
    await log_activity(
        db, current_user, leave.status.value, "leave", f"Leave {leave.id} {leave.status.value}",
        leave.id, request=request,
    )
    return leave


@leaves_router.delete("/{leave_id}", response_model=MessageResponse)
async def delete_leave(
    leave_id: str,
    current_user: User = Depends(require_permission("leaves", "delete")),
    db: AsyncSession = Depends(get_db)
):
    await hr_service.delete_leave(db, leave_id)
    return MessageResponse(message="Leave deleted")


# ============================================
# Tasks
# ============================================

@tasks_router.get("")
async def list_tasks(
    assigned_to: Optional[str] = None,
    status: Optional[TaskStatus] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Task managers see everything; everyone else their own tasks"""
    if not has_permission(current_user.role, "tasks", "read"):
        assigned_to = current_user.id
    data = await paginate(db, hr_service.tasks_query(assigned_to, status), page, page_size)
    return paginated(data, TaskResponse)


@tasks_router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    request: Request,
    data: TaskCreate,
    current_user: User = Depends(require_permission("tasks", "create")),
    db: AsyncSession = Depends(get_db)
):
    task = await hr_service.create_task(db, data, current_user)
    await log_activity(db, current_user, "create", "task", f"Created task {task.title}", task.id, request=request)
    return task


@tasks_router.put("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: str,
    request: Request,
    data: TaskUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Assignees may update their own task (e.g. mark it completed)"""
    task = await hr_service.get_task(db, task_id)
    if not has_permission(current_user.role, "tasks", "update") and task.assigned_to != current_user.id:
        raise AuthorizationError("You can only update tasks assigned to you")
    task = await hr_service.update_task(db, task_id, data)
    await log_activity(
        db, current_user, "update", "task", f"Task {task.title} is {task.status.value}", task.id, request=request,
    )
    return task


@tasks_router.delete("/{task_id}", response_model=MessageResponse)
async def delete_task(
    task_id: str,
    current_user: User = Depends(require_permission("tasks", "delete")),
    db: AsyncSession = Depends(get_db)
):
    await hr_service.delete_task(db, task_id)
    return MessageResponse(message="Task deleted")


# ============================================
# Performance
# ============================================

@performance_router.get("")
async def list_performance(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = None,
    employee_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    current_user: User = Depends(require_permission("employees", "read")),
    db: AsyncSession = Depends(get_db)
):
    data = await paginate(db, hr_service.performance_query(month, year, employee_id), page, page_size)
    return paginated(data, PerformanceLogResponse)


@performance_router.post("/generate", response_model=List[PerformanceLogResponse])
async def generate_performance(
    request: Request,
    data: PerformanceGenerateRequest,
    current_user: User = Depends(require_permission("employees", "update")),
    db: AsyncSession = Depends(get_db)
):
    """(Re)compute the monthly snapshot for every active employee"""
    logs = await hr_service.generate_performance(db, data.month, data.year, current_user)
    await log_activity(
        db, current_user, "generate", "performance",
        f"Generated performance for {data.month:02d}/{data.year} ({len(logs)} employees)", request=request,
    )
    return logs
