# Re-export all models for convenient imports
from carworld.models.user import User, UserRole
from carworld.models.customer import Customer, Vehicle, VehicleVariant
from carworld.models.product import (
    Product, ProductStatus, InventoryTransaction, TransactionType,
    ProductReturn, ReturnReason, ReturnStatus,
)
from carworld.models.employee import (
    Employee, Attendance, AttendanceStatus, Leave, LeaveType, LeaveStatus,
    Task, TaskPriority, TaskStatus, PerformanceLog,
)
from carworld.models.order import Order, OrderPaymentStatus, DeliveryStatus
from carworld.models.service_visit import ServiceVisit, ServiceStatus
from carworld.models.invoice import (
    Invoice, InvoiceStatus, InvoicePaymentStatus, DiscountType, PaymentMode, ItemType,
)
from carworld.models.coupon import Coupon, CouponUsage, CouponDiscountType, CouponApplicability
from carworld.models.warranty import Warranty, WarrantyClaim, WarrantyType, WarrantyStatus, ClaimStatus
from carworld.models.support import (
    SupportTicket, TicketCategory, TicketPriority, TicketStatus,
    Feedback, FeedbackType, FeedbackStatus, FeedbackPriority,
    CommunicationLog, CommunicationType, CommunicationDirection,
)
from carworld.models.notification import Notification, NotificationType
from carworld.models.activity_log import ActivityLog
from carworld.models.otp import OTPRecord, OTPPurpose
from carworld.models.counter import Counter

__all__ = [
    # Staff
    "User",
    "UserRole",
    # Customers
    "Customer",
    "Vehicle",
    "VehicleVariant",
    # Catalog
    "Product",
    "ProductStatus",
    "InventoryTransaction",
    "TransactionType",
    "ProductReturn",
    "ReturnReason",
    "ReturnStatus",
    # HR
    "Employee",
    "Attendance",
    "AttendanceStatus",
    "Leave",
    "LeaveType",
    "LeaveStatus",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "PerformanceLog",
    # Sales
    "Order",
    "OrderPaymentStatus",
    "DeliveryStatus",
    "ServiceVisit",
    "ServiceStatus",
    "Invoice",
    "InvoiceStatus",
    "InvoicePaymentStatus",
    "DiscountType",
    "PaymentMode",
    "ItemType",
    "Coupon",
    "CouponUsage",
    "CouponDiscountType",
    "CouponApplicability",
    "Warranty",
    "WarrantyClaim",
    "WarrantyType",
    "WarrantyStatus",
    "ClaimStatus",
    # Customer care
    "SupportTicket",
    "TicketCategory",
    "TicketPriority",
    "TicketStatus",
    "Feedback",
    "FeedbackType",
    "FeedbackStatus",
    "FeedbackPriority",
    "CommunicationLog",
    "CommunicationType",
    "CommunicationDirection",
    # System
    "Notification",
    "NotificationType",
    "ActivityLog",
    "OTPRecord",
    "OTPPurpose",
    "Counter",
]
