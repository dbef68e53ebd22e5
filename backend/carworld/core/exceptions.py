"""
Custom Exceptions for Car World CRM
===================================

Services raise these instead of HTTPException so business rules stay
independent of the web layer. The handler registered in ``carworld.main``
maps every subclass to an HTTP status via ``status_code``.

Usage:
    from carworld.core.exceptions import CustomerNotFoundError

    customer = await db.get(Customer, customer_id)
    if not customer:
        raise CustomerNotFoundError(customer_id)
"""

from typing import Optional, Any, Dict


class CarWorldError(Exception):
    """Base exception for all Car World errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(CarWorldError):
    """User authentication failed"""

    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, code="AUTH_FAILED")


class InvalidCredentialsError(AuthenticationError):
    """Email / password combination rejected"""

    def __init__(self):
        super().__init__("Invalid email or password")
        self.code = "INVALID_CREDENTIALS"


class InactivityTimeoutError(AuthenticationError):
    """Session expired because the user was idle for too long"""

    def __init__(self):
        super().__init__("Session expired due to inactivity")
        self.code = "INACTIVITY_TIMEOUT"


class AuthorizationError(CarWorldError):
    """User not authorized for this action"""

    status_code = 403

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, code="NOT_AUTHORIZED")


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(CarWorldError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            code=f"{resource_type.upper().replace(' ', '_')}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": str(resource_id)}
        )


class UserNotFoundError(ResourceNotFoundError):
    def __init__(self, user_id: str):
        super().__init__("User", user_id)


class CustomerNotFoundError(ResourceNotFoundError):
    def __init__(self, customer_id: str):
        super().__init__("Customer", customer_id)


class VehicleNotFoundError(ResourceNotFoundError):
    def __init__(self, vehicle_id: str):
        super().__init__("Vehicle", vehicle_id)


class ProductNotFoundError(ResourceNotFoundError):
    def __init__(self, product_id: str):
        super().__init__("Product", product_id)


class InvoiceNotFoundError(ResourceNotFoundError):
    def __init__(self, invoice_id: str):
        super().__init__("Invoice", invoice_id)


class CouponNotFoundError(ResourceNotFoundError):
    def __init__(self, code: str):
        super().__init__("Coupon", code)


class WarrantyNotFoundError(ResourceNotFoundError):
    def __init__(self, warranty_id: str):
        super().__init__("Warranty", warranty_id)


class TicketNotFoundError(ResourceNotFoundError):
    def __init__(self, ticket_id: str):
        super().__init__("Support Ticket", ticket_id)


class EmployeeNotFoundError(ResourceNotFoundError):
    def __init__(self, employee_id: str):
        super().__init__("Employee", employee_id)


# ============================================
# Validation / Conflict Errors
# ============================================

class ValidationError(CarWorldError):
    """Input validation failed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class DuplicateResourceError(CarWorldError):
    """Unique value already taken"""

    status_code = 409

    def __init__(self, resource_type: str, field: str, value: Any):
        super().__init__(
            f"{resource_type} with {field} '{value}' already exists",
            code="DUPLICATE_RESOURCE",
            details={"resource_type": resource_type, "field": field, "value": str(value)}
        )


class InvalidStateTransitionError(CarWorldError):
    """Workflow status change not allowed from the current status"""

    status_code = 409

    def __init__(self, resource_type: str, current: str, target: str):
        super().__init__(
            f"Cannot move {resource_type} from '{current}' to '{target}'",
            code="INVALID_STATE_TRANSITION",
            details={"resource_type": resource_type, "current": current, "target": target}
        )


class InsufficientStockError(CarWorldError):
    """Stock would go negative"""

    status_code = 400

    def __init__(self, product_name: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {product_name}. Available: {available}, Requested: {requested}",
            code="INSUFFICIENT_STOCK",
            details={"product": product_name, "available": available, "requested": requested}
        )


class CouponError(CarWorldError):
    """Coupon cannot be applied"""

    status_code = 400

    def __init__(self, message: str, code: str = ""):
        super().__init__(message, code="COUPON_INVALID")
        if code:
            self.details["coupon_code"] = code


class OTPError(CarWorldError):
    """OTP could not be sent or verified"""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message, code="OTP_ERROR")


class PaymentError(CarWorldError):
    """Payment could not be recorded"""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message, code="PAYMENT_ERROR")


class NotificationError(CarWorldError):
    """WhatsApp or email message was not delivered"""

    status_code = 502

    def __init__(self, channel: str, message: str):
        super().__init__(
            f"{channel} delivery failed: {message}",
            code="NOTIFICATION_FAILED",
            details={"channel": channel}
        )


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: CarWorldError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "success": False,
        "error": error.to_dict()
    }
