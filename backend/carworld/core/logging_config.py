"""
Car World CRM - Logging

Readable lines in development, one JSON object per line in production. Every
record carries the request id, acting user and shop role of the request that
produced it.
"""

import logging
import sys
import json
import traceback
import uuid
from datetime import datetime
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional
from contextvars import ContextVar

from carworld.core.config import settings


request_id_var: ContextVar[str] = ContextVar('request_id', default='')
user_id_var: ContextVar[str] = ContextVar('user_id', default='')
shop_role_var: ContextVar[str] = ContextVar('shop_role', default='')


def get_request_id() -> str:
    return request_id_var.get()


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def get_user_id() -> str:
    return user_id_var.get()


def set_user_id(user_id: str) -> None:
    user_id_var.set(user_id)


def get_shop_role() -> str:
    return shop_role_var.get()


def set_shop_role(role: str) -> None:
    shop_role_var.set(role)


def generate_request_id() -> str:
    return uuid.uuid4().hex[:8]


def request_context() -> Dict[str, str]:
    """Context variables that are currently set"""
    context = {
        "request_id": get_request_id(),
        "user_id": get_user_id(),
        "shop_role": get_shop_role(),
    }
    return {key: value for key, value in context.items() if value}


def mask_recipient(recipient: Optional[str]) -> Optional[str]:
    """Keep the last four digits of a phone number; emails pass through"""
    if not recipient or "@" in recipient:
        return recipient
    if len(recipient) <= 4:
        return recipient
    return "*" * (len(recipient) - 4) + recipient[-4:]


_STANDARD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "taskName"}


class JSONFormatter(logging.Formatter):
    """Structured lines for production log shipping"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update(request_context())

        if record.exc_info and record.exc_info[0]:
            exc_type, exc_value, exc_tb = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": traceback.format_exception(exc_type, exc_value, exc_tb),
            }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith('_'):
                entry[key] = value

        return json.dumps(entry, default=str)


class ContextualFormatter(logging.Formatter):
    """Plain text formatter; missing context renders as '-'"""

    def format(self, record: logging.LogRecord) -> str:
        record.request_id = get_request_id() or '-'
        record.user_id = get_user_id() or '-'
        record.shop_role = get_shop_role() or '-'
        return super().format(record)


class CarWorldLogger(logging.Logger):
    """Logger with helpers for the events the shop cares about"""

    def log_request(self, method: str, path: str, status_code: int,
                    duration_ms: float, **kwargs) -> None:
        if status_code >= 500:
            level = logging.ERROR
        elif status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        self.log(
            level,
            f"<- {method} {path} {status_code} ({duration_ms:.2f}ms)",
            extra={
                "event_type": "http_request_complete",
                "http_method": method,
                "http_status": status_code,
                "duration_ms": duration_ms,
                **kwargs
            }
        )

    def log_auth_event(self, event: str, success: bool, user_email: str = None,
                       reason: str = None, **kwargs) -> None:
        """Login, OTP, token refresh and password reset outcomes"""
        message = f"Auth {event} {'ok' if success else 'failed'}"
        if user_email:
            message += f" for {user_email}"
        if reason:
            message += f": {reason}"
        self.log(
            logging.INFO if success else logging.WARNING,
            message,
            extra={
                "event_type": "auth",
                "auth_event": event,
                "auth_success": success,
                "user_email": user_email,
                "failure_reason": reason,
                **kwargs
            }
        )

    def log_notification_event(self, channel: str, event: str, success: bool,
                               recipient: str = None, **kwargs) -> None:
        """WhatsApp template sends and outgoing emails"""
        masked = mask_recipient(recipient)
        self.log(
            logging.INFO if success else logging.WARNING,
            f"{channel} {event} {'sent' if success else 'not sent'}" + (f" to {masked}" if masked else ""),
            extra={
                "event_type": "notification",
                "channel": channel,
                "notification_event": event,
                "notification_success": success,
                "recipient": masked,
                **kwargs
            }
        )

    def log_error_with_context(self, error: Exception, context: str = None,
                               **kwargs) -> None:
        self.error(
            f"{type(error).__name__} during {context or 'request'}: {error}",
            exc_info=True,
            extra={
                "event_type": "error",
                "error_type": type(error).__name__,
                "error_context": context,
                **kwargs
            }
        )

    def log_performance(self, operation: str, duration_ms: float,
                        threshold_ms: float = 1000, **kwargs) -> None:
        slow = duration_ms > threshold_ms
        self.log(
            logging.WARNING if slow else logging.DEBUG,
            f"Slow: {operation} took {duration_ms:.2f}ms" if slow
            else f"{operation} took {duration_ms:.2f}ms",
            extra={
                "event_type": "performance",
                "operation": operation,
                "duration_ms": duration_ms,
                "threshold_ms": threshold_ms,
                **kwargs
            }
        )


DEV_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | [%(request_id)s] [%(user_id)s:%(shop_role)s] | "
    "%(module)s.%(funcName)s:%(lineno)d | %(message)s"
)
DEV_CONSOLE_FORMAT = "%(levelname)-8s | [%(request_id)s] %(message)s"


def _file_handler(formatter: logging.Formatter, backups: int) -> Optional[logging.Handler]:
    if not settings.LOG_FILE:
        return None
    log_file = Path(settings.LOG_FILE)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=backups)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def setup_logging() -> CarWorldLogger:
    """Configure the 'carworld' logger for the current environment"""
    logging.setLoggerClass(CarWorldLogger)

    logger = logging.getLogger("carworld")
    logger.__class__ = CarWorldLogger
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    logger.handlers.clear()

    if settings.is_production:
        console_formatter = file_formatter = JSONFormatter()
        backups = 10
    else:
        console_formatter = ContextualFormatter(DEV_CONSOLE_FORMAT)
        file_formatter = ContextualFormatter(DEV_FILE_FORMAT)
        backups = 5

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.INFO)
    console.setFormatter(console_formatter)
    logger.addHandler(console)

    file_handler = _file_handler(file_formatter, backups)
    if file_handler:
        logger.addHandler(file_handler)

    for noisy in ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine", "aiosmtplib"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger.info(
        f"Logging ready for {settings.APP_NAME} ({settings.ENVIRONMENT})",
        extra={"log_level": settings.LOG_LEVEL, "json_logging": settings.is_production}
    )
    return logger


logger: CarWorldLogger = setup_logging()
