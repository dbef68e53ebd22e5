from pydantic_settings import BaseSettings
from typing import List, Any
import json
from pathlib import Path


def parse_cors_origins(v: Any) -> List[str]:
    """Parse CORS origins from string or list"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        # Try JSON parsing first
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Fall back to comma-separated
        return [origin.strip() for origin in v.split(',') if origin.strip()]
    return []


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "Car World CRM"
    SHOP_NAME: str = "Mauli Car World"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    SECRET_KEY: str
    API_VERSION: str = "v1"

    # Server Configuration
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000

    # Public base URL used in links sent to customers (invoice PDFs)
    APP_URL: str = "http://localhost:8000"

    # ==========================================
    # Database
    # ==========================================
    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_ECHO: bool = False

    # ==========================================
    # Authentication
    # ==========================================
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 720  # 12 hours
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    OTP_PENDING_TOKEN_MINUTES: int = 10
    PASSWORD_RESET_TOKEN_MINUTES: int = 15
    BCRYPT_ROUNDS: int = 10

    # Non-admin sessions expire after this much inactivity
    INACTIVITY_TIMEOUT_MINUTES: int = 30

    # ==========================================
    # OTP
    # ==========================================
    OTP_LENGTH: int = 6
    OTP_EXPIRE_MINUTES: int = 10
    OTP_MAX_ATTEMPTS: int = 3

    # ==========================================
    # WhatsApp (template messaging API)
    # ==========================================
    WHATSAPP_API_KEY: str = ""
    WHATSAPP_PHONE_NUMBER_ID: str = "919970127778"
    WHATSAPP_BASE_URL: str = "https://cloudapi.akst.in/api/v1.0/messages"
    WHATSAPP_OTP_TEMPLATE: str = "otptest"
    WHATSAPP_ROLE_OTP_TEMPLATE: str = "roleotp"
    WHATSAPP_WELCOME_TEMPLATE: str = "welcome_customer"
    WHATSAPP_INVOICE_TEMPLATE: str = "invoicetest1"
    WHATSAPP_TICKET_TEMPLATE: str = "ticket_followup"
    WHATSAPP_FEEDBACK_TEMPLATE: str = "feedback_request"
    WHATSAPP_MAX_RETRIES: int = 3
    WHATSAPP_RETRY_DELAY: float = 1.0  # seconds, doubled on every retry
    WHATSAPP_TIMEOUT: float = 15.0

    # ==========================================
    # Email
    # ==========================================
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    EMAIL_FROM: str = "noreply@maulicarworld.com"
    EMAIL_FROM_NAME: str = "Mauli Car World"
    DAILY_REPORT_RECIPIENT: str = ""

    # ==========================================
    # Invoices
    # ==========================================
    DEFAULT_GST_RATE: float = 18.0
    INVOICE_PDF_DIR: str = "invoices"
    INVOICE_PDF_TOKEN_DAYS: int = 30
    INVOICE_TERMS: str = "Goods once sold will not be taken back. Subject to local jurisdiction."

    # ==========================================
    # Warranties
    # ==========================================
    WARRANTY_EXPIRY_WINDOW_DAYS: int = 30

    # ==========================================
    # CORS (stored as comma-separated string, parsed to list)
    # ==========================================
    CORS_ORIGINS_STR: str = "http://localhost:3000,http://localhost:5000,http://127.0.0.1:3000,http://127.0.0.1:5000"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return parse_cors_origins(self.CORS_ORIGINS_STR)

    # ==========================================
    # Rate Limiting
    # ==========================================
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 120
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "logs/app.log"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings

    @property
    def INVOICE_PDF_PATH(self) -> Path:
        return Path(self.INVOICE_PDF_DIR)

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def whatsapp_configured(self) -> bool:
        return bool(self.WHATSAPP_API_KEY)

    @property
    def email_configured(self) -> bool:
        return bool(self.SMTP_USER and self.SMTP_PASSWORD)


# Create settings instance
settings = Settings()
