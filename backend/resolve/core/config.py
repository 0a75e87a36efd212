# resolve/core/config.py
"""
Application configuration using Pydantic Settings
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
import json
from pydantic import field_validator


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables
    """

    # Application
    APP_NAME: str = "Resolve"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    FRONTEND_URL: str = "http://localhost:5173"

    # Database
    DATABASE_URL: str

    # Auth (tokens issued by the identity provider)
    AUTH_JWT_SECRET: str
    AUTH_JWT_ALGORITHM: str = "HS256"
    AUTH_JWT_AUDIENCE: str = "authenticated"
    ADMIN_SESSION_SECRET: str = ""
    ADMIN_SESSION_COOKIE: str = "admin_session"

    # Entitlements and pricing
    FREE_TIER_LIMIT: int = 2
    APPLICATION_FEE_CENTS: int = 29900
    CURRENCY: str = "aud"

    # AWS
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "ap-southeast-2"

    # AI generation
    AI_PROVIDER: str = "disabled"   # disabled | bedrock
    BEDROCK_MODEL_ID: str = "anthropic.claude-3-haiku-20240307-v1:0"
    AI_MAX_TOKENS: int = 4096
    AI_TEMPERATURE: float = 0.2

    @field_validator("BEDROCK_MODEL_ID", mode="before")
    @classmethod
    def strip_bedrock_model_id(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip()
        return v

    # Email delivery
    EMAIL_PROVIDER: str = "dev"     # dev | resend
    EMAIL_FROM: str = "Resolve <noreply@resolve.example>"
    RESEND_API_KEY: str = ""
    ADMIN_EMAIL: str = ""

    # File storage
    STORAGE_PROVIDER: str = "local"  # local | s3
    LOCAL_STORAGE_DIR: str = "./storage"
    S3_BUCKET_NAME: str = "resolve-documents"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    # Payments
    PAYMENT_PROVIDER: str = "dev"   # dev | stripe
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""

    # Calendar sync
    GOOGLE_CALENDAR_ACCESS_TOKEN: str = ""
    GOOGLE_CALENDAR_ID: str = "primary"
    GOOGLE_CALENDAR_TIMEZONE: str = "Australia/Sydney"

    # Workflow outbox worker
    WORKFLOW_WORKER_ENABLED: bool = True
    WORKFLOW_WORKER_INTERVAL_SECONDS: int = 30
    WORKFLOW_WORKER_BATCH_SIZE: int = 20
    WORKFLOW_TASK_MAX_ATTEMPTS: int = 5
    WORKFLOW_TASK_BASE_DELAY_SECONDS: float = 30.0
    WORKFLOW_TASK_STALE_MINUTES: int = 15

    # Notifications
    NOTIFICATION_DEDUPE_HOURS: int = 24
    IDEMPOTENCY_TTL_HOURS: int = 24
    NOTIFICATION_TTL_DAYS: int = 30

    # CORS
    CORS_ORIGINS: str = '["http://localhost:5173"]'
    CORS_ORIGIN_REGEX: str | None = None

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from string to list"""
        try:
            if isinstance(self.CORS_ORIGINS, str):
                return json.loads(self.CORS_ORIGINS)
            return self.CORS_ORIGINS
        except ValueError:
            return ["http://localhost:5173"]

    @property
    def admin_session_secret(self) -> str:
        return self.ADMIN_SESSION_SECRET or self.AUTH_JWT_SECRET


settings = Settings()
