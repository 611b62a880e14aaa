import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _resolve_database_url() -> str:
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return database_url

    environment = os.getenv("ENVIRONMENT", "").strip().lower()
    if environment == "development":
        return "postgresql+psycopg://localhost:5434/nda_access"

    raise ValueError(
        "DATABASE_URL is not set. Set DATABASE_URL for non-development "
        "environments or set ENVIRONMENT=development for local defaults."
    )


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _is_production() -> bool:
    return os.getenv("ENVIRONMENT", "").strip().lower() == "production"


@dataclass(frozen=True)
class Settings:
    environment: str = os.getenv("ENVIRONMENT", "development").strip().lower()
    database_url: str = _resolve_database_url()
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "5"))
    db_max_overflow: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    db_pool_timeout: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    db_pool_recycle: int = int(os.getenv("DB_POOL_RECYCLE", "1800"))

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_format: str = os.getenv("LOG_FORMAT", "json")

    # S3 / MinIO settings
    s3_endpoint_url: str = os.getenv("S3_ENDPOINT_URL", "")
    s3_access_key: str = os.getenv("S3_ACCESS_KEY", "")
    s3_secret_key: str = os.getenv("S3_SECRET_KEY", "")
    s3_bucket_name: str = os.getenv("S3_BUCKET_NAME", "signed-ndas")
    s3_template_bucket_name: str = os.getenv("S3_TEMPLATE_BUCKET_NAME", "nda-files")
    s3_region: str = os.getenv("S3_REGION", "us-east-1")
    s3_connect_timeout: int = int(os.getenv("S3_CONNECT_TIMEOUT", "5"))
    s3_read_timeout: int = int(os.getenv("S3_READ_TIMEOUT", "30"))

    # NDA policy
    nda_template_key: str = os.getenv("NDA_TEMPLATE_KEY", "template/NDA.pdf")
    nda_access_window_days: int = int(os.getenv("NDA_ACCESS_WINDOW_DAYS", "7"))
    nda_template_link_ttl_seconds: int = int(
        os.getenv("NDA_TEMPLATE_LINK_TTL_SECONDS", "600")
    )
    nda_signed_link_ttl_seconds: int = int(
        os.getenv("NDA_SIGNED_LINK_TTL_SECONDS", "600")
    )
    nda_upload_max_bytes: int = int(
        os.getenv("NDA_UPLOAD_MAX_BYTES", str(10 * 1024 * 1024))
    )  # 10MB
    nda_upload_allowed_types: str = os.getenv(
        "NDA_UPLOAD_ALLOWED_TYPES", "application/pdf,image/png,image/jpeg"
    )

    # Session bridge
    nda_cookie_name: str = os.getenv("NDA_COOKIE_NAME", "nda_access")
    nda_cookie_max_age_seconds: int = int(
        os.getenv("NDA_COOKIE_MAX_AGE_SECONDS", str(60 * 60 * 24 * 7))
    )
    nda_cookie_secure: bool = _env_bool("NDA_COOKIE_SECURE", _is_production())
    nda_protected_listing_path: str = os.getenv(
        "NDA_PROTECTED_LISTING_PATH", "/investor/ideas"
    )
    nda_idea_path_template: str = os.getenv(
        "NDA_IDEA_PATH_TEMPLATE", "/investor/ideas/{idea_id}"
    )

    # Identity
    admin_api_keys: str = os.getenv("ADMIN_API_KEYS", "")

    # Email
    site_url: str = os.getenv("SITE_URL", "http://localhost:3000")
    email_provider: str = os.getenv("EMAIL_PROVIDER", "stub")
    email_from: str = os.getenv(
        "EMAIL_FROM", "Bank of Unique Ideas <no-reply@bankofuniqueideas.com>"
    )
    email_timeout_seconds: float = float(os.getenv("EMAIL_TIMEOUT_SECONDS", "10"))
    email_test_recipient: str = os.getenv("EMAIL_TEST_RECIPIENT", "")
    admin_notification_email: str = os.getenv("ADMIN_NOTIFICATION_EMAIL", "")
    resend_api_key: str = os.getenv("RESEND_API_KEY", "")
    resend_api_url: str = os.getenv("RESEND_API_URL", "https://api.resend.com/emails")

    # Celery
    celery_broker_url: str = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    celery_result_backend: str = os.getenv(
        "CELERY_RESULT_BACKEND", "redis://localhost:6379/1"
    )
    celery_task_always_eager: bool = _env_bool("CELERY_TASK_ALWAYS_EAGER", False)


settings = Settings()
