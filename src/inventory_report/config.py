"""Configuration management for the inventory report service.

This module provides centralized configuration using pydantic-settings.
All configuration options can be set via environment variables with the
IRS_ prefix, or via a .env file in the project root.

Environment Variables:
    IRS_TEMPLATE_PATH: Path to the .xlsx template (default: Template/InventoryReport.xlsx)
    IRS_SHEET_NAME: Worksheet whose data is replaced (default: Master Data)
    IRS_DATABASE_URL: PostgreSQL connection string (libpq DSN or URI)
    IRS_DEFAULT_QUERY: Query used when a request does not supply one
    IRS_PRICE_LOOKUP_QUERY: Optional (sku, average_price) query for price adjustment
    IRS_PRICE_SKU_COLUMN: SKU column used for price lookup (default: Item)
    IRS_PRICE_UNIT_COST_COLUMN: Column receiving the average price (default: Standard Unit Cost)
    IRS_PRICE_VALUE_COLUMN: Column receiving price * qty (default: Standard Value)
    IRS_PRICE_QTY_COLUMN: Quantity column (default: Qty)
    IRS_DELIVERY_MODE: redirect (upload + 302) or download (default: redirect)
    IRS_EMPTY_RESULT_POLICY: reject (400) or empty_report (default: reject)
    IRS_REPORT_FILE_PREFIX: Output file name prefix (default: InventoryReport)
    IRS_STORAGE_BACKEND: supabase or s3 (default: supabase)
    IRS_S3_ENDPOINT_URL: S3-compatible endpoint URL
    IRS_S3_REGION: S3 region (default: auto)
    IRS_S3_BUCKET_NAME: S3 bucket name
    IRS_S3_ACCESS_KEY_ID: S3 access key id
    IRS_S3_SECRET_ACCESS_KEY: S3 secret access key
    IRS_S3_PRESIGN_EXPIRY_SECONDS: Presigned URL lifetime (default: 3600)
    IRS_SUPABASE_URL: Supabase project URL
    IRS_SUPABASE_ANON_KEY: Supabase anon key
    IRS_SUPABASE_SERVICE_ROLE_KEY: Supabase service role key (preferred)
    IRS_SUPABASE_BUCKET_NAME: Supabase storage bucket
    IRS_LOG_LEVEL: Logging level (default: INFO)
    IRS_DEBUG: Enable debug mode (default: false)
    IRS_CORS_ORIGINS: Comma-separated CORS origins (default: *)
    IRS_SERVER_HOST: Server bind host (default: 0.0.0.0)
    IRS_SERVER_PORT: Server bind port (default: 8080)
"""

import logging
from pathlib import Path
from typing import Any, Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_INVENTORY_QUERY = """
SELECT
    date AS "Date",
    area AS "Area",
    item AS "Item",
    key AS "Description",
    gl_group AS "GLGroup",
    type AS "Type",
    qty AS "Qty",
    unit AS "Unit",
    standard_unit_cost AS "Standard Unit Cost",
    standard_value AS "Standard Value"
FROM inventory_cost
WHERE area != 'MARKETING'
ORDER BY date
""".strip()


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables prefixed with
    IRS_ or via a .env file. Credentials use SecretStr to prevent accidental
    logging.

    Example .env file:
        IRS_DATABASE_URL=postgresql://report:secret@db:5432/inventory
        IRS_DELIVERY_MODE=download
        IRS_LOG_LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_prefix="IRS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # =========================================================================
    # Template Settings
    # =========================================================================

    template_path: str = "Template/InventoryReport.xlsx"
    """Path to the .xlsx template whose data sheet is replaced."""

    sheet_name: str = "Master Data"
    """Exact (case-sensitive) name of the worksheet to rewrite."""

    # =========================================================================
    # Data Source Settings
    # =========================================================================

    database_url: SecretStr = SecretStr("")
    """PostgreSQL connection string."""

    default_query: str = DEFAULT_INVENTORY_QUERY
    """Query run when a request does not provide one."""

    price_lookup_query: str | None = None
    """Query returning (sku, average_price) rows; enables price adjustment."""

    price_sku_column: str = "Item"
    price_unit_cost_column: str = "Standard Unit Cost"
    price_value_column: str = "Standard Value"
    price_qty_column: str = "Qty"

    # =========================================================================
    # Report Delivery Settings
    # =========================================================================

    delivery_mode: Literal["redirect", "download"] = "redirect"
    """redirect: upload to storage and 302; download: stream the file back."""

    empty_result_policy: Literal["reject", "empty_report"] = "reject"
    """reject: empty query result is a 400; empty_report: build a cleared report."""

    report_file_prefix: str = "InventoryReport"
    """Prefix of generated file names (<prefix>_<UTC timestamp>.xlsx)."""

    # =========================================================================
    # Storage Settings
    # =========================================================================

    storage_backend: Literal["supabase", "s3"] = "supabase"
    """Object storage used in redirect mode."""

    s3_endpoint_url: str = ""
    s3_region: str = "auto"
    s3_bucket_name: str = ""
    s3_access_key_id: SecretStr = SecretStr("")
    s3_secret_access_key: SecretStr = SecretStr("")
    s3_presign_expiry_seconds: int = 3600

    supabase_url: str = ""
    supabase_anon_key: SecretStr = SecretStr("")
    supabase_service_role_key: SecretStr = SecretStr("")
    supabase_bucket_name: str = ""

    # =========================================================================
    # Logging Settings
    # =========================================================================

    log_level: str = "INFO"
    """Logging level: DEBUG, INFO, WARNING, ERROR, or CRITICAL."""

    debug: bool = False
    """Enable debug mode with error details in API responses."""

    # =========================================================================
    # Server Settings
    # =========================================================================

    cors_origins: str = "*"
    """Comma-separated list of allowed CORS origins, or * for all."""

    server_host: str = "0.0.0.0"
    server_port: int = 8080

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(
                f"Invalid log level: {v}. Must be one of: {', '.join(valid_levels)}"
            )
        return upper_v

    @field_validator("sheet_name", "template_path")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("template_path and sheet_name must be non-empty")
        return v

    @field_validator("server_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError(f"server_port must be between 1 and 65535, got {v}")
        return v

    @field_validator("s3_presign_expiry_seconds")
    @classmethod
    def validate_presign_expiry(cls, v: int) -> int:
        # S3 SigV4 caps presigned URLs at seven days
        if not 1 <= v <= 604800:
            raise ValueError(
                f"s3_presign_expiry_seconds must be between 1 and 604800, got {v}"
            )
        return v

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def template_file(self) -> Path:
        return Path(self.template_path)

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def log_level_int(self) -> int:
        """Get log level as integer for logging module."""
        level: int = getattr(logging, self.log_level)
        return level

    def get_database_url(self) -> str:
        return self.database_url.get_secret_value()

    def get_supabase_key(self) -> str:
        """Service role key when set (bypasses row-level security), else anon key."""
        service_key = self.supabase_service_role_key.get_secret_value()
        return service_key or self.supabase_anon_key.get_secret_value()

    def missing_storage_settings(self) -> list[str]:
        """Names of settings the selected storage backend still needs."""
        if self.storage_backend == "s3":
            required: dict[str, Any] = {
                "s3_endpoint_url": self.s3_endpoint_url,
                "s3_bucket_name": self.s3_bucket_name,
                "s3_access_key_id": self.s3_access_key_id.get_secret_value(),
                "s3_secret_access_key": self.s3_secret_access_key.get_secret_value(),
            }
        else:
            required = {
                "supabase_url": self.supabase_url,
                "supabase_bucket_name": self.supabase_bucket_name,
                "supabase_anon_key or supabase_service_role_key": (
                    self.get_supabase_key()
                ),
            }
        return [name for name, value in required.items() if not str(value).strip()]

    def to_safe_dict(self) -> dict[str, Any]:
        """Convert settings to dictionary with credentials masked."""

        def mask(secret: SecretStr) -> str:
            return "***" if secret.get_secret_value() else "(not set)"

        return {
            "template_path": self.template_path,
            "sheet_name": self.sheet_name,
            "database_url": mask(self.database_url),
            "price_adjustment_enabled": bool(self.price_lookup_query),
            "delivery_mode": self.delivery_mode,
            "empty_result_policy": self.empty_result_policy,
            "report_file_prefix": self.report_file_prefix,
            "storage_backend": self.storage_backend,
            "s3_endpoint_url": self.s3_endpoint_url,
            "s3_region": self.s3_region,
            "s3_bucket_name": self.s3_bucket_name,
            "s3_access_key_id": mask(self.s3_access_key_id),
            "s3_secret_access_key": mask(self.s3_secret_access_key),
            "s3_presign_expiry_seconds": self.s3_presign_expiry_seconds,
            "supabase_url": self.supabase_url,
            "supabase_anon_key": mask(self.supabase_anon_key),
            "supabase_service_role_key": mask(self.supabase_service_role_key),
            "supabase_bucket_name": self.supabase_bucket_name,
            "log_level": self.log_level,
            "debug": self.debug,
            "cors_origins": self.cors_origins,
            "server_host": self.server_host,
            "server_port": self.server_port,
        }


def validate_settings_on_startup(s: Settings) -> None:
    """Check settings once at process start and warn about likely defects.

    Nothing here is fatal: a missing template or storage credential surfaces
    as a structured error on the first request that needs it.

    Args:
        s: Settings instance to validate.
    """
    logger = logging.getLogger(__name__)

    if not s.template_file.is_file():
        logger.warning(
            f"Template file not found at {s.template_path}. "
            "Report generation will fail until IRS_TEMPLATE_PATH points to a .xlsx file."
        )

    if not s.get_database_url():
        logger.warning(
            "Database URL is not configured. Set IRS_DATABASE_URL environment variable."
        )

    if s.delivery_mode == "redirect":
        missing = s.missing_storage_settings()
        if missing:
            logger.warning(
                f"Storage backend '{s.storage_backend}' is missing settings: "
                f"{', '.join(missing)}. Uploads will fail."
            )

    if s.cors_origins == "*" and not s.debug:
        logger.warning(
            "CORS is configured to allow all origins (*). "
            "Consider restricting this in production."
        )

    logger.info(
        f"Configuration loaded: log_level={s.log_level}, debug={s.debug}, "
        f"sheet_name={s.sheet_name}, delivery_mode={s.delivery_mode}, "
        f"storage_backend={s.storage_backend}"
    )


# Create the global settings instance
settings = Settings()
