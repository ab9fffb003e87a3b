"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock modes enable local development without S3, Snowflake or FFmpeg.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like allowed_content_types), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Tubely Ingest API"
    api_version: str = "v1"
    jwt_secret: str = Field(
        default="",
        description="HMAC secret used to verify bearer tokens (HS256)."
    )

    # S3 / R2 Storage Configuration
    s3_bucket: str = Field(
        default="tubely-videos",
        description="Bucket that receives processed videos"
    )
    s3_region: str = Field(
        default="us-east-1",
        description="Region for the S3 client. R2 accepts 'auto'."
    )
    s3_endpoint_url: Optional[str] = Field(
        default=None,
        description="Custom endpoint for S3-compatible storage (R2, MinIO). None means AWS."
    )
    s3_access_key_id: str = Field(
        default="",
        description="Access key ID. Empty falls back to the boto3 credential chain."
    )
    s3_secret_access_key: str = Field(
        default="",
        description="Secret access key. Empty falls back to the boto3 credential chain."
    )
    storage_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of real object storage."
    )
    presigned_url_ttl_seconds: int = Field(
        default=300,
        description="Lifetime of signed playback URLs. Short on purpose; URLs are minted per response."
    )

    # Snowflake Configuration
    snowflake_account: str = Field(
        default="",
        description="Snowflake account identifier"
    )
    snowflake_user: str = Field(
        default="",
        description="Snowflake service account username"
    )
    snowflake_password: str = Field(
        default="",
        description="Snowflake service account password"
    )
    snowflake_private_key_path: Optional[str] = Field(
        default=None,
        description="Path to RSA private key file for key-pair authentication"
    )
    snowflake_database: str = Field(
        default="TUBELY",
        description="Snowflake database name"
    )
    snowflake_schema: str = Field(
        default="MEDIA",
        description="Snowflake schema name"
    )
    snowflake_warehouse: str = Field(
        default="COMPUTE_WH",
        description="Snowflake warehouse for query execution"
    )
    snowflake_role: Optional[str] = Field(
        default=None,
        description="Snowflake role to use (optional)"
    )
    snowflake_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of real Snowflake connection."
    )

    # Media Processing
    media_mock_mode: bool = Field(
        default=False,
        description="Use a fake media toolkit (no FFmpeg required). Probe reports 1920x1080."
    )
    ffmpeg_path: str = Field(
        default="ffmpeg",
        description="Path to the ffmpeg binary"
    )
    ffprobe_path: str = Field(
        default="ffprobe",
        description="Path to the ffprobe binary"
    )
    probe_timeout_seconds: float = Field(
        default=30.0,
        description="Upper bound for a single ffprobe run"
    )
    remux_timeout_seconds: float = Field(
        default=600.0,
        description="Upper bound for a single fast-start remux"
    )
    staging_dir: Optional[str] = Field(
        default=None,
        description="Directory for request-scoped temp files. None uses the system temp dir."
    )

    # Upload Limits
    max_upload_bytes: int = Field(
        default=1 << 30,
        description="Hard ceiling for one upload (1 GiB)."
    )
    allowed_content_types: str = Field(
        default="video/mp4",
        description="Comma-separated allow-list of upload content types."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def allowed_content_types_list(self) -> list[str]:
        """Parse comma-separated content types into a lowercase list."""
        return [
            ct.strip().lower()
            for ct in self.allowed_content_types.split(",")
            if ct.strip()
        ]

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode.
        """
        missing = []

        if not self.jwt_secret:
            missing.append("JWT_SECRET")

        if not self.storage_mock_mode and not self.s3_bucket:
            missing.append("S3_BUCKET")

        # Snowflake only required if not in mock mode
        if not self.snowflake_mock_mode:
            if not self.snowflake_account:
                missing.append("SNOWFLAKE_ACCOUNT")
            if not self.snowflake_user:
                missing.append("SNOWFLAKE_USER")
            if not self.snowflake_password and not self.snowflake_private_key_path:
                missing.append("SNOWFLAKE_PASSWORD or SNOWFLAKE_PRIVATE_KEY_PATH")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
