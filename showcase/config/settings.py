"""
Showcase configuration, read from the environment (and .env).

STORE_BACKEND picks the persistence: local storage, the static config
file in front of local storage, or the remote Snowflake collection with
R2 for binaries. Each remote service has a mock mode so the remote
backend runs locally and in tests without credentials.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Every field maps to the upper-cased environment variable of the same
    name. List-valued settings (API keys, CORS origins) are comma-separated.
    """

    # API Configuration
    api_title: str = "Video Showcase API"
    api_version: str = "v1"
    api_keys: str = Field(
        default="dev-key-1,dev-key-2",
        description="Comma-separated API keys required for mutations."
    )

    # Store backend
    store_backend: Literal["local", "static", "remote"] = Field(
        default="local",
        description=(
            "local: local storage only. static: fetch the static config first, "
            "fall back to local storage. remote: Snowflake collection + R2."
        )
    )
    local_storage_path: str = Field(
        default="data/local-storage.json",
        description="JSON file standing in for browser local storage"
    )
    static_config_url: str = Field(
        default="http://localhost:5173/videos-config.json",
        description="Where the static videos config is fetched from (static backend)"
    )
    static_config_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for the static config fetch"
    )
    local_upload_mode: Literal["blob", "endpoint"] = Field(
        default="blob",
        description=(
            "How local stores turn files into URLs. blob: in-memory blob: references. "
            "endpoint: POST to the upload endpoint."
        )
    )
    upload_endpoint_url: str = Field(
        default="http://localhost:8000",
        description="Base URL of the server exposing /api/upload (endpoint mode)"
    )

    # Upload endpoint
    upload_dir: str = Field(
        default="public/uploaded-video",
        description="Directory the upload endpoint writes files into"
    )
    upload_public_path: str = Field(
        default="/uploaded-video",
        description="URL path the upload directory is served under"
    )
    max_upload_size_mb: int = Field(
        default=100,
        description="Maximum size of a single uploaded file in MB"
    )

    # Snowflake Configuration
    snowflake_account: str = Field(
        default="",
        description="Account identifier, e.g. xy12345.eu-central-1"
    )
    snowflake_user: str = Field(
        default="",
        description="User the API connects as"
    )
    snowflake_password: str = Field(
        default="",
        description="Password auth; ignored when a private key is configured"
    )
    snowflake_private_key_path: Optional[str] = Field(
        default=None,
        description="Unencrypted PEM key file for key-pair auth"
    )
    snowflake_private_key_base64: Optional[str] = Field(
        default=None,
        description="Same key, base64 encoded, for hosts without a writable filesystem"
    )
    snowflake_database: str = Field(
        default="SHOWCASE",
        description="Database holding the video_documents table"
    )
    snowflake_schema: str = Field(
        default="PUBLIC",
        description="Schema holding the video_documents table"
    )
    snowflake_warehouse: str = Field(
        default="COMPUTE_WH",
        description="Warehouse the collection polls run on"
    )
    snowflake_role: Optional[str] = Field(
        default=None,
        description="Role to assume, defaults to the user's default role"
    )
    snowflake_mock_mode: bool = Field(
        default=False,
        description="Keep the remote collection in memory instead of Snowflake"
    )
    collection_poll_interval_seconds: float = Field(
        default=2.0,
        description="How often the remote collection subscription re-reads the table"
    )

    # R2/S3 Storage Configuration
    r2_account_id: str = Field(
        default="",
        description="Cloudflare account that owns the bucket"
    )
    r2_access_key_id: str = Field(
        default="",
        description="R2 access key ID"
    )
    r2_secret_access_key: str = Field(
        default="",
        description="R2 API token secret"
    )
    r2_bucket_name: str = Field(
        default="showcase-videos",
        description="R2 bucket name for videos and thumbnails"
    )
    r2_endpoint_url: Optional[str] = Field(
        default=None,
        description="S3 endpoint override; derived from the account id when unset"
    )
    r2_public_base_url: Optional[str] = Field(
        default=None,
        description="Public bucket URL. When unset, uploads are addressed with presigned URLs."
    )
    r2_mock_mode: bool = Field(
        default=False,
        description="Keep uploaded binaries in memory instead of R2"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:5173,http://localhost:3000",
        description="Comma-separated origins allowed to call the API, or *"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def api_keys_list(self) -> list[str]:
        return [key.strip() for key in self.api_keys.split(",") if key.strip()]

    @property
    def cors_origins_list(self) -> list[str]:
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def r2_endpoint(self) -> str:
        """Explicit endpoint, or the account's default R2 endpoint."""
        if self.r2_endpoint_url:
            return self.r2_endpoint_url
        return f"https://{self.r2_account_id}.r2.cloudflarestorage.com"

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set for the selected backend.

        Returns list of missing required fields. Only the remote backend
        talks to credentialed services, and only outside mock mode.
        """
        missing = []

        if self.store_backend == "static" and not self.static_config_url:
            missing.append("STATIC_CONFIG_URL")

        if self.store_backend != "remote":
            return missing

        if not self.snowflake_mock_mode:
            if not self.snowflake_account:
                missing.append("SNOWFLAKE_ACCOUNT")
            if not self.snowflake_user:
                missing.append("SNOWFLAKE_USER")
            if (
                not self.snowflake_password
                and not self.snowflake_private_key_path
                and not self.snowflake_private_key_base64
            ):
                missing.append("SNOWFLAKE_PASSWORD or SNOWFLAKE_PRIVATE_KEY_PATH/BASE64")

        if not self.r2_mock_mode:
            if not self.r2_account_id and not self.r2_endpoint_url:
                missing.append("R2_ACCOUNT_ID")
            if not self.r2_access_key_id:
                missing.append("R2_ACCESS_KEY_ID")
            if not self.r2_secret_access_key:
                missing.append("R2_SECRET_ACCESS_KEY")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """Settings from the environment, read once per process."""
    return Settings()
