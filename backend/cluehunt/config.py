from __future__ import annotations
import os
from pydantic import BaseModel

class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "dev")
    app_name: str = os.getenv("APP_NAME", "cluehunt-api")
    app_display_name: str = os.getenv("APP_DISPLAY_NAME", "Clue Hunt")
    app_version: str = os.getenv("APP_VERSION", "0.1.0")
    git_sha: str = os.getenv("GIT_SHA", "dev")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
    database_url: str = os.getenv("DATABASE_URL", "postgresql+asyncpg://postgres:postgres@db:5432/cluehunt_dev")
    redis_url: str = os.getenv("REDIS_URL", "redis://redis:6379/0")
    s3_endpoint: str = os.getenv("S3_ENDPOINT", "http://minio:9000")
    s3_access_key: str = os.getenv("S3_ACCESS_KEY", "minioadmin")
    s3_secret_key: str = os.getenv("S3_SECRET_KEY", "minioadmin")
    s3_bucket_uploads: str = os.getenv("S3_BUCKET_UPLOADS", "cluehunt-uploads-dev")
    # Media exposure: a public base URL wins over presigned links
    media_public_base_url: str = os.getenv("MEDIA_PUBLIC_BASE_URL", "")
    s3_presign_expiry_seconds: int = int(os.getenv("S3_PRESIGN_EXPIRY_SECONDS", "604800"))

    # Identity tokens
    jwt_secret: str = os.getenv("JWT_SECRET", "dev-secret-change-me")
    token_ttl_min: int = int(os.getenv("TOKEN_TTL_MIN", "720"))  # one hunt day
    coordinator_passcode: str = os.getenv("COORDINATOR_PASSCODE", "letmein")

    # Photo upload pipeline
    upload_timeout_seconds: float = float(os.getenv("UPLOAD_TIMEOUT_SECONDS", "25"))
    upload_attempts: int = int(os.getenv("UPLOAD_ATTEMPTS", "2"))
    upload_backoff_seconds: float = float(os.getenv("UPLOAD_BACKOFF_SECONDS", "1"))  # linear: 1s, 2s, ...
    max_upload_bytes: int = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
    upload_stale_after_seconds: int = int(os.getenv("UPLOAD_STALE_AFTER_SECONDS", "300"))
    delete_media_on_approve: bool = os.getenv("DELETE_MEDIA_ON_APPROVE", "1") == "1"

    # Live change feed; an empty channel keeps diffs inside the process
    feed_queue_size: int = int(os.getenv("FEED_QUEUE_SIZE", "256"))
    feed_redis_channel: str = os.getenv("FEED_REDIS_CHANNEL", "cluehunt:changes")

settings = Settings()
