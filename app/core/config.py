"""
app/core/config.py

Purpose: Application configuration

- Loads environment variables
- Centralizes config values (DB URI, secrets, uploads, rate limits)
- Validates configuration on startup
- Environment-specific settings
"""

from pydantic import Field, field_validator, ValidationInfo
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, Literal, Dict, Any, List


DEFAULT_UPLOADS = {
    "extensions": ["jpg", "jpeg", "png", "gif", "bmp", "zip", "pdf", "txt"],
    "max_size": 10 * 1024 * 1024,
    "jpeg_quality": 75,
    "gif_animation": True,
    "resize": {
        "orig": {"width": 1280, "skip_size": 1024 * 1024},
        "md": {"width": 640},
        "sm": {"max_width": 170, "height": 150},
    },
    "types": {
        "jpg": {"max_size": 2000000},
        "png": {"max_size": 2000000},
        "gif": {"max_size": 2000000, "resize": {"orig": {"skip_size": 2000000}}},
    },
}

DEFAULT_MEDIA_SIZES = {
    "orig": {"width": 1280, "height": 1280, "quality": 90},
    "md": {"width": 640, "height": 480, "quality": 80},
    "sm": {"width": 170, "height": 150, "quality": 75},
}

DEFAULT_USERGROUP_SETTINGS = {
    "can_create_albums": {"type": "boolean", "default": True, "category": "media", "group": "media", "priority": 10},
    "max_album_count": {"type": "number", "default": 50, "category": "media", "group": "media", "priority": 20},
    "can_send_messages": {"type": "boolean", "default": True, "category": "dialogs", "group": "dialogs", "priority": 10},
    "can_use_admin_panel": {"type": "boolean", "default": False, "category": "admin", "group": "admin", "priority": 10},
    "points_to_ban": {"type": "number", "default": 10, "category": "moderation", "group": "moderation", "priority": 10},
}


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Validates all required configs on startup.
    """

    # Environment
    ENVIRONMENT: Literal["development", "staging", "production", "test"] = "development"

    # MongoDB
    MONGODB_URL: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI"
    )
    MONGODB_DB_NAME: str = Field(
        default="forum",
        description="MongoDB database name"
    )

    # Application
    DEBUG: bool = Field(default=False, description="Enable debug mode")
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    API_PREFIX: str = Field(default="/api/v1", description="API route prefix")
    CORS_ORIGINS: list = Field(default=["*"], description="Allowed CORS origins")
    FORWARDED_ALLOW_IPS: str = Field(
        default="127.0.0.1",
        description="Comma separated proxy addresses whose X-Forwarded-For is trusted"
    )
    APP_URL: str = Field(
        default="http://localhost:8000",
        description="Public base URL, used for links in reset mails and redirects"
    )

    # Security
    SECRET_KEY: str = Field(
        default="change-me-in-production",
        description="Application secret key"
    )
    SESSION_TTL_HOURS: int = Field(default=24 * 30, description="Login session lifetime")
    SESSION_COOKIE_NAME: str = Field(default="sid")
    RESET_PASSWORD_TOKEN_TTL_HOURS: int = Field(default=6)
    PASSWORD_MIN_LENGTH: int = Field(default=8)

    # Login rate limits
    LOGIN_IP_MAX_ATTEMPTS: int = Field(default=5, description="Failed logins per IP per window")
    LOGIN_IP_WINDOW_SECONDS: int = Field(default=300)
    LOGIN_TOTAL_MAX_ATTEMPTS: int = Field(default=60, description="Failed logins overall per window")
    LOGIN_TOTAL_WINDOW_SECONDS: int = Field(default=60)

    # reCAPTCHA
    RECAPTCHA_PRIVATE_KEY: Optional[str] = Field(default=None)
    RECAPTCHA_PUBLIC_KEY: Optional[str] = Field(default=None)
    RECAPTCHA_VERIFY_URL: str = Field(default="https://www.google.com/recaptcha/api/verify")
    RECAPTCHA_TIMEOUT: float = Field(default=10.0)

    # Uploads & media
    UPLOADS: Dict[str, Any] = Field(default_factory=lambda: dict(DEFAULT_UPLOADS))
    MEDIA_SIZES: Dict[str, Any] = Field(default_factory=lambda: dict(DEFAULT_MEDIA_SIZES))
    GRIDFS_BUCKET: str = Field(default="fs")
    MEDIALINK_PROVIDERS: List[Dict[str, Any]] = Field(
        default_factory=lambda: [
            {"id": "youtube.com", "enabled": True},
            {"id": "vimeo.com", "enabled": True},
            {"id": "flickr.com", "enabled": False},
        ]
    )

    # Admin
    USERGROUP_SETTINGS: Dict[str, Dict[str, Any]] = Field(
        default_factory=lambda: dict(DEFAULT_USERGROUP_SETTINGS)
    )
    DEFAULT_USERGROUP: str = Field(default="members")

    @field_validator("SECRET_KEY")
    @classmethod
    def validate_secret_key(cls, v, info: ValidationInfo):
        """Ensure secret key is changed in production."""
        if info.data.get("ENVIRONMENT") == "production" and v == "change-me-in-production":
            raise ValueError("SECRET_KEY must be changed in production environment")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid LOG_LEVEL '{v}'. Must be one of: {valid_levels}")
        return v.upper()

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        env_file_encoding="utf-8",
    )


# Global settings instance
settings = Settings()


def validate_settings():
    """
    Validates critical settings on application startup.
    Raises ValueError if any required setting is missing or invalid.
    """
    # Imported here, the parsers pull settings in at module level
    from app.core.exceptions import ConfigError
    from app.services.uploads_config import parse_uploads_config, read_media_sizes

    errors = []

    if not settings.MONGODB_URL:
        errors.append("MONGODB_URL is required")

    try:
        parse_uploads_config(settings.UPLOADS)
    except ConfigError as e:
        errors.append(f"UPLOADS: {e.message}")

    try:
        read_media_sizes(settings.MEDIA_SIZES)
    except ConfigError as e:
        errors.append(f"MEDIA_SIZES: {e.message}")

    # Production-specific validations
    if settings.is_production:
        if not settings.RECAPTCHA_PRIVATE_KEY:
            errors.append("RECAPTCHA_PRIVATE_KEY is required in production")

    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")

    return True
