from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    # App settings
    APP_NAME: str = "Blogsphere API"
    VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Token settings (access and refresh tokens are signed with separate secrets)
    ACCESS_TOKEN_SECRET: str
    REFRESH_TOKEN_SECRET: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Password hashing cost; passlib rejects values below 4
    BCRYPT_ROUNDS: int = 12

    # Cookie settings
    COOKIE_SECURE: bool = True
    COOKIE_SAMESITE: str = "lax"

    # CORS settings
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # API settings
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "DEBUG"
    LOG_DIR: str = "logs"
    LOG_TTL_DAYS: int = 7

    # MongoDB
    MONGO_URI: Optional[str] = None
    MONGO_DB: str = "blogsphere"

    # Media hosting (Cloudinary)
    CLOUDINARY_CLOUD_NAME: Optional[str] = None
    CLOUDINARY_API_KEY: Optional[str] = None
    CLOUDINARY_API_SECRET: Optional[str] = None
    CLOUDINARY_FOLDER: str = "blogsphere"

    # Uploads are staged here before they are pushed to the media host
    UPLOAD_TEMP_DIR: str = "public/temp"
    MAX_UPLOAD_BYTES: int = 2 * 1024 * 1024

    class Config:
        env_file = ".env"
        case_sensitive = True

# Create settings instance
settings = Settings()

# Validate required settings
if not settings.ACCESS_TOKEN_SECRET:
    raise ValueError("ACCESS_TOKEN_SECRET environment variable is required")

if not settings.REFRESH_TOKEN_SECRET:
    raise ValueError("REFRESH_TOKEN_SECRET environment variable is required")
