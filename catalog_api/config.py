"""
API configuration and settings management.
"""
import os


class Config:
    """Application configuration."""

    # Database
    DB_PATH: str = os.getenv("CATALOG_DB", "./data/db/catalog.db")
    POOL_SIZE: int = int(os.getenv("CATALOG_POOL_SIZE", "10"))
    POOL_TIMEOUT: float = float(os.getenv("CATALOG_POOL_TIMEOUT", "5"))

    # API settings
    API_TITLE: str = "Motorcycle Catalog API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "Read-mostly REST API for the motorcycle catalog"

    # CORS settings
    CORS_ORIGINS: list = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list = ["GET", "POST", "OPTIONS"]
    CORS_ALLOW_HEADERS: list = ["*"]

    # Pagination
    DEFAULT_PAGE: int = 1
    MAX_PAGE: int = 1_000_000
    DEFAULT_LIMIT: int = 50
    MAX_LIMIT: int = 1000

    # Filter length caps
    MAX_BRAND_LENGTH: int = 512
    MAX_MODEL_LENGTH: int = 128
    MAX_CATEGORY_LENGTH: int = 512
    MAX_SEARCH_LENGTH: int = 256
    MAX_SORT_LENGTH: int = 64

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: str = os.getenv("LOG_FILE", "api.log")

    @classmethod
    def validate(cls) -> None:
        """Validate configuration on startup."""
        if not os.path.exists(cls.DB_PATH):
            raise FileNotFoundError(f"Database file not found: {cls.DB_PATH}")
        if cls.POOL_SIZE < 1:
            raise ValueError(f"CATALOG_POOL_SIZE must be positive, got {cls.POOL_SIZE}")


# Global config instance
config = Config()
