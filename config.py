import os
import logging
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class BaseConfig:
    # ---------------------
    # Security & Logging
    # ---------------------
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
    ALGORITHM = os.getenv("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 1440))  # 24 hours
    REFRESH_TOKEN_EXPIRE_MINUTES = int(os.getenv("REFRESH_TOKEN_EXPIRE_MINUTES", 10080))  # 7 days
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    DEBUG = False

    # Admin panel login
    ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
    ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin")

    # ---------------------
    # Database
    # ---------------------
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./school_fees.db")

    # ---------------------
    # CORS (Frontend Apps)
    # ---------------------
    CORS_ORIGINS = [
        o.strip()
        for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
        if o.strip()
    ]

    # ---------------------
    # Fee Rules
    # ---------------------
    TERMS_PER_YEAR = int(os.getenv("TERMS_PER_YEAR", 3))
    DEFAULT_PAGE_SIZE = 20
    MAX_PAGE_SIZE = 100


class DevConfig(BaseConfig):
    DEBUG = True


class ProdConfig(BaseConfig):
    LOG_LEVEL = os.getenv("LOG_LEVEL", "WARNING")


class TestConfig(BaseConfig):
    LOG_LEVEL = "WARNING"
    # keep tests isolated
    DATABASE_URL = "sqlite://"


CONFIGS = {
    "development": DevConfig,
    "production": ProdConfig,
    "testing": TestConfig,
}


def get_config():
    """Pick the config class from APP_ENV (defaults to development)."""
    return CONFIGS.get(os.getenv("APP_ENV", "development"), DevConfig)


settings = get_config()


def configure_logging(level=None):
    logging.basicConfig(
        level=level or settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
