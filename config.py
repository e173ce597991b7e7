"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _flag(name, default='false'):
    return os.getenv(name, default).lower() in ('1', 'true', 'yes')


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '0') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'stockledger')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'stockledger')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'stockledger')

        DATABASE_URL = (
            f"postgresql://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = _flag('SQLALCHEMY_ECHO')
    DB_POOL_SIZE = int(os.getenv('DB_POOL_SIZE', '10'))
    DB_MAX_OVERFLOW = int(os.getenv('DB_MAX_OVERFLOW', '20'))
    SQLITE_BUSY_TIMEOUT = int(os.getenv('SQLITE_BUSY_TIMEOUT', '15'))  # seconds

    # Ledger policy
    ALLOW_NEGATIVE_STOCK = _flag('ALLOW_NEGATIVE_STOCK')
    ALLOW_NEGATIVE_CASH = _flag('ALLOW_NEGATIVE_CASH')
    CONCURRENCY_RETRIES = int(os.getenv('CONCURRENCY_RETRIES', '3'))
    SALE_INVOICE_PREFIX = os.getenv('SALE_INVOICE_PREFIX', 'INV')
    PURCHASE_INVOICE_PREFIX = os.getenv('PURCHASE_INVOICE_PREFIX', 'PUR')
    CASH_ACCOUNT_CODE = os.getenv('CASH_ACCOUNT_CODE', 'CASH_IN_HAND')
    BANK_ACCOUNT_CODE = os.getenv('BANK_ACCOUNT_CODE', 'BANK')

    # Redis Cache Configuration
    # Derived read models only (valuation); always recomputable from the logs
    REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
    CACHE_ENABLED = _flag('CACHE_ENABLED', 'true')
    CACHE_DEFAULT_TTL = int(os.getenv('CACHE_DEFAULT_TTL', '60'))  # seconds
    CACHE_KEY_PREFIX = os.getenv('CACHE_KEY_PREFIX', 'stockledger')

    # Error tracking
    SENTRY_DSN = os.getenv('SENTRY_DSN')
