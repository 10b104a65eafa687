"""Configuration loader for the proficiency exam service with environment-specific support"""

import os
from pathlib import Path

from dotenv import load_dotenv

project_dir = Path(__file__).parent.parent.parent
env_path = project_dir / ".env"

# Load .env file if it exists. For local development only.
if env_path.exists():
    load_dotenv(env_path)


def _as_bool(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


# Configuration dictionary - set once at initialization
config = {
    "database_url": os.getenv("DATABASE_URL"),
    "redis_url": os.getenv("REDIS_URL", "redis://localhost:6379/0"),
    "port": int(os.getenv("PORT", "8080")),
    "log_level": os.getenv("LOG_LEVEL", "INFO"),
    # Echo every SQL statement through the sqlalchemy.engine logger
    "sql_echo": _as_bool(os.getenv("SQL_ECHO")),
    "redis_max_connections": int(os.getenv("REDIS_MAX_CONNECTIONS", "20")),
    "redis_connect_timeout_seconds": float(
        os.getenv("REDIS_CONNECT_TIMEOUT_SECONDS", "5")
    ),
    "environment": os.getenv("ENVIRONMENT", "development"),
    "app_base_url": os.getenv("APP_BASE_URL", "http://localhost:8080"),
    "paystack_secret_key": os.getenv("PAYSTACK_SECRET_KEY"),
    "paystack_base_url": os.getenv("PAYSTACK_BASE_URL", "https://api.paystack.co"),
    # Accepts unverifiable EP_ references as paid. Never allowed in production.
    "payment_sandbox_mode": _as_bool(os.getenv("PAYMENT_SANDBOX_MODE")),
    # 0 disables the background expiry sweeper
    "sweep_interval_seconds": int(os.getenv("SWEEP_INTERVAL_SECONDS", "600")),
}
