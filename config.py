"""Configuration settings for the Quick Shop service."""
import os


def _env_flag(name: str, default: str) -> bool:
    """Read a boolean flag from the environment."""
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


# Database Configuration
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./quickshop.db")
SEED_DEMO_DATA = _env_flag("SEED_DEMO_DATA", "true")

# Rate limiting
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")
RATE_LIMIT_ENABLED = _env_flag("RATE_LIMIT_ENABLED", "true")
RATE_LIMIT_PER_MINUTE_IP = int(os.getenv("RATE_LIMIT_PER_MINUTE_IP", "600"))
RATE_LIMIT_PER_MINUTE_USER = int(os.getenv("RATE_LIMIT_PER_MINUTE_USER", "120"))

# Telemetry
TELEMETRY_ENABLED = _env_flag("TELEMETRY_ENABLED", "false")
OTEL_EXPORTER_OTLP_ENDPOINT = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")

# Pyroscope Configuration
PROFILING_ENABLED = _env_flag("PROFILING_ENABLED", "false")
PYROSCOPE_SERVER = os.getenv("PYROSCOPE_SERVER_ADDRESS", "http://localhost:4040")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Application Settings
SERVICE_NAME = "quickshop-service"
API_VERSION = "1.0.0"
