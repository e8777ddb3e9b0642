"""
Configuration module for the Nearby discovery service.

Loads environment variables and provides configuration singletons.
Uses pydantic for validation.
"""

from pydantic_settings import BaseSettings
from typing import Optional
import os


class Config(BaseSettings):
    """
    Application configuration loaded from environment variables.

    All values come from .env file or system environment.
    Type hints provide validation (pydantic converts types automatically).
    """

    # ============================================================
    # STORE CONFIGURATION
    # ============================================================
    STORE_BACKEND: str = "firestore"
    """Which repository to use: 'firestore' (production) or 'memory' (tests/local dev)."""

    FIREBASE_PROJECT_ID: Optional[str] = None
    """Firebase project ID. Required when STORE_BACKEND=firestore."""

    GOOGLE_APPLICATION_CREDENTIALS: str = "/config/serviceAccountKey.json"
    """Path to Firebase service account JSON file."""

    STORE_TIMEOUT: float = 10.0
    """Seconds allowed for a single store call before it fails as retryable."""

    SEED_DEMO_DATA: bool = False
    """Seed the in-memory store with the demo interest taxonomy at startup."""

    # ============================================================
    # MATCHING CONFIGURATION
    # ============================================================
    DEFAULT_MAX_DISTANCE_KM: float = 50.0
    """Radius used when the caller does not pass max_distance_km."""

    DEFAULT_LIMIT_RESULTS: int = 20
    """Number of matches returned when the caller does not pass limit_results."""

    # ============================================================
    # SECURITY CONFIGURATION
    # ============================================================
    SERVICE_TOKEN: str = os.getenv("SERVICE_TOKEN", "")
    """Shared secret for authenticating requests from the app backend."""

    # ============================================================
    # SERVER CONFIGURATION
    # ============================================================
    PORT: int = 8000
    """Port to run FastAPI server on. Default: 8000."""

    HOST: str = "0.0.0.0"
    """Host to bind to. 0.0.0.0 = accessible from network."""

    DEBUG: bool = False
    """Enable debug logging. Set True for development, False for production."""

    class Config:
        """Pydantic configuration."""
        env_file = ".env"  # Read from .env file
        case_sensitive = True  # Variable names are case-sensitive
        extra = "ignore"  # Ignore extra env vars not defined above


# ============================================================
# SINGLETON INSTANCE
# ============================================================
# Load config once at startup, reuse throughout app
config = Config()


STORE_BACKENDS = ("firestore", "memory")


# ============================================================
# VALIDATION AT STARTUP
# ============================================================
def validate_config() -> dict:
    """
    Validate that required config values are set.

    Called at app startup to fail fast if config is incomplete.

    Returns:
        dict: Status of each required field

    Raises:
        ValueError: If required config is missing
    """
    errors = []

    if config.STORE_BACKEND not in STORE_BACKENDS:
        errors.append(
            f"STORE_BACKEND must be one of {', '.join(STORE_BACKENDS)}"
        )

    # Firestore needs a project to talk to
    if config.STORE_BACKEND == "firestore" and not config.FIREBASE_PROJECT_ID:
        errors.append("FIREBASE_PROJECT_ID is required when STORE_BACKEND=firestore")

    if config.STORE_TIMEOUT <= 0:
        errors.append("STORE_TIMEOUT must be greater than 0")

    if config.DEFAULT_MAX_DISTANCE_KM <= 0:
        errors.append("DEFAULT_MAX_DISTANCE_KM must be greater than 0")

    if config.DEFAULT_LIMIT_RESULTS < 1:
        errors.append("DEFAULT_LIMIT_RESULTS must be at least 1")

    if errors:
        raise ValueError(f"Configuration errors:\n" + "\n".join([f"  - {e}" for e in errors]))

    return {
        "store": config.STORE_BACKEND,
        "firebase": "✓ Configured" if config.FIREBASE_PROJECT_ID else "✗ Not set",
        "service_token": "✓ Configured" if config.SERVICE_TOKEN else "✗ Disabled",
        "matching_defaults": (
            f"{config.DEFAULT_MAX_DISTANCE_KM}km / {config.DEFAULT_LIMIT_RESULTS} results"
        ),
    }


if __name__ == "__main__":
    """Allow testing config by running: python -m src.config"""
    try:
        status = validate_config()
        print("✅ Configuration is valid!")
        print("\nConfiguration Status:")
        for key, value in status.items():
            print(f"  {key}: {value}")
    except ValueError as e:
        print(f"❌ Configuration error:\n{e}")
        exit(1)
