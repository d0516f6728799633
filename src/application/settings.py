"""Application settings configuration for Turn Authorization."""

import logging
import sys

from neuroglia.hosting.abstractions import ApplicationSettings


class Settings(ApplicationSettings):
    """Turn Authorization settings."""

    # Debugging Configuration
    debug: bool = False
    environment: str = "development"  # development, production
    log_level: str = "INFO"

    # Application Configuration
    app_name: str = "Turn Authorization"
    app_version: str = "1.0.0"

    # ==========================================================================
    # Sign-in Configuration
    # ==========================================================================
    # Handler used when neither an active flow nor the caller names one.
    # Empty means "first registered handler".
    default_handler_name: str | None = None

    # Start sign-in automatically for every turn that is not already in a flow
    auto_sign_in: bool = True

    # Cached tokens expiring within this window are refreshed on read (5 minutes)
    token_refresh_window_seconds: int = 300

    # Sent to the user when an automatic sign-in fails and no failure callback is registered
    sign_in_failed_message: str = "Sign in for '{handler}' completed without a token. Status={cause}"

    # ==========================================================================
    # Turn State Storage
    # ==========================================================================
    state_store: str = "memory"  # memory, redis

    # Redis Configuration
    redis_url: str = "redis://redis:6379/3"
    redis_key_prefix: str = "turn-auth:state:"
    state_ttl_seconds: int = 86400  # 24 hours

    # ==========================================================================
    # Continuation Delivery
    # ==========================================================================
    continuation_queue_max_size: int = 0  # 0 = unbounded

    class Config:
        env_file = ".env"
        env_prefix = "TURN_AUTH_"  # All env vars prefixed with TURN_AUTH_
        case_sensitive = False
        extra = "ignore"


app_settings = Settings()


def configure_logging(log_level: str = "INFO") -> None:
    """
    Configure application-wide logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Reduce noise from third-party loggers
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)
    logging.getLogger("opentelemetry").setLevel(logging.WARNING)
