"""Runtime settings for the booking context, read from ``BOOKING_*`` env vars."""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    min_tension: int
    max_tension: int
    max_tension_diff: int
    max_redemption_attempts: int
    payment_timeout_seconds: float
    currency: str
    log_format: str
    log_level: str


def load_settings() -> Settings:
    """Build settings from the environment, falling back to shop defaults."""
    return Settings(
        min_tension=int(os.getenv("BOOKING_MIN_TENSION", "18")),
        max_tension=int(os.getenv("BOOKING_MAX_TENSION", "35")),
        max_tension_diff=int(os.getenv("BOOKING_MAX_TENSION_DIFF", "3")),
        max_redemption_attempts=int(os.getenv("BOOKING_MAX_REDEMPTION_ATTEMPTS", "3")),
        payment_timeout_seconds=float(os.getenv("BOOKING_PAYMENT_TIMEOUT_SECONDS", "10")),
        currency=os.getenv("BOOKING_CURRENCY", "MYR"),
        log_format=os.getenv("BOOKING_LOG_FORMAT", "console"),
        log_level=os.getenv("BOOKING_LOG_LEVEL", "INFO"),
    )


settings = load_settings()
