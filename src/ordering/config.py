"""Runtime settings for the ordering engine.

Settings are read from environment variables once, at process start, and
handed to :class:`ordering.domain.OrderingDomain`. Nothing else in the
package reads the environment.
"""

import os

from pydantic import BaseModel, Field

_TRUTHY = {"1", "true", "yes", "on"}


def get_environment() -> str:
    """Current environment name (development, test, staging, production)."""
    return (os.getenv("ORDERING_ENV") or os.getenv("ENV") or "development").lower()


class Settings(BaseModel):
    environment: str = "development"
    database_url: str = "sqlite:///ordering.db"
    # Upper bound, in seconds, for a single create/cancel/status transaction
    transaction_timeout: float = Field(default=10.0, gt=0)
    default_page_size: int = Field(default=10, ge=1)
    max_page_size: int = Field(default=100, ge=1)
    strict_transitions: bool = False
    echo_sql: bool = False

    @classmethod
    def from_env(cls, **overrides) -> "Settings":
        values = {
            "environment": get_environment(),
            "database_url": os.getenv("DATABASE_URL", "sqlite:///ordering.db"),
            "transaction_timeout": float(os.getenv("ORDERING_TRANSACTION_TIMEOUT", "10")),
            "default_page_size": int(os.getenv("ORDERING_DEFAULT_PAGE_SIZE", "10")),
            "max_page_size": int(os.getenv("ORDERING_MAX_PAGE_SIZE", "100")),
            "strict_transitions": os.getenv("ORDERING_STRICT_TRANSITIONS", "false").lower() in _TRUTHY,
            "echo_sql": os.getenv("ORDERING_ECHO_SQL", "false").lower() in _TRUTHY,
        }
        values.update(overrides)
        return cls(**values)
