from enum import StrEnum

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings
from rich import print

# Logging adapter for application-wide logging
from audit_engine.adapters.logging_adapter import LoggingAdapter
from audit_engine.core.interfaces.logging import LoggingPort


class PollOverlapPolicy(StrEnum):
    allow = "allow"  # a new tick re-fetches jobs whose previous fetch is still pending
    skip = "skip"


# using pydantic_settings to manage environment variables
# and do automatic type casting in a central place
class AuditSettings(BaseSettings):
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore",
    }
    AUDIT_LOG_LEVEL: str = "INFO"
    AUDIT_API_URL: str = "http://localhost:3001"
    AUDIT_API_TOKEN: SecretStr | None = None
    AUDIT_REQUESTED_BY: str | None = None
    AUDIT_POLL_INTERVAL: float = 5.0
    AUDIT_POLL_OVERLAP: PollOverlapPolicy = PollOverlapPolicy.allow
    # None keeps the HTTP client's own default timeout
    AUDIT_REQUEST_TIMEOUT: float | None = None

    def print_settings(self, logger: LoggingPort):
        """Prints the settings for debugging purposes"""
        logger.info("Audit engine settings:")
        print(self)

    @field_validator("AUDIT_API_URL", mode="before")
    def strip_trailing_slash(cls, value: str) -> str:
        """Base URL is joined with absolute paths."""
        return str(value).rstrip("/")


app_settings = AuditSettings()

logger = LoggingAdapter("audit_engine", app_settings.AUDIT_LOG_LEVEL)
