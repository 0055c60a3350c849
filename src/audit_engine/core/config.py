"""Configuration models for core engine components.

This module provides Pydantic-based configuration classes that consolidate
settings for the dispatcher and poller, enabling dependency injection and
testability.
"""

from typing import Optional

from pydantic import BaseModel, Field

from audit_engine.core.settings import PollOverlapPolicy


class AuditEngineConfig(BaseModel):
    """Configuration for the audit job engine.

    Attributes:
        api_url: Backend base URL (no trailing slash)
        poll_interval: Seconds between poll ticks (float for test flexibility)
        poll_overlap: Whether a tick may re-fetch a job whose previous fetch is pending
        request_timeout: Total seconds per request (None = HTTP client default)
    """

    api_url: str = Field(
        default="http://localhost:3001",
        min_length=1,
        description="Base URL of the partner backend",
    )

    poll_interval: float = Field(
        default=5.0,
        gt=0,
        description="Interval in seconds between poll ticks while non-final jobs exist",
    )

    poll_overlap: PollOverlapPolicy = Field(
        default=PollOverlapPolicy.allow,
        description="Policy for jobs whose previous status fetch has not resolved yet",
    )

    request_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Total request timeout in seconds (None keeps the HTTP client default)",
    )

    model_config = {
        "frozen": True,  # Immutable after creation
        "extra": "forbid",
    }

    @property
    def base_url(self) -> str:
        return self.api_url.rstrip("/")

    @classmethod
    def from_app_settings(cls, settings) -> "AuditEngineConfig":
        """Factory method to construct config from an AuditSettings instance.

        Args:
            settings: AuditSettings instance from core.settings

        Returns:
            AuditEngineConfig with values from app settings
        """
        return cls(
            api_url=settings.AUDIT_API_URL,
            poll_interval=settings.AUDIT_POLL_INTERVAL,
            poll_overlap=settings.AUDIT_POLL_OVERLAP,
            request_timeout=settings.AUDIT_REQUEST_TIMEOUT,
        )
