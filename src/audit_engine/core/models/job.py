from enum import StrEnum
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


class JobOrigin(StrEnum):
    individual = "individual"
    bulk = "bulk"
    unknown = "unknown"


# Backend representation of a job. Shape is not guaranteed; only the
# normalizer reads it.
RawJobPayload = Any


class AuditJob(BaseModel):
    """Canonical client-side record of one partner audit job.

    Notes:
    - `status` and `origin` are open vocabularies; the classifier decides
      finality and presentation, the model never validates them.
    - `last_checked_at` is stamped by the registry, never by the backend.
    - `raw` keeps the latest backend response verbatim for debugging.
    - The set of fields explicitly present in the backend payload is kept
      privately so the registry can tell real values from defaults.
    """

    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(alias="jobId", min_length=1)
    status: str = "pending"
    partner_ids: List[str] = Field(default_factory=list, alias="partnerIds")
    origin: str = JobOrigin.unknown.value
    requested_by: Optional[str] = Field(default=None, alias="requestedBy")
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    completed_at: Optional[str] = Field(default=None, alias="completedAt")
    error: Optional[str] = None
    payload: Any = None
    result: Any = None
    raw: Any = None
    last_checked_at: Optional[str] = Field(default=None, alias="lastCheckedAt")

    _supplied_fields: FrozenSet[str] = PrivateAttr(default_factory=frozenset)

    @property
    def supplied_fields(self) -> FrozenSet[str]:
        return self._supplied_fields

    def mark_supplied(self, fields) -> "AuditJob":
        self._supplied_fields = frozenset(fields)
        return self

    def was_supplied(self, field_name: str) -> bool:
        return field_name in self._supplied_fields

    def to_display_dict(self) -> Dict[str, Any]:
        """camelCase dump matching the backend naming."""
        return self.model_dump(by_alias=True)
