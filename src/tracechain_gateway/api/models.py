"""Pydantic models for request payloads."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class LedgerRecordIn(BaseModel):
    """Base for record payloads; unknown fields pass through to the ledger."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    def to_payload(self) -> dict[str, object]:
        """Return the camelCase JSON object submitted to the chaincode."""
        return self.model_dump(by_alias=True, exclude_none=True)


class CollectionEventIn(LedgerRecordIn):
    """Collection event payload."""

    event_id: str | None = None
    collector_id: str | None = None
    species: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    timestamp: str | None = None
    photo_url: str | None = None


class QualityTestIn(LedgerRecordIn):
    """Quality test payload; parameters may be an object or a JSON string."""

    test_id: str | None = None
    event_id: str | None = None
    parameters: dict[str, object] | str | None = None
    result: Literal["PASS", "FAIL"] | None = None
    date: str | None = None
    equipment_id: str | None = None


class ProcessingStepIn(LedgerRecordIn):
    """Processing step payload."""

    step_id: str | None = None
    batch_id: str | None = None
    processor_id: str | None = None
    step_type: str | None = None
    conditions: dict[str, object] | str | None = None
    timestamp: str | None = None


class BatchIn(LedgerRecordIn):
    """Batch asset payload."""

    batch_id: str
    events: list[str] = Field(default_factory=list)
    quality_tests: list[str] = Field(default_factory=list)
    processing_steps: list[str] = Field(default_factory=list)
    qr_code: str | None = None


class UserIn(LedgerRecordIn):
    """Registry entry submitted by an admin."""

    user_id: str | None = None
    name: str | None = None
    role: str | None = None
    organization: str | None = None
    license_number: str | None = None
    contact: dict[str, object] | None = None


class LoginRequest(BaseModel):
    """Login payload."""

    role: str
    name: str


class TrackingRequest(BaseModel):
    """Tracking id generation payload."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    batch_id: str = ""
