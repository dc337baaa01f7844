"""Domain models for the traceability gateway."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class Role(StrEnum):
    """Roles a session can hold."""

    FARMER = "farmer"
    LAB = "lab"
    ADMIN = "admin"
    CUSTOMER = "customer"


class RecordKind(StrEnum):
    """Tags of the record types stored on the ledger."""

    COLLECTION_EVENT = "CollectionEvent"
    QUALITY_TEST = "QualityTest"
    PROCESSING_STEP = "ProcessingStep"
    BATCH_ASSET = "BatchAsset"


REQUIRED_TEST_PARAMETERS = ("moisture", "purity", "foreignMatter")


@dataclass(frozen=True)
class CommitReceipt:
    """Commit details reported by the ledger for a submitted transaction."""

    transaction_id: str | None
    block_number: int | None


@dataclass(frozen=True)
class SubmitResult:
    """Decoded submit payload together with its commit receipt."""

    payload: object
    receipt: CommitReceipt


@dataclass(frozen=True)
class LiveBlockEvent:
    """A block committed on a channel."""

    block_number: int
    tx_count: int
    timestamp: datetime

    def to_json(self) -> dict[str, object]:
        """Return the wire representation sent to stream subscribers."""
        return {
            "blockNumber": self.block_number,
            "txCount": self.tx_count,
            "timestamp": self.timestamp.isoformat(),
        }
