"""Domain models for provenance bundles."""

from dataclasses import dataclass, field
from datetime import datetime

from tracechain_gateway.domain.models import RecordKind

_FLOW_TYPES = {
    RecordKind.COLLECTION_EVENT: "collection",
    RecordKind.QUALITY_TEST: "test",
    RecordKind.PROCESSING_STEP: "processing",
}


@dataclass(frozen=True)
class FlowEntry:
    """One record in a batch's chronological flow."""

    kind: RecordKind
    timestamp: datetime | None
    record: dict[str, object]

    def to_json(self) -> dict[str, object]:
        return {
            "type": _FLOW_TYPES[self.kind],
            "resourceType": self.kind.value,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "data": self.record,
        }


@dataclass(frozen=True)
class BlockchainProof:
    """Ledger facts attached to a bundle.

    Only values read from the ledger are filled in. ``authenticated`` is true
    when the batch carries a transaction id recorded from a commit receipt.
    """

    channel: str
    chaincode: str
    network: str
    block_height: int | None
    transaction_id: str | None

    @property
    def authenticated(self) -> bool:
        return self.transaction_id is not None

    def to_json(self) -> dict[str, object]:
        return {
            "channel": self.channel,
            "chaincode": self.chaincode,
            "network": self.network,
            "blockHeight": self.block_height,
            "transactionId": self.transaction_id,
            "authenticated": self.authenticated,
        }


@dataclass(frozen=True)
class ProvenanceBundle:
    """Aggregated history of one batch."""

    batch_id: str
    batch: dict[str, object] | None
    flow: list[FlowEntry] = field(default_factory=list)
    proof: BlockchainProof | None = None

    def entries(self) -> list[dict[str, object]]:
        """Return every record as a tagged resource, batch metadata first."""
        resources: list[dict[str, object]] = []
        if self.batch is not None:
            resources.append(
                {
                    "resource": {
                        **self.batch,
                        "resourceType": RecordKind.BATCH_ASSET.value,
                    }
                }
            )
        for entry in self.flow:
            resources.append(
                {"resource": {**entry.record, "resourceType": entry.kind.value}}
            )
        return resources

    def to_json(self) -> dict[str, object]:
        return {
            "batchId": self.batch_id,
            "batch": self.batch,
            "flow": [entry.to_json() for entry in self.flow],
            "entry": self.entries(),
            "blockchainProof": self.proof.to_json() if self.proof else None,
        }
