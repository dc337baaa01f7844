"""Provenance bundle assembly for one batch."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from tracechain_gateway.domain.errors import GatewayError, NotFound
from tracechain_gateway.domain.models import RecordKind
from tracechain_gateway.domain.provenance import (
    BlockchainProof,
    FlowEntry,
    ProvenanceBundle,
)
from tracechain_gateway.services.ledger import ContractInvoker
from tracechain_gateway.timestamps import parse_timestamp

_logger = logging.getLogger(__name__)

# Kind-specific timestamp and id fields of the records in a batch's flow.
_FLOW_FIELDS = {
    RecordKind.COLLECTION_EVENT: ("timestamp", "eventId"),
    RecordKind.QUALITY_TEST: ("date", "testId"),
    RecordKind.PROCESSING_STEP: ("timestamp", "stepId"),
}


@dataclass
class ProvenanceAggregator:
    """Builds chronological provenance bundles from the ledger's aggregate query."""

    invoker: ContractInvoker
    network: str = "Hyperledger Fabric"

    async def build(self, batch_id: str) -> ProvenanceBundle:
        """Return the bundle for a batch or raise NotFound."""
        raw = await self.invoker.evaluate_transaction("getProvenance", batch_id)
        records = unwrap_records(raw)
        if not records:
            raise NotFound(f"Batch {batch_id} not found")
        batch, flow = assemble_flow(records)
        return ProvenanceBundle(
            batch_id=batch_id,
            batch=batch,
            flow=flow,
            proof=await self._proof(batch),
        )

    async def _proof(self, batch: dict[str, object] | None) -> BlockchainProof:
        try:
            height: int | None = await self.invoker.channel_height()
        except GatewayError as exc:
            _logger.warning("Channel height unavailable for proof: %s", exc)
            height = None
        tx_id = batch.get("txId") if batch else None
        return BlockchainProof(
            channel=self.invoker.channel,
            chaincode=self.invoker.chaincode,
            network=self.network,
            block_height=height,
            transaction_id=str(tx_id) if tx_id else None,
        )


def unwrap_records(raw: object) -> list[dict[str, object]]:
    """Return the tagged records of a flat list or an ``entry`` envelope."""
    if isinstance(raw, dict):
        items = raw.get("entry") or []
    elif isinstance(raw, list):
        items = raw
    else:
        return []
    records = []
    for item in items:
        if not isinstance(item, dict):
            continue
        resource = item.get("resource", item)
        if isinstance(resource, dict):
            records.append(resource)
    return records


def _kind_of(record: dict[str, object]) -> RecordKind | None:
    tag = record.get("resourceType") or record.get("docType")
    try:
        return RecordKind(str(tag))
    except ValueError:
        return None


def assemble_flow(
    records: list[dict[str, object]],
) -> tuple[dict[str, object] | None, list[FlowEntry]]:
    """Partition tagged records into batch metadata and a sorted flow.

    Duplicates (same kind and id) keep their first occurrence. The flow is
    stable-sorted by each kind's timestamp field; undated records go last.
    """
    batch: dict[str, object] | None = None
    seen: set[tuple[RecordKind, str]] = set()
    flow: list[FlowEntry] = []
    for record in records:
        kind = _kind_of(record)
        if kind is None:
            continue
        body = {
            key: value
            for key, value in record.items()
            if key not in {"resourceType", "docType"}
        }
        if kind is RecordKind.BATCH_ASSET:
            if batch is None:
                batch = body
            continue
        time_field, id_field = _FLOW_FIELDS[kind]
        record_id = body.get(id_field)
        if record_id is not None:
            identity = (kind, str(record_id))
            if identity in seen:
                continue
            seen.add(identity)
        flow.append(
            FlowEntry(
                kind=kind,
                timestamp=parse_timestamp(body.get(time_field)),
                record=body,
            )
        )
    flow.sort(
        key=lambda entry: (
            entry.timestamp is None,
            entry.timestamp or datetime.min.replace(tzinfo=UTC),
        )
    )
    return batch, flow
