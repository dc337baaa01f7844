"""Tests for provenance bundle assembly."""

import asyncio

import pytest

from tests.conftest import FakeLedger
from tracechain_gateway.domain.errors import ConnectivityError, NotFound
from tracechain_gateway.domain.models import RecordKind
from tracechain_gateway.domain.provenance import ProvenanceBundle
from tracechain_gateway.services.ledger import ContractInvoker, LedgerPool
from tracechain_gateway.services.provenance import (
    ProvenanceAggregator,
    assemble_flow,
    unwrap_records,
)
from tracechain_gateway.services.records import (
    BATCHES,
    COLLECTION_EVENTS,
    PROCESSING_STEPS,
    QUALITY_TESTS,
)


def _aggregator(ledger: FakeLedger) -> ProvenanceAggregator:
    invoker = ContractInvoker(
        pool=LedgerPool(connector=ledger), channel="ch", chaincode="cc"
    )
    return ProvenanceAggregator(invoker=invoker, network="Test Network")


def _seed_batch(ledger: FakeLedger) -> None:
    ledger.add(
        COLLECTION_EVENTS,
        {"eventId": "E1", "collectorId": "ravi", "timestamp": "2025-01-01T08:00:00Z"},
    )
    ledger.add(
        COLLECTION_EVENTS,
        {"eventId": "E2", "collectorId": "ravi", "timestamp": "2025-01-02T08:00:00Z"},
    )
    ledger.add(
        QUALITY_TESTS, {"testId": "T1", "eventId": "E1", "date": "2025-01-03"}
    )
    ledger.add(
        PROCESSING_STEPS,
        {"stepId": "S1", "batchId": "B1", "timestamp": "2025-01-04T09:30:00Z"},
    )
    ledger.add(
        BATCHES,
        {
            "batchId": "B1",
            "events": ["E1", "E2"],
            "qualityTests": ["T1"],
            "txId": "tx-abc",
        },
    )


def test_bundle_orders_flow_chronologically() -> None:
    ledger = FakeLedger(height=99)
    _seed_batch(ledger)

    bundle = asyncio.run(_aggregator(ledger).build("B1"))

    assert bundle.batch["batchId"] == "B1"
    assert [entry.kind for entry in bundle.flow] == [
        RecordKind.COLLECTION_EVENT,
        RecordKind.COLLECTION_EVENT,
        RecordKind.QUALITY_TEST,
        RecordKind.PROCESSING_STEP,
    ]
    assert [entry.record.get("eventId") for entry in bundle.flow[:2]] == ["E1", "E2"]
    body = bundle.to_json()
    assert [item["type"] for item in body["flow"]] == [
        "collection",
        "collection",
        "test",
        "processing",
    ]
    assert body["entry"][0]["resource"]["resourceType"] == "BatchAsset"
    assert len(body["entry"]) == 5
    assert body["blockchainProof"] == {
        "channel": "ch",
        "chaincode": "cc",
        "network": "Test Network",
        "blockHeight": 99,
        "transactionId": "tx-abc",
        "authenticated": True,
    }


def test_unknown_batch_is_not_found() -> None:
    with pytest.raises(NotFound):
        asyncio.run(_aggregator(FakeLedger()).build("nope"))


def test_empty_provenance_is_not_found() -> None:
    ledger = FakeLedger(raw_results={"getProvenance": b"[]"})
    with pytest.raises(NotFound):
        asyncio.run(_aggregator(ledger).build("B1"))


def test_proof_is_not_synthesized_without_receipt() -> None:
    ledger = FakeLedger()
    ledger.add(BATCHES, {"batchId": "B2", "events": []})

    bundle = asyncio.run(_aggregator(ledger).build("B2"))

    assert bundle.flow == []
    assert bundle.proof.transaction_id is None
    assert not bundle.proof.authenticated


def test_proof_height_missing_when_channel_info_fails() -> None:
    ledger = FakeLedger()
    _seed_batch(ledger)

    async def unavailable() -> int:
        raise ConnectivityError("qscc unavailable")

    aggregator = _aggregator(ledger)

    async def run() -> ProvenanceBundle:
        handle = await aggregator.invoker.pool.acquire("ch", "cc")
        handle.connection.channel_height = unavailable
        await aggregator.invoker.pool.release(handle)
        return await aggregator.build("B1")

    bundle = asyncio.run(run())
    assert bundle.proof.block_height is None
    assert bundle.proof.transaction_id == "tx-abc"


def test_assemble_flow_dedups_and_keeps_ties_stable() -> None:
    records = [
        {"resourceType": "CollectionEvent", "eventId": "E1", "timestamp": "2025-01-02"},
        {"resourceType": "QualityTest", "testId": "T1", "date": "2025-01-02"},
        {"docType": "CollectionEvent", "eventId": "E1", "timestamp": "2025-01-02"},
        {"resourceType": "ProcessingStep", "stepId": "S1"},
        {
            "resourceType": "CollectionEvent",
            "eventId": "E0",
            "timestamp": 1735603200000,
        },
        {"resourceType": "Unknown", "id": "x"},
    ]

    batch, flow = assemble_flow(records)

    assert batch is None
    assert [
        entry.record.get("eventId")
        or entry.record.get("testId")
        or entry.record["stepId"]
        for entry in flow
    ] == ["E0", "E1", "T1", "S1"]
    assert flow[-1].timestamp is None
    assert "resourceType" not in flow[0].record


def test_unwrap_records_accepts_entry_envelope() -> None:
    raw = {
        "entry": [
            {"resource": {"resourceType": "BatchAsset", "batchId": "B1"}},
            {"resource": {"resourceType": "CollectionEvent", "eventId": "E1"}},
            "junk",
        ]
    }
    assert [record["resourceType"] for record in unwrap_records(raw)] == [
        "BatchAsset",
        "CollectionEvent",
    ]
    assert unwrap_records("nonsense") == []
