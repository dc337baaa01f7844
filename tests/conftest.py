"""Shared test fixtures."""

import asyncio
import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime

import pytest

from tracechain_gateway.config import Settings
from tracechain_gateway.containers import AppContainer, build_container
from tracechain_gateway.domain.errors import (
    ConnectivityError,
    GatewayError,
    NotFound,
)
from tracechain_gateway.domain.models import LiveBlockEvent
from tracechain_gateway.services.ledger import RawResponse
from tracechain_gateway.services.records import (
    BATCHES,
    COLLECTION_EVENTS,
    PROCESSING_STEPS,
    QUALITY_TESTS,
    RecordType,
)

_RECORD_TYPES = (COLLECTION_EVENTS, QUALITY_TESTS, PROCESSING_STEPS, BATCHES)

ADMIN = {
    "userId": "USER-1",
    "name": "admin",
    "role": "admin",
    "organization": "Regulator",
    "status": "active",
}
FARMER = {
    "userId": "USER-2",
    "name": "ravi",
    "role": "farmer",
    "organization": "Ravi Farms",
    "status": "active",
}
LAB = {
    "userId": "USER-3",
    "name": "lab1",
    "role": "lab",
    "organization": "Herb Labs",
    "status": "active",
}


@dataclass
class FakeLedger:
    """In-memory chaincode emulator implementing the ledger connector."""

    users: dict[str, dict[str, object]] = field(
        default_factory=lambda: {
            user["name"]: dict(user) for user in (ADMIN, FARMER, LAB)
        }
    )
    records: dict[str, dict[str, dict[str, object]]] = field(
        default_factory=lambda: {rt.kind.value: {} for rt in _RECORD_TYPES}
    )
    height: int = 10
    reachable: bool = True
    ping_ok: bool = True
    ping_hangs: bool = False
    failures: dict[str, GatewayError] = field(default_factory=dict)
    raw_results: dict[str, bytes] = field(default_factory=dict)
    hanging: set[str] = field(default_factory=set)
    calls: list[tuple[str, tuple[str, ...]]] = field(default_factory=list)
    connects: int = 0
    closes: int = 0
    pings: int = 0

    async def connect(self, channel: str, chaincode: str) -> "FakeConnection":
        if not self.reachable:
            raise ConnectivityError("connect ECONNREFUSED 127.0.0.1:7051")
        self.connects += 1
        return FakeConnection(self)

    def add(self, record_type: RecordType, record: dict[str, object]) -> None:
        stored = {**record, "docType": record_type.kind.value}
        self.records[record_type.kind.value][str(record[record_type.id_field])] = (
            stored
        )

    async def dispatch(
        self, function: str, args: list[str], *, submit: bool
    ) -> RawResponse:
        self.calls.append((function, tuple(args)))
        if function in self.hanging:
            await asyncio.Event().wait()
        if function in self.failures:
            raise self.failures[function]
        if function in self.raw_results:
            return RawResponse(payload=self.raw_results[function])
        tx_id = None
        if submit:
            self.height += 1
            tx_id = f"tx-{self.height}"
        result = self._run(function, args, tx_id)
        return RawResponse(
            payload=b"" if result is None else json.dumps(result).encode(),
            transaction_id=tx_id,
            block_number=self.height if submit else None,
        )

    def _run(  # noqa: PLR0911
        self, function: str, args: list[str], tx_id: str | None
    ) -> object:
        if function == "registerUser":
            user = json.loads(args[0])
            self.users[user["name"]] = user
            return user
        if function == "queryUser":
            if args[0] not in self.users:
                raise NotFound(f"User {args[0]} does not exist")
            return self.users[args[0]]
        if function == "queryAllUsers":
            return list(self.users.values())
        if function == "getProvenance":
            return self._provenance(args[0])
        if function == "queryBatchByTracking":
            for batch in self.records[BATCHES.kind.value].values():
                if batch.get("trackingId") == args[0]:
                    return batch
            raise NotFound(f"Tracking id {args[0]} does not exist")
        for record_type in _RECORD_TYPES:
            table = self.records[record_type.kind.value]
            if function == record_type.create:
                record = {**json.loads(args[0]), "txId": tx_id}
                self.add(record_type, record)
                return table[str(record[record_type.id_field])]
            if function == record_type.query:
                if args[0] not in table:
                    raise NotFound(f"{args[0]} does not exist")
                return table[args[0]]
            if function == record_type.query_all:
                return list(table.values())
            if function == record_type.update:
                changes = json.loads(args[0])
                record_id = str(changes[record_type.id_field])
                if record_id not in table:
                    raise NotFound(f"{record_id} does not exist")
                table[record_id] = {**table[record_id], **changes}
                return table[record_id]
            if function == record_type.delete:
                if table.pop(args[0], None) is None:
                    raise NotFound(f"{args[0]} does not exist")
                return None
        raise GatewayError(f"Unknown chaincode function {function}")

    def _provenance(self, batch_id: str) -> list[dict[str, object]]:
        batch = self.records[BATCHES.kind.value].get(batch_id)
        if batch is None:
            raise NotFound(f"Batch {batch_id} does not exist")
        events = self.records[COLLECTION_EVENTS.kind.value]
        tests = self.records[QUALITY_TESTS.kind.value]
        steps = self.records[PROCESSING_STEPS.kind.value]
        return [
            batch,
            *(events[key] for key in batch.get("events", []) if key in events),
            *(tests[key] for key in batch.get("qualityTests", []) if key in tests),
            *(step for step in steps.values() if step.get("batchId") == batch_id),
        ]


@dataclass
class FakeConnection:
    """Connection handed out by FakeLedger."""

    ledger: FakeLedger
    closed: bool = False

    async def submit(self, function: str, args: list[str]) -> RawResponse:
        return await self.ledger.dispatch(function, args, submit=True)

    async def evaluate(self, function: str, args: list[str]) -> RawResponse:
        return await self.ledger.dispatch(function, args, submit=False)

    async def channel_height(self) -> int:
        return self.ledger.height

    async def ping(self) -> None:
        self.ledger.pings += 1
        if self.ledger.ping_hangs:
            await asyncio.Event().wait()
        if not self.ledger.ping_ok:
            raise ConnectivityError("peer unavailable")

    async def close(self) -> None:
        self.closed = True
        self.ledger.closes += 1


@dataclass
class FakeBlockSource:
    """Block source replaying scripted events, then ending or failing."""

    events: list[LiveBlockEvent] = field(default_factory=list)
    error: Exception | None = None
    hold_open: bool = False
    opens: int = 0

    @asynccontextmanager
    async def open(
        self, channel: str, chaincode: str
    ) -> AsyncIterator[AsyncIterator[LiveBlockEvent]]:
        self.opens += 1
        yield self._stream()

    async def _stream(self) -> AsyncIterator[LiveBlockEvent]:
        for event in self.events:
            await asyncio.sleep(0)
            yield event
        if self.error is not None:
            raise self.error
        if self.hold_open:
            await asyncio.Event().wait()


def block(number: int, tx_count: int = 1) -> LiveBlockEvent:
    """Build a block event for tests."""
    return LiveBlockEvent(
        block_number=number,
        tx_count=tx_count,
        timestamp=datetime(2025, 1, 1, tzinfo=UTC),
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        channel="tracechannel",
        cc_name="tracecc",
        ledger_url="http://ledger.test",
        ledger_network="Test Network",
        ledger_timeout_seconds=0.5,
        ledger_pool_size=2,
        live_reconnect_seconds=0.01,
        environment="test",
    )


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def block_source() -> FakeBlockSource:
    return FakeBlockSource()


@pytest.fixture
def container(
    settings: Settings, ledger: FakeLedger, block_source: FakeBlockSource
) -> AppContainer:
    return build_container(settings, connector=ledger, block_source=block_source)
