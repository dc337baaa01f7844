"""Ledger connection pool and submit/evaluate transaction invoker."""

import asyncio
import json
import logging
import time
from collections import deque
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Protocol, TypeVar

from tracechain_gateway.domain.errors import (
    ConnectivityError,
    GatewayError,
    LedgerResponseError,
    LedgerTimeoutError,
)
from tracechain_gateway.domain.models import CommitReceipt, SubmitResult

_logger = logging.getLogger(__name__)

_T = TypeVar("_T")

PoolKey = tuple[str, str]


@dataclass(frozen=True)
class RawResponse:
    """Undecoded transaction response returned by a ledger connection."""

    payload: bytes
    transaction_id: str | None = None
    block_number: int | None = None


class LedgerConnection(Protocol):
    """An open session to the ledger peers for one channel/chaincode."""

    async def submit(self, function: str, args: list[str]) -> RawResponse:
        """Submit a transaction through the ordering service."""

    async def evaluate(self, function: str, args: list[str]) -> RawResponse:
        """Evaluate a read-only transaction on a peer."""

    async def channel_height(self) -> int:
        """Return the current block height of the channel."""

    async def ping(self) -> None:
        """Raise if the connection can no longer reach the ledger."""

    async def close(self) -> None:
        """Close the underlying network session."""


class LedgerConnector(Protocol):
    """Factory for ledger connections."""

    async def connect(self, channel: str, chaincode: str) -> LedgerConnection:
        """Open a connection or raise ConnectivityError."""


@dataclass
class LedgerHandle:
    """A leased connection owned by exactly one logical operation."""

    channel: str
    chaincode: str
    connection: LedgerConnection
    healthy: bool = True
    released: bool = False


@dataclass
class _IdleConnection:
    connection: LedgerConnection
    returned_at: float


async def with_timeout(
    awaitable: Awaitable[_T], timeout_seconds: float, *, action: str
) -> _T:
    """Await with a deadline, mapping expiry to LedgerTimeoutError."""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
    except TimeoutError as exc:
        raise LedgerTimeoutError(
            f"Ledger {action} timed out after {timeout_seconds:g}s"
        ) from exc


@dataclass
class LedgerPool:
    """Bounded pool of ledger connections keyed by (channel, chaincode)."""

    connector: LedgerConnector
    max_size: int = 8
    timeout_seconds: float = 30.0
    health_check_seconds: float = 30.0
    clock: Callable[[], float] = time.monotonic
    _idle: dict[PoolKey, deque[_IdleConnection]] = field(
        default_factory=dict, init=False
    )
    _slots: dict[PoolKey, asyncio.Semaphore] = field(default_factory=dict, init=False)
    _in_use: dict[PoolKey, int] = field(default_factory=dict, init=False)
    _closed: bool = field(default=False, init=False)

    async def acquire(self, channel: str, chaincode: str) -> LedgerHandle:
        """Lease a handle, waiting for a free slot when the pool is exhausted."""
        key = (channel, chaincode)
        slots = self._slots.get(key)
        if slots is None:
            slots = asyncio.Semaphore(self.max_size)
            self._slots[key] = slots
        await slots.acquire()
        try:
            connection = await self._checkout(key)
        except BaseException:
            slots.release()
            raise
        self._in_use[key] = self._in_use.get(key, 0) + 1
        return LedgerHandle(channel=channel, chaincode=chaincode, connection=connection)

    async def release(self, handle: LedgerHandle) -> None:
        """Return a handle to the pool; calls after the first are no-ops."""
        if handle.released:
            return
        handle.released = True
        key = (handle.channel, handle.chaincode)
        self._in_use[key] -= 1
        try:
            if handle.healthy and not self._closed:
                self._idle.setdefault(key, deque()).append(
                    _IdleConnection(handle.connection, self.clock())
                )
            else:
                await _close_connection(handle.connection)
        finally:
            self._slots[key].release()

    @asynccontextmanager
    async def lease(self, channel: str, chaincode: str) -> AsyncIterator[LedgerHandle]:
        """Acquire a handle for the duration of a block and always release it."""
        handle = await self.acquire(channel, chaincode)
        try:
            yield handle
        except (ConnectivityError, LedgerTimeoutError):
            handle.healthy = False
            raise
        except GatewayError:
            raise
        except BaseException:
            handle.healthy = False
            raise
        finally:
            await self.release(handle)

    async def probe(self, channel: str, chaincode: str) -> None:
        """Open a fresh connection, ping it and close it."""
        connection = await with_timeout(
            self.connector.connect(channel, chaincode),
            self.timeout_seconds,
            action="connect",
        )
        try:
            await with_timeout(connection.ping(), self.timeout_seconds, action="ping")
        finally:
            await connection.close()

    def in_use(self, channel: str, chaincode: str) -> int:
        """Return the number of handles currently leased for a key."""
        return self._in_use.get((channel, chaincode), 0)

    def idle_count(self, channel: str, chaincode: str) -> int:
        """Return the number of pooled idle connections for a key."""
        return len(self._idle.get((channel, chaincode), ()))

    async def close(self) -> None:
        """Close idle connections; leased handles are closed on release."""
        self._closed = True
        for idle in self._idle.values():
            while idle:
                await _close_connection(idle.popleft().connection)

    async def _checkout(self, key: PoolKey) -> LedgerConnection:
        idle = self._idle.get(key)
        while idle:
            entry = idle.pop()
            if self.clock() - entry.returned_at < self.health_check_seconds:
                return entry.connection
            try:
                await with_timeout(
                    entry.connection.ping(), self.timeout_seconds, action="ping"
                )
            except GatewayError as exc:
                _logger.info(
                    "Discarding stale ledger connection for %s/%s: %s", *key, exc
                )
                await _close_connection(entry.connection)
                continue
            except BaseException:
                await _close_connection(entry.connection)
                raise
            return entry.connection
        channel, chaincode = key
        return await with_timeout(
            self.connector.connect(channel, chaincode),
            self.timeout_seconds,
            action="connect",
        )


async def _close_connection(connection: LedgerConnection) -> None:
    try:
        await connection.close()
    except Exception:
        _logger.exception("Failed to close ledger connection")


def decode_payload(payload: bytes, empty: Callable[[], object] = dict) -> object:
    """Decode a JSON payload, returning ``empty()`` for a blank buffer."""
    text = payload.decode("utf-8", errors="replace").strip()
    if not text:
        return empty()
    try:
        return json.loads(text)
    except ValueError as exc:
        raise LedgerResponseError("Ledger returned a non-JSON payload") from exc


@dataclass
class ContractInvoker:
    """Runs chaincode functions against one channel/chaincode pair."""

    pool: LedgerPool
    channel: str
    chaincode: str
    timeout_seconds: float = 30.0

    async def submit(
        self, handle: LedgerHandle, function: str, *args: str
    ) -> RawResponse:
        """Submit a write transaction on an acquired handle."""
        return await with_timeout(
            handle.connection.submit(function, list(args)),
            self.timeout_seconds,
            action=f"submit {function}",
        )

    async def evaluate(
        self, handle: LedgerHandle, function: str, *args: str
    ) -> RawResponse:
        """Evaluate a read-only transaction on an acquired handle."""
        return await with_timeout(
            handle.connection.evaluate(function, list(args)),
            self.timeout_seconds,
            action=f"evaluate {function}",
        )

    async def submit_transaction(
        self, function: str, *args: str, empty: Callable[[], object] = dict
    ) -> SubmitResult:
        """Lease a handle, submit, release, and decode the result."""
        async with self.pool.lease(self.channel, self.chaincode) as handle:
            raw = await self.submit(handle, function, *args)
        return SubmitResult(
            payload=decode_payload(raw.payload, empty),
            receipt=CommitReceipt(
                transaction_id=raw.transaction_id, block_number=raw.block_number
            ),
        )

    async def evaluate_transaction(
        self, function: str, *args: str, empty: Callable[[], object] = dict
    ) -> object:
        """Lease a handle, evaluate, release, and decode the result."""
        async with self.pool.lease(self.channel, self.chaincode) as handle:
            raw = await self.evaluate(handle, function, *args)
        return decode_payload(raw.payload, empty)

    async def channel_height(self) -> int:
        """Return the channel's current block height."""
        async with self.pool.lease(self.channel, self.chaincode) as handle:
            return await with_timeout(
                handle.connection.channel_height(),
                self.timeout_seconds,
                action="channel info",
            )
