"""Ledger-gateway REST client adapter."""

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime

import httpx

from tracechain_gateway.domain.errors import (
    ConnectivityError,
    ConsensusError,
    LedgerTimeoutError,
    NotFound,
    ValidationError,
)
from tracechain_gateway.domain.models import LiveBlockEvent
from tracechain_gateway.services.ledger import RawResponse
from tracechain_gateway.timestamps import parse_timestamp

_logger = logging.getLogger(__name__)

_SUBMIT_REJECTED = {409, 412}


@dataclass
class HttpxLedgerConnection:
    """Ledger connection implemented over a dedicated httpx session."""

    channel: str
    chaincode: str
    http_client: httpx.AsyncClient

    async def submit(self, function: str, args: list[str]) -> RawResponse:
        """Submit a transaction and return its payload and commit receipt."""
        data = await self._invoke("submit", function, args)
        block_number = data.get("blockNumber")
        return RawResponse(
            payload=_result_bytes(data.get("result")),
            transaction_id=data.get("transactionId"),
            block_number=int(block_number) if block_number is not None else None,
        )

    async def evaluate(self, function: str, args: list[str]) -> RawResponse:
        """Evaluate a read-only transaction."""
        data = await self._invoke("evaluate", function, args)
        return RawResponse(payload=_result_bytes(data.get("result")))

    async def channel_height(self) -> int:
        """Return the channel block height."""
        response = await self._send("GET", f"/channels/{self.channel}/info")
        _raise_for_status(response, "query")
        return int(response.json()["height"])

    async def ping(self) -> None:
        """Check that the channel and chaincode are reachable."""
        response = await self._send(
            "GET", f"/channels/{self.channel}/chaincodes/{self.chaincode}"
        )
        if not response.is_success:
            raise ConnectivityError(
                f"Ledger gateway rejected {self.channel}/{self.chaincode}: "
                f"{_error_message(response)}"
            )

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _invoke(self, mode: str, function: str, args: list[str]) -> dict:
        response = await self._send(
            "POST",
            f"/channels/{self.channel}/chaincodes/{self.chaincode}/{mode}",
            json={"function": function, "args": args},
        )
        _raise_for_status(response, mode)
        if not response.content:
            return {}
        data = response.json()
        return data if isinstance(data, dict) else {"result": data}

    async def _send(self, method: str, url: str, **kwargs: object) -> httpx.Response:
        try:
            return await self.http_client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise LedgerTimeoutError(f"Ledger request timed out: {url}") from exc
        except httpx.TransportError as exc:
            raise ConnectivityError(f"Ledger unreachable: {exc}") from exc


@dataclass
class HttpxLedgerConnector:
    """Opens one httpx session per ledger connection."""

    base_url: str
    timeout_seconds: float = 30.0
    transport: httpx.AsyncBaseTransport | None = None

    async def connect(self, channel: str, chaincode: str) -> HttpxLedgerConnection:
        """Open a session and verify the channel/chaincode is reachable."""
        http_client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_seconds,
            transport=self.transport,
        )
        connection = HttpxLedgerConnection(
            channel=channel, chaincode=chaincode, http_client=http_client
        )
        try:
            await connection.ping()
        except BaseException:
            await http_client.aclose()
            raise
        return connection


@dataclass
class HttpxBlockEventSource:
    """Upstream block notifications read from the ledger gateway's line stream."""

    http_client: httpx.AsyncClient

    @classmethod
    def create(
        cls, base_url: str, connect_timeout: float = 30.0
    ) -> "HttpxBlockEventSource":
        """Create a source whose reads never time out."""
        return cls(
            http_client=httpx.AsyncClient(
                base_url=base_url,
                timeout=httpx.Timeout(connect_timeout, read=None),
            )
        )

    @asynccontextmanager
    async def open(
        self, channel: str, chaincode: str
    ) -> AsyncIterator[AsyncIterator[LiveBlockEvent]]:
        """Open the block stream; transport failures become ConnectivityError."""
        try:
            async with self.http_client.stream(
                "GET", f"/channels/{channel}/blocks", params={"chaincode": chaincode}
            ) as response:
                if not response.is_success:
                    raise ConnectivityError(
                        f"Block stream rejected with status {response.status_code}"
                    )
                yield _parse_block_lines(response.aiter_lines())
        except httpx.TransportError as exc:
            raise ConnectivityError(f"Block stream failed: {exc!r}") from exc

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


async def _parse_block_lines(
    lines: AsyncIterator[str],
) -> AsyncIterator[LiveBlockEvent]:
    """Parse NDJSON lines or SSE ``data:`` lines into block events."""
    async for line in lines:
        text = line.strip()
        if text.startswith("data:"):
            text = text.removeprefix("data:").strip()
        elif not text.startswith("{"):
            continue
        if not text:
            continue
        try:
            payload = json.loads(text)
            event = parse_block_event(payload)
        except (ValueError, KeyError, TypeError) as exc:
            _logger.warning("Skipping undecodable block line %r: %s", text, exc)
            continue
        yield event


def parse_block_event(payload: dict[str, object]) -> LiveBlockEvent:
    """Build a LiveBlockEvent from its wire representation."""
    timestamp = parse_timestamp(payload.get("timestamp"))
    return LiveBlockEvent(
        block_number=int(payload["blockNumber"]),
        tx_count=int(payload.get("txCount") or 0),
        timestamp=timestamp or datetime.now(tz=UTC),
    )


def _result_bytes(result: object) -> bytes:
    if result is None:
        return b""
    if isinstance(result, str):
        return result.encode()
    return json.dumps(result).encode()


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return f"HTTP {response.status_code}"


def _raise_for_status(response: httpx.Response, mode: str) -> None:
    """Map ledger-gateway error statuses onto the gateway error taxonomy."""
    if response.is_success:
        return
    status_code = response.status_code
    message = _error_message(response)
    if status_code in {400, 422}:
        raise ValidationError(message)
    if status_code == 404:
        raise NotFound(message)
    if status_code == 504:
        raise LedgerTimeoutError(message)
    if mode == "submit" and (status_code in _SUBMIT_REJECTED or status_code >= 500):
        raise ConsensusError(message)
    raise ConnectivityError(message)
