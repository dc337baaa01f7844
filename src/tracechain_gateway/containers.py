"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from tracechain_gateway.adapters.ledger_client import (
    HttpxBlockEventSource,
    HttpxLedgerConnector,
)
from tracechain_gateway.config import Settings
from tracechain_gateway.services.access import AuthorizationGate
from tracechain_gateway.services.batches import BatchService
from tracechain_gateway.services.ledger import (
    ContractInvoker,
    LedgerConnector,
    LedgerPool,
)
from tracechain_gateway.services.live import BlockEventSource, LiveBlockBroadcaster
from tracechain_gateway.services.provenance import ProvenanceAggregator
from tracechain_gateway.services.records import RecordService
from tracechain_gateway.services.sessions import AuthService, SessionStore
from tracechain_gateway.services.stats import StatsService
from tracechain_gateway.services.users import UserService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    ledger_pool: LedgerPool
    invoker: ContractInvoker
    session_store: SessionStore
    auth_service: AuthService
    authorization_gate: AuthorizationGate
    user_service: UserService
    record_service: RecordService
    batch_service: BatchService
    provenance_aggregator: ProvenanceAggregator
    stats_service: StatsService
    broadcaster: LiveBlockBroadcaster
    close_resources: Callable[[], Awaitable[None]]


def build_container(
    settings: Settings | None = None,
    connector: LedgerConnector | None = None,
    block_source: BlockEventSource | None = None,
) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    ledger_connector = connector or HttpxLedgerConnector(
        base_url=resolved_settings.ledger_url,
        timeout_seconds=resolved_settings.ledger_timeout_seconds,
    )
    http_block_source = None
    if block_source is None:
        http_block_source = HttpxBlockEventSource.create(
            resolved_settings.ledger_url,
            connect_timeout=resolved_settings.ledger_timeout_seconds,
        )
        block_source = http_block_source
    ledger_pool = LedgerPool(
        connector=ledger_connector,
        max_size=resolved_settings.ledger_pool_size,
        timeout_seconds=resolved_settings.ledger_timeout_seconds,
        health_check_seconds=resolved_settings.ledger_health_check_seconds,
    )
    invoker = ContractInvoker(
        pool=ledger_pool,
        channel=resolved_settings.channel,
        chaincode=resolved_settings.cc_name,
        timeout_seconds=resolved_settings.ledger_timeout_seconds,
    )
    session_store = SessionStore(ttl_seconds=resolved_settings.session_ttl_seconds)
    user_service = UserService(invoker)
    record_service = RecordService(invoker)
    broadcaster = LiveBlockBroadcaster(
        source=block_source,
        reconnect_seconds=resolved_settings.live_reconnect_seconds,
    )

    async def close_resources() -> None:
        await broadcaster.close()
        await ledger_pool.close()
        if http_block_source is not None:
            await http_block_source.close()

    return AppContainer(
        settings=resolved_settings,
        ledger_pool=ledger_pool,
        invoker=invoker,
        session_store=session_store,
        auth_service=AuthService(users=user_service, store=session_store),
        authorization_gate=AuthorizationGate(session_store),
        user_service=user_service,
        record_service=record_service,
        batch_service=BatchService(invoker),
        provenance_aggregator=ProvenanceAggregator(
            invoker=invoker, network=resolved_settings.ledger_network
        ),
        stats_service=StatsService(invoker),
        broadcaster=broadcaster,
        close_resources=close_resources,
    )
