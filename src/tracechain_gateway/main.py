"""Command-line entrypoint: check the ledger, then serve the API."""

import asyncio
import logging

import uvicorn

from tracechain_gateway.api.app import create_app
from tracechain_gateway.app_logging import configure_logging
from tracechain_gateway.containers import AppContainer, build_container
from tracechain_gateway.domain.errors import GatewayError

logger = logging.getLogger(__name__)


def main(container: AppContainer | None = None) -> None:
    """Probe the ledger and start uvicorn; exit with status 1 if unreachable.

    The probe runs before the listener is bound, so a gateway that cannot
    reach its ledger never accepts requests.
    """
    container = container or build_container()
    settings = container.settings
    configure_logging(settings.log_level)
    try:
        asyncio.run(container.ledger_pool.probe(settings.channel, settings.cc_name))
    except GatewayError as exc:
        logger.error(
            "Failed to reach ledger %s/%s at %s: %s",
            settings.channel,
            settings.cc_name,
            settings.ledger_url,
            exc.message,
        )
        raise SystemExit(1) from exc
    logger.info(
        "Connected to ledger %s/%s, listening on %s:%s",
        settings.channel,
        settings.cc_name,
        settings.host,
        settings.port,
    )
    uvicorn.run(create_app(container), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
