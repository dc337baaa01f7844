"""Ledger health and aggregate record counts."""

import asyncio
from dataclasses import dataclass

from tracechain_gateway.services.ledger import ContractInvoker
from tracechain_gateway.services.records import (
    BATCHES,
    COLLECTION_EVENTS,
    PROCESSING_STEPS,
    QUALITY_TESTS,
)


@dataclass
class StatsService:
    """Reports ledger reachability and record totals."""

    invoker: ContractInvoker

    async def health(self) -> dict[str, str]:
        """Run a read through the chaincode; raises if the ledger is unreachable."""
        await self.invoker.evaluate_transaction(BATCHES.query_all, empty=list)
        return {
            "status": "ok",
            "channel": self.invoker.channel,
            "chaincode": self.invoker.chaincode,
        }

    async def counts(self) -> dict[str, int]:
        """Count every record kind; the four reads run concurrently."""
        events, tests, steps, batches = await asyncio.gather(
            self.invoker.evaluate_transaction(COLLECTION_EVENTS.query_all, empty=list),
            self.invoker.evaluate_transaction(QUALITY_TESTS.query_all, empty=list),
            self.invoker.evaluate_transaction(PROCESSING_STEPS.query_all, empty=list),
            self.invoker.evaluate_transaction(BATCHES.query_all, empty=list),
        )
        return {
            "collectionEvents": _count(events),
            "qualityTests": _count(tests),
            "processingSteps": _count(steps),
            "batches": _count(batches),
        }


def _count(records: object) -> int:
    return len(records) if isinstance(records, list) else 0
