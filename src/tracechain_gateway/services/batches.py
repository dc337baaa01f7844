"""Batch tracking ids and batch reports."""

import json
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime

from tracechain_gateway.domain.errors import NotFound, ValidationError
from tracechain_gateway.domain.sessions import Session
from tracechain_gateway.services.ledger import ContractInvoker
from tracechain_gateway.services.records import BATCHES


@dataclass
class BatchService:
    """Batch operations beyond plain record CRUD."""

    invoker: ContractInvoker

    async def generate_tracking(
        self, session: Session, batch_id: str, base_url: str
    ) -> dict[str, object]:
        """Assign a fresh tracking id to a batch and return its verification URL."""
        if not batch_id:
            raise ValidationError("Batch ID is required")
        now = datetime.now(tz=UTC)
        tracking_id = f"TRK-{int(now.timestamp() * 1000)}-{secrets.token_hex(3)[:5]}"
        await self.invoker.submit_transaction(
            BATCHES.update,
            json.dumps(
                {
                    "batchId": batch_id,
                    "trackingId": tracking_id,
                    "qrGeneratedBy": session.identity_name,
                    "qrGeneratedAt": now.isoformat(),
                    "qrStatus": "active",
                }
            ),
        )
        return {
            "trackingId": tracking_id,
            "batchId": batch_id,
            "verificationUrl": f"{base_url.rstrip('/')}/verify/{tracking_id}",
            "generatedBy": session.identity_name,
            "timestamp": now.isoformat(),
        }

    async def track(self, tracking_id: str) -> dict[str, object]:
        """Return the batch registered under a tracking id."""
        batch = await self.invoker.evaluate_transaction(
            "queryBatchByTracking", tracking_id
        )
        if not isinstance(batch, dict) or not batch:
            raise NotFound(f"Tracking id {tracking_id} does not exist")
        return batch

    async def summary_report(self) -> dict[str, object]:
        """Return per-batch record counts."""
        batches = await self.invoker.evaluate_transaction(
            BATCHES.query_all, empty=list
        )
        if not isinstance(batches, list):
            batches = []
        return {
            "generatedAt": datetime.now(tz=UTC).isoformat(),
            "totalBatches": len(batches),
            "batches": [
                {
                    "batchId": batch.get("batchId"),
                    "events": len(batch.get("events") or []),
                    "tests": len(batch.get("qualityTests") or []),
                    "steps": len(batch.get("processingSteps") or []),
                    "qrCode": batch.get("qrCode"),
                }
                for batch in batches
                if isinstance(batch, dict)
            ],
        }
