"""Create/read/update/delete of ledger records through chaincode functions."""

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from tracechain_gateway.domain.errors import GatewayError, NotFound, ValidationError
from tracechain_gateway.domain.models import (
    REQUIRED_TEST_PARAMETERS,
    RecordKind,
    SubmitResult,
)
from tracechain_gateway.domain.sessions import Session
from tracechain_gateway.services.ledger import ContractInvoker

_logger = logging.getLogger(__name__)

LAB_STANDARDS = {
    "standardsVersion": "AYUSH-2025",
    "testingProtocol": "ISO-9001",
    "labCertification": "NABL-CERTIFIED",
}
DEFAULT_EQUIPMENT_ID = "STD-LAB-001"


@dataclass(frozen=True)
class RecordType:
    """Chaincode functions backing one record kind."""

    kind: RecordKind
    id_field: str
    create: str
    query: str
    query_all: str
    update: str
    delete: str


COLLECTION_EVENTS = RecordType(
    kind=RecordKind.COLLECTION_EVENT,
    id_field="eventId",
    create="createCollectionEvent",
    query="queryCollectionEvent",
    query_all="queryAllCollectionEvents",
    update="updateCollectionEvent",
    delete="deleteCollectionEvent",
)
QUALITY_TESTS = RecordType(
    kind=RecordKind.QUALITY_TEST,
    id_field="testId",
    create="createQualityTest",
    query="queryQualityTest",
    query_all="queryAllQualityTests",
    update="updateQualityTest",
    delete="deleteQualityTest",
)
PROCESSING_STEPS = RecordType(
    kind=RecordKind.PROCESSING_STEP,
    id_field="stepId",
    create="createProcessingStep",
    query="queryProcessingStep",
    query_all="queryAllProcessingSteps",
    update="updateProcessingStep",
    delete="deleteProcessingStep",
)
BATCHES = RecordType(
    kind=RecordKind.BATCH_ASSET,
    id_field="batchId",
    create="createBatch",
    query="getProvenance",
    query_all="queryAllBatches",
    update="updateBatch",
    delete="deleteBatch",
)


@dataclass
class RecordService:
    """Generic record operations plus the quality-test submission rules."""

    invoker: ContractInvoker

    async def create(
        self, record_type: RecordType, payload: dict[str, object]
    ) -> dict[str, object]:
        """Submit a new record and return it with its commit receipt."""
        result = await self.invoker.submit_transaction(
            record_type.create, json.dumps(payload)
        )
        return with_receipt(result)

    async def get(
        self, record_type: RecordType, record_id: str
    ) -> dict[str, object]:
        """Evaluate the single-record query; an empty answer means unknown id."""
        record = await self.invoker.evaluate_transaction(record_type.query, record_id)
        if not isinstance(record, dict) or not record:
            raise NotFound(f"{record_id} does not exist")
        return record

    async def list_all(self, record_type: RecordType) -> list[dict[str, object]]:
        """Return every record of a kind, or [] when the ledger read fails."""
        try:
            records = await self.invoker.evaluate_transaction(
                record_type.query_all, empty=list
            )
        except GatewayError as exc:
            _logger.warning("Failed to list %s: %s", record_type.kind.value, exc)
            return []
        if not isinstance(records, list):
            return []
        return [record for record in records if isinstance(record, dict)]

    async def list_where(
        self, record_type: RecordType, field_name: str, value: str
    ) -> list[dict[str, object]]:
        """Return the records whose ``field_name`` equals ``value``."""
        return [
            record
            for record in await self.list_all(record_type)
            if record.get(field_name) == value
        ]

    async def update(
        self, record_type: RecordType, record_id: str, payload: dict[str, object]
    ) -> object:
        """Submit an update; the path id overrides any id in the body."""
        record = {**payload, record_type.id_field: record_id}
        result = await self.invoker.submit_transaction(
            record_type.update, json.dumps(record)
        )
        return result.payload

    async def delete(self, record_type: RecordType, record_id: str) -> object:
        """Submit a delete by id."""
        result = await self.invoker.submit_transaction(record_type.delete, record_id)
        return result.payload

    async def create_processing_step(
        self, payload: dict[str, object]
    ) -> dict[str, object]:
        """Submit a processing step with its conditions as a string map."""
        step = dict(payload)
        if step.get("conditions") is not None:
            step["conditions"] = normalize_string_map(step["conditions"], "conditions")
        return await self.create(PROCESSING_STEPS, step)

    async def create_quality_test(
        self, session: Session, payload: dict[str, object]
    ) -> dict[str, object]:
        """Validate and submit a quality test, then tag the tested event."""
        parameters = normalize_string_map(payload.get("parameters"), "parameters")
        missing = [
            name for name in REQUIRED_TEST_PARAMETERS if not parameters.get(name)
        ]
        if missing:
            raise ValidationError(
                f"Missing required test parameters: {', '.join(missing)}",
                {"missing": missing, "requiredParams": list(REQUIRED_TEST_PARAMETERS)},
            )
        test = {
            **payload,
            "parameters": parameters,
            "labId": session.identity_name,
            "testerId": session.identity_name,
            "testTimestamp": datetime.now(tz=UTC).isoformat(),
            "equipmentId": payload.get("equipmentId") or DEFAULT_EQUIPMENT_ID,
            **LAB_STANDARDS,
        }
        created = await self.create(QUALITY_TESTS, test)
        if created.get("eventId"):
            await self.invoker.submit_transaction(
                COLLECTION_EVENTS.update,
                json.dumps(
                    {
                        "eventId": created["eventId"],
                        "qualityTestId": created.get("testId"),
                        "testStatus": created.get("result"),
                    }
                ),
            )
        return created


def with_receipt(result: SubmitResult) -> dict[str, object]:
    """Merge the commit receipt into a submitted record's response."""
    payload = result.payload
    body = dict(payload) if isinstance(payload, dict) else {"result": payload}
    body.update(
        {
            "txId": result.receipt.transaction_id,
            "blockNumber": result.receipt.block_number,
            "committedAt": datetime.now(tz=UTC).isoformat(),
            "status": "confirmed",
        }
    )
    return body


def normalize_string_map(value: object, field_name: str) -> dict[str, str]:
    """Coerce an object or JSON-encoded object into a string-to-string map."""
    if value is None or value == "":
        return {}
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError as exc:
            raise ValidationError(f"{field_name} must be a JSON object") from exc
    if not isinstance(value, dict):
        raise ValidationError(f"{field_name} must be an object")
    return {
        str(key): "" if item is None else str(item) for key, item in value.items()
    }
