"""Collection event, quality test and processing step endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Body, Depends, Request

from tracechain_gateway.api.dependencies import require_roles
from tracechain_gateway.api.models import (  # noqa: TC001
    CollectionEventIn,
    ProcessingStepIn,
    QualityTestIn,
)
from tracechain_gateway.domain.models import Role
from tracechain_gateway.domain.sessions import Session  # noqa: TC001
from tracechain_gateway.services.access import filter_collection_events
from tracechain_gateway.services.records import (
    COLLECTION_EVENTS,
    PROCESSING_STEPS,
    QUALITY_TESTS,
)

if TYPE_CHECKING:
    from tracechain_gateway.containers import AppContainer

router = APIRouter(tags=["records"])

require_collector = require_roles(Role.FARMER, Role.ADMIN)
require_lab = require_roles(Role.LAB, Role.ADMIN)
require_admin = require_roles(Role.ADMIN)


@router.post("/collection-event", dependencies=[Depends(require_collector)])
async def create_collection_event(
    body: CollectionEventIn, request: Request
) -> dict[str, object]:
    """Record a herb collection on the ledger."""
    container: AppContainer = request.app.state.container
    return await container.record_service.create(COLLECTION_EVENTS, body.to_payload())


@router.get("/collection-events")
async def list_collection_events(
    request: Request,
    session: Session = Depends(require_roles(Role.FARMER, Role.LAB, Role.ADMIN)),
) -> list[dict[str, object]]:
    """List collection events visible to the caller's role."""
    container: AppContainer = request.app.state.container
    events = await container.record_service.list_all(COLLECTION_EVENTS)
    return filter_collection_events(session, events)


@router.get("/collection-events/by-collector/{collector_id}")
async def collection_events_by_collector(
    collector_id: str, request: Request
) -> list[dict[str, object]]:
    """List the events recorded by one collector."""
    container: AppContainer = request.app.state.container
    return await container.record_service.list_where(
        COLLECTION_EVENTS, "collectorId", collector_id
    )


@router.get("/collection-events/{event_id}")
async def get_collection_event(event_id: str, request: Request) -> Any:
    container: AppContainer = request.app.state.container
    return await container.record_service.get(COLLECTION_EVENTS, event_id)


@router.put("/collection-events/{event_id}", dependencies=[Depends(require_collector)])
async def update_collection_event(
    event_id: str, request: Request, body: dict[str, Any] = Body(...)
) -> Any:
    container: AppContainer = request.app.state.container
    return await container.record_service.update(COLLECTION_EVENTS, event_id, body)


@router.delete(
    "/collection-events/{event_id}", dependencies=[Depends(require_collector)]
)
async def delete_collection_event(event_id: str, request: Request) -> Any:
    container: AppContainer = request.app.state.container
    return await container.record_service.delete(COLLECTION_EVENTS, event_id)


@router.post("/quality-test")
async def create_quality_test(
    body: QualityTestIn, request: Request, session: Session = Depends(require_lab)
) -> dict[str, object]:
    """Record a lab test and mark the tested collection event."""
    container: AppContainer = request.app.state.container
    return await container.record_service.create_quality_test(
        session, body.to_payload()
    )


@router.get("/quality-tests")
async def list_quality_tests(request: Request) -> list[dict[str, object]]:
    container: AppContainer = request.app.state.container
    return await container.record_service.list_all(QUALITY_TESTS)


@router.get("/quality-tests/by-event/{event_id}")
async def quality_tests_by_event(
    event_id: str, request: Request
) -> list[dict[str, object]]:
    """List the tests run against one collection event."""
    container: AppContainer = request.app.state.container
    return await container.record_service.list_where(
        QUALITY_TESTS, "eventId", event_id
    )


@router.get("/quality-tests/{test_id}")
async def get_quality_test(test_id: str, request: Request) -> Any:
    container: AppContainer = request.app.state.container
    return await container.record_service.get(QUALITY_TESTS, test_id)


@router.put("/quality-tests/{test_id}", dependencies=[Depends(require_lab)])
async def update_quality_test(
    test_id: str, request: Request, body: dict[str, Any] = Body(...)
) -> Any:
    container: AppContainer = request.app.state.container
    return await container.record_service.update(QUALITY_TESTS, test_id, body)


@router.delete("/quality-tests/{test_id}", dependencies=[Depends(require_lab)])
async def delete_quality_test(test_id: str, request: Request) -> Any:
    container: AppContainer = request.app.state.container
    return await container.record_service.delete(QUALITY_TESTS, test_id)


@router.post("/processing-step", dependencies=[Depends(require_admin)])
async def create_processing_step(
    body: ProcessingStepIn, request: Request
) -> dict[str, object]:
    """Record a processing step applied to a batch."""
    container: AppContainer = request.app.state.container
    return await container.record_service.create_processing_step(body.to_payload())


@router.get("/processing-steps")
async def list_processing_steps(request: Request) -> list[dict[str, object]]:
    container: AppContainer = request.app.state.container
    return await container.record_service.list_all(PROCESSING_STEPS)


@router.get("/processing-steps/by-batch/{batch_id}")
async def processing_steps_by_batch(
    batch_id: str, request: Request
) -> list[dict[str, object]]:
    """List the steps applied to one batch."""
    container: AppContainer = request.app.state.container
    return await container.record_service.list_where(
        PROCESSING_STEPS, "batchId", batch_id
    )


@router.get("/processing-steps/{step_id}")
async def get_processing_step(step_id: str, request: Request) -> Any:
    container: AppContainer = request.app.state.container
    return await container.record_service.get(PROCESSING_STEPS, step_id)


@router.put("/processing-steps/{step_id}", dependencies=[Depends(require_admin)])
async def update_processing_step(
    step_id: str, request: Request, body: dict[str, Any] = Body(...)
) -> Any:
    container: AppContainer = request.app.state.container
    return await container.record_service.update(PROCESSING_STEPS, step_id, body)


@router.delete("/processing-steps/{step_id}", dependencies=[Depends(require_admin)])
async def delete_processing_step(step_id: str, request: Request) -> Any:
    container: AppContainer = request.app.state.container
    return await container.record_service.delete(PROCESSING_STEPS, step_id)
