"""Batch, provenance, tracking and report endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Body, Depends, Request

from tracechain_gateway.api.dependencies import require_roles
from tracechain_gateway.api.models import BatchIn, TrackingRequest  # noqa: TC001
from tracechain_gateway.domain.models import Role
from tracechain_gateway.domain.sessions import Session  # noqa: TC001
from tracechain_gateway.services.records import BATCHES

if TYPE_CHECKING:
    from tracechain_gateway.containers import AppContainer

router = APIRouter(tags=["batches"])


@router.post("/batch")
async def create_batch(body: BatchIn, request: Request) -> dict[str, object]:
    """Register a batch asset grouping events, tests and steps."""
    container: AppContainer = request.app.state.container
    return await container.record_service.create(BATCHES, body.to_payload())


@router.get("/batch/{batch_id}")
async def get_batch(batch_id: str, request: Request) -> dict[str, object]:
    """Return the provenance bundle of a batch."""
    container: AppContainer = request.app.state.container
    bundle = await container.provenance_aggregator.build(batch_id)
    return bundle.to_json()


@router.put("/batch/{batch_id}")
async def update_batch(
    batch_id: str, request: Request, body: dict[str, Any] = Body(...)
) -> Any:
    container: AppContainer = request.app.state.container
    return await container.record_service.update(BATCHES, batch_id, body)


@router.delete("/batch/{batch_id}")
async def delete_batch(batch_id: str, request: Request) -> Any:
    container: AppContainer = request.app.state.container
    return await container.record_service.delete(BATCHES, batch_id)


@router.get("/batches")
async def list_batches(request: Request) -> list[dict[str, object]]:
    container: AppContainer = request.app.state.container
    return await container.record_service.list_all(BATCHES)


@router.post("/qr/generate")
async def generate_tracking(
    body: TrackingRequest,
    request: Request,
    session: Session = Depends(require_roles(Role.FARMER, Role.ADMIN)),
) -> dict[str, object]:
    """Assign a tracking id to a batch and return its verification URL."""
    container: AppContainer = request.app.state.container
    return await container.batch_service.generate_tracking(
        session, body.batch_id, str(request.base_url)
    )


@router.get("/qr/track/{tracking_id}")
async def track_batch(tracking_id: str, request: Request) -> Any:
    """Return the batch registered under a tracking id."""
    container: AppContainer = request.app.state.container
    return await container.batch_service.track(tracking_id)


@router.get("/reports/summary")
async def summary_report(request: Request) -> dict[str, object]:
    """Return per-batch record counts."""
    container: AppContainer = request.app.state.container
    return await container.batch_service.summary_report()
