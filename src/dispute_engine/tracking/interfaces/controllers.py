"""
Tracking Controllers (API Routes)
=================================

FastAPI routes for the dispute audit trail.

Controllers are thin - they delegate to the engine's services.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from dispute_engine.engine import DisputeEngine, SignalResult, get_engine
from dispute_engine.tracking.application import (
    CustomEventRequest,
    DashboardResponse,
    DisputeCreatedSignal,
    DisputeEscalatedSignal,
    DisputeResolvedSignal,
    DisputeUpdatedSignal,
    EventListResponse,
    MetricsResponse,
    MonitorRunResponse,
    SignalResponse,
    TrackingEventResponse,
)
from dispute_engine.tracking.application.dto import EventTypeStr, SeverityStr
from dispute_engine.tracking.domain import TrackingEvent, TrackingFilter

from dispute_engine.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/tracking", tags=["Dispute Tracking"])


# ========== Example payloads for Swagger ==========

DISPUTE_EXAMPLE = {
    "id": "dispute_001",
    "reason": "Item not received",
    "status": "OPEN",
    "priority": "HIGH",
    "raised_by": "buyer_42",
    "raised_against": "seller_7",
    "transaction_id": "txn_9001",
    "created_at": "2024-01-15T10:00:00Z"
}

METRICS_RESPONSE_EXAMPLE = {
    "total_events": 10,
    "events_by_type": {"STATUS_CHANGE": 6, "ESCALATION": 2, "SLA_BREACH": 2},
    "events_by_severity": {"CRITICAL": 4, "HIGH": 2, "MEDIUM": 4},
    "average_response_time": 42.5,
    "escalation_rate": 20.0,
    "resolution_rate": 10.0,
    "time_to_resolution": 36.25
}


# ========== Helpers ==========

def _event_response(event: TrackingEvent) -> TrackingEventResponse:
    return TrackingEventResponse.model_validate(event.to_dict())


def _signal_response(result: SignalResult) -> SignalResponse:
    return SignalResponse(
        events=[_event_response(e) for e in result.events],
        notifications_created=len(result.notifications)
    )


# ========== Route Handlers ==========

@router.get(
    "/events",
    response_model=EventListResponse,
    summary="Query tracking events",
    description="""
    Filtered, paginated view of the audit trail, newest first.

    Filters are combined with AND. `start` / `end` are inclusive.
    """
)
async def list_events(
    dispute_id: Optional[str] = Query(None, description="Filter by dispute"),
    type: Optional[EventTypeStr] = Query(None, description="Filter by event type"),
    severity: Optional[SeverityStr] = Query(None, description="Filter by severity"),
    user_id: Optional[str] = Query(None, description="Filter by acting user"),
    start: Optional[datetime] = Query(None, description="Earliest timestamp (inclusive)"),
    end: Optional[datetime] = Query(None, description="Latest timestamp (inclusive)"),
    limit: Optional[int] = Query(None, ge=1, le=1000, description="Page size"),
    offset: int = Query(0, ge=0, description="Items to skip"),
    engine: DisputeEngine = Depends(get_engine)
):
    events = engine.store.query(TrackingFilter(
        dispute_id=dispute_id,
        type=type,
        severity=severity,
        user_id=user_id,
        start=start,
        end=end,
        limit=limit,
        offset=offset,
    ))
    return EventListResponse(
        events=[_event_response(e) for e in events],
        count=len(events)
    )


@router.post(
    "/events",
    response_model=TrackingEventResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a custom tracking event",
    description="""
    Record an ad-hoc event such as a message, evidence upload or a
    resolution proposal. MESSAGE_ADDED, EVIDENCE_ADDED and
    RESOLUTION_PROPOSED events also fire the matching notification rules.
    """
)
async def create_event(
    request: CustomEventRequest,
    engine: DisputeEngine = Depends(get_engine)
):
    event = engine.store.track_custom_event(
        dispute_id=request.dispute_id,
        type=request.type,
        title=request.title,
        description=request.description,
        severity=request.severity,
        metadata=request.metadata,
        user_id=request.user_id,
        user_name=request.user_name,
    )
    if event is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Tracking event rejected"
        )
    return _event_response(event)


@router.get(
    "/metrics",
    response_model=MetricsResponse,
    summary="Get tracking metrics",
    description="""
    Statistics over the in-memory event log.

    `average_response_time` (minutes) and `time_to_resolution` (hours)
    are approximations computed from the retained events.
    """,
    responses={
        200: {
            "description": "Current metrics",
            "content": {"application/json": {"example": METRICS_RESPONSE_EXAMPLE}}
        }
    }
)
async def get_metrics(engine: DisputeEngine = Depends(get_engine)):
    return MetricsResponse(**engine.store.metrics().to_dict())


@router.get(
    "/dashboard",
    response_model=DashboardResponse,
    summary="Get tracking dashboard",
    description="""
    Active disputes, today's activity (UTC), the 10 most recent events,
    up to 5 urgent (CRITICAL / HIGH) alerts and the metrics bundle.
    """
)
async def get_dashboard(engine: DisputeEngine = Depends(get_engine)):
    return DashboardResponse.model_validate(engine.store.dashboard().to_dict())


@router.post(
    "/signals/created",
    response_model=SignalResponse,
    summary="Dispute created",
    description="Record a new dispute and fire DISPUTE_CREATED notifications.",
    openapi_extra={"requestBody": {"content": {"application/json": {"example": {"dispute": DISPUTE_EXAMPLE}}}}}
)
async def dispute_created(
    signal: DisputeCreatedSignal,
    engine: DisputeEngine = Depends(get_engine)
):
    return _signal_response(engine.dispute_created(signal.dispute.to_domain()))


@router.post(
    "/signals/updated",
    response_model=SignalResponse,
    summary="Dispute updated",
    description="""
    Diff the dispute against its previous snapshot. Status and priority
    changes are recorded and fire their notification triggers; without a
    previous snapshot nothing happens.
    """
)
async def dispute_updated(
    signal: DisputeUpdatedSignal,
    engine: DisputeEngine = Depends(get_engine)
):
    previous = signal.previous.to_domain() if signal.previous else None
    return _signal_response(engine.dispute_updated(signal.dispute.to_domain(), previous))


@router.post(
    "/signals/resolved",
    response_model=SignalResponse,
    summary="Dispute resolved"
)
async def dispute_resolved(
    signal: DisputeResolvedSignal,
    engine: DisputeEngine = Depends(get_engine)
):
    return _signal_response(engine.dispute_resolved(signal.dispute.to_domain()))


@router.post(
    "/signals/escalated",
    response_model=SignalResponse,
    summary="Dispute escalated"
)
async def dispute_escalated(
    signal: DisputeEscalatedSignal,
    engine: DisputeEngine = Depends(get_engine)
):
    return _signal_response(engine.dispute_escalated(signal.dispute.to_domain(), signal.reason))


@router.post(
    "/monitor/run",
    response_model=MonitorRunResponse,
    summary="Run the SLA / auto-escalation monitor once",
    description="Runs one monitoring pass immediately, outside the schedule."
)
async def run_monitor(engine: DisputeEngine = Depends(get_engine)):
    summary = await engine.monitor.run_once()
    logger.info("Manual monitor run", extra=summary)
    return MonitorRunResponse(**summary)


# Export router for inclusion in main app
tracking_router = router
