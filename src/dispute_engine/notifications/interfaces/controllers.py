"""
Notification Controllers (API Routes)
=====================================

FastAPI routes for notifications, templates, rules and preferences.

Controllers are thin - they delegate to the engine's services. Domain
errors (not found, invalid transition, duplicate ids) are mapped to HTTP
status codes by the shared exception handler.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from dispute_engine.engine import DisputeEngine, get_engine
from dispute_engine.notifications.application import (
    DigestResponse,
    DispatchRunResponse,
    NotificationListResponse,
    NotificationResponse,
    PreferencesResponse,
    PreferencesUpdateRequest,
    RuleCreateRequest,
    RuleResponse,
    RuleUpdateRequest,
    TemplateCreateRequest,
    TemplateResponse,
    TemplateUpdateRequest,
    TriggerRequest,
    TriggerResponse,
)
from dispute_engine.notifications.application.dto import (
    DigestTypeStr, NotificationStatusStr
)
from dispute_engine.notifications.domain import (
    NotificationData, NotificationRule, NotificationTemplate
)

from dispute_engine.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/notifications", tags=["Notifications"])


# ========== Example payloads for Swagger ==========

RULE_CREATE_EXAMPLE = {
    "name": "Urgent disputes by SMS",
    "conditions": [
        {"field": "type", "operator": "equals", "value": "DISPUTE_CREATED"},
        {"field": "dispute.priority", "operator": "in", "value": ["HIGH", "URGENT"], "logical_operator": "AND"}
    ],
    "template_id": "dispute_created",
    "channels": ["SMS"],
    "priority": 0,
    "cooldown_minutes": 30
}


# ========== Helpers ==========

def _notification_response(notification: NotificationData) -> NotificationResponse:
    return NotificationResponse.model_validate(notification.to_dict())


def _template_response(template: NotificationTemplate) -> TemplateResponse:
    return TemplateResponse.model_validate(template.to_dict())


def _rule_response(rule: NotificationRule) -> RuleResponse:
    return RuleResponse(
        id=rule.id,
        name=rule.name,
        description=rule.description,
        conditions=rule.conditions,
        template_id=rule.template_id,
        channels=rule.channels,
        enabled=rule.enabled,
        priority=rule.priority,
        cooldown_minutes=rule.cooldown_minutes,
        created_at=rule.created_at,
        updated_at=rule.updated_at,
    )


# ========== Notifications ==========

@router.get(
    "",
    response_model=NotificationListResponse,
    summary="List notifications",
    description="Notifications newest first, optionally filtered by recipient and status."
)
async def list_notifications(
    user_id: Optional[str] = Query(None, description="Filter by recipient"),
    status_filter: Optional[NotificationStatusStr] = Query(None, alias="status", description="Filter by status"),
    limit: Optional[int] = Query(None, ge=1, le=500),
    engine: DisputeEngine = Depends(get_engine)
):
    items = engine.notifications.list(user_id=user_id, status=status_filter, limit=limit)
    return NotificationListResponse(
        notifications=[_notification_response(n) for n in items],
        count=len(items)
    )


@router.post(
    "/{notification_id}/delivered",
    response_model=NotificationResponse,
    summary="Acknowledge delivery",
    description="Moves a SENT notification to DELIVERED. Backward transitions return 409."
)
async def mark_delivered(notification_id: str, engine: DisputeEngine = Depends(get_engine)):
    return _notification_response(engine.notifications.mark_delivered(notification_id))


@router.post(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Mark as read",
    description="Moves a SENT or DELIVERED notification to READ. Backward transitions return 409."
)
async def mark_read(notification_id: str, engine: DisputeEngine = Depends(get_engine)):
    return _notification_response(engine.notifications.mark_read(notification_id))


@router.post(
    "/trigger",
    response_model=TriggerResponse,
    summary="Fire a trigger",
    description="Runs the rule engine for an arbitrary trigger type and payload."
)
async def fire_trigger(request: TriggerRequest, engine: DisputeEngine = Depends(get_engine)):
    created = engine.rules.trigger(request.type, request.payload)
    return TriggerResponse(
        notifications=[_notification_response(n) for n in created],
        count=len(created)
    )


@router.post(
    "/dispatch/run",
    response_model=DispatchRunResponse,
    summary="Run the dispatcher once",
    description="Drains PENDING notifications immediately, outside the schedule."
)
async def run_dispatch(engine: DisputeEngine = Depends(get_engine)):
    return DispatchRunResponse(**await engine.dispatcher.run_once())


# ========== Templates ==========

@router.get("/templates", response_model=List[TemplateResponse], summary="List templates")
async def list_templates(engine: DisputeEngine = Depends(get_engine)):
    return [_template_response(t) for t in engine.templates.list()]


@router.post(
    "/templates",
    response_model=TemplateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create template"
)
async def create_template(request: TemplateCreateRequest, engine: DisputeEngine = Depends(get_engine)):
    template = engine.templates.create(NotificationTemplate(
        id=request.id or "",
        name=request.name,
        type=request.type,
        category=request.category,
        title=request.title,
        message=request.message,
        variables=request.variables,
        channels=list(request.channels),
        enabled=request.enabled,
    ))
    return _template_response(template)


@router.get("/templates/{template_id}", response_model=TemplateResponse, summary="Get template")
async def get_template(template_id: str, engine: DisputeEngine = Depends(get_engine)):
    return _template_response(engine.templates.require(template_id))


@router.patch("/templates/{template_id}", response_model=TemplateResponse, summary="Update template")
async def update_template(
    template_id: str,
    request: TemplateUpdateRequest,
    engine: DisputeEngine = Depends(get_engine)
):
    changes = request.model_dump(exclude_none=True)
    return _template_response(engine.templates.update(template_id, changes))


@router.delete(
    "/templates/{template_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete template"
)
async def delete_template(template_id: str, engine: DisputeEngine = Depends(get_engine)):
    engine.templates.delete(template_id)


# ========== Rules ==========

@router.get("/rules", response_model=List[RuleResponse], summary="List rules")
async def list_rules(engine: DisputeEngine = Depends(get_engine)):
    return [_rule_response(r) for r in engine.rules.list_rules()]


@router.post(
    "/rules",
    response_model=RuleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create rule",
    openapi_extra={"requestBody": {"content": {"application/json": {"example": RULE_CREATE_EXAMPLE}}}}
)
async def create_rule(request: RuleCreateRequest, engine: DisputeEngine = Depends(get_engine)):
    rule = engine.rules.create_rule(NotificationRule(
        id=request.id or "",
        name=request.name,
        description=request.description,
        conditions=list(request.conditions),
        template_id=request.template_id,
        channels=list(request.channels),
        enabled=request.enabled,
        priority=request.priority,
        cooldown_minutes=request.cooldown_minutes,
    ))
    return _rule_response(rule)


@router.get("/rules/{rule_id}", response_model=RuleResponse, summary="Get rule")
async def get_rule(rule_id: str, engine: DisputeEngine = Depends(get_engine)):
    return _rule_response(engine.rules.get_rule(rule_id))


@router.patch("/rules/{rule_id}", response_model=RuleResponse, summary="Update rule")
async def update_rule(
    rule_id: str,
    request: RuleUpdateRequest,
    engine: DisputeEngine = Depends(get_engine)
):
    changes = {k: getattr(request, k) for k in request.model_fields_set if getattr(request, k) is not None}
    return _rule_response(engine.rules.update_rule(rule_id, changes))


@router.delete(
    "/rules/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete rule"
)
async def delete_rule(rule_id: str, engine: DisputeEngine = Depends(get_engine)):
    engine.rules.delete_rule(rule_id)


# ========== Preferences & Digests ==========

@router.get(
    "/preferences/{user_id}",
    response_model=PreferencesResponse,
    summary="Get preferences",
    description="Users without stored preferences get the permissive default."
)
async def get_preferences(user_id: str, engine: DisputeEngine = Depends(get_engine)):
    return PreferencesResponse.model_validate(engine.preferences.get(user_id).to_dict())


@router.patch(
    "/preferences/{user_id}",
    response_model=PreferencesResponse,
    summary="Update preferences",
    description="Partial update; `quiet_hours` and `categories` are merged key by key."
)
async def update_preferences(
    user_id: str,
    request: PreferencesUpdateRequest,
    engine: DisputeEngine = Depends(get_engine)
):
    updated = engine.preferences.update(user_id, request.model_dump(exclude_none=True))
    return PreferencesResponse.model_validate(updated.to_dict())


@router.get(
    "/digest/{user_id}",
    response_model=DigestResponse,
    summary="Build a digest",
    description="Notifications for the user over the trailing day, week or 30 days."
)
async def get_digest(
    user_id: str,
    type: DigestTypeStr = Query("DAILY", description="Digest period"),
    engine: DisputeEngine = Depends(get_engine)
):
    return DigestResponse.model_validate(engine.digests.build(user_id, type).to_dict())


# Export router for inclusion in main app
notifications_router = router
