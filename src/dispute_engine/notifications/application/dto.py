"""
Notification Application DTOs
=============================

Data Transfer Objects for the notification API layer.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime

from dispute_engine.notifications.domain import Condition


# ========== Type Aliases for Literals ==========
TemplateTypeStr = Literal["DISPUTE", "TRANSACTION", "SYSTEM", "SECURITY", "PAYMENT"]
CategoryStr = Literal["INFO", "WARNING", "ERROR", "SUCCESS", "URGENT"]
ChannelStr = Literal["EMAIL", "SMS", "PUSH", "IN_APP"]
NotificationStatusStr = Literal["PENDING", "SENT", "DELIVERED", "READ", "FAILED"]
PriorityStr = Literal["LOW", "MEDIUM", "HIGH", "URGENT"]
FrequencyStr = Literal["IMMEDIATE", "HOURLY", "DAILY", "WEEKLY"]
DigestTypeStr = Literal["DAILY", "WEEKLY", "MONTHLY"]

_HHMM = r"^([01]\d|2[0-3]):[0-5]\d$"


# ========== Request DTOs ==========

class TemplateCreateRequest(BaseModel):
    """Request model for creating a notification template."""
    id: Optional[str] = Field(default=None, description="Template ID (generated when omitted)")
    name: str = Field(..., min_length=1)
    type: TemplateTypeStr = "DISPUTE"
    category: CategoryStr = "INFO"
    title: str = Field(..., min_length=1, description="Title pattern with {{variable}} placeholders")
    message: str = Field(..., min_length=1, description="Body pattern with {{variable}} placeholders")
    variables: List[str] = Field(default_factory=list)
    channels: List[ChannelStr] = Field(default_factory=list)
    enabled: bool = True


class TemplateUpdateRequest(BaseModel):
    """Partial template update; omitted fields are left unchanged."""
    name: Optional[str] = Field(default=None, min_length=1)
    type: Optional[TemplateTypeStr] = None
    category: Optional[CategoryStr] = None
    title: Optional[str] = None
    message: Optional[str] = None
    variables: Optional[List[str]] = None
    channels: Optional[List[ChannelStr]] = None
    enabled: Optional[bool] = None


class RuleCreateRequest(BaseModel):
    """Request model for creating a notification rule."""
    id: Optional[str] = Field(default=None, description="Rule ID (generated when omitted)")
    name: str = Field(..., min_length=1)
    description: str = ""
    conditions: List[Condition] = Field(default_factory=list)
    template_id: str = Field(..., min_length=1)
    channels: List[ChannelStr] = Field(default_factory=list)
    enabled: bool = True
    priority: int = Field(default=1, description="Lower values are applied first")
    cooldown_minutes: int = Field(default=0, ge=0)


class RuleUpdateRequest(BaseModel):
    """Partial rule update; omitted fields are left unchanged."""
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    conditions: Optional[List[Condition]] = None
    template_id: Optional[str] = Field(default=None, min_length=1)
    channels: Optional[List[ChannelStr]] = None
    enabled: Optional[bool] = None
    priority: Optional[int] = None
    cooldown_minutes: Optional[int] = Field(default=None, ge=0)


class QuietHoursUpdate(BaseModel):
    enabled: Optional[bool] = None
    start: Optional[str] = Field(default=None, pattern=_HHMM)
    end: Optional[str] = Field(default=None, pattern=_HHMM)
    timezone: Optional[str] = None


class PreferencesUpdateRequest(BaseModel):
    """Partial preference update; nested maps are merged key by key."""
    email: Optional[bool] = None
    sms: Optional[bool] = None
    push: Optional[bool] = None
    in_app: Optional[bool] = None
    quiet_hours: Optional[QuietHoursUpdate] = None
    categories: Optional[Dict[TemplateTypeStr, bool]] = None
    frequency: Optional[FrequencyStr] = None
    digest_enabled: Optional[bool] = None


class TriggerRequest(BaseModel):
    """Request model for firing a rule-engine trigger directly."""
    type: str = Field(..., min_length=1, description="Trigger type, e.g. DISPUTE_CREATED")
    payload: Dict[str, Any] = Field(default_factory=dict)


# ========== Response DTOs ==========

class TemplateResponse(BaseModel):
    id: str
    name: str
    type: TemplateTypeStr
    category: CategoryStr
    title: str
    message: str
    variables: List[str]
    channels: List[ChannelStr]
    enabled: bool
    created_at: datetime
    updated_at: datetime


class RuleResponse(BaseModel):
    id: str
    name: str
    description: str
    conditions: List[Condition]
    template_id: str
    channels: List[ChannelStr]
    enabled: bool
    priority: int
    cooldown_minutes: int
    created_at: datetime
    updated_at: datetime


class NotificationResponse(BaseModel):
    id: str
    user_id: str
    type: str
    category: str
    title: str
    message: str
    data: Dict[str, Any]
    channels: List[str]
    priority: PriorityStr
    status: NotificationStatusStr
    created_at: datetime
    sent_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    read_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    count: int


class QuietHoursResponse(BaseModel):
    enabled: bool
    start: str
    end: str
    timezone: str


class PreferencesResponse(BaseModel):
    user_id: str
    email: bool
    sms: bool
    push: bool
    in_app: bool
    quiet_hours: QuietHoursResponse
    categories: Dict[str, bool]
    frequency: FrequencyStr
    digest_enabled: bool


class DigestPeriod(BaseModel):
    start: datetime
    end: datetime


class DigestSummary(BaseModel):
    total: int
    by_type: Dict[str, int]
    by_category: Dict[str, int]
    urgent: int


class DigestResponse(BaseModel):
    id: str
    user_id: str
    type: DigestTypeStr
    period: DigestPeriod
    notifications: List[NotificationResponse]
    summary: DigestSummary
    generated_at: datetime


class TriggerResponse(BaseModel):
    notifications: List[NotificationResponse]
    count: int


class DispatchRunResponse(BaseModel):
    processed: int
    sent: int
    failed: int
    deferred: int
