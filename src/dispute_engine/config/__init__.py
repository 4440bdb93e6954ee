"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from pathlib import Path
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="dispute-engine", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root logging level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Tracking ==========
    tracking_policy_path: Path = Field(
        default=Path("tracking_policy.yaml"),
        description="Path to the SLA / auto-escalation policy YAML file"
    )
    max_tracking_events: int = Field(
        default=1000,
        description="Maximum number of tracking events kept in memory",
        ge=1
    )
    monitor_interval_seconds: int = Field(
        default=30,
        description="Seconds between SLA / auto-escalation scans (0 disables the job)",
        ge=0
    )
    sla_breach_dedup_hours: float = Field(
        default=24.0,
        description="Trailing window in which a second SLA breach event is suppressed",
        ge=0
    )
    auto_escalation_dedup_hours: Optional[float] = Field(
        default=None,
        description="Optional trailing window suppressing repeated auto-escalation events"
    )

    # ========== Notifications ==========
    dispatch_interval_seconds: int = Field(
        default=30,
        description="Seconds between notification dispatch runs (0 disables the job)",
        ge=0
    )
    channel_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for a single channel delivery call",
        gt=0,
        le=120
    )
    quiet_hours_bypass_urgent: bool = Field(
        default=False,
        description="Deliver URGENT notifications even inside a recipient's quiet hours"
    )
    notification_webhook_url: Optional[str] = Field(
        default=None,
        description="Webhook receiving EMAIL / SMS / PUSH notifications"
    )
    webhook_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for webhook calls",
        ge=0.1,
        le=30
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "test", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class DisputeStatus(str):
    """Dispute lifecycle statuses."""
    OPEN = "OPEN"
    IN_REVIEW = "IN_REVIEW"
    AWAITING_RESPONSE = "AWAITING_RESPONSE"
    MEDIATION = "MEDIATION"
    ESCALATED = "ESCALATED"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


class Priority(str):
    """Dispute priority levels."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class EventType(str):
    """Tracking event types."""
    STATUS_CHANGE = "STATUS_CHANGE"
    PRIORITY_CHANGE = "PRIORITY_CHANGE"
    ASSIGNMENT_CHANGE = "ASSIGNMENT_CHANGE"
    MESSAGE_ADDED = "MESSAGE_ADDED"
    EVIDENCE_ADDED = "EVIDENCE_ADDED"
    RESOLUTION_PROPOSED = "RESOLUTION_PROPOSED"
    RESOLUTION_ACCEPTED = "RESOLUTION_ACCEPTED"
    RESOLUTION_REJECTED = "RESOLUTION_REJECTED"
    SLA_BREACH = "SLA_BREACH"
    ESCALATION = "ESCALATION"
    AUTO_ACTION = "AUTO_ACTION"


class Severity(str):
    """Tracking event severities."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class SLAStatus(str):
    """SLA status reported by the SLA calculator."""
    ON_TIME = "ON_TIME"
    AT_RISK = "AT_RISK"
    OVERDUE = "OVERDUE"


class TemplateType(str):
    """Notification template types (also the preference categories)."""
    DISPUTE = "DISPUTE"
    TRANSACTION = "TRANSACTION"
    SYSTEM = "SYSTEM"
    SECURITY = "SECURITY"
    PAYMENT = "PAYMENT"


class TemplateCategory(str):
    """Notification template categories."""
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    SUCCESS = "SUCCESS"
    URGENT = "URGENT"


class Channel(str):
    """Delivery channels."""
    EMAIL = "EMAIL"
    SMS = "SMS"
    PUSH = "PUSH"
    IN_APP = "IN_APP"


class NotificationPriority(str):
    """Notification priorities derived from template category."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class NotificationStatus(str):
    """Notification delivery states."""
    PENDING = "PENDING"
    SENT = "SENT"
    DELIVERED = "DELIVERED"
    READ = "READ"
    FAILED = "FAILED"


class Frequency(str):
    """Preferred notification frequency."""
    IMMEDIATE = "IMMEDIATE"
    HOURLY = "HOURLY"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"


class DigestType(str):
    """Digest periods."""
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


class TriggerType(str):
    """Rule engine trigger types."""
    DISPUTE_CREATED = "DISPUTE_CREATED"
    DISPUTE_STATUS_CHANGED = "DISPUTE_STATUS_CHANGED"
    DISPUTE_PRIORITY_CHANGED = "DISPUTE_PRIORITY_CHANGED"
    DISPUTE_RESOLVED = "DISPUTE_RESOLVED"
    DISPUTE_ESCALATED = "DISPUTE_ESCALATED"
    DISPUTE_AUTO_ESCALATED = "DISPUTE_AUTO_ESCALATED"
    DISPUTE_MESSAGE_ADDED = "DISPUTE_MESSAGE_ADDED"
    DISPUTE_EVIDENCE_ADDED = "DISPUTE_EVIDENCE_ADDED"
    DISPUTE_RESOLUTION_PROPOSED = "DISPUTE_RESOLUTION_PROPOSED"
    SLA_BREACH = "SLA_BREACH"


# ========== Lists for validation ==========

VALID_STATUSES = [
    DisputeStatus.OPEN, DisputeStatus.IN_REVIEW,
    DisputeStatus.AWAITING_RESPONSE, DisputeStatus.MEDIATION,
    DisputeStatus.ESCALATED, DisputeStatus.RESOLVED, DisputeStatus.CLOSED
]
CLOSED_STATUSES = [DisputeStatus.RESOLVED, DisputeStatus.CLOSED]
VALID_PRIORITIES = [
    Priority.LOW, Priority.MEDIUM,
    Priority.HIGH, Priority.URGENT
]
VALID_EVENT_TYPES = [
    EventType.STATUS_CHANGE, EventType.PRIORITY_CHANGE,
    EventType.ASSIGNMENT_CHANGE, EventType.MESSAGE_ADDED,
    EventType.EVIDENCE_ADDED, EventType.RESOLUTION_PROPOSED,
    EventType.RESOLUTION_ACCEPTED, EventType.RESOLUTION_REJECTED,
    EventType.SLA_BREACH, EventType.ESCALATION, EventType.AUTO_ACTION
]
VALID_SEVERITIES = [
    Severity.LOW, Severity.MEDIUM,
    Severity.HIGH, Severity.CRITICAL
]
VALID_TEMPLATE_TYPES = [
    TemplateType.DISPUTE, TemplateType.TRANSACTION,
    TemplateType.SYSTEM, TemplateType.SECURITY, TemplateType.PAYMENT
]
VALID_CATEGORIES = [
    TemplateCategory.INFO, TemplateCategory.WARNING,
    TemplateCategory.ERROR, TemplateCategory.SUCCESS, TemplateCategory.URGENT
]
VALID_CHANNELS = [Channel.EMAIL, Channel.SMS, Channel.PUSH, Channel.IN_APP]
VALID_FREQUENCIES = [
    Frequency.IMMEDIATE, Frequency.HOURLY,
    Frequency.DAILY, Frequency.WEEKLY
]
