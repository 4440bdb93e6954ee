"""
Core Exceptions
================

Custom exceptions for the dispute engine.

The taxonomy mirrors how each failure is handled:
- MalformedEventException: tracking input dropped and logged
- TemplateResolutionException: rule application skipped
- ChannelDeliveryException: notification marked FAILED, never retried
- ConfigurationException: configuration could not be loaded or applied
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class MalformedEventException(ValidationException):
    """Raised when a tracking event draft cannot be turned into an event."""


class TemplateResolutionException(DomainException):
    """Raised when a rule's template is missing or disabled."""

    def __init__(self, template_id: str, rule_id: Optional[str] = None):
        self.template_id = template_id
        self.rule_id = rule_id
        super().__init__(
            f"Template '{template_id}' unavailable",
            {"template_id": template_id, "rule_id": rule_id}
        )


class ChannelDeliveryException(ExternalServiceException):
    """Raised when a channel sink fails to deliver a notification."""

    def __init__(
        self,
        channel: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.channel = channel
        super().__init__(f"{channel} channel", message, details)


class InvalidTransitionException(DomainException):
    """Raised when a notification status change would move backwards."""

    def __init__(self, notification_id: str, current: str, target: str):
        self.notification_id = notification_id
        self.current = current
        self.target = target
        super().__init__(
            f"Notification {notification_id} cannot move from {current} to {target}",
            {"notification_id": notification_id, "current": current, "target": target}
        )
