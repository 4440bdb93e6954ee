"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from dispute_engine.core.exceptions import (
    ApplicationException,
    DomainException,
    ValidationException,
    ResourceNotFoundException,
    ConfigurationException,
    ExternalServiceException,
    MalformedEventException,
    TemplateResolutionException,
    ChannelDeliveryException,
    InvalidTransitionException,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "ValidationException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "ExternalServiceException",
    "MalformedEventException",
    "TemplateResolutionException",
    "ChannelDeliveryException",
    "InvalidTransitionException",
]
