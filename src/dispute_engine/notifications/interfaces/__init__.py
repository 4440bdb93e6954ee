"""
Notification Interfaces Layer
=============================

Interface adapters (controllers) for the notification module.

Contains:
- Controllers: FastAPI route handlers

This is the outermost layer - handles HTTP requests/responses and
delegates to application services.
"""

from dispute_engine.notifications.interfaces.controllers import notifications_router

__all__ = ["notifications_router"]
