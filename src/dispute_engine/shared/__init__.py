"""
Shared Kernel Module
====================

This module contains shared infrastructure used across all bounded
contexts (Tracking and Notifications).

Architecture Pattern: Modular Monolith
- Each module (tracking, notifications) is a bounded context
- Shared kernel contains only generic infrastructure
- Domain models live within each module

DO NOT add business logic from Tracking or Notifications to shared kernel.
"""

__version__ = "1.0.0"
