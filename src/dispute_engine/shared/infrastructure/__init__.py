"""
Infrastructure Layer
=====================

Low-level technical concerns:
- Logging setup
- In-process publish/subscribe
- Interval scheduling
"""
