"""
Routers package for FastAPI endpoints.

Organized by domain:
- receipts: One-shot extraction and export endpoints
- sessions: Receipt session (screen state) endpoints
"""

from . import receipts, sessions

__all__ = ["receipts", "sessions"]
