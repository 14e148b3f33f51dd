"""Persistence layers for codescope."""

from .audit_store import AuditStore

__all__ = ["AuditStore"]
