"""Utility helpers exposed by SmartSafe."""

from .logbook import AuditLogError, get_logger, verify_chain

__all__ = ["AuditLogError", "get_logger", "verify_chain"]
