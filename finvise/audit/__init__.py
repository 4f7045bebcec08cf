"""Audit logging package."""

from finvise.audit.logger import AuditLogger, configure_logging

__all__ = ["AuditLogger", "configure_logging"]
