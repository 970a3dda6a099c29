"""Audit logging service.

Every authorization-relevant decision (authentication outcome, access
granted, access denied) produces exactly one ``AuditEntry``. Entries are
written synchronously as one JSON object per line to a dedicated,
non-propagating logger so they can be shipped to a SIEM independently of
application logs. Entries are never batched, updated or deleted.
"""

from __future__ import annotations

import copy
import json
import logging
import sys
from dataclasses import dataclass
from enum import Enum
from typing import IO, Any, Optional

from event_intel.auth.context import CallerContext
from event_intel.core.time import isoformat_ms, utcnow

AUDIT_LOGGER_NAME = "event_intel.audit"


class AuditLevel(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class AuditAction(str, Enum):
    """Fixed audit action vocabulary."""
    AUTHENTICATION_FAILURE = "authentication_failure"
    AUTHENTICATION_SUCCESS = "authentication_success"
    AUTHORIZATION_DENIED = "authorization_denied"
    EVENT_ACCESS_SEARCH = "event_access_search"
    EVENT_ACCESS_GET_DETAILS = "event_access_get_details"
    EVENT_ACCESS_GET_TIMELINE = "event_access_get_timeline"
    EVENT_ACCESS_GET_IMPACT_SUMMARY = "event_access_get_impact_summary"


class AuthFailureReason(str, Enum):
    MISSING_TOKEN = "missing_token"
    INVALID_TOKEN = "invalid_token"
    EXPIRED_TOKEN = "expired_token"


class AccessOperation(str, Enum):
    """Read operations whose outcome is audited."""
    SEARCH = "search"
    GET_DETAILS = "get_details"
    GET_TIMELINE = "get_timeline"
    GET_IMPACT_SUMMARY = "get_impact_summary"

    @property
    def action(self) -> AuditAction:
        return AuditAction(f"event_access_{self.value}")


_LOG_LEVELS = {
    AuditLevel.INFO: logging.INFO,
    AuditLevel.WARNING: logging.WARNING,
    AuditLevel.ERROR: logging.ERROR,
}


@dataclass(frozen=True)
class AuditEntry:
    timestamp: str
    level: AuditLevel
    action: AuditAction
    caller_id: str
    success: bool
    caller_name: Optional[str] = None
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    service_id: Optional[str] = None
    message: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None

    def to_record(self) -> dict[str, Any]:
        """Wire form: ``type`` first, camelCase keys, absent optionals omitted."""
        record: dict[str, Any] = {
            "type": "AUDIT",
            "timestamp": self.timestamp,
            "level": self.level.value,
            "action": self.action.value,
            "callerId": self.caller_id,
            "callerName": self.caller_name,
            "success": self.success,
            "resourceType": self.resource_type,
            "resourceId": self.resource_id,
            "serviceId": self.service_id,
            "message": self.message,
            "metadata": copy.deepcopy(self.metadata) if self.metadata is not None else None,
        }
        return {k: v for k, v in record.items() if v is not None}

    def to_json(self) -> str:
        return json.dumps(self.to_record(), default=str, ensure_ascii=False)


class AuditFormatter(logging.Formatter):
    """Emit the pre-serialized audit line untouched."""

    def format(self, record: logging.LogRecord) -> str:
        return record.getMessage()


def configure_audit_stream(
    stream: Optional[IO[str]] = None,
    log_file: Optional[str] = None,
    name: str = AUDIT_LOGGER_NAME,
) -> logging.Logger:
    """Attach the audit handler(s) to the audit logger and return it.

    Defaults to stderr. A file, when given, replaces the stream.
    """
    audit_logger = logging.getLogger(name)
    for old in list(audit_logger.handlers):
        audit_logger.removeHandler(old)
        old.close()
    audit_logger.setLevel(logging.INFO)
    audit_logger.propagate = False

    if log_file:
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(AuditFormatter())
    audit_logger.addHandler(handler)
    return audit_logger


class AuditRecorder:
    """Append-only emitter of audit entries."""

    def __init__(self, audit_logger: Optional[logging.Logger] = None):
        self._logger = audit_logger or logging.getLogger(AUDIT_LOGGER_NAME)

    def record(
        self,
        *,
        level: AuditLevel,
        action: AuditAction,
        caller_id: str,
        success: bool,
        caller_name: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        service_id: Optional[str] = None,
        message: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> AuditEntry:
        """Build, emit and return one entry. The timestamp is generated here."""
        entry = AuditEntry(
            timestamp=isoformat_ms(utcnow()),
            level=level,
            action=action,
            caller_id=caller_id,
            success=success,
            caller_name=caller_name,
            resource_type=resource_type,
            resource_id=resource_id,
            service_id=service_id,
            message=message,
            metadata=copy.deepcopy(metadata) if metadata else None,
        )
        self._logger.log(_LOG_LEVELS[level], entry.to_json())
        return entry

    def event_access(
        self,
        context: CallerContext,
        operation: AccessOperation,
        result_count: int,
        *,
        service_id: Optional[str] = None,
        resource_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> AuditEntry:
        """Outcome of a read. ``success`` is true iff records were returned."""
        success = result_count > 0
        return self.record(
            level=AuditLevel.INFO,
            action=operation.action,
            caller_id=context.caller_id,
            caller_name=context.caller_name,
            success=success,
            resource_type="event",
            resource_id=resource_id,
            service_id=service_id,
            message=f"Accessed {result_count} event(s)",
            metadata=metadata,
        )

    def authorization_denied(
        self,
        context: CallerContext,
        service_id: str,
        operation: AccessOperation,
        *,
        resource_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> AuditEntry:
        details = {"operation": operation.value, "reason": "unauthorized"}
        details.update(metadata or {})
        return self.record(
            level=AuditLevel.WARNING,
            action=AuditAction.AUTHORIZATION_DENIED,
            caller_id=context.caller_id,
            caller_name=context.caller_name,
            success=False,
            resource_type="service",
            resource_id=resource_id,
            service_id=service_id,
            message=f"Access denied to service: {service_id}",
            metadata=details,
        )

    def auth_failure(
        self,
        caller_id: str,
        reason: AuthFailureReason,
        metadata: Optional[dict[str, Any]] = None,
    ) -> AuditEntry:
        details = {"reason": reason.value}
        details.update(metadata or {})
        return self.record(
            level=AuditLevel.WARNING,
            action=AuditAction.AUTHENTICATION_FAILURE,
            caller_id=caller_id,
            success=False,
            message=f"Authentication failed: {reason.value}",
            metadata=details,
        )

    def auth_success(
        self,
        caller_id: str,
        caller_name: Optional[str],
        metadata: Optional[dict[str, Any]] = None,
    ) -> AuditEntry:
        return self.record(
            level=AuditLevel.INFO,
            action=AuditAction.AUTHENTICATION_SUCCESS,
            caller_id=caller_id,
            caller_name=caller_name,
            success=True,
            message="Authentication successful",
            metadata=metadata,
        )
