import json
import logging
from typing import Any, Dict, Optional

from ...application.ports.audit_logger import AuditLogger
from ...utils import hash_destination, utcnow


class StdAuditLogger(AuditLogger):
    """Writes one ``AUDIT: {json}`` line per event; failed events go out at WARNING."""

    def __init__(self, logger_name: str = "servxpert.audit") -> None:
        self._logger = logging.getLogger(logger_name)

    def log(self, action: str, subject: str, user_id: Optional[str] = None, request_id: Optional[str] = None,
            ip_address: Optional[str] = None, success: bool = True, details: Optional[Dict[str, Any]] = None) -> None:
        entry = {
            "timestamp": utcnow().isoformat(),
            "action": action,
            "subject_hash": hash_destination(subject or ""),
            "user_id": user_id,
            "request_id": request_id,
            "ip_address": ip_address,
            "success": success,
            "details": details or {},
        }
        level = logging.INFO if success else logging.WARNING
        self._logger.log(level, f"AUDIT: {json.dumps(entry, default=str)}")
