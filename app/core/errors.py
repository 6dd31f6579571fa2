"""Typed errors raised by the audit engine.

Every failure the engine reports to a caller is one of the four kinds below;
the HTTP layer maps the kind to a status code in ``app.main``.
"""

from typing import Any, Optional


class AuditEngineError(Exception):
    status_code = 400
    default_code = "AUDIT_ENGINE_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(AuditEngineError):
    status_code = 404
    default_code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Optional[str] = None):
        details = {"entity": entity, "id": entity_id} if entity_id else {"entity": entity}
        super().__init__(f"{entity} nao encontrado", details=details)


class InvalidStateError(AuditEngineError):
    status_code = 409
    default_code = "INVALID_STATE"

    def __init__(self, message: str, current_state: Optional[str] = None):
        details = {"current_state": current_state} if current_state else {}
        super().__init__(message, details=details)


class ValidationError(AuditEngineError):
    status_code = 422
    default_code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        details = {"field": field, "value": value} if field else {}
        super().__init__(message, details=details)


class ConcurrencyConflictError(AuditEngineError):
    status_code = 409
    default_code = "CONCURRENCY_CONFLICT"
