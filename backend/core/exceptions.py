"""Error taxonomy for the variance engine.

Every error carries a machine readable ``code`` and the HTTP status the
routers map it to. Per-item and per-row failures are collected into result
``errors`` lists by the services; only request-level errors are raised.
"""

from typing import Any, Optional

from fastapi import HTTPException, status


class VarianceEngineError(Exception):
    code = "VARIANCE_ENGINE_ERROR"
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        out = {"code": self.code, "message": self.message}
        if self.details:
            out["details"] = {k: str(v) if v is not None else None for k, v in self.details.items()}
        return out


class ValidationError(VarianceEngineError):
    code = "VALIDATION_ERROR"
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, message: str, field: Optional[str] = None, **details: Any):
        super().__init__(message, **details)
        self.field = field


class NotFoundError(VarianceEngineError):
    code = "NOT_FOUND"
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found", entity=entity, entity_id=entity_id)
        self.entity = entity
        self.entity_id = entity_id


class MissingSnapshotError(VarianceEngineError):
    code = "MISSING_SNAPSHOT"
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, period_id: Any, item_id: Any, snapshot_type: str):
        super().__init__(
            f"Missing {snapshot_type} snapshot for item {item_id} in period {period_id}",
            period_id=period_id,
            item_id=item_id,
            snapshot_type=snapshot_type,
        )
        self.snapshot_type = snapshot_type


class UnknownCalculationMethodError(VarianceEngineError):
    code = "UNKNOWN_CALCULATION_METHOD"

    def __init__(self, method: str):
        super().__init__(f"Unknown calculation method: {method}", method=method)
        self.method = method


class UnsupportedMethodError(VarianceEngineError):
    code = "UNSUPPORTED_METHOD"

    def __init__(self, method: str, reason: str):
        super().__init__(f"Calculation method '{method}' is not supported: {reason}", method=method)
        self.method = method


class ReconciliationConflictError(VarianceEngineError):
    """An upsert key that cannot resolve to an update in place."""

    code = "RECONCILIATION_CONFLICT"
    http_status = status.HTTP_409_CONFLICT


class InvalidTransitionError(VarianceEngineError):
    code = "INVALID_TRANSITION"
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, entity: str, current: str, target: str):
        super().__init__(
            f"Cannot move {entity} from '{current}' to '{target}'",
            entity=entity,
            current=current,
            target=target,
        )
        self.current = current
        self.target = target


class PeriodStateError(VarianceEngineError):
    code = "PERIOD_STATE"
    http_status = status.HTTP_409_CONFLICT


class PeriodOverlapError(VarianceEngineError):
    code = "PERIOD_OVERLAP"
    http_status = status.HTTP_409_CONFLICT


def to_http_exception(exc: VarianceEngineError) -> HTTPException:
    return HTTPException(status_code=exc.http_status, detail=exc.to_dict())


def error_entry(exc: Exception, **context: Any) -> dict:
    """Shape a collected per-item/per-row error."""
    entry = dict(context)
    entry["code"] = getattr(exc, "code", "UNEXPECTED_ERROR")
    entry["error"] = str(exc)
    return entry
