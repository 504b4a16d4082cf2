from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator

from core.enums import InvestigationStatus


class UsageCalculationRequest(BaseModel):
    # Plain string so unknown methods reach the engine and fail there
    method: str = "recipe_based"
    item_ids: Optional[List[UUID]] = None
    recalculate: bool = False


class InvestigateRequest(BaseModel):
    assigned_to: UUID
    notes: Optional[str] = None


class ResolveRequest(BaseModel):
    resolved_by: UUID
    explanation: str
    resolution: InvestigationStatus = InvestigationStatus.RESOLVED

    @field_validator("explanation")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("explanation is required")
        return v
