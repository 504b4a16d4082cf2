from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from core.enums import UploadType


class CsvUploadCreate(BaseModel):
    restaurant_id: UUID
    upload_type: UploadType
    filename: str
    content: str
    uploaded_by: Optional[UUID] = None


class CsvTransformRequest(BaseModel):
    restaurant_id: Optional[UUID] = None
    dry_run: bool = False
    max_error_rate: Optional[float] = None
    created_by: Optional[UUID] = None


class PosTransformRequest(BaseModel):
    restaurant_id: UUID
    dry_run: bool = False
    since: Optional[datetime] = None
