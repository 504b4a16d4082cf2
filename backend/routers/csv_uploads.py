from uuid import UUID

from fastapi import APIRouter, Depends, status

from core.exceptions import VarianceEngineError, to_http_exception
from db.repositories import Repositories, get_repositories
from schemas.imports import CsvTransformRequest, CsvUploadCreate
from services.csv.transform import CsvTransformService
from services.csv.upload import CsvUploadService

router = APIRouter()


@router.post("/uploads", status_code=status.HTTP_201_CREATED)
async def validate_upload(body: CsvUploadCreate, repos: Repositories = Depends(get_repositories)):
    try:
        return await CsvUploadService(repos).validate_upload(
            body.restaurant_id,
            body.upload_type.value,
            body.filename,
            body.content,
            uploaded_by=body.uploaded_by,
        )
    except VarianceEngineError as e:
        raise to_http_exception(e)


@router.post("/uploads/{upload_id}/transform")
async def transform_upload(upload_id: UUID, body: CsvTransformRequest, repos: Repositories = Depends(get_repositories)):
    options = {}
    if "max_error_rate" in body.model_fields_set:
        options["max_error_rate"] = body.max_error_rate
    try:
        return await CsvTransformService(repos).transform_upload(
            upload_id,
            restaurant_id=body.restaurant_id,
            dry_run=body.dry_run,
            created_by=body.created_by,
            **options,
        )
    except VarianceEngineError as e:
        raise to_http_exception(e)
