import csv
import io
import logging
import os
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from core.config import settings
from core.enums import UploadStatus
from core.exceptions import ValidationError
from db.csv_upload import CsvUpload, CsvUploadBatch
from services.csv.schemas import get_schema, normalize_header

logger = logging.getLogger(__name__)

ROW_ERRORS_SAMPLE_LIMIT = 50
SAMPLE_ROWS_LIMIT = 25


def row_errors(row_number: int, exc: PydanticValidationError) -> List[Dict[str, Any]]:
    out = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ())) or None
        out.append({"row": row_number, "field": field, "error": err.get("msg", "invalid value")})
    return out


class CsvUploadService:
    """Validate phase: parse, type-check and batch rows. No Tier 2 writes."""

    def __init__(self, repos, batch_size: Optional[int] = None):
        self.repos = repos
        self.batch_size = batch_size or settings.csv_batch_size

    def _check_file(self, filename: str, size: int) -> None:
        ext = os.path.splitext(filename or "")[1].lower()
        if ext not in settings.csv_allowed_extensions:
            raise ValidationError(f"Unsupported file extension '{ext}'", field="filename")
        if size > settings.csv_max_file_size_bytes:
            raise ValidationError(
                f"File is {size} bytes; limit is {settings.csv_max_file_size_bytes}",
                field="file",
            )

    async def _reject(self, upload: CsvUpload, message: str, field: str, **errors: Any) -> None:
        """Mark the upload failed and raise; a failed upload is never transformed."""
        upload.status = UploadStatus.FAILED.value
        upload.validation_errors = {"error": message, **errors}
        await self.repos.csv.save(upload)
        await self.repos.commit()
        logger.warning("CSV upload %s (%s) rejected: %s", upload.id, upload.filename, message)
        raise ValidationError(message, field=field, upload_id=upload.id)

    async def validate_upload(
        self,
        restaurant_id: UUID,
        upload_type: str,
        filename: str,
        content: Union[str, bytes],
        uploaded_by: Optional[UUID] = None,
    ) -> Dict[str, Any]:
        schema = get_schema(upload_type)
        raw = content.encode("utf-8") if isinstance(content, str) else content
        self._check_file(filename, len(raw))

        upload = CsvUpload(
            restaurant_id=restaurant_id,
            upload_type=schema.upload_type.value,
            filename=filename,
            file_size_bytes=len(raw),
            status=UploadStatus.UPLOADED.value,
            rows_total=0,
            rows_valid=0,
            rows_invalid=0,
            validation_errors={},
            upload_metadata={},
            uploaded_by=uploaded_by,
        )
        await self.repos.csv.add_upload(upload)

        try:
            text = raw.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            await self._reject(upload, "File is not UTF-8 encoded text", "file", byteOffset=exc.start)

        reader = csv.reader(io.StringIO(text))
        try:
            raw_headers = next(reader, [])
        except csv.Error as exc:
            await self._reject(upload, f"Malformed CSV header: {exc}", "file", line=reader.line_num)
        headers = [normalize_header(h, schema.upload_type) for h in raw_headers]
        missing = [h for h in schema.required if h not in headers]
        unknown = sorted({h for h in headers if h and h not in schema.known})

        if missing:
            await self._reject(
                upload,
                f"Missing required columns: {', '.join(missing)}",
                "headers",
                missingHeaders=missing,
                headers=headers,
            )

        total = valid = invalid = 0
        errors_sample: List[Dict[str, Any]] = []
        error_count = 0
        sample_rows: List[Dict[str, Any]] = []
        batch_rows: List[Dict[str, Any]] = []
        batch_errors: List[Dict[str, Any]] = []
        batch_invalid = 0
        batch_index = 0

        async def flush_batch():
            nonlocal batch_rows, batch_errors, batch_invalid, batch_index
            if not batch_rows and not batch_errors:
                return
            await self.repos.csv.add_batch(CsvUploadBatch(
                upload_id=upload.id,
                batch_index=batch_index,
                rows=batch_rows,
                errors=batch_errors,
                rows_valid=len(batch_rows),
                rows_invalid=batch_invalid,
            ))
            batch_index += 1
            batch_rows, batch_errors, batch_invalid = [], [], 0

        try:
            # Header is line 1
            for row_number, values in enumerate(reader, start=2):
                if not any((v or "").strip() for v in values):
                    continue
                total += 1
                record = {h: v for h, v in zip(headers, values) if h in schema.known}
                try:
                    parsed = schema.row_model.model_validate(record)
                except PydanticValidationError as exc:
                    invalid += 1
                    batch_invalid += 1
                    errs = row_errors(row_number, exc)
                    error_count += len(errs)
                    batch_errors.extend(errs)
                    for e in errs:
                        if len(errors_sample) < ROW_ERRORS_SAMPLE_LIMIT:
                            errors_sample.append(e)
                else:
                    valid += 1
                    data = parsed.model_dump(mode="json")
                    batch_rows.append({"row": row_number, "data": data})
                    if len(sample_rows) < SAMPLE_ROWS_LIMIT:
                        sample_rows.append(data)

                if len(batch_rows) + batch_invalid >= self.batch_size:
                    await flush_batch()
        except csv.Error as exc:
            await self._reject(upload, f"Malformed CSV at line {reader.line_num}: {exc}", "file", line=reader.line_num)
        await flush_batch()

        upload.rows_total = total
        upload.rows_valid = valid
        upload.rows_invalid = invalid
        upload.validation_errors = {"rowErrorCount": error_count, "rowErrorsSample": errors_sample}
        upload.upload_metadata = {
            "headers": headers,
            "unknownHeaders": unknown,
            "batchCount": batch_index,
            "batchSize": self.batch_size,
            "sampleRows": sample_rows,
        }
        upload.status = UploadStatus.VALIDATED.value if total else UploadStatus.FAILED.value
        await self.repos.csv.save(upload)
        await self.repos.commit()

        logger.info(
            "CSV upload %s validated: %d rows (%d valid, %d invalid) in %d batches",
            upload.id, total, valid, invalid, batch_index,
        )
        return {
            "uploadId": str(upload.id),
            "restaurantId": str(restaurant_id),
            "uploadType": upload.upload_type,
            "status": upload.status,
            "rowsTotal": total,
            "rowsValid": valid,
            "rowsInvalid": invalid,
            "batches": batch_index,
            "unknownHeaders": unknown,
            "errors": errors_sample,
        }
