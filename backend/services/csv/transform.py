import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from core.config import settings
from core.enums import TransformStatus, UploadStatus, UploadType, UpsertOutcome
from core.exceptions import NotFoundError, ReconciliationConflictError, ValidationError, VarianceEngineError, error_entry
from db.csv_upload import CsvTransform
from services.csv.inventory import CsvInventoryTransformer
from services.csv.sales import CsvSalesTransformer
from services.tier2 import record_key, write_unified

logger = logging.getLogger(__name__)

FLAGGED_REVIEW_LIMIT = 25
_UNSET = object()


def _empty_counts() -> Dict[str, int]:
    return {
        "processedCount": 0,
        "createdCount": 0,
        "updatedCount": 0,
        "skippedCount": 0,
        "errorCount": 0,
    }


def error_rate(counts: Dict[str, int]) -> float:
    processed = counts["processedCount"]
    return round(counts["errorCount"] / processed, 4) if processed else 0.0


class CsvTransformService:
    """Transform phase: validated CSV batches -> Tier 2 items or sales lines.

    One ``CsvTransform`` record is written per execution. Real runs commit
    after every batch, so a cancelled run keeps the batches it finished.
    """

    def __init__(self, repos, max_error_details: Optional[int] = None):
        self.repos = repos
        self.max_error_details = max_error_details or settings.max_error_details

    def row_transformer(self, upload_type: str):
        if upload_type == UploadType.INVENTORY.value:
            return CsvInventoryTransformer(self.repos)
        if upload_type == UploadType.SALES.value:
            return CsvSalesTransformer(self.repos)
        raise ValidationError(f"Unsupported upload type '{upload_type}'", field="upload_type")

    async def transform_inventory_upload(self, upload_id: UUID, restaurant_id: Optional[UUID] = None, dry_run: bool = False, **kwargs):
        return await self.transform_upload(upload_id, restaurant_id, dry_run, expected_type=UploadType.INVENTORY.value, **kwargs)

    async def transform_sales_upload(self, upload_id: UUID, restaurant_id: Optional[UUID] = None, dry_run: bool = False, **kwargs):
        return await self.transform_upload(upload_id, restaurant_id, dry_run, expected_type=UploadType.SALES.value, **kwargs)

    async def transform_upload(
        self,
        upload_id: UUID,
        restaurant_id: Optional[UUID] = None,
        dry_run: bool = False,
        expected_type: Optional[str] = None,
        max_error_rate: Any = _UNSET,
        cancel_event=None,
        created_by: Optional[UUID] = None,
    ) -> Dict[str, Any]:
        if max_error_rate is _UNSET:
            max_error_rate = settings.csv_transform_max_error_rate

        upload = await self.repos.csv.get_upload(upload_id)
        if upload is None:
            raise NotFoundError("CsvUpload", upload_id)

        transform = CsvTransform(
            upload_id=upload.id,
            restaurant_id=upload.restaurant_id,
            transform_type=upload.upload_type,
            status=TransformStatus.PROCESSING.value,
            dry_run=dry_run,
            processed_count=0,
            created_count=0,
            updated_count=0,
            skipped_count=0,
            error_count=0,
            error_rate=Decimal("0"),
            summary={},
            errors=[],
            created_by=created_by,
            started_at=datetime.utcnow(),
        )
        await self.repos.csv.add_transform(transform)

        problem = self._precondition_failure(upload, restaurant_id, expected_type)
        if problem is not None:
            transform.status = TransformStatus.FAILED.value
            transform.errors = [{"code": ValidationError.code, "error": problem}]
            transform.completed_at = datetime.utcnow()
            await self.repos.csv.save(transform)
            await self.repos.commit()
            logger.warning("CSV transform of upload %s rejected: %s", upload.id, problem)
            raise ValidationError(problem, field="upload_id", upload_id=upload.id, transform_id=transform.id)

        # The run record outlives a failed run
        await self.repos.commit()
        transform_id = transform.id
        try:
            return await self._run(upload, transform, dry_run, max_error_rate, cancel_event)
        except Exception as exc:
            logger.exception("CSV transform %s of upload %s failed", transform_id, upload_id)
            await self._abort(transform_id, exc)
            raise

    async def _run(self, upload, transform: CsvTransform, dry_run: bool, max_error_rate, cancel_event) -> Dict[str, Any]:
        batches = await self.repos.csv.list_batches(upload.id)

        if not dry_run and max_error_rate is not None:
            preview = await self._run_batches(upload, batches, dry_run=True)
            rate = error_rate(preview["counts"])
            if rate > max_error_rate:
                logger.warning(
                    "CSV transform of upload %s rejected: error rate %.2f%% exceeds %.2f%%",
                    upload.id, rate * 100, max_error_rate * 100,
                )
                preview["summary_extra"]["rejectedErrorRate"] = rate
                preview["summary_extra"]["maxErrorRate"] = max_error_rate
                return await self._finish(upload, transform, preview, TransformStatus.FAILED)

        run = await self._run_batches(upload, batches, dry_run=dry_run, cancel_event=cancel_event, transform=transform)
        status = TransformStatus.CANCELLED if run["cancelled"] else TransformStatus.COMPLETED
        if status is TransformStatus.COMPLETED and not dry_run:
            upload.status = UploadStatus.TRANSFORMED.value
            await self.repos.csv.save(upload)
        return await self._finish(upload, transform, run, status)

    async def _abort(self, transform_id: UUID, exc: Exception) -> None:
        """Mark the run failed; batches committed before the failure stay written."""
        await self.repos.rollback()
        transform = await self.repos.csv.get_transform(transform_id)
        if transform is None:
            return
        transform.status = TransformStatus.FAILED.value
        transform.errors = [error_entry(exc)]
        transform.completed_at = datetime.utcnow()
        await self.repos.csv.save(transform)
        await self.repos.commit()

    def _precondition_failure(self, upload, restaurant_id, expected_type) -> Optional[str]:
        if restaurant_id is not None and upload.restaurant_id != restaurant_id:
            return "Upload belongs to a different restaurant"
        if expected_type is not None and upload.upload_type != expected_type:
            return f"Upload type is '{upload.upload_type}', expected '{expected_type}'"
        if upload.status not in (UploadStatus.VALIDATED.value, UploadStatus.TRANSFORMED.value):
            return f"Upload status is '{upload.status}'; only validated uploads can be transformed"
        if not upload.rows_valid:
            return "Upload has no valid rows to transform"
        return None

    async def _run_batches(self, upload, batches, dry_run: bool, cancel_event=None, transform=None) -> Dict[str, Any]:
        row_transformer = self.row_transformer(upload.upload_type)
        counts = _empty_counts()
        errors: List[Dict[str, Any]] = []
        flagged: List[Dict[str, Any]] = []
        flagged_count = 0
        seen: Dict[str, int] = {}
        context: Dict[str, Any] = {}
        cancelled = False
        batches_done = 0

        for batch in batches:
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                logger.info("CSV transform of upload %s cancelled after %d batches", upload.id, batches_done)
                break

            for row in batch.rows or []:
                counts["processedCount"] += 1
                try:
                    record, flag = await row_transformer.build_record(upload, row, context)
                    key = record_key(record)
                    if key in seen:
                        raise ReconciliationConflictError(
                            f"Row {row['row']} repeats the key of row {seen[key]}",
                            key=key,
                        )
                    seen[key] = row["row"]
                    outcome = await write_unified(self.repos, record, dry_run=dry_run)
                except (VarianceEngineError, PydanticValidationError) as exc:
                    counts["skippedCount"] += 1
                    counts["errorCount"] += 1
                    if len(errors) < self.max_error_details:
                        errors.append(error_entry(exc, row=row.get("row"), batch=batch.batch_index))
                    if not dry_run:
                        logger.error("CSV upload %s row %s failed: %s", upload.id, row.get("row"), exc)
                    continue

                if outcome is UpsertOutcome.CREATED:
                    counts["createdCount"] += 1
                elif outcome is UpsertOutcome.UPDATED:
                    counts["updatedCount"] += 1
                else:
                    counts["skippedCount"] += 1
                if flag is not None:
                    flagged_count += 1
                    if len(flagged) < FLAGGED_REVIEW_LIMIT:
                        flagged.append(flag)

            batches_done += 1
            if not dry_run and transform is not None:
                self._apply_counts(transform, counts)
                await self.repos.csv.save(transform)
                await self.repos.commit()

        return {
            "counts": counts,
            "errors": errors,
            "cancelled": cancelled,
            "summary_extra": {
                "batchesProcessed": batches_done,
                "batchesTotal": len(batches),
                "flaggedForReviewCount": flagged_count,
                "flaggedForReview": flagged,
            },
        }

    @staticmethod
    def _apply_counts(transform: CsvTransform, counts: Dict[str, int]) -> None:
        transform.processed_count = counts["processedCount"]
        transform.created_count = counts["createdCount"]
        transform.updated_count = counts["updatedCount"]
        transform.skipped_count = counts["skippedCount"]
        transform.error_count = counts["errorCount"]
        transform.error_rate = Decimal(str(error_rate(counts)))

    async def _finish(self, upload, transform: CsvTransform, run: Dict[str, Any], status: TransformStatus) -> Dict[str, Any]:
        counts = run["counts"]
        rate = error_rate(counts)
        summary = {**counts, **run["summary_extra"]}

        self._apply_counts(transform, counts)
        transform.status = status.value
        transform.summary = summary
        transform.errors = run["errors"]
        transform.completed_at = datetime.utcnow()
        await self.repos.csv.save(transform)
        await self.repos.commit()

        logger.info(
            "CSV %s transform %s of upload %s finished %s (dry_run=%s): %s",
            upload.upload_type, transform.id, upload.id, status.value, transform.dry_run, counts,
        )
        return {
            "transformId": str(transform.id),
            "uploadId": str(upload.id),
            "restaurantId": str(upload.restaurant_id),
            "status": status.value,
            "dryRun": transform.dry_run,
            "errorRate": rate,
            "summary": summary,
            "errors": run["errors"],
        }
