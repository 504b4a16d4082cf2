import logging
from datetime import datetime
from typing import Any, Dict, Iterable, Optional
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from core.config import settings
from core.enums import UpsertOutcome
from core.exceptions import VarianceEngineError, error_entry
from services.pos.registry import get_transformer
from services.tier2 import write_unified

logger = logging.getLogger(__name__)


def _new_result(provider: str, restaurant_id: UUID, record_kind: str, dry_run: bool) -> Dict[str, Any]:
    return {
        "provider": provider,
        "restaurantId": str(restaurant_id),
        "recordKind": record_kind,
        "dryRun": dry_run,
        "summary": {"processed": 0, "created": 0, "updated": 0, "skipped": 0, "errors": 0},
        "errorRate": 0.0,
        "exceededThreshold": False,
        "errors": [],
    }


class PosDataTransformer:
    """Tier 1 raw POS rows -> Tier 2 inventory items, sales lines and stock levels.

    Every write goes through the shared reconciliation upserts, so re-running
    a transform over unchanged raw data creates and updates nothing.
    """

    def __init__(self, repos, max_error_rate: Optional[float] = None, max_error_details: Optional[int] = None):
        self.repos = repos
        self.max_error_rate = settings.pos_max_error_rate if max_error_rate is None else max_error_rate
        self.max_error_details = max_error_details or settings.max_error_details

    async def transform_menu_items(self, restaurant_id: UUID, provider: str, dry_run: bool = False, since: Optional[datetime] = None):
        return await self._run(restaurant_id, provider, "menu_item", dry_run, since)

    async def transform_orders(self, restaurant_id: UUID, provider: str, dry_run: bool = False, since: Optional[datetime] = None):
        return await self._run(restaurant_id, provider, "order_line", dry_run, since)

    async def transform_inventory_counts(self, restaurant_id: UUID, provider: str, dry_run: bool = False, since: Optional[datetime] = None):
        return await self._run(restaurant_id, provider, "inventory_count", dry_run, since)

    async def _run(self, restaurant_id, provider, record_kind, dry_run, since):
        transformer = get_transformer(provider)
        records = await self.repos.pos_raw.fetch(transformer.provider, record_kind, restaurant_id, since=since)
        return await self.transform_records(transformer, restaurant_id, record_kind, records, dry_run=dry_run)

    async def transform_records(self, transformer, restaurant_id: UUID, record_kind: str, records: Iterable[Any], dry_run: bool = False) -> Dict[str, Any]:
        result = _new_result(transformer.provider, restaurant_id, record_kind, dry_run)
        summary = result["summary"]

        for raw in records:
            summary["processed"] += 1
            try:
                record = transformer.transform(raw)
                if record is None:
                    summary["skipped"] += 1
                    continue
                outcome = await self.write(record, dry_run=dry_run)
            except (VarianceEngineError, PydanticValidationError) as exc:
                summary["skipped"] += 1
                summary["errors"] += 1
                if len(result["errors"]) < self.max_error_details:
                    result["errors"].append(error_entry(exc, rawId=str(getattr(raw, "id", None))))
                logger.error("%s %s %s failed to transform: %s", transformer.provider, record_kind, getattr(raw, "id", None), exc)
                continue

            if outcome is UpsertOutcome.CREATED:
                summary["created"] += 1
            elif outcome is UpsertOutcome.UPDATED:
                summary["updated"] += 1
            else:
                summary["skipped"] += 1

        if not dry_run:
            await self.repos.commit()

        processed = summary["processed"]
        result["errorRate"] = round(summary["errors"] / processed, 4) if processed else 0.0
        result["exceededThreshold"] = result["errorRate"] > self.max_error_rate
        if result["exceededThreshold"]:
            logger.warning(
                "%s %s transform error rate %.2f%% exceeds %.2f%%",
                transformer.provider, record_kind, result["errorRate"] * 100, self.max_error_rate * 100,
            )
        logger.info(
            "%s %s transform for restaurant %s (dry_run=%s): %s",
            transformer.provider, record_kind, restaurant_id, dry_run, summary,
        )
        return result

    async def write(self, record, dry_run: bool = False) -> UpsertOutcome:
        return await write_unified(self.repos, record, dry_run=dry_run)
