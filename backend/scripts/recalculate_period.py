import argparse
import asyncio
import json
import sys
import uuid
from pathlib import Path

"""
Recalculate theoretical vs actual usage for one or more inventory periods.

From the repo root:
  python backend/scripts/recalculate_period.py <period-id> [<period-id> ...] --method recipe_based --recalculate
"""

# Allow running from repo root by ensuring `backend/` is on sys.path
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from core.logging_config import configure_logging  # noqa: E402
from db.database import async_session_maker, import_models  # noqa: E402
from db.repositories import Repositories  # noqa: E402
from services.usage_calculation import UsageCalculationService  # noqa: E402


async def recalculate(period_ids, method: str, recalculate_existing: bool) -> int:
    import_models()
    async with async_session_maker() as db:
        service = UsageCalculationService(Repositories.from_session(db))
        outcome = await service.calculate_usage_for_multiple_periods(
            period_ids, method=method, recalculate=recalculate_existing
        )

        item_errors = 0
        for result in outcome["periods"]:
            if not result["success"]:
                print(f"{result['periodId']}: {result['error']['code']} {result['error']['message']}")
                continue
            item_errors += len(result["errors"])
            print(
                f"{result['periodId']}: processed {result['itemsProcessed']} items, "
                f"skipped {result['itemsSkipped']}, errors {len(result['errors'])}"
            )
            for err in result["errors"]:
                print(f"  {err.get('itemId')}: {err.get('code')} {err.get('error')}")
            summary = await service.get_calculation_summary(uuid.UUID(result["periodId"]))
            print(json.dumps(summary, indent=2, default=str))

    if outcome["failed"]:
        return 1
    return 2 if item_errors else 0


def main():
    p = argparse.ArgumentParser()
    p.add_argument("period_ids", type=uuid.UUID, nargs="+")
    p.add_argument("--method", default="recipe_based", help="recipe_based | historical_average | ai_predicted")
    p.add_argument("--recalculate", action="store_true", help="Recompute items that already have an analysis")
    p.add_argument("--log-level", default=None)
    args = p.parse_args()

    configure_logging(args.log_level)
    sys.exit(asyncio.run(recalculate(args.period_ids, args.method, args.recalculate)))


if __name__ == "__main__":
    main()
