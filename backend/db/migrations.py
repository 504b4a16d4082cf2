"""Database migration utilities"""
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

# (table, constraint, columns) that upserts rely on for ON CONFLICT
RECONCILIATION_CONSTRAINTS = (
    ("inventory_items", "ux_inventory_items_pos_source", ("restaurant_id", "source_pos_provider", "source_pos_item_id")),
    ("sales_transactions", "ux_sales_transactions_pos_line", ("source_pos_provider", "source_pos_line_item_id")),
    ("period_inventory_snapshots", "ux_period_snapshots_period_item_type", ("period_id", "inventory_item_id", "snapshot_type")),
    ("theoretical_usage_analysis", "ux_usage_analysis_period_item", ("period_id", "inventory_item_id")),
    ("recipe_ingredients", "ux_recipe_ingredients_recipe_item", ("recipe_id", "inventory_item_id")),
    ("csv_upload_batches", "ux_csv_upload_batches_upload_index", ("upload_id", "batch_index")),
)

SOURCE_COLUMNS = {
    "source_pos_provider": "TEXT",
    "source_pos_item_id": "TEXT",
    "source_pos_data": "JSONB",
}


async def add_missing_source_columns(engine: AsyncEngine):
    """Add POS/CSV source columns to inventory_items tables created before reconciliation existed"""
    async with engine.begin() as conn:
        result = await conn.execute(
            text("""
                SELECT column_name
                FROM information_schema.columns
                WHERE table_name = 'inventory_items'
            """)
        )
        existing_columns = {row[0] for row in result.fetchall()}
        if not existing_columns:
            return

        for column_name, column_type in SOURCE_COLUMNS.items():
            if column_name in existing_columns:
                continue
            logger.info("Adding %s column to inventory_items table", column_name)
            await conn.execute(text(f"ALTER TABLE inventory_items ADD COLUMN {column_name} {column_type}"))


async def ensure_reconciliation_constraints(engine: AsyncEngine):
    """Create the unique constraints the reconciliation upserts target, if missing"""
    await add_missing_source_columns(engine)

    async with engine.begin() as conn:
        for table, constraint, columns in RECONCILIATION_CONSTRAINTS:
            result = await conn.execute(
                text("""
                    SELECT constraint_name
                    FROM information_schema.table_constraints
                    WHERE table_name = :table
                    AND constraint_name = :constraint
                """),
                {"table": table, "constraint": constraint},
            )
            if result.scalar() is not None:
                continue

            table_result = await conn.execute(
                text("SELECT 1 FROM information_schema.tables WHERE table_name = :table"),
                {"table": table},
            )
            if table_result.scalar() is None:
                logger.warning("Table %s does not exist; skipping %s", table, constraint)
                continue

            logger.info("Adding %s to %s", constraint, table)
            await conn.execute(
                text(f"""
                    ALTER TABLE {table}
                    ADD CONSTRAINT {constraint}
                    UNIQUE ({", ".join(columns)})
                """)
            )
