from dataclasses import dataclass
from decimal import Decimal
from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.recipe import Recipe, RecipeIngredient


@dataclass(frozen=True)
class IngredientUsage:
    recipe_id: UUID
    recipe_name: str
    menu_item_id: UUID
    quantity_per_serving: Decimal


class RecipeRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def usages_for_item(self, item_id: UUID) -> List[IngredientUsage]:
        """Every active recipe line that consumes ``item_id``."""
        stmt = (
            select(Recipe.id, Recipe.name, Recipe.menu_item_id, RecipeIngredient.quantity_per_serving)
            .join(RecipeIngredient, RecipeIngredient.recipe_id == Recipe.id)
            .where(RecipeIngredient.inventory_item_id == item_id)
            .where(Recipe.is_active.is_(True))
        )
        rows = (await self.session.execute(stmt)).all()
        return [
            IngredientUsage(
                recipe_id=r.id,
                recipe_name=r.name,
                menu_item_id=r.menu_item_id,
                quantity_per_serving=Decimal(str(r.quantity_per_serving)),
            )
            for r in rows
        ]
