"""The player's kitchen: character stats and fridge inventory.

Kitchen is the reward sink a completed quest reports to. It lives in memory
for the life of the process; saving and restoring it is someone else's job.
"""

from __future__ import annotations

import logging
import re

from kitchen_quest.models import CharacterStats, Ingredient, RecipeQuest

logger = logging.getLogger(__name__)

XP_PER_LEVEL = 1000

_NOT_NUMERIC = re.compile(r"[^0-9.]")


def parse_gold(label: str) -> float:
    """Gold label to amount, e.g. "$13.00" → 13.0. Unparseable labels count as 0."""
    try:
        return float(_NOT_NUMERIC.sub("", label or ""))
    except ValueError:
        return 0.0


def level_for(xp: int) -> int:
    return xp // XP_PER_LEVEL + 1


class Kitchen:
    def __init__(
        self,
        stats: CharacterStats | None = None,
        inventory: list[Ingredient] | None = None,
    ) -> None:
        self.stats = stats or CharacterStats()
        self.inventory: list[Ingredient] = list(inventory or [])
        self.active_quest: RecipeQuest | None = None

    def restock(self, inventory: list[Ingredient]) -> None:
        self.inventory = list(inventory)

    def consume(self, ingredients: list[Ingredient]) -> list[Ingredient]:
        """Remove the first inventory item matching each ingredient name (case-insensitive)."""
        removed: list[Ingredient] = []
        for wanted in ingredients:
            name = wanted.name.lower()
            for i, item in enumerate(self.inventory):
                if item.name.lower() == name:
                    removed.append(self.inventory.pop(i))
                    break
        return removed

    async def __call__(self, final_xp: int, gold_saved: str) -> None:
        """Bank a completed quest's rewards."""
        xp = self.stats.xp + final_xp
        gold = parse_gold(gold_saved)
        self.stats = self.stats.model_copy(update={
            "xp": xp,
            "level": level_for(xp),
            "gold_saved": self.stats.gold_saved + gold,
        })
        removed = []
        if self.active_quest is not None:
            removed = self.consume(self.active_quest.ingredients)
        logger.info(
            "rewards banked: +%d xp (total %d, level %d), +%.2f gold, %d ingredients consumed",
            final_xp, xp, self.stats.level, gold, len(removed),
        )
