from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .utils import normalize_text


@dataclass(frozen=True)
class Recipe:
    dish: str
    steps: List[str]
    ingredients: List[str]
    aliases: List[str] = field(default_factory=list)


class RecipeBook:
    """Small lookup of dishes whose ingredients the store sells."""

    def __init__(self, recipes: List[Recipe]) -> None:
        self._recipes = list(recipes)
        self._index: Dict[str, Recipe] = {}
        for recipe in self._recipes:
            for name in [recipe.dish, *recipe.aliases]:
                self._index[normalize_text(name)] = recipe

    @classmethod
    def from_file(cls, path: Path) -> "RecipeBook":
        if not path.exists():
            return cls([])
        data = json.loads(path.read_text(encoding="utf-8-sig"))
        recipes = [
            Recipe(
                dish=str(item["dish"]),
                steps=[str(step) for step in item.get("steps", [])],
                ingredients=[str(name) for name in item.get("ingredients", [])],
                aliases=[str(alias) for alias in item.get("aliases", [])],
            )
            for item in data
            if isinstance(item, dict) and item.get("dish")
        ]
        return cls(recipes)

    def __len__(self) -> int:
        return len(self._recipes)

    def find(self, dish_name: str) -> Optional[Recipe]:
        """Exact name or alias first, then the first dish named inside the request."""
        key = normalize_text(dish_name)
        if not key:
            return None
        if key in self._index:
            return self._index[key]
        for name, recipe in self._index.items():
            if name in key or key in name:
                return recipe
        return None
