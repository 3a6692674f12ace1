"""Tool declarations offered to the model and their local execution."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from .catalog import Catalog
from .errors import MalformedToolArgumentsError
from .models import Product, SearchParams, ToolCall
from .recipes import RecipeBook
from .utils import normalize_text, safe_json_loads

logger = logging.getLogger("amazie.tools")

SEARCH_TOOL_NAME = "searchProducts"
RECIPE_TOOL_NAME = "getRecipe"

SEARCH_PRODUCTS_DECLARATION: Dict[str, Any] = {
    "name": SEARCH_TOOL_NAME,
    "description": (
        "Search the product database for items based on keywords, visual descriptions, or categories. "
        "Use this when the user asks for recommendations or uploads an image seeking similar products."
    ),
    "parameters": {
        "type": "OBJECT",
        "properties": {
            "query": {
                "type": "STRING",
                "description": 'Keywords to search for (e.g., "red dress", "noise cancelling headphones", "wooden lamp").',
            },
            "category": {
                "type": "STRING",
                "description": 'The category of the product (e.g., "Clothing", "Electronics", "Home", "Food").',
            },
            "maxPrice": {
                "type": "NUMBER",
                "description": "Optional upper price limit in THB.",
            },
        },
    },
}

GET_RECIPE_DECLARATION: Dict[str, Any] = {
    "name": RECIPE_TOOL_NAME,
    "description": (
        "Get a food recipe and a list of available ingredients from the store. Use this when a user asks "
        'how to cook a dish (e.g., "How do I make Green Curry?").'
    ),
    "parameters": {
        "type": "OBJECT",
        "properties": {
            "dishName": {
                "type": "STRING",
                "description": 'The name of the dish (e.g., "Green Curry", "Pad Thai").',
            },
        },
        "required": ["dishName"],
    },
}


def build_tool_declarations(enable_recipe_tool: bool = False) -> List[Dict[str, Any]]:
    """Function declarations in the order they are offered to the model."""
    declarations = [SEARCH_PRODUCTS_DECLARATION]
    if enable_recipe_tool:
        declarations.append(GET_RECIPE_DECLARATION)
    return declarations


@dataclass
class ToolOutcome:
    """Result of one local tool execution, ready to be sent back to the model.

    ``products`` is None for tools that do not search the catalog, and a
    (possibly empty) list for searchProducts calls.
    """
    name: str
    call_id: Optional[str]
    response: Dict[str, Any]
    products: Optional[List[Product]] = None


def _coerce_args(args: Any) -> Mapping[str, Any]:
    if args is None:
        return {}
    if isinstance(args, str):
        parsed = safe_json_loads(args)
        if parsed is None:
            raise MalformedToolArgumentsError(f"tool arguments are not a JSON object: {args!r}")
        return parsed
    if isinstance(args, Mapping):
        return args
    raise MalformedToolArgumentsError(f"unsupported tool arguments type: {type(args).__name__}")


def parse_search_args(args: Any) -> SearchParams:
    """Purpose: Convert raw searchProducts arguments into SearchParams.
    Inputs/Outputs: Input is a mapping, JSON string, or None; output is SearchParams.
    Side Effects / State: None.
    Dependencies: Uses pydantic validation on SearchParams and safe_json_loads.
    Failure Modes: Raises MalformedToolArgumentsError for non-object or mistyped args.
    If Removed: Model arguments reach the catalog unchecked.
    Testing Notes: Valid dict, JSON string, numeric query, and a list payload.
    """
    # Accept both structured args and JSON text, then validate field types.
    mapping = _coerce_args(args)
    try:
        return SearchParams.model_validate(dict(mapping))
    except ValidationError as exc:
        raise MalformedToolArgumentsError(str(exc)) from exc


def compact_product(product: Product) -> Dict[str, Any]:
    """The fields echoed back to the model for a product."""
    return {"name": product.name, "sku": product.sku, "description": product.description}


class ToolExecutor:
    """Runs the declared tools against the local catalog and recipe book."""

    def __init__(self, catalog: Catalog, recipes: Optional[RecipeBook] = None, max_results: int = 3) -> None:
        self._catalog = catalog
        self._recipes = recipes or RecipeBook([])
        self._max_results = max_results

    def execute(self, call: ToolCall) -> ToolOutcome:
        """Dispatch one tool call by name; unknown names get an error payload."""
        if call.name == SEARCH_TOOL_NAME:
            return self._search(call)
        if call.name == RECIPE_TOOL_NAME:
            return self._recipe(call)
        logger.warning("unknown tool requested name=%s", call.name)
        return ToolOutcome(
            name=call.name,
            call_id=call.call_id,
            response={"error": f"Unknown tool: {call.name}"},
        )

    def _search(self, call: ToolCall) -> ToolOutcome:
        try:
            params = parse_search_args(call.args)
        except MalformedToolArgumentsError as exc:
            logger.warning("malformed tool arguments tool=%s error=%s", call.name, exc)
            return ToolOutcome(name=call.name, call_id=call.call_id, response={"results": []}, products=[])

        results = self._catalog.search(params.query, params.category, params.max_price)[: self._max_results]
        logger.info(
            "tool=%s query=%r category=%r max_price=%s results=%s",
            call.name,
            params.query,
            params.category,
            params.max_price,
            [product.sku for product in results],
        )
        return ToolOutcome(
            name=call.name,
            call_id=call.call_id,
            response={"results": [compact_product(product) for product in results]},
            products=results,
        )

    def _recipe(self, call: ToolCall) -> ToolOutcome:
        try:
            mapping = _coerce_args(call.args)
        except MalformedToolArgumentsError as exc:
            logger.warning("malformed tool arguments tool=%s error=%s", call.name, exc)
            mapping = {}
        dish_name = str(mapping.get("dishName") or "")
        recipe = self._recipes.find(dish_name)
        if recipe is None:
            logger.info("tool=%s dish=%r found=False", call.name, dish_name)
            return ToolOutcome(
                name=call.name,
                call_id=call.call_id,
                response={"found": False, "dishName": dish_name},
            )

        ingredients = []
        for ingredient in recipe.ingredients:
            product = self._ingredient_product(ingredient)
            ingredients.append(
                {
                    "ingredient": ingredient,
                    "product": compact_product(product) if product else None,
                }
            )
        logger.info("tool=%s dish=%r found=True ingredients=%s", call.name, recipe.dish, len(ingredients))
        return ToolOutcome(
            name=call.name,
            call_id=call.call_id,
            response={
                "found": True,
                "dish": recipe.dish,
                "steps": list(recipe.steps),
                "ingredients": ingredients,
            },
        )

    def _ingredient_product(self, ingredient: str) -> Optional[Product]:
        # Prefer a Food item among the keyword matches.
        matches = self._catalog.search(query=ingredient)
        food = [product for product in matches if normalize_text(product.category) == "food"]
        candidates = food or matches
        return candidates[0] if candidates else None
