"""Static product catalog and keyword/category lookup.

The catalog is loaded once from a JSON file into immutable Product records.
Search is a pure function of its arguments, so it can be shared across
sessions and threads without coordination.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from rapidfuzz import fuzz

from .models import Product
from .utils import normalize_text

logger = logging.getLogger("amazie.catalog")

FUZZY_CATEGORY_THRESHOLD = 80

NAME_WEIGHT = 4.0
TAG_WEIGHT = 3.0
CATEGORY_FIELD_WEIGHT = 2.0
DESCRIPTION_WEIGHT = 1.0
CATEGORY_EXACT_SCORE = 3.0
CATEGORY_FUZZY_SCORE = 2.0
BOTH_MATCH_BONUS = 10.0

CATEGORY_KEYWORDS = {
    "Clothing": ["clothes", "fashion", "apparel", "outfit", "เสื้อผ้า", "แฟชั่น"],
    "Electronics": ["electronic", "gadget", "gadgets", "tech", "อิเล็กทรอนิกส์", "แกดเจ็ต"],
    "Home": ["home decor", "household", "furniture", "kitchen", "ของใช้ในบ้าน", "บ้าน"],
    "Food": ["grocery", "groceries", "ingredients", "cooking", "อาหาร", "วัตถุดิบ"],
}


@dataclass
class CatalogMeta:
    """Metadata describing the catalog file version for logging."""
    file_name: str
    updated_at: str
    sha256: str
    count: int


class Catalog:
    """Immutable, ordered product list with relevance search."""

    def __init__(self, products: Sequence[Product]) -> None:
        self._products: Tuple[Product, ...] = tuple(products)
        self._by_sku: Dict[int, Product] = {}
        for product in self._products:
            if product.sku in self._by_sku:
                raise ValueError(f"duplicate sku in catalog: {product.sku}")
            self._by_sku[product.sku] = product

    @classmethod
    def from_file(cls, path: Path) -> "Catalog":
        """Purpose: Load and validate catalog records from a JSON file.
        Inputs/Outputs: Input is a Path to a JSON list (or {"items": [...]}); output is a Catalog.
        Side Effects / State: Reads the file and logs its hash and record count.
        Dependencies: Uses json, hashlib, and the Product model for validation.
        Failure Modes: JSON decode and validation errors raise to the caller; duplicate
            skus raise ValueError.
        If Removed: The assistant has nothing to recommend.
        Testing Notes: Load the packaged catalog and a temp file with a duplicate sku.
        """
        # Read bytes for hashing and parse JSON into validated products.
        raw_bytes = path.read_bytes()
        data = json.loads(raw_bytes.decode("utf-8-sig"))
        if isinstance(data, dict):
            items = data.get("items", [])
        elif isinstance(data, list):
            items = data
        else:
            items = []
        catalog = cls([Product(**item) for item in items if isinstance(item, dict)])

        meta = CatalogMeta(
            file_name=path.name,
            updated_at=datetime.fromtimestamp(path.stat().st_mtime).isoformat(),
            sha256=hashlib.sha256(raw_bytes).hexdigest(),
            count=len(catalog),
        )
        logger.info(
            "catalog loaded file=%s count=%s sha256=%s updated_at=%s",
            meta.file_name,
            meta.count,
            meta.sha256[:12],
            meta.updated_at,
        )
        return catalog

    def __len__(self) -> int:
        return len(self._products)

    @property
    def products(self) -> Tuple[Product, ...]:
        return self._products

    def get(self, sku: int) -> Optional[Product]:
        return self._by_sku.get(sku)

    def categories(self) -> List[str]:
        """Distinct categories in catalog order."""
        seen: List[str] = []
        for product in self._products:
            if product.category not in seen:
                seen.append(product.category)
        return seen

    def search(
        self,
        query: Optional[str] = None,
        category: Optional[str] = None,
        max_price: Optional[float] = None,
    ) -> List[Product]:
        """Purpose: Rank catalog products by free-text relevance and/or category.
        Inputs/Outputs: Inputs are an optional query substring, optional category, and
            optional price ceiling; output is products ordered most relevant first.
        Side Effects / State: None; pure and deterministic for an unchanged catalog.
        Dependencies: Uses _query_score and _category_score.
        Failure Modes: Never raises for string inputs; no criteria or no match returns [].
        If Removed: The searchProducts tool cannot answer.
        Testing Notes: Substring recall across name/description/category/tags, both-match
            ordering, fuzzy categories, and price ceilings.
        """
        # Score every product, drop non-matches, and keep catalog order for ties.
        q = normalize_text(query or "")
        cat = normalize_text(category or "")
        if not q and not cat:
            if max_price is None:
                return []
            within = [p for p in self._products if p.price <= max_price]
            return sorted(within, key=lambda p: p.price)

        scored: List[Tuple[float, int, Product]] = []
        for index, product in enumerate(self._products):
            if max_price is not None and product.price > max_price:
                continue
            query_score = _query_score(product, q) if q else 0.0
            category_score = _category_score(product, cat) if cat else 0.0
            if query_score <= 0 and category_score <= 0:
                continue
            score = query_score + category_score
            if query_score > 0 and category_score > 0:
                score += BOTH_MATCH_BONUS
            scored.append((score, index, product))

        scored.sort(key=lambda entry: (-entry[0], entry[1]))
        return [product for _, _, product in scored]


def _query_score(product: Product, query: str) -> float:
    """Weight the fields that contain the query as a substring."""
    score = 0.0
    if query in normalize_text(product.name):
        score += NAME_WEIGHT
    if any(query in normalize_text(tag) for tag in product.tags):
        score += TAG_WEIGHT
    if query in normalize_text(product.category):
        score += CATEGORY_FIELD_WEIGHT
    if query in normalize_text(product.description):
        score += DESCRIPTION_WEIGHT
    return score


def _category_score(product: Product, category: str) -> float:
    """Purpose: Score how well a requested category matches a product's category.
    Inputs/Outputs: Inputs are a product and a normalized category; output is a score.
    Side Effects / State: None.
    Dependencies: Uses rapidfuzz.fuzz.ratio and CATEGORY_KEYWORDS synonyms.
    Failure Modes: Returns 0.0 when nothing matches.
    If Removed: Category-only searches return nothing.
    Testing Notes: "Food" is exact; "electronic", "groceries" and "home decor" are fuzzy;
        single letters match nothing.
    """
    # Exact first, then synonyms, containment, and edit-distance similarity.
    product_category = normalize_text(product.category)
    if category == product_category:
        return CATEGORY_EXACT_SCORE
    keywords = [normalize_text(k) for k in CATEGORY_KEYWORDS.get(product.category, [])]
    if category in keywords:
        return CATEGORY_FUZZY_SCORE
    # Whole-word containment only, so "home decor" matches Home but "o" matches nothing.
    if product_category in category.split():
        return CATEGORY_FUZZY_SCORE
    if fuzz.ratio(category, product_category) >= FUZZY_CATEGORY_THRESHOLD:
        return CATEGORY_FUZZY_SCORE
    return 0.0
