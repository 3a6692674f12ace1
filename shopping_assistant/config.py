from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

BASE_DIR = Path(__file__).resolve().parent

TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Configuration container for the model, catalog files, and runtime limits."""
    gemini_api_key: str
    gemini_model: str
    catalog_path: Path
    recipes_path: Path
    prompts_dir: Path
    max_tool_results: int
    enable_recipe_tool: bool
    sessions_path: Optional[Path]
    max_sessions: int


def load_settings() -> Settings:
    """Purpose: Load configuration from environment variables and defaults.
    Inputs/Outputs: No inputs; returns a Settings instance.
    Side Effects / State: Reads environment variables and filesystem paths.
    Dependencies: Uses os.getenv and BASE_DIR for packaged data defaults.
    Failure Modes: Invalid MAX_TOOL_RESULTS/MAX_SESSIONS env values raise ValueError.
    If Removed: App cannot locate the catalog or credential and fails at startup.
    Testing Notes: Verify defaults and overrides via environment variables.
    """
    # Resolve data file paths, then build Settings.
    catalog_path = os.getenv("CATALOG_PATH")
    recipes_path = os.getenv("RECIPES_PATH")
    sessions_path = os.getenv("SESSIONS_PATH")

    return Settings(
        gemini_api_key=(os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY", "")).strip(),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        catalog_path=Path(catalog_path) if catalog_path else BASE_DIR / "data" / "products.json",
        recipes_path=Path(recipes_path) if recipes_path else BASE_DIR / "data" / "recipes.json",
        prompts_dir=(BASE_DIR / "prompts").resolve(),
        max_tool_results=int(os.getenv("MAX_TOOL_RESULTS", "3")),
        enable_recipe_tool=os.getenv("ENABLE_RECIPE_TOOL", "").strip().lower() in TRUE_VALUES,
        sessions_path=Path(sessions_path) if sessions_path else None,
        max_sessions=int(os.getenv("MAX_SESSIONS", "50")),
    )
