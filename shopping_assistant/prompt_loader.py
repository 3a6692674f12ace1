from __future__ import annotations

from pathlib import Path

SYSTEM_INSTRUCTION_FILE = "system_instruction.txt"


def load_prompt(prompt_path: Path) -> str:
    """Purpose: Load a prompt file as UTF-8 text and strip BOM and outer whitespace.
    Inputs/Outputs: Path to a prompt file; returns its text.
    Side Effects / State: Reads the file only.
    Dependencies: Uses Path.read_text/read_bytes; used when building the Gemini client.
    Failure Modes: Undecodable bytes are dropped rather than raising; a missing file
        raises FileNotFoundError.
    If Removed: The assistant persona cannot be loaded and sessions start without rules.
    Testing Notes: The packaged persona loads without a leading BOM.
    """
    # Read as UTF-8 and fall back to a tolerant decode if needed.
    try:
        text = prompt_path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        text = prompt_path.read_bytes().decode("utf-8", errors="ignore")
    return text.lstrip("\ufeff").strip()


def load_system_instruction(prompts_dir: Path) -> str:
    """The assistant persona and behavioral rules sent with every session."""
    return load_prompt(prompts_dir / SYSTEM_INSTRUCTION_FILE)
