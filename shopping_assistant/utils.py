import base64
import binascii
import json
import re
import unicodedata
from typing import Any, Dict, Optional, Tuple

DEFAULT_IMAGE_MIME = "image/jpeg"

DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[\w-]+=[\w.-]+)*;base64,", re.IGNORECASE)


def normalize_text(text: str) -> str:
    """Purpose: Normalize free-form text for stable case-insensitive matching.
    Inputs/Outputs: Input is a raw string; output is a casefolded NFKC string with
        whitespace collapsed.
    Side Effects / State: None; pure function.
    Dependencies: Uses unicodedata and regex; called by catalog search and recipes.
    Failure Modes: Returns an empty string when input is falsy. Non-Latin scripts
        (Thai) are kept intact so they can still be matched.
    If Removed: Catalog matching becomes case- and width-sensitive.
    Testing Notes: Validate "  Red   DRESS " -> "red dress" and Thai text survives.
    """
    # Fold case and compatibility forms, then collapse whitespace.
    if not text:
        return ""
    folded = unicodedata.normalize("NFKC", str(text)).casefold()
    return re.sub(r"\s+", " ", folded).strip()


def decode_image_data(image_data: str) -> Tuple[str, bytes]:
    """Purpose: Turn an uploaded image string into a mime type and raw bytes.
    Inputs/Outputs: Input is a data URI or bare base64 string; output is (mime, bytes).
    Side Effects / State: None; pure function.
    Dependencies: Uses DATA_URI_RE and base64; called before building image parts.
    Failure Modes: Raises ValueError when the payload is not valid base64 or empty.
    If Removed: Image uploads cannot be forwarded to the model.
    Testing Notes: Check png/jpeg prefixes, bare base64, and garbage input.
    """
    # Strip the data URI scheme prefix and keep the declared mime type.
    mime = DEFAULT_IMAGE_MIME
    payload = image_data.strip()
    match = DATA_URI_RE.match(payload)
    if match:
        mime = (match.group("mime") or DEFAULT_IMAGE_MIME).lower()
        payload = payload[match.end():]
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("image payload is not valid base64") from exc
    if not raw:
        raise ValueError("image payload is empty")
    return mime, raw


def extract_json_block(text: str) -> Optional[str]:
    """Extract the outermost JSON object from an arbitrary string."""
    if not text:
        return None
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    return text[start : end + 1]


def safe_json_loads(text: str) -> Optional[Dict[str, Any]]:
    """Parse a JSON object out of text, returning None on failure."""
    block = extract_json_block(text)
    if not block:
        return None
    try:
        loaded = json.loads(block)
    except json.JSONDecodeError:
        return None
    return loaded if isinstance(loaded, dict) else None
