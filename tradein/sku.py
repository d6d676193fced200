import re
from typing import Dict, Optional

CONDITION_CODES = {
    "near_mint": "N",
    "lightly_played": "L",
    "moderately_played": "M",
    "heavily_played": "H",
    "damaged": "D",
}

_SKU_RE = re.compile(r"^(.+)-([a-z]{2})([A-Z])$")
_TCG_ID_RE = re.compile(r"/(\d+)")


def edition_holo_code(first_edition: bool, holo: bool, reverse_holo: bool = False) -> str:
    if first_edition and holo:
        return "fh"
    if first_edition:
        return "fe"
    if holo:
        return "ho"
    if reverse_holo:
        return "rh"
    return "un"


def generate_sku(tcgplayer_id: Optional[str], first_edition: bool, holo: bool,
                 condition: str, reverse_holo: bool = False) -> str:
    """<tcgplayer id>-<edition/holo code><condition code>, e.g. 42382-fhN."""
    if not tcgplayer_id:
        return "UNKNOWN"
    code = edition_holo_code(first_edition, holo, reverse_holo)
    return f"{tcgplayer_id}-{code}{CONDITION_CODES.get(condition, 'N')}"


def parse_sku(sku: str) -> Optional[Dict[str, str]]:
    m = _SKU_RE.match(sku or "")
    if not m:
        return None
    tcg_id, code, cond = m.groups()
    return {"tcgplayerId": tcg_id, "editionHoloCode": code, "conditionCode": cond}


def tcgplayer_id_from_url(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    m = _TCG_ID_RE.search(url)
    return m.group(1) if m else None
