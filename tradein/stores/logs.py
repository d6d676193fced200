from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging

from tradein.db import SupabaseClient
from tradein.errors import AppError

logger = logging.getLogger(__name__)

FALLBACK_LOG_TABLE = "calculation_fallback_logs"
PSA_SEARCH_LOG_TABLE = "psa_search_log"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class _AuditLog:
    """Insert-only table where a failed write is logged, never raised."""

    table = ""

    def __init__(self, db: SupabaseClient):
        self.db = db

    async def _write(self, row: Dict[str, Any]) -> bool:
        try:
            await self.db.insert(self.table, {**row, "created_at": _now_iso()})
        except AppError as e:
            logger.error("Failed to write %s: %s", self.table, e.message)
            return False
        return True


class FallbackLog(_AuditLog):
    """Calculations that fell back to default percentages."""

    table = FALLBACK_LOG_TABLE

    async def record(self, game: str, base_value: float, reason: str, user_id: Optional[str] = None) -> bool:
        logger.warning("[fallback] game=%s value=%s reason=%s user=%s", game, base_value, reason, user_id or "anonymous")
        return await self._write({
            "game": game,
            "base_value": base_value,
            "reason": reason,
            "user_id": user_id,
        })


class PsaSearchLog(_AuditLog):
    table = PSA_SEARCH_LOG_TABLE

    async def record(self, game: str, card_name: str, card_number: str, psa_grade: str,
                     average_price: float, sales_count: int) -> bool:
        return await self._write({
            "game": game,
            "card_name": card_name,
            "card_number": card_number,
            "psa_grade": psa_grade,
            "average_price": average_price,
            "sales_count": sales_count,
        })
