from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional
import logging
import math

from tradein.errors import DatabaseError

logger = logging.getLogger(__name__)

DEFAULT_GAME = "pokemon"

_POKEMON = {"pokemon", "pokémon", "pkmn", "pokemon-card"}
_JAPANESE_POKEMON = {"japanese-pokemon", "japanese pokemon", "pokemon (japanese)", "pokemon japanese", "jp pokemon"}
_MAGIC = {"magic", "mtg", "magic: the gathering", "magic the gathering"}

SUPPORTED_GAMES = ("pokemon", "japanese-pokemon", "magic")

NO_SETTINGS_FOUND = "NO_SETTINGS_FOUND"
NO_PRICE_RANGE_MATCH = "NO_PRICE_RANGE_MATCH"
DATABASE_ERROR = "DATABASE_ERROR"
CALCULATION_ERROR = "CALCULATION_ERROR"

ERROR_MESSAGES = {
    CALCULATION_ERROR: "Trade value calculation failed. Using default values.",
    NO_SETTINGS_FOUND: "No trade settings found for this game. Using default values.",
    NO_PRICE_RANGE_MATCH: "No price range found for this value. Using default values.",
    DATABASE_ERROR: "Database error occurred. Using default values.",
}


def normalize_game_type(game: Optional[str]) -> str:
    if not game:
        return DEFAULT_GAME
    g = game.lower().strip()
    if g in _POKEMON:
        return "pokemon"
    if g in _JAPANESE_POKEMON:
        return "japanese-pokemon"
    if g in _MAGIC:
        return "magic"
    logger.warning("Unsupported game type %r, defaulting to %s", game, DEFAULT_GAME)
    return DEFAULT_GAME


@dataclass(frozen=True)
class TradeValueSetting:
    min_value: float
    max_value: float
    cash_percentage: float
    trade_percentage: float
    fixed_cash_value: Optional[float] = None
    fixed_trade_value: Optional[float] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TradeValueSetting":
        def _opt(v):
            return None if v is None else float(v)
        return cls(
            min_value=float(row.get("min_value") or 0),
            max_value=float(row.get("max_value") or 0),
            cash_percentage=float(row.get("cash_percentage") or 0),
            trade_percentage=float(row.get("trade_percentage") or 0),
            fixed_cash_value=_opt(row.get("fixed_cash_value")),
            fixed_trade_value=_opt(row.get("fixed_trade_value")),
        )

    @property
    def is_fixed(self) -> bool:
        return self.fixed_cash_value is not None and self.fixed_trade_value is not None

    def covers(self, value: float) -> bool:
        return self.min_value <= value <= self.max_value


@dataclass(frozen=True)
class FallbackPercentages:
    cash: float = 35.0
    trade: float = 50.0


@dataclass
class CalculationResult:
    cash_value: float
    trade_value: float
    used_fallback: bool = False
    fallback_reason: str = ""
    method: str = "default"
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "cashValue": self.cash_value,
            "tradeValue": self.trade_value,
            "usedFallback": self.used_fallback,
            "fallbackReason": self.fallback_reason,
        }
        if self.error:
            out["error"] = self.error
        return out


def fallback_result(base_value: float, reason: str, fallback: FallbackPercentages,
                    error: Optional[str] = None) -> CalculationResult:
    return CalculationResult(
        cash_value=round(base_value * fallback.cash / 100, 2),
        trade_value=round(base_value * fallback.trade / 100, 2),
        used_fallback=True,
        fallback_reason=reason,
        method="fallback",
        error=error,
    )


def calculate_values(
    settings: Iterable[TradeValueSetting],
    base_value: float,
    fallback: FallbackPercentages = FallbackPercentages(),
) -> CalculationResult:
    """
    Fixed values beat ranges; the first range covering ``base_value`` applies
    its percentages; otherwise the fallback percentages apply.
    """
    if base_value == 0:
        return CalculationResult(cash_value=0.0, trade_value=0.0, method="zero")

    rows: List[TradeValueSetting] = list(settings)
    if not rows:
        return fallback_result(base_value, NO_SETTINGS_FOUND, fallback)

    fixed = next((s for s in rows if s.is_fixed), None)
    if fixed is not None:
        return CalculationResult(
            cash_value=round(fixed.fixed_cash_value, 2),
            trade_value=round(fixed.fixed_trade_value, 2),
            method="fixed",
        )

    match = next((s for s in rows if s.covers(base_value)), None)
    if match is None:
        return fallback_result(base_value, NO_PRICE_RANGE_MATCH, fallback)

    return CalculationResult(
        cash_value=round(base_value * match.cash_percentage / 100, 2),
        trade_value=round(base_value * match.trade_percentage / 100, 2),
        method="percentage",
    )


def parse_base_value(raw: Any) -> Optional[float]:
    """Finite, non-negative float or None."""
    if isinstance(raw, bool) or raw is None:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return value


async def calculate_trade_value(settings_store, fallback_log, game: Optional[str], base_value: float,
                                user_id: Optional[str] = None,
                                fallback: FallbackPercentages = FallbackPercentages()) -> CalculationResult:
    """Look up the game's settings, calculate, and record any fallback."""
    game_key = normalize_game_type(game)
    if base_value == 0:
        return CalculationResult(cash_value=0.0, trade_value=0.0, method="zero")

    try:
        rows = await settings_store.get_game_settings(game_key)
    except DatabaseError as e:
        logger.error("Settings lookup failed for %s: %s", game_key, e.message)
        await fallback_log.record(game_key, base_value, f"Database error: {e.message}", user_id)
        return fallback_result(base_value, DATABASE_ERROR, fallback, error=ERROR_MESSAGES[DATABASE_ERROR])

    try:
        result = calculate_values([TradeValueSetting.from_row(r) for r in rows], base_value, fallback)
    except (TypeError, ValueError) as e:
        logger.exception("Calculation failed for %s $%s", game_key, base_value)
        await fallback_log.record(game_key, base_value, f"Calculation error: {e}", user_id)
        return fallback_result(base_value, CALCULATION_ERROR, fallback, error=ERROR_MESSAGES[CALCULATION_ERROR])

    if result.fallback_reason == NO_SETTINGS_FOUND:
        await fallback_log.record(game_key, base_value, f"No settings found for game {game_key}", user_id)
    elif result.fallback_reason == NO_PRICE_RANGE_MATCH:
        await fallback_log.record(
            game_key, base_value, f"No price range match found for game {game_key} and value {base_value}", user_id
        )

    logger.info(
        "Calculated %s $%.2f: cash=%.2f trade=%.2f method=%s fallback=%s",
        game_key, base_value, result.cash_value, result.trade_value, result.method, result.used_fallback,
    )
    return result
