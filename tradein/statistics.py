from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence
import math


def _mean(xs: Sequence[float]) -> float:
    return sum(xs) / len(xs) if xs else 0.0


@dataclass
class TrimResult:
    average: float
    kept: List[int]  # indexes into the input that survived the band
    total: int

    @property
    def kept_count(self) -> int:
        return len(self.kept)


def trimmed_mean(prices: Sequence[float], band: float = 0.5) -> TrimResult:
    """
    Mean of prices inside [(1 - band) * m, (1 + band) * m] where m is the
    plain mean. If nothing survives, every price is kept.
    """
    if not prices:
        return TrimResult(average=0.0, kept=[], total=0)

    initial = _mean(prices)
    lo = initial * (1 - band)
    hi = initial * (1 + band)
    kept = [i for i, p in enumerate(prices) if lo <= p <= hi]
    if not kept:
        kept = list(range(len(prices)))
    return TrimResult(average=_mean([prices[i] for i in kept]), kept=kept, total=len(prices))


@dataclass
class PercentileTrim:
    average: float
    outliers: List[bool] = field(default_factory=list)

    @property
    def outliers_removed(self) -> int:
        return sum(1 for o in self.outliers if o)

    @property
    def method(self) -> str:
        return "simple_average" if len(self.outliers) <= 2 else "outlier_trimmed_average"


def percentile_trimmed_average(prices: Sequence[float], trim_fraction: float = 0.3) -> PercentileTrim:
    """
    Drop floor(n * trim_fraction) prices from each end of the sorted list
    (by value threshold) and average the rest. Two or fewer prices are
    averaged as-is.
    """
    if not prices:
        return PercentileTrim(average=0.0)
    if len(prices) <= 2:
        return PercentileTrim(average=round(_mean(prices), 2), outliers=[False] * len(prices))

    ys = sorted(prices)
    trim = math.floor(len(ys) * trim_fraction)
    lo = ys[trim]
    hi = ys[len(ys) - 1 - trim]
    flags = [p < lo or p > hi for p in prices]
    inside = [p for p, out in zip(prices, flags) if not out]
    avg = round(_mean(inside), 2) if inside else 0.0
    return PercentileTrim(average=avg, outliers=flags)


def _quantile(ys: List[float], q: float) -> float:
    # ys sorted; linear interpolation between closest ranks
    pos = (len(ys) - 1) * q
    lo = math.floor(pos)
    hi = min(lo + 1, len(ys) - 1)
    return ys[lo] + (ys[hi] - ys[lo]) * (pos - lo)


@dataclass
class PriceSpread:
    count: int = 0
    low: Optional[float] = None
    high: Optional[float] = None
    median: Optional[float] = None
    p25: Optional[float] = None
    p75: Optional[float] = None
    stdev: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: round(v, 2) if isinstance(v, float) else v for k, v in asdict(self).items()}


def price_spread(prices: Iterable[Optional[float]]) -> PriceSpread:
    """How every positive price is spread, untrimmed. Shown next to the averages."""
    ys = sorted(float(p) for p in prices if p is not None and p > 0)
    if not ys:
        return PriceSpread()

    mean = _mean(ys)
    stdev = math.sqrt(sum((y - mean) ** 2 for y in ys) / (len(ys) - 1)) if len(ys) > 1 else 0.0
    return PriceSpread(
        count=len(ys),
        low=ys[0],
        high=ys[-1],
        median=_quantile(ys, 0.5),
        p25=_quantile(ys, 0.25),
        p75=_quantile(ys, 0.75),
        stdev=stdev,
    )
