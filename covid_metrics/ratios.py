from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Optional, Union

from covid_metrics.config import PER_POPULATION, PERCENT_PLACES

Number = Union[int, float]


def round_half_away(value: Optional[Number], places: int = PERCENT_PLACES) -> Optional[float]:
    # ROUND_HALF_UP on Decimal rounds ties away from zero, like SQL ROUND
    if value is None:
        return None
    try:
        quantum = Decimal(1).scaleb(-places)
        return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))
    except InvalidOperation:
        return None


def _scaled_ratio(scale: float, numerator: Optional[Number],
                  denominator: Optional[Number]) -> Optional[float]:
    # scale is applied before dividing: (scale * numerator) / denominator
    if numerator is None or denominator is None or denominator == 0:
        return None
    return scale * numerator / denominator


def pct(numerator: Optional[Number], denominator: Optional[Number],
        places: int = PERCENT_PLACES) -> Optional[float]:
    """100 * numerator / denominator rounded to `places`; None on a null or zero denominator."""
    return round_half_away(_scaled_ratio(100.0, numerator, denominator), places)


def per_100k(value: Optional[Number], population: Optional[Number]) -> Optional[float]:
    return _scaled_ratio(float(PER_POPULATION), value, population)
