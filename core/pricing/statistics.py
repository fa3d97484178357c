from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from core.models import PriceStatistics


class StatisticsEngine:
    """Computes summary statistics over a set of extracted prices."""

    def __init__(self, precision: int = 2):
        self.precision = precision
        self._quantum = Decimal(1).scaleb(-precision)

    def _round(self, value: float) -> float:
        """Round half away from zero on the exact binary value, as toFixed() does."""
        return float(Decimal(value).quantize(self._quantum, rounding=ROUND_HALF_UP))

    def compute(self, values: Iterable[float]) -> PriceStatistics:
        """Return count, min, max, average and median of the values.

        An empty input yields all-zero statistics rather than an error,
        since a page with no prices is a valid outcome.
        """
        prices = list(values)
        if not prices:
            return PriceStatistics()

        sorted_prices = sorted(prices)
        count = len(sorted_prices)
        average = sum(sorted_prices) / count

        mid = count // 2
        if count % 2 == 0:
            median = (sorted_prices[mid - 1] + sorted_prices[mid]) / 2
        else:
            median = sorted_prices[mid]

        return PriceStatistics(
            count=count,
            min=sorted_prices[0],
            max=sorted_prices[-1],
            average=self._round(average),
            median=self._round(median),
        )
