"""
Append-only equity curve and period-return series.

**Conceptual**: Every mark-to-market produces one equity point. Once there are
at least two points, each new point also produces one simple return
`(latest - previous) / previous`. The two sequences therefore always satisfy
`len(returns) == max(0, len(equity_curve) - 1)`; nothing ever removes or
rewrites a point except `clear()` at the start of a run.

**Zero equity**: A zero point is recorded like any other. The return out of a
zero point has no defined value, so it is recorded as 0.0 and logged; metrics
that divide by the curve itself raise DegenerateEquity instead.
"""

import logging

logger = logging.getLogger(__name__)


class PerformanceSeries:
    """Equity curve plus the period returns derived from it."""

    def __init__(self):
        self._equity_curve: list[float] = []
        self._returns: list[float] = []

    def append(self, equity: float) -> None:
        """Record one equity point and, if possible, the return since the last one."""
        if self._equity_curve:
            previous = self._equity_curve[-1]
            if previous == 0:
                logger.warning(
                    "Previous equity point is zero; recording a 0.0 return for point %d",
                    len(self._equity_curve),
                )
                self._returns.append(0.0)
            else:
                self._returns.append((equity - previous) / previous)
        self._equity_curve.append(float(equity))

    def clear(self) -> None:
        self._equity_curve.clear()
        self._returns.clear()

    @property
    def equity_curve(self) -> list[float]:
        return list(self._equity_curve)

    @property
    def returns(self) -> list[float]:
        return list(self._returns)

    @property
    def latest(self) -> float | None:
        return self._equity_curve[-1] if self._equity_curve else None

    def __len__(self) -> int:
        return len(self._equity_curve)
