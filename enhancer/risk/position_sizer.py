"""Position sizing: pure math, no I/O.

Sizes a position as a fraction of account equity using the Beta(2, 5)
CDF of a normalised confidence signal.

Formula::

    signal        = 0                         if confidence < 0.6
                  = (confidence − 0.6) / 0.4  otherwise
    beta_cdf      = 1 − (1 − signal)^5 × (5 × signal + 1)
    position_pct  = 0.10 × beta_cdf
    shares        = floor(equity × position_pct / entry_price)

The Beta(2, 5) curve is skewed toward low values, so marginal signals get
disproportionately small positions.  A share count of zero is a normal
outcome and means "do not execute".
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, Optional

from enhancer.errors import ContractViolation
from enhancer.models.parameters import DEFAULT_PARAMETERS, StrategyParameters
from enhancer.models.trade import TradeIntention
from enhancer.risk.incomplete_beta import regularized_incomplete_beta
from enhancer.strategy.models import PositionSizingResult

logger = logging.getLogger("enhancer.risk.position_sizer")


def beta_2_5_cdf(x: float) -> float:
    """Exact CDF of Beta(2, 5) at *x*.

    ``I_x(2, 5) = 1 − (1 − x)^5 × (5x + 1)``

    Raises:
        ContractViolation: If *x* is not a finite number in [0, 1].
    """
    _require_unit_interval("signal strength", x)
    one_minus_x = 1.0 - x
    value = 1.0 - one_minus_x ** 5 * (5.0 * x + 1.0)
    # Rounding near x = 0 can dip a few ulps below zero.
    return min(1.0, max(0.0, value))


def beta_cdf(x: float, a: float = 2.0, b: float = 5.0) -> float:
    """Beta(a, b) CDF at *x*; closed form for (2, 5), numerical otherwise."""
    if a == 2.0 and b == 5.0:
        return beta_2_5_cdf(x)
    _require_unit_interval("signal strength", x)
    return regularized_incomplete_beta(x, a, b)


def _require_unit_interval(name: str, value) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ContractViolation(
            f"{name} must be a number, got {type(value).__name__}"
        )
    if not math.isfinite(value):
        raise ContractViolation(f"{name} must be finite, got {value}")
    if value < 0 or value > 1:
        raise ContractViolation(f"{name} must be between 0 and 1, got {value}")


class PositionSizer:
    """Beta-distribution position sizer.

    Args:
        params: Strategy parameters (confidence floor, max position, shape).
    """

    def __init__(self, params: StrategyParameters = DEFAULT_PARAMETERS) -> None:
        self._params = params.validate()

    def confidence_to_signal_strength(self, confidence: float) -> float:
        """Map confidence in [floor, 1] linearly onto [0, 1].

        Confidence below the floor (default 0.6) carries no edge and maps
        to 0.

        Raises:
            ContractViolation: If *confidence* is not a finite number in [0, 1].
        """
        _require_unit_interval("confidence", confidence)
        floor = self._params.confidence_floor
        if confidence < floor:
            return 0.0
        return (confidence - floor) / (1.0 - floor)

    def size(
        self,
        signal_strength: float,
        equity: float,
        entry_price: float,
        trade: Optional[TradeIntention] = None,
    ) -> PositionSizingResult:
        """Size a position from an already-normalised signal strength.

        Args:
            signal_strength: Normalised signal in [0, 1].
            equity: Account equity (≥ 0).
            entry_price: Expected entry price per share (> 0).
            trade: Optional originating trade, used for the reasoning text.

        Raises:
            ContractViolation: If any input is out of contract.
        """
        _require_unit_interval("signal strength", signal_strength)
        if not math.isfinite(equity) or equity < 0:
            raise ContractViolation(f"equity must be non-negative, got {equity}")
        if not math.isfinite(entry_price) or entry_price <= 0:
            raise ContractViolation(f"entry_price must be positive, got {entry_price}")

        cdf_value = beta_cdf(signal_strength, self._params.beta_a, self._params.beta_b)
        position_pct = self._params.max_position_pct * cdf_value
        position_value = equity * position_pct
        shares = math.floor(position_value / entry_price)

        logger.info(
            "Position sizing: %.2f%% (%d shares) for signal strength %.3f",
            position_pct * 100, shares, signal_strength,
        )
        return PositionSizingResult(
            position_percentage=position_pct,
            position_size=shares,
            signal_strength=signal_strength,
            beta_cdf_value=cdf_value,
            reasoning=self._reasoning(
                signal_strength, cdf_value, position_pct, position_value, shares, trade,
            ),
        )

    def size_trade(self, trade: TradeIntention, equity: float) -> PositionSizingResult:
        """Size *trade* from its own confidence and price target."""
        signal = self.confidence_to_signal_strength(trade.confidence)
        return self.size(signal, equity, trade.price_target, trade)

    def _reasoning(
        self,
        signal_strength: float,
        cdf_value: float,
        position_pct: float,
        position_value: float,
        shares: int,
        trade: Optional[TradeIntention],
    ) -> str:
        a, b = self._params.beta_a, self._params.beta_b
        lines = [
            "Beta Distribution Position Sizing",
            f"Signal Strength: {signal_strength:.4f}",
            f"Beta CDF Value: {cdf_value:.4f} (Beta({a:g},{b:g}))",
            f"Position Percentage: {position_pct * 100:.2f}%",
            f"Position Value: ${position_value:.2f}",
            f"Position Size: {shares} shares",
        ]
        if trade is not None:
            lines += [
                f"Symbol: {trade.symbol}",
                f"Action: {trade.action.value}",
                f"Original Confidence: {trade.confidence:.3f}",
                f"Price Target: ${trade.price_target:.2f}",
            ]
        lines.append(f"Risk Level: {risk_level(position_pct)}")
        lines.append(
            f"Formula: position_pct = {self._params.max_position_pct:g} * "
            f"beta_cdf({signal_strength:.3f}, {a:g}, {b:g})"
        )
        return "\n".join(lines)

    def sizing_stats(self, signal_strengths: Iterable[float]) -> dict:
        """Position-percentage distribution for a set of signal strengths."""
        pcts = [
            self._params.max_position_pct
            * beta_cdf(s, self._params.beta_a, self._params.beta_b)
            for s in signal_strengths
        ]
        if not pcts:
            return {
                "mean_position_pct": 0.0,
                "max_position_pct": 0.0,
                "min_position_pct": 0.0,
                "distribution_summary": "No signal strengths provided",
            }
        mean = sum(pcts) / len(pcts)
        return {
            "mean_position_pct": mean,
            "max_position_pct": max(pcts),
            "min_position_pct": min(pcts),
            "distribution_summary": (
                f"Beta({self._params.beta_a:g},{self._params.beta_b:g}) sizing, "
                f"mean: {mean * 100:.2f}%"
            ),
        }


def risk_level(position_pct: float) -> str:
    """Label a position percentage: LOW < 2%, MODERATE < 5%, HIGH otherwise."""
    if position_pct < 0.02:
        return "LOW"
    if position_pct < 0.05:
        return "MODERATE"
    return "HIGH"
