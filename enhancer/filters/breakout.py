"""Breakout probability filter: pure math, no I/O.

Scores each trade intention against five market indicators and drops
trades whose weighted breakout probability falls below the threshold
(default 0.4).

Formula::

    p = Σ weight_i × indicator_i          (weights sum to 1.0)
    p += 0.10   if confidence > 0.8
    p  = clamp(p, 0, 1)
    filtered  ⇔  p < threshold

Indicator extraction never fails the trade: a missing or malformed
field degrades that one indicator to its default (see
``enhancer.filters.market_fields``).
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from enhancer.filters.market_fields import (
    default_for,
    first_number,
    first_series,
    has_data,
    indicator_block,
    symbol_entry,
    text_field,
)
from enhancer.models.parameters import DEFAULT_PARAMETERS, StrategyParameters
from enhancer.models.trade import Action, MarketSnapshot, TradeIntention
from enhancer.strategy.models import (
    BreakoutIndicators,
    BreakoutResult,
    FilterDecision,
    FilterResult,
)

logger = logging.getLogger("enhancer.filters.breakout")

# Expected data-quality problems, logged at DEBUG.  Any other error from an
# extractor is logged at WARNING; both degrade the indicator to its default.
_EXTRACTION_ERRORS = (
    TypeError,
    ValueError,
    ArithmeticError,
    KeyError,
    IndexError,
    AttributeError,
)


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return min(high, max(low, value))


# ── Individual indicators ────────────────────────────────────────────────
#
# Each returns ``None`` when the snapshot holds nothing usable, which the
# filter turns into the indicator's default.


def volume_surge(trade: TradeIntention, market: MarketSnapshot) -> Optional[float]:
    """Current vs. average volume: 2× average → 1.0, 1× → 0.33, 0.5× → 0.0."""
    entry = symbol_entry(market, trade.symbol)
    current = first_number(entry, "volume", "current_volume")
    average = first_number(entry, "avg_volume", "average_volume")

    if current is None and average is None:
        current = first_number(indicator_block(market), "volume")
        if current is None:
            return None

    current = current or 0.0
    average = average or current
    if average == 0:
        return 0.5
    ratio = current / average
    return clamp((ratio - 0.5) / 1.5)


def price_momentum(trade: TradeIntention, market: MarketSnapshot) -> Optional[float]:
    """Directional move from the oldest recent price to the price target."""
    prices = first_series(
        symbol_entry(market, trade.symbol),
        "prices", "recent_prices", "price_history",
    )
    if prices is None or len(prices) < 2:
        return None

    oldest = prices[0]
    momentum = (trade.price_target - oldest) / oldest
    if trade.action is Action.SELL:
        momentum = -momentum
    return clamp(0.5 + momentum * 2)


def volatility_breakout(trade: TradeIntention, market: MarketSnapshot) -> Optional[float]:
    """Current vs. historical volatility: 1.2× → 1.0, 0.8× or less → 0.0."""
    entry = symbol_entry(market, trade.symbol)
    current = first_number(entry, "volatility", "current_volatility")
    historical = first_number(entry, "historical_volatility", "avg_volatility")
    if current is None and historical is None:
        return None

    current = current or 0.0
    historical = historical or current
    if historical == 0:
        return 0.5
    ratio = current / historical
    return clamp((ratio - 0.8) / 0.4)


def market_sentiment(trade: TradeIntention, market: MarketSnapshot) -> Optional[float]:
    """Free-text sentiment, then congressional/insider activity as a hint."""
    sentiment = text_field(market, "market_sentiment")
    if sentiment is not None:
        if "bullish" in sentiment or "positive" in sentiment:
            return 0.7
        if "bearish" in sentiment or "negative" in sentiment:
            return 0.3
        if "neutral" in sentiment:
            return 0.5

    if has_data(market, "congress_trading") or has_data(market, "insider_trading"):
        return 0.6
    return None


def technical_strength(trade: TradeIntention, market: MarketSnapshot) -> Optional[float]:
    """Confidence adjusted by RSI extremes and moving-average alignment."""
    indicators = indicator_block(market)
    if indicators is None:
        return None

    strength = trade.confidence
    rsi = first_number(indicators, "rsi", "RSI")
    if rsi is not None:
        if trade.action is Action.BUY and rsi < 30:
            strength = max(strength, 0.8)
        elif trade.action is Action.SELL and rsi > 70:
            strength = max(strength, 0.8)

    ma20 = first_number(indicators, "ma20", "MA20", "sma20")
    ma50 = first_number(indicators, "ma50", "MA50", "sma50")
    if ma20 is not None and ma50 is not None:
        alignment = 0.7 if ma20 > ma50 else 0.3
        strength = (strength + alignment) / 2

    return strength


_EXTRACTORS: dict[str, Callable[[TradeIntention, MarketSnapshot], Optional[float]]] = {
    "volume_surge": volume_surge,
    "price_momentum": price_momentum,
    "volatility_breakout": volatility_breakout,
    "market_sentiment": market_sentiment,
    "technical_strength": technical_strength,
}


# ── Filter ───────────────────────────────────────────────────────────────


class BreakoutFilter:
    """Weighted-indicator breakout filter.

    Stateless per call; safe to share across threads.

    Args:
        params: Strategy parameters (threshold, weights, bonus).
    """

    def __init__(self, params: StrategyParameters = DEFAULT_PARAMETERS) -> None:
        self._params = params.validate()

    @property
    def threshold(self) -> float:
        return self._params.breakout_threshold

    def extract_indicators(
        self, trade: TradeIntention, market: MarketSnapshot,
    ) -> tuple[BreakoutIndicators, tuple[str, ...]]:
        """Derive all five indicators for *trade*.

        Returns:
            ``(indicators, degraded)`` where *degraded* names every
            indicator that fell back to its default.
        """
        values: dict[str, float] = {}
        degraded: list[str] = []

        for name, extractor in _EXTRACTORS.items():
            try:
                value = extractor(trade, market)
            except _EXTRACTION_ERRORS as exc:
                logger.debug(
                    "%s: %s extraction failed (%s), using default",
                    trade.symbol, name, exc,
                )
                value = None
            except Exception as exc:
                logger.warning(
                    "%s: %s extraction raised %s (%s), using default",
                    trade.symbol, name, type(exc).__name__, exc,
                )
                value = None
            if value is None:
                value = default_for(name, trade.confidence, self._params.neutral_indicator)
                degraded.append(name)
            values[name] = clamp(value)

        return BreakoutIndicators(**values), tuple(degraded)

    def weighted_probability(
        self, indicators: BreakoutIndicators, trade: TradeIntention,
    ) -> float:
        """Combine indicators into a probability in [0, 1]."""
        w = self._params.weights
        weighted_sum = (
            indicators.volume_surge * w.volume_surge
            + indicators.price_momentum * w.price_momentum
            + indicators.volatility_breakout * w.volatility_breakout
            + indicators.market_sentiment * w.market_sentiment
            + indicators.technical_strength * w.technical_strength
        )
        if trade.confidence > self._params.high_confidence_cutoff:
            weighted_sum += self._params.high_confidence_bonus
        return clamp(weighted_sum)

    def evaluate(self, trade: TradeIntention, market: MarketSnapshot) -> BreakoutResult:
        """Score a single trade."""
        indicators, degraded = self.extract_indicators(trade, market)
        probability = self.weighted_probability(indicators, trade)
        should_filter = probability < self._params.breakout_threshold

        logger.info(
            "Breakout probability for %s: %.1f%% (%s)",
            trade.symbol, probability * 100, "FILTERED" if should_filter else "PASSED",
        )
        return BreakoutResult(
            probability=probability,
            should_filter=should_filter,
            indicators=indicators,
            reasoning=self._reasoning(trade, indicators, probability, should_filter),
            degraded=degraded,
        )

    def filter(
        self, trades: Iterable[TradeIntention], market: MarketSnapshot,
    ) -> FilterResult:
        """Evaluate every trade; keep those at or above the threshold.

        Every trade appears in ``decisions``; only ``passed`` omits the
        rejected ones.
        """
        trades = tuple(trades)
        decisions: list[FilterDecision] = []
        passed: list[TradeIntention] = []

        for trade in trades:
            decision = self.decide(trade, market)
            decisions.append(decision)
            if not decision.filtered:
                passed.append(trade)

        logger.info(
            "Breakout filtering: %d/%d trades filtered (%d remaining)",
            len(trades) - len(passed), len(trades), len(passed),
        )
        return FilterResult(
            original_trades=trades,
            passed=tuple(passed),
            decisions=tuple(decisions),
        )

    def decide(self, trade: TradeIntention, market: MarketSnapshot) -> FilterDecision:
        """Evaluate *trade* and wrap the outcome as a ``FilterDecision``."""
        result = self.evaluate(trade, market)
        return FilterDecision(
            trade=trade,
            probability=result.probability,
            filtered=result.should_filter,
            reasoning=result.reasoning,
        )

    def _reasoning(
        self,
        trade: TradeIntention,
        indicators: BreakoutIndicators,
        probability: float,
        should_filter: bool,
    ) -> str:
        w = self._params.weights
        threshold = self._params.breakout_threshold
        lines = [
            f"Breakout Probability Analysis: {trade.symbol}",
            f"Probability: {probability * 100:.1f}%",
            f"Threshold: {threshold * 100:.1f}%",
            f"Decision: {'FILTER OUT' if should_filter else 'ALLOW TRADE'}",
            f"Volume Surge: {indicators.volume_surge * 100:.1f}% (weight {w.volume_surge * 100:.0f}%)",
            f"Price Momentum: {indicators.price_momentum * 100:.1f}% (weight {w.price_momentum * 100:.0f}%)",
            f"Volatility Breakout: {indicators.volatility_breakout * 100:.1f}% (weight {w.volatility_breakout * 100:.0f}%)",
            f"Market Sentiment: {indicators.market_sentiment * 100:.1f}% (weight {w.market_sentiment * 100:.0f}%)",
            f"Technical Strength: {indicators.technical_strength * 100:.1f}% (weight {w.technical_strength * 100:.0f}%)",
            f"Action: {trade.action.value}",
            f"Price Target: ${trade.price_target:.2f}",
            f"Confidence: {trade.confidence * 100:.1f}%",
            f"Trade Reasoning: {trade.reasoning}",
        ]
        if should_filter:
            lines.append(
                f"Verdict: filtered, breakout probability {probability * 100:.1f}% "
                f"below threshold {threshold * 100:.1f}%"
            )
        else:
            lines.append(
                f"Verdict: approved, breakout probability {probability * 100:.1f}% "
                f"at or above threshold {threshold * 100:.1f}%"
            )
        return "\n".join(lines)


def filtering_stats(results: Iterable[FilterResult]) -> dict:
    """Aggregate monitoring statistics over several filter runs.

    Returns:
        Dict with ``total_trades_analyzed``, ``total_trades_filtered``,
        ``average_probability``, ``filter_rate`` and
        ``low_probability_count`` (probability < 0.3).
    """
    decisions = [d for r in results for d in r.decisions]
    if not decisions:
        return {
            "total_trades_analyzed": 0,
            "total_trades_filtered": 0,
            "average_probability": 0.0,
            "filter_rate": 0.0,
            "low_probability_count": 0,
        }

    total = len(decisions)
    filtered = sum(1 for d in decisions if d.filtered)
    return {
        "total_trades_analyzed": total,
        "total_trades_filtered": filtered,
        "average_probability": sum(d.probability for d in decisions) / total,
        "filter_rate": filtered / total,
        "low_probability_count": sum(1 for d in decisions if d.probability < 0.3),
    }
