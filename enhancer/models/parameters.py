"""Strategy parameters: every business constant of the pipeline in one record.

Components take a ``StrategyParameters`` instance (defaulting to
``DEFAULT_PARAMETERS``) so thresholds, weights and exit offsets can be
tuned without touching the algorithms.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from enhancer.errors import ConfigError


@dataclass(frozen=True)
class IndicatorWeights:
    """Weights of the five breakout indicators.  Must sum to 1.0."""

    volume_surge: float = 0.25
    price_momentum: float = 0.25
    volatility_breakout: float = 0.20
    market_sentiment: float = 0.15
    technical_strength: float = 0.15

    @property
    def total(self) -> float:
        return (
            self.volume_surge
            + self.price_momentum
            + self.volatility_breakout
            + self.market_sentiment
            + self.technical_strength
        )


@dataclass(frozen=True)
class StrategyParameters:
    """Fixed business parameters for filtering, sizing and exit planning."""

    # ── Breakout filter ──────────────────────────────────────────────────
    breakout_threshold: float = 0.4
    weights: IndicatorWeights = field(default_factory=IndicatorWeights)
    high_confidence_cutoff: float = 0.8
    high_confidence_bonus: float = 0.10
    neutral_indicator: float = 0.5

    # ── Position sizing ──────────────────────────────────────────────────
    confidence_floor: float = 0.6
    max_position_pct: float = 0.10
    beta_a: float = 2.0
    beta_b: float = 5.0

    # ── Exit planning ────────────────────────────────────────────────────
    stop_loss_pct: float = 0.06
    take_profit_offsets: tuple[float, ...] = (0.10, 0.15, 0.20)
    batch_fractions: tuple[float, ...] = (0.50, 0.30, 0.20)
    fraction_tolerance: float = 0.01

    def validate(self) -> "StrategyParameters":
        """Check internal consistency.

        Returns ``self`` so callers can validate inline.

        Raises:
            ConfigError: If any parameter is inconsistent.
        """
        if not math.isclose(self.weights.total, 1.0, abs_tol=1e-9):
            raise ConfigError(
                f"indicator weights must sum to 1.0, got {self.weights.total:.6f}"
            )
        if not 0.0 <= self.breakout_threshold <= 1.0:
            raise ConfigError(
                f"breakout_threshold must be in [0, 1], got {self.breakout_threshold}"
            )
        if not 0.0 <= self.confidence_floor < 1.0:
            raise ConfigError(
                f"confidence_floor must be in [0, 1), got {self.confidence_floor}"
            )
        if not 0.0 < self.max_position_pct <= 1.0:
            raise ConfigError(
                f"max_position_pct must be in (0, 1], got {self.max_position_pct}"
            )
        if self.beta_a <= 0 or self.beta_b <= 0:
            raise ConfigError(
                f"beta shape parameters must be positive, got ({self.beta_a}, {self.beta_b})"
            )
        if not 0.0 < self.stop_loss_pct < 1.0:
            raise ConfigError(
                f"stop_loss_pct must be in (0, 1), got {self.stop_loss_pct}"
            )
        if len(self.take_profit_offsets) != len(self.batch_fractions):
            raise ConfigError(
                "take_profit_offsets and batch_fractions must have the same length, "
                f"got {len(self.take_profit_offsets)} and {len(self.batch_fractions)}"
            )
        if any(not 0.0 < o < 1.0 for o in self.take_profit_offsets):
            raise ConfigError(
                f"take_profit_offsets must be in (0, 1), got {self.take_profit_offsets}"
            )
        fraction_sum = sum(self.batch_fractions)
        if abs(fraction_sum - 1.0) > self.fraction_tolerance:
            raise ConfigError(
                f"batch_fractions must sum to 1.0, got {fraction_sum:.4f}"
            )
        return self

    @property
    def exit_batches(self) -> list[tuple[float, float]]:
        """``(fraction, offset)`` pairs, matched index-for-index."""
        return list(zip(self.batch_fractions, self.take_profit_offsets))


DEFAULT_PARAMETERS = StrategyParameters()
