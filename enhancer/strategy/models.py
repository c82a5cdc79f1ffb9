"""Pipeline result records: one frozen dataclass per stage output."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Optional

from enhancer.models.trade import Action, TradeIntention


# ── Breakout filter ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class BreakoutIndicators:
    """Five breakout dimensions, each normalised to [0, 1]."""

    volume_surge: float
    price_momentum: float
    volatility_breakout: float
    market_sentiment: float
    technical_strength: float


@dataclass(frozen=True)
class BreakoutResult:
    """Breakout probability assessment for a single trade."""

    probability: float
    should_filter: bool
    indicators: BreakoutIndicators
    reasoning: str
    degraded: tuple[str, ...] = ()  # indicators that fell back to defaults


@dataclass(frozen=True)
class FilterDecision:
    """Filter outcome for one trade, recorded whether or not it passed."""

    trade: TradeIntention
    probability: float
    filtered: bool
    reasoning: str


@dataclass(frozen=True)
class FilterResult:
    """Batch output of the breakout filter."""

    original_trades: tuple[TradeIntention, ...]
    passed: tuple[TradeIntention, ...]
    decisions: tuple[FilterDecision, ...]

    @property
    def filtered_out_count(self) -> int:
        return len(self.original_trades) - len(self.passed)


# ── Position sizing ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class PositionSizingResult:
    """Beta-distribution position size for one trade."""

    position_percentage: float  # fraction of equity, 0.0–0.10
    position_size: int  # whole shares; 0 means "do not execute"
    signal_strength: float
    beta_cdf_value: float
    reasoning: str


# ── Exit planning ────────────────────────────────────────────────────────


class ExitKind(str, Enum):
    STOP = "stop"
    LIMIT = "limit"
    MARKET = "market"


@dataclass(frozen=True)
class ExitLevel:
    """A single exit rule."""

    percentage: float  # share of the position to liquidate (1.0 = all)
    trigger_price: float
    kind: ExitKind
    reasoning: str
    quantity: int = 0


@dataclass(frozen=True)
class EnhancedExitStrategy:
    """Stop-loss plus batched take-profit levels for one trade."""

    symbol: str
    entry_price: float
    total_quantity: int
    action: Action
    stop_loss: ExitLevel
    take_profit_levels: tuple[ExitLevel, ...]
    created_at: str
    reasoning: str


@dataclass(frozen=True)
class ExitTriggerResult:
    """Levels hit at a given price during live monitoring."""

    triggered_stops: tuple[ExitLevel, ...]
    triggered_profits: tuple[ExitLevel, ...]

    @property
    def should_exit(self) -> bool:
        return bool(self.triggered_stops or self.triggered_profits)


@dataclass(frozen=True)
class ExitOrder:
    """An exit order ready for the order-submission collaborator."""

    symbol: str
    side: str  # "buy" or "sell"
    quantity: int
    order_type: ExitKind
    reasoning: str
    price: Optional[float] = None


@dataclass(frozen=True)
class PositionExitPrices:
    stop_loss_price: float
    take_profit_prices: tuple[float, ...]


# ── Coordinator ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class EnhancedTradeDecision:
    """A trade intention after filtering, sizing and exit-plan attachment."""

    symbol: str
    action: Action
    quantity: int
    price_target: float
    stop_loss: float
    take_profit: float
    confidence: float
    reasoning: str
    position_sizing: PositionSizingResult
    breakout_probability: float
    exit_strategy: EnhancedExitStrategy
    original_quantity: int
    enhanced_quantity: int
    risk_adjusted: bool
    filter_passed: bool

    @property
    def executable(self) -> bool:
        """Zero-quantity decisions are kept for audit but never submitted."""
        return self.enhanced_quantity > 0

    @property
    def position_value(self) -> float:
        return self.enhanced_quantity * self.price_target


@dataclass(frozen=True)
class TradeFailure:
    """A trade excluded from the plan because its processing raised."""

    symbol: str
    error: str


@dataclass(frozen=True)
class StrategyPerformanceMetrics:
    """Batch aggregate computed once per cycle."""

    original_trade_count: int = 0
    filtered_trade_count: int = 0
    failed_trade_count: int = 0
    total_position_percentage: float = 0.0
    average_signal_strength: float = 0.0
    average_breakout_probability: float = 0.0
    risk_reduction_factor: float = 0.0
    strategy_confidence: float = 0.0


@dataclass(frozen=True)
class EnhancedTradePlan:
    """Terminal artifact of one enhancement cycle."""

    trades: tuple[EnhancedTradeDecision, ...]
    filter_result: FilterResult
    position_sizing_results: tuple[PositionSizingResult, ...]
    exit_strategies: tuple[EnhancedExitStrategy, ...]
    performance: StrategyPerformanceMetrics
    total_risk_exposure: float
    failures: tuple[TradeFailure, ...] = ()
    plan_id: Optional[str] = None
    date: Optional[str] = None
    market_analysis: str = ""
    risk_assessment: str = ""

    def to_dict(self) -> dict:
        """Plain-dict form for JSON output and persistence."""
        return asdict(self)


@dataclass(frozen=True)
class ValidationReport:
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def valid(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class ExecutionSummary:
    trades_planned: int
    trades_filtered: int
    trades_executed: int
    trades_successful: int
    total_position_value: float
    risk_exposure_percentage: float
    strategy_effectiveness: float  # percentage of submitted trades that filled


@dataclass(frozen=True)
class StrategyExecutionResult:
    plan: EnhancedTradePlan
    executed_trades: tuple = field(default_factory=tuple)
    summary: Optional[ExecutionSummary] = None
