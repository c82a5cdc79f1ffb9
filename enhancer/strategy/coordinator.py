"""Strategy coordinator: runs filter → sizer → exit planner over a batch.

Each trade is processed independently and yields a ``TradeOutcome``
(enhanced, filtered or failed); the plan is assembled from the collected
outcomes, so one bad trade never aborts the cycle.  Contract violations
in the batch inputs are checked up front and raised before any trade is
processed.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional, Protocol, runtime_checkable

from enhancer.errors import ContractViolation
from enhancer.filters.breakout import BreakoutFilter
from enhancer.models.parameters import DEFAULT_PARAMETERS, StrategyParameters
from enhancer.models.trade import ExecutedTrade, MarketSnapshot, TradeIntention, TradePlan
from enhancer.risk.exit_planner import ExitPlanner
from enhancer.risk.position_sizer import PositionSizer
from enhancer.strategy.models import (
    EnhancedTradeDecision,
    EnhancedTradePlan,
    ExecutionSummary,
    FilterDecision,
    FilterResult,
    StrategyExecutionResult,
    StrategyPerformanceMetrics,
    TradeFailure,
    ValidationReport,
)

logger = logging.getLogger("enhancer.strategy")

LOW_CONFIDENCE_WARNING = 0.6
LOW_EQUITY_WARNING = 10_000.0


@runtime_checkable
class TradeExecutor(Protocol):
    """Order-submission collaborator."""

    def execute_trades(
        self, trades: list[EnhancedTradeDecision],
    ) -> list[ExecutedTrade]:
        """Submit *trades* and report one ``ExecutedTrade`` per trade."""
        ...


@dataclass(frozen=True)
class TradeOutcome:
    """Result of processing one trade through the pipeline."""

    trade: TradeIntention
    status: str  # "enhanced", "filtered" or "failed"
    decision: Optional[FilterDecision] = None
    enhanced: Optional[EnhancedTradeDecision] = None
    failure: Optional[TradeFailure] = None


class StrategyCoordinator:
    """Orchestrates one enhancement pass over a batch of trade intentions.

    Args:
        params: Strategy parameters shared by every stage.
        breakout_filter: Override the default ``BreakoutFilter``.
        sizer: Override the default ``PositionSizer``.
        exit_planner: Override the default ``ExitPlanner``.
        clock: Source of the creation timestamp, called once per batch.
            Without one, plans carry an empty ``created_at`` unless the
            caller passes ``as_of``.
    """

    def __init__(
        self,
        params: StrategyParameters = DEFAULT_PARAMETERS,
        breakout_filter: Optional[BreakoutFilter] = None,
        sizer: Optional[PositionSizer] = None,
        exit_planner: Optional[ExitPlanner] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._filter = breakout_filter or BreakoutFilter(params)
        self._sizer = sizer or PositionSizer(params)
        self._planner = exit_planner or ExitPlanner(params)
        self._clock = clock

    # ── Enhancement ──────────────────────────────────────────────────────

    def enhance(
        self,
        intentions: Iterable[TradeIntention],
        market: MarketSnapshot,
        equity: float,
        as_of: Optional[datetime] = None,
    ) -> EnhancedTradePlan:
        """Filter, size and attach exit plans to every intention.

        Args:
            intentions: Trade intentions for this cycle.
            market: Flat market snapshot.
            equity: Current account equity.
            as_of: Creation timestamp; defaults to the coordinator clock,
                or an empty timestamp when there is none.

        Raises:
            ContractViolation: If equity or any intention is out of contract.
        """
        intentions = tuple(intentions)
        self._check_contract(intentions, equity)
        created_at = self._created_at(as_of)

        logger.info("Enhancing trade plan with %d original trades", len(intentions))
        outcomes = [
            self.process_trade(trade, market, equity, created_at)
            for trade in intentions
        ]
        plan = self._assemble(intentions, outcomes, equity)

        logger.info(
            "Trade plan enhancement complete: %d → %d trades (%d filtered, %d failed)",
            len(intentions),
            len(plan.trades),
            plan.filter_result.filtered_out_count,
            len(plan.failures),
        )
        return plan

    def enhance_plan(
        self,
        plan: TradePlan,
        market: MarketSnapshot,
        equity: float,
        as_of: Optional[datetime] = None,
    ) -> EnhancedTradePlan:
        """Enhance a ``TradePlan``, carrying its metadata through."""
        enhanced = self.enhance(plan.trades, market, equity, as_of=as_of)
        return dataclasses.replace(
            enhanced,
            plan_id=plan.id,
            date=plan.date,
            market_analysis=plan.market_analysis,
            risk_assessment=plan.risk_assessment,
        )

    def process_trade(
        self,
        trade: TradeIntention,
        market: MarketSnapshot,
        equity: float,
        created_at: str,
    ) -> TradeOutcome:
        """Run one trade through filter, sizer and exit planner.

        Any error other than a contract violation is captured as a
        ``failed`` outcome.
        """
        try:
            decision = self._filter.decide(trade, market)
            if decision.filtered:
                return TradeOutcome(trade=trade, status="filtered", decision=decision)

            sizing = self._sizer.size_trade(trade, equity)
            with_exits = self._planner.plan_exit_levels(trade)
            exit_strategy = self._planner.plan(
                with_exits,
                entry_price=trade.price_target,
                quantity=sizing.position_size,
                created_at=created_at,
            )
        except ContractViolation:
            raise
        except Exception as exc:
            logger.error("Failed to enhance %s: %s", trade.symbol, exc)
            return TradeOutcome(
                trade=trade,
                status="failed",
                failure=TradeFailure(symbol=trade.symbol, error=str(exc)),
            )

        enhanced = EnhancedTradeDecision(
            symbol=trade.symbol,
            action=trade.action,
            quantity=sizing.position_size,
            price_target=trade.price_target,
            stop_loss=with_exits.stop_loss,
            take_profit=with_exits.take_profit,
            confidence=trade.confidence,
            reasoning=with_exits.reasoning,
            position_sizing=sizing,
            breakout_probability=decision.probability,
            exit_strategy=exit_strategy,
            original_quantity=trade.quantity,
            enhanced_quantity=sizing.position_size,
            risk_adjusted=sizing.position_size != trade.quantity,
            filter_passed=not decision.filtered,
        )
        return TradeOutcome(trade=trade, status="enhanced", decision=decision, enhanced=enhanced)

    def _created_at(self, as_of: Optional[datetime]) -> str:
        if as_of is None and self._clock is not None:
            as_of = self._clock()
        return as_of.isoformat() if as_of is not None else ""

    def _check_contract(self, intentions: tuple[TradeIntention, ...], equity: float) -> None:
        if isinstance(equity, bool) or not isinstance(equity, (int, float)):
            raise ContractViolation(f"equity must be a number, got {type(equity).__name__}")
        if not math.isfinite(equity) or equity < 0:
            raise ContractViolation(f"equity must be a non-negative finite number, got {equity}")
        for trade in intentions:
            trade.validate()

    def _assemble(
        self,
        intentions: tuple[TradeIntention, ...],
        outcomes: list[TradeOutcome],
        equity: float,
    ) -> EnhancedTradePlan:
        decisions = tuple(o.decision for o in outcomes if o.decision is not None)
        enhanced = tuple(o.enhanced for o in outcomes if o.enhanced is not None)
        failures = tuple(o.failure for o in outcomes if o.failure is not None)

        filter_result = FilterResult(
            original_trades=intentions,
            passed=tuple(d.trade for d in decisions if not d.filtered),
            decisions=decisions,
        )
        sizing_results = tuple(t.position_sizing for t in enhanced)

        return EnhancedTradePlan(
            trades=enhanced,
            filter_result=filter_result,
            position_sizing_results=sizing_results,
            exit_strategies=tuple(t.exit_strategy for t in enhanced),
            performance=performance_metrics(len(intentions), enhanced, len(failures)),
            total_risk_exposure=total_risk_exposure(enhanced, equity),
            failures=failures,
        )

    # ── Validation / execution ───────────────────────────────────────────

    def validate_inputs(
        self, intentions: Iterable[TradeIntention], equity: float,
    ) -> ValidationReport:
        """Pre-flight checks; never raises."""
        intentions = tuple(intentions)
        errors: list[str] = []
        warnings: list[str] = []

        if not intentions:
            errors.append("Trade plan is empty")
        if isinstance(equity, bool) or not isinstance(equity, (int, float)):
            errors.append(f"Account equity must be a number, got {type(equity).__name__}")
        elif not math.isfinite(equity) or equity <= 0:
            errors.append("Account equity must be positive")
        elif equity < LOW_EQUITY_WARNING:
            warnings.append("Low account equity may limit position sizing")

        for trade in intentions:
            try:
                trade.validate()
            except ContractViolation as exc:
                errors.append(str(exc))

        low = [
            t for t in intentions
            if isinstance(t.confidence, (int, float)) and t.confidence < LOW_CONFIDENCE_WARNING
        ]
        if low:
            warnings.append(
                f"{len(low)} trades have low confidence (<{LOW_CONFIDENCE_WARNING:.0%})"
            )
        return ValidationReport(errors=tuple(errors), warnings=tuple(warnings))

    def execute(
        self, plan: EnhancedTradePlan, executor: TradeExecutor,
    ) -> StrategyExecutionResult:
        """Hand executable trades to *executor* and summarise the outcome.

        Zero-quantity trades are never submitted.
        """
        submittable = [t for t in plan.trades if t.executable]
        logger.info("Executing enhanced strategy with %d trades", len(submittable))

        executed = tuple(executor.execute_trades(submittable)) if submittable else ()
        summary = execution_summary(plan, executed, submitted=len(submittable))

        logger.info(
            "Enhanced strategy execution complete: %d/%d trades successful",
            summary.trades_successful, summary.trades_executed,
        )
        return StrategyExecutionResult(plan=plan, executed_trades=executed, summary=summary)

    def log_summary(self, plan: EnhancedTradePlan) -> None:
        """Write the batch summary block to the log."""
        m = plan.performance
        logger.info("ENHANCED STRATEGY SUMMARY")
        logger.info("Original Trades: %d", m.original_trade_count)
        logger.info(
            "After Breakout Filtering: %d (%.1f%% passed)",
            m.filtered_trade_count, (1 - m.risk_reduction_factor) * 100,
        )
        logger.info("Failed Trades: %d", m.failed_trade_count)
        logger.info("Total Risk Exposure: %.2f%% of account", plan.total_risk_exposure * 100)
        logger.info("Average Signal Strength: %.1f%%", m.average_signal_strength * 100)
        logger.info("Average Breakout Probability: %.1f%%", m.average_breakout_probability * 100)
        logger.info("Strategy Confidence: %.1f%%", m.strategy_confidence * 100)
        for i, trade in enumerate(plan.trades, start=1):
            logger.info(
                "Trade %d: %s %d %s @ $%.2f (Pos: %.2f%%, Breakout: %.1f%%)",
                i,
                trade.action.value,
                trade.enhanced_quantity,
                trade.symbol,
                trade.price_target,
                trade.position_sizing.position_percentage * 100,
                trade.breakout_probability * 100,
            )


# ── Aggregates ───────────────────────────────────────────────────────────


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def performance_metrics(
    original_count: int,
    enhanced: tuple[EnhancedTradeDecision, ...],
    failed_count: int = 0,
) -> StrategyPerformanceMetrics:
    """Batch metrics.  All zero for an empty batch."""
    if original_count == 0:
        return StrategyPerformanceMetrics()
    return StrategyPerformanceMetrics(
        original_trade_count=original_count,
        filtered_trade_count=len(enhanced),
        failed_trade_count=failed_count,
        total_position_percentage=sum(
            t.position_sizing.position_percentage for t in enhanced
        ),
        average_signal_strength=_mean([t.position_sizing.signal_strength for t in enhanced]),
        average_breakout_probability=_mean([t.breakout_probability for t in enhanced]),
        risk_reduction_factor=1 - len(enhanced) / original_count,
        strategy_confidence=_mean([t.confidence for t in enhanced]),
    )


def total_risk_exposure(
    enhanced: Iterable[EnhancedTradeDecision], equity: float,
) -> float:
    """``Σ(quantity × price_target) / equity``; 0 when equity is 0."""
    if equity <= 0:
        return 0.0
    return sum(t.enhanced_quantity * t.price_target for t in enhanced) / equity


def execution_summary(
    plan: EnhancedTradePlan,
    executed: tuple[ExecutedTrade, ...],
    submitted: Optional[int] = None,
) -> ExecutionSummary:
    """Summarise an execution round reported by the order collaborator."""
    if submitted is None:
        submitted = len(plan.trades)
    successful = [t for t in executed if t.succeeded]
    total_value = sum(t.executed_quantity * t.price_target for t in executed)
    original = plan.performance.original_trade_count
    return ExecutionSummary(
        trades_planned=original,
        trades_filtered=original - len(plan.trades),
        trades_executed=submitted,
        trades_successful=len(successful),
        total_position_value=total_value,
        risk_exposure_percentage=plan.total_risk_exposure * 100,
        strategy_effectiveness=(len(successful) / submitted * 100) if submitted else 0.0,
    )
