"""Exit planning: stop-loss and batched take-profit levels, pure math.

Rules (defaults):

- **Stop-loss**: 6 % against the entry, full liquidation.
    - Buy:  entry × (1 − 0.06)
    - Sell: entry × (1 + 0.06)
- **Take-profit**: three batches at +10 % / +15 % / +20 % from entry,
  exiting 50 % / 30 % / 20 % of the position (mirrored for sells).
  Each batch exits ``floor(total × fraction)`` shares; a batch that
  rounds down to zero shares is omitted.

During live monitoring the stop has priority: once it triggers, no
take-profit level fires.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from datetime import datetime
from typing import Iterable

from enhancer.errors import ContractViolation, ExitPlanError
from enhancer.models.parameters import DEFAULT_PARAMETERS, StrategyParameters
from enhancer.models.trade import Action, Position, TradeIntention
from enhancer.strategy.models import (
    EnhancedExitStrategy,
    ExitKind,
    ExitLevel,
    ExitOrder,
    ExitTriggerResult,
    PositionExitPrices,
)

logger = logging.getLogger("enhancer.risk.exit_planner")


class ExitPlanner:
    """Builds, validates and monitors tiered exit strategies.

    Args:
        params: Strategy parameters (stop offset, take-profit offsets,
            batch fractions).

    Raises:
        ConfigError: If the batch fractions do not sum to 1.0 or do not
            match the take-profit offsets.
    """

    def __init__(self, params: StrategyParameters = DEFAULT_PARAMETERS) -> None:
        self._params = params.validate()

    # ── Prices ───────────────────────────────────────────────────────────

    def stop_price(self, entry_price: float, action: Action) -> float:
        if action is Action.BUY:
            return entry_price * (1 - self._params.stop_loss_pct)
        return entry_price * (1 + self._params.stop_loss_pct)

    def take_profit_price(self, entry_price: float, action: Action, offset: float) -> float:
        if action is Action.BUY:
            return entry_price * (1 + offset)
        return entry_price * (1 - offset)

    # ── Planning ─────────────────────────────────────────────────────────

    def plan(
        self,
        trade: TradeIntention,
        entry_price: float | None = None,
        quantity: int | None = None,
        created_at: datetime | str | None = None,
    ) -> EnhancedExitStrategy:
        """Create the exit strategy for *trade*.

        Args:
            trade: The trade intention.
            entry_price: Entry price; defaults to ``trade.price_target``.
            quantity: Position size in shares; defaults to ``trade.quantity``.
            created_at: Creation timestamp recorded on the strategy.

        Raises:
            ContractViolation: If the entry price is not positive or the
                quantity is negative.
        """
        entry = trade.price_target if entry_price is None else entry_price
        total = trade.quantity if quantity is None else quantity
        if not math.isfinite(entry) or entry <= 0:
            raise ContractViolation(f"{trade.symbol}: entry price must be positive, got {entry}")
        if total < 0:
            raise ContractViolation(f"{trade.symbol}: quantity must be non-negative, got {total}")

        stop = self._stop_level(trade.action, entry)
        take_profits = self._take_profit_levels(trade.action, entry, total)

        if isinstance(created_at, datetime):
            created_at = created_at.isoformat()

        strategy = EnhancedExitStrategy(
            symbol=trade.symbol,
            entry_price=entry,
            total_quantity=total,
            action=trade.action,
            stop_loss=stop,
            take_profit_levels=take_profits,
            created_at=created_at or "",
            reasoning=self._describe_rules(),
        )
        logger.info(
            "Exit strategy for %s: stop $%.2f, take profits %s",
            trade.symbol,
            stop.trigger_price,
            "/".join(f"${tp.trigger_price:.2f}" for tp in take_profits) or "none",
        )
        return strategy

    def plan_exit_levels(self, trade: TradeIntention) -> TradeIntention:
        """Return *trade* with stop_loss/take_profit replaced by planned prices.

        The take-profit field receives the first (nearest) batch target.
        """
        entry = trade.price_target
        first_offset = self._params.take_profit_offsets[0]
        return dataclasses.replace(
            trade,
            stop_loss=self.stop_price(entry, trade.action),
            take_profit=self.take_profit_price(entry, trade.action, first_offset),
            reasoning=f"{trade.reasoning} | Enhanced Exit: {self._describe_rules()}",
        )

    def exit_prices_for_position(self, position: Position) -> PositionExitPrices:
        """Stop and take-profit prices for an open position."""
        entry = position.entry_price
        action = Action.BUY if position.side == "long" else Action.SELL
        return PositionExitPrices(
            stop_loss_price=self.stop_price(entry, action),
            take_profit_prices=tuple(
                self.take_profit_price(entry, action, offset)
                for offset in self._params.take_profit_offsets
            ),
        )

    def _stop_level(self, action: Action, entry: float) -> ExitLevel:
        pct = self._params.stop_loss_pct
        return ExitLevel(
            percentage=1.0,
            trigger_price=self.stop_price(entry, action),
            kind=ExitKind.STOP,
            reasoning=(
                f"Stop Loss: {pct * 100:g}% {'below' if action is Action.BUY else 'above'} "
                f"entry ${entry:.2f}"
            ),
        )

    def _take_profit_levels(
        self, action: Action, entry: float, total: int,
    ) -> tuple[ExitLevel, ...]:
        levels = []
        for fraction, offset in self._params.exit_batches:
            shares = math.floor(total * fraction)
            if shares <= 0:
                continue
            levels.append(ExitLevel(
                percentage=fraction,
                trigger_price=self.take_profit_price(entry, action, offset),
                kind=ExitKind.LIMIT,
                quantity=shares,
                reasoning=(
                    f"Take Profit: {fraction * 100:.0f}% of position ({shares} shares) "
                    f"at {offset * 100:g}% from entry ${entry:.2f}"
                ),
            ))
        return tuple(levels)

    def _describe_rules(self) -> str:
        p = self._params
        offsets = "/".join(f"+{o * 100:g}%" for o in p.take_profit_offsets)
        fractions = "/".join(f"{f * 100:g}%" for f in p.batch_fractions)
        return (
            f"-{p.stop_loss_pct * 100:g}% stop loss, "
            f"{offsets} batch take profits ({fractions})"
        )

    # ── Validation ───────────────────────────────────────────────────────

    def validate(self, strategy: EnhancedExitStrategy) -> tuple[bool, list[str]]:
        """Check price ordering and batch-fraction totals.

        The fraction-sum check only applies when every configured batch
        was emitted; omitted zero-share batches are expected for small
        positions.

        Returns:
            ``(valid, errors)``.
        """
        errors: list[str] = []
        entry = strategy.entry_price
        is_buy = strategy.action is Action.BUY

        if strategy.total_quantity <= 0:
            errors.append("Total quantity must be positive")
        if entry <= 0:
            errors.append("Entry price must be positive")

        stop = strategy.stop_loss.trigger_price
        if is_buy and stop >= entry:
            errors.append("Stop loss price must be below entry price for BUY orders")
        elif not is_buy and stop <= entry:
            errors.append("Stop loss price must be above entry price for SELL orders")

        for level in strategy.take_profit_levels:
            if is_buy and level.trigger_price <= entry:
                errors.append(
                    f"Take profit ${level.trigger_price:.2f} must be above entry for BUY orders"
                )
            elif not is_buy and level.trigger_price >= entry:
                errors.append(
                    f"Take profit ${level.trigger_price:.2f} must be below entry for SELL orders"
                )

        if len(strategy.take_profit_levels) == len(self._params.batch_fractions):
            total = sum(level.percentage for level in strategy.take_profit_levels)
            if abs(total - 1.0) > self._params.fraction_tolerance:
                errors.append(
                    f"Take profit batch percentages must sum to 100%, got {total * 100:.1f}%"
                )

        return (not errors, errors)

    def ensure_valid(self, strategy: EnhancedExitStrategy) -> EnhancedExitStrategy:
        """Return *strategy* unchanged, or raise ``ExitPlanError``."""
        valid, errors = self.validate(strategy)
        if not valid:
            raise ExitPlanError(f"{strategy.symbol}: " + "; ".join(errors))
        return strategy

    # ── Monitoring ───────────────────────────────────────────────────────

    def check_triggers(
        self,
        strategy: EnhancedExitStrategy,
        current_price: float,
        remaining_quantity: int,
    ) -> ExitTriggerResult:
        """Return the levels hit at *current_price*.

        The stop has priority: if it triggers, take-profits are not
        evaluated.  Nothing triggers once the position is fully closed.
        """
        if remaining_quantity <= 0:
            return ExitTriggerResult(triggered_stops=(), triggered_profits=())

        is_buy = strategy.action is Action.BUY
        stop_price = strategy.stop_loss.trigger_price
        stop_hit = current_price <= stop_price if is_buy else current_price >= stop_price
        if stop_hit:
            return ExitTriggerResult(
                triggered_stops=(strategy.stop_loss,), triggered_profits=(),
            )

        profits = tuple(
            level for level in strategy.take_profit_levels
            if (current_price >= level.trigger_price if is_buy
                else current_price <= level.trigger_price)
        )
        return ExitTriggerResult(triggered_stops=(), triggered_profits=profits)

    def exit_orders(
        self,
        strategy: EnhancedExitStrategy,
        triggered: Iterable[ExitLevel],
        remaining_quantity: int,
    ) -> list[ExitOrder]:
        """Convert triggered levels into exit orders.

        Stop levels close the whole remaining quantity at market;
        take-profit levels exit their batch as limit orders.  Orders for
        zero shares or more than the remaining quantity are skipped.
        """
        side = "sell" if strategy.action is Action.BUY else "buy"
        orders: list[ExitOrder] = []
        for level in triggered:
            if level.kind is ExitKind.STOP:
                quantity = remaining_quantity
            else:
                quantity = math.floor(strategy.total_quantity * level.percentage)
            if quantity <= 0 or quantity > remaining_quantity:
                continue
            orders.append(ExitOrder(
                symbol=strategy.symbol,
                side=side,
                quantity=quantity,
                order_type=ExitKind.MARKET if level.kind is ExitKind.STOP else level.kind,
                price=level.trigger_price if level.kind is ExitKind.LIMIT else None,
                reasoning=level.reasoning,
            ))
        return orders

    def summary(self, strategy: EnhancedExitStrategy) -> str:
        """Multi-line human-readable summary."""
        lines = [
            f"Exit Strategy: {strategy.symbol}",
            f"Entry Price: ${strategy.entry_price:.2f}",
            f"Total Quantity: {strategy.total_quantity} shares",
            f"Stop Loss: ${strategy.stop_loss.trigger_price:.2f} "
            f"(-{self._params.stop_loss_pct * 100:g}% risk)",
        ]
        for i, level in enumerate(strategy.take_profit_levels, start=1):
            offset = abs(level.trigger_price / strategy.entry_price - 1.0)
            lines.append(
                f"Take Profit {i}: ${level.trigger_price:.2f} "
                f"(+{offset * 100:g}%, exit {level.percentage * 100:.0f}%)"
            )
        return "\n".join(lines)
