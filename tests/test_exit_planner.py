"""Tests for tiered exit planning.

Covers stop/take-profit prices, batch quantities, level omission,
validation, trigger priority and exit order generation.
"""

import dataclasses
from datetime import datetime, timezone

import pytest

from enhancer.errors import ConfigError, ContractViolation, ExitPlanError
from enhancer.models.parameters import StrategyParameters
from enhancer.models.trade import Action, Position, TradeIntention
from enhancer.risk.exit_planner import ExitPlanner
from enhancer.strategy.models import ExitKind


def _make_trade(**overrides) -> TradeIntention:
    defaults = dict(
        symbol="AAPL",
        action=Action.BUY,
        quantity=200,
        price_target=100.0,
        stop_loss=95.0,
        take_profit=110.0,
        confidence=0.85,
        reasoning="Breakout above resistance",
    )
    defaults.update(overrides)
    return TradeIntention(**defaults)


# ── Planning ─────────────────────────────────────────────────────────────


class TestPlanBuy:
    def test_buy_levels(self):
        """Entry 100, 200 shares → stop 94; TPs 110 (100), 115 (60), 120 (40)."""
        strategy = ExitPlanner().plan(_make_trade(), entry_price=100.0)

        assert strategy.stop_loss.trigger_price == pytest.approx(94.0)
        assert strategy.stop_loss.percentage == 1.0
        assert strategy.stop_loss.kind is ExitKind.STOP

        prices = [tp.trigger_price for tp in strategy.take_profit_levels]
        quantities = [tp.quantity for tp in strategy.take_profit_levels]
        fractions = [tp.percentage for tp in strategy.take_profit_levels]
        assert prices == pytest.approx([110.0, 115.0, 120.0])
        assert quantities == [100, 60, 40]
        assert fractions == [0.50, 0.30, 0.20]
        assert all(tp.kind is ExitKind.LIMIT for tp in strategy.take_profit_levels)

    def test_defaults_to_trade_price_and_quantity(self):
        strategy = ExitPlanner().plan(_make_trade(price_target=50.0, quantity=10))
        assert strategy.entry_price == 50.0
        assert strategy.total_quantity == 10

    def test_quantity_override(self):
        strategy = ExitPlanner().plan(_make_trade(), quantity=20)
        assert [tp.quantity for tp in strategy.take_profit_levels] == [10, 6, 4]

    def test_created_at_from_datetime(self):
        ts = datetime(2025, 6, 2, 14, 30, tzinfo=timezone.utc)
        strategy = ExitPlanner().plan(_make_trade(), created_at=ts)
        assert strategy.created_at == "2025-06-02T14:30:00+00:00"

    def test_buy_ordering_invariant(self):
        planner = ExitPlanner()
        for entry in (0.5, 3.21, 100.0, 4_321.0):
            s = planner.plan(_make_trade(price_target=entry))
            assert s.stop_loss.trigger_price < s.entry_price
            assert all(tp.trigger_price > s.entry_price for tp in s.take_profit_levels)


class TestPlanSell:
    def test_sell_levels_mirrored(self):
        """Sell at 100 → stop 106; TPs 90, 85, 80."""
        strategy = ExitPlanner().plan(_make_trade(action=Action.SELL))
        assert strategy.stop_loss.trigger_price == pytest.approx(106.0)
        prices = [tp.trigger_price for tp in strategy.take_profit_levels]
        assert prices == pytest.approx([90.0, 85.0, 80.0])

    def test_sell_ordering_invariant(self):
        planner = ExitPlanner()
        for entry in (0.5, 3.21, 100.0, 4_321.0):
            s = planner.plan(_make_trade(action=Action.SELL, price_target=entry))
            assert s.stop_loss.trigger_price > s.entry_price
            assert all(tp.trigger_price < s.entry_price for tp in s.take_profit_levels)


class TestSmallPositions:
    def test_single_share_omits_every_take_profit(self):
        strategy = ExitPlanner().plan(_make_trade(), quantity=1)
        assert strategy.take_profit_levels == ()

    def test_two_shares_keep_only_first_batch(self):
        """floor(2 × 0.5) = 1, floor(2 × 0.3) = 0, floor(2 × 0.2) = 0."""
        strategy = ExitPlanner().plan(_make_trade(), quantity=2)
        assert [tp.quantity for tp in strategy.take_profit_levels] == [1]

    def test_omitted_levels_do_not_fail_fraction_check(self):
        planner = ExitPlanner()
        valid, errors = planner.validate(planner.plan(_make_trade(), quantity=2))
        assert valid, errors

    def test_zero_quantity_is_flagged(self):
        planner = ExitPlanner()
        valid, errors = planner.validate(planner.plan(_make_trade(), quantity=0))
        assert not valid
        assert "Total quantity must be positive" in errors

    def test_negative_quantity_rejected(self):
        with pytest.raises(ContractViolation, match="quantity"):
            ExitPlanner().plan(_make_trade(), quantity=-1)

    def test_non_positive_entry_rejected(self):
        with pytest.raises(ContractViolation, match="entry price"):
            ExitPlanner().plan(_make_trade(), entry_price=0.0)


class TestPlanExitLevels:
    def test_overwrites_trade_levels(self):
        trade = ExitPlanner().plan_exit_levels(_make_trade())
        assert trade.stop_loss == pytest.approx(94.0)
        assert trade.take_profit == pytest.approx(110.0)
        assert trade.reasoning.startswith("Breakout above resistance | Enhanced Exit:")
        assert "-6% stop loss" in trade.reasoning

    def test_sell_levels(self):
        trade = ExitPlanner().plan_exit_levels(_make_trade(action=Action.SELL))
        assert trade.stop_loss == pytest.approx(106.0)
        assert trade.take_profit == pytest.approx(90.0)

    def test_original_untouched(self):
        original = _make_trade()
        ExitPlanner().plan_exit_levels(original)
        assert original.stop_loss == 95.0


class TestExitPricesForPosition:
    def test_long_position(self):
        prices = ExitPlanner().exit_prices_for_position(
            Position(symbol="AAPL", qty=10, side="long", cost_basis=1_000.0),
        )
        assert prices.stop_loss_price == pytest.approx(94.0)
        assert prices.take_profit_prices == pytest.approx((110.0, 115.0, 120.0))

    def test_short_position(self):
        prices = ExitPlanner().exit_prices_for_position(
            Position(symbol="TSLA", qty=-4, side="short", cost_basis=800.0),
        )
        assert prices.stop_loss_price == pytest.approx(212.0)
        assert prices.take_profit_prices == pytest.approx((180.0, 170.0, 160.0))


# ── Validation ───────────────────────────────────────────────────────────


class TestValidation:
    def test_valid_plan(self):
        planner = ExitPlanner()
        strategy = planner.plan(_make_trade())
        assert planner.validate(strategy) == (True, [])
        assert planner.ensure_valid(strategy) is strategy

    def test_fractions_sum_to_one(self):
        strategy = ExitPlanner().plan(_make_trade())
        total = sum(tp.percentage for tp in strategy.take_profit_levels)
        assert total == pytest.approx(1.0, abs=0.01)

    def test_stop_on_wrong_side(self):
        planner = ExitPlanner()
        strategy = planner.plan(_make_trade())
        bad_stop = dataclasses.replace(strategy.stop_loss, trigger_price=101.0)
        broken = dataclasses.replace(strategy, stop_loss=bad_stop)

        valid, errors = planner.validate(broken)
        assert not valid
        assert any("below entry" in e for e in errors)
        with pytest.raises(ExitPlanError, match="AAPL"):
            planner.ensure_valid(broken)

    def test_take_profit_on_wrong_side_for_sell(self):
        planner = ExitPlanner()
        strategy = planner.plan(_make_trade(action=Action.SELL))
        levels = list(strategy.take_profit_levels)
        levels[0] = dataclasses.replace(levels[0], trigger_price=105.0)
        broken = dataclasses.replace(strategy, take_profit_levels=tuple(levels))

        valid, errors = planner.validate(broken)
        assert not valid
        assert any("below entry for SELL" in e for e in errors)

    def test_bad_fraction_total_on_full_ladder(self):
        planner = ExitPlanner()
        strategy = planner.plan(_make_trade())
        levels = list(strategy.take_profit_levels)
        levels[2] = dataclasses.replace(levels[2], percentage=0.5)
        broken = dataclasses.replace(strategy, take_profit_levels=tuple(levels))

        valid, errors = planner.validate(broken)
        assert not valid
        assert any("sum to 100%" in e for e in errors)

    def test_misconfigured_fractions_fail_loudly(self):
        with pytest.raises(ConfigError, match="batch_fractions"):
            ExitPlanner(StrategyParameters(batch_fractions=(0.5, 0.3, 0.3)))


# ── Monitoring ───────────────────────────────────────────────────────────


class TestTriggers:
    @pytest.fixture
    def buy_strategy(self):
        return ExitPlanner().plan(_make_trade())

    @pytest.fixture
    def sell_strategy(self):
        return ExitPlanner().plan(_make_trade(action=Action.SELL))

    def test_nothing_at_entry(self, buy_strategy):
        result = ExitPlanner().check_triggers(buy_strategy, 100.0, 200)
        assert not result.should_exit

    def test_buy_stop(self, buy_strategy):
        result = ExitPlanner().check_triggers(buy_strategy, 93.5, 200)
        assert result.triggered_stops == (buy_strategy.stop_loss,)
        assert result.triggered_profits == ()
        assert result.should_exit

    def test_buy_first_take_profit(self, buy_strategy):
        result = ExitPlanner().check_triggers(buy_strategy, 111.0, 200)
        assert [tp.quantity for tp in result.triggered_profits] == [100]

    def test_buy_all_take_profits(self, buy_strategy):
        result = ExitPlanner().check_triggers(buy_strategy, 125.0, 200)
        assert len(result.triggered_profits) == 3

    def test_sell_stop(self, sell_strategy):
        result = ExitPlanner().check_triggers(sell_strategy, 107.0, 200)
        assert result.triggered_stops == (sell_strategy.stop_loss,)

    def test_sell_take_profits(self, sell_strategy):
        result = ExitPlanner().check_triggers(sell_strategy, 84.0, 200)
        assert [tp.quantity for tp in result.triggered_profits] == [100, 60]

    def test_stop_has_priority(self, buy_strategy):
        """A stopped-out position never fires profit-taking too."""
        # Degenerate ladder where the stop sits above a take-profit
        low_tp = dataclasses.replace(buy_strategy.take_profit_levels[0], trigger_price=90.0)
        strategy = dataclasses.replace(buy_strategy, take_profit_levels=(low_tp,))
        result = ExitPlanner().check_triggers(strategy, 92.0, 200)
        assert result.triggered_stops
        assert result.triggered_profits == ()

    def test_closed_position_never_triggers(self, buy_strategy):
        result = ExitPlanner().check_triggers(buy_strategy, 50.0, 0)
        assert not result.should_exit


class TestExitOrders:
    def test_stop_closes_remaining_at_market(self):
        planner = ExitPlanner()
        strategy = planner.plan(_make_trade())
        orders = planner.exit_orders(strategy, [strategy.stop_loss], remaining_quantity=150)
        assert len(orders) == 1
        order = orders[0]
        assert order.side == "sell"
        assert order.quantity == 150
        assert order.order_type is ExitKind.MARKET
        assert order.price is None

    def test_take_profit_is_limit_batch(self):
        planner = ExitPlanner()
        strategy = planner.plan(_make_trade(action=Action.SELL))
        tp1 = strategy.take_profit_levels[0]
        orders = planner.exit_orders(strategy, [tp1], remaining_quantity=200)
        assert orders[0].side == "buy"
        assert orders[0].quantity == 100
        assert orders[0].order_type is ExitKind.LIMIT
        assert orders[0].price == pytest.approx(90.0)

    def test_batch_larger_than_remaining_skipped(self):
        planner = ExitPlanner()
        strategy = planner.plan(_make_trade())
        orders = planner.exit_orders(
            strategy, [strategy.take_profit_levels[0]], remaining_quantity=40,
        )
        assert orders == []


class TestSummary:
    def test_summary_lines(self):
        planner = ExitPlanner()
        text = planner.summary(planner.plan(_make_trade()))
        assert "Stop Loss: $94.00 (-6% risk)" in text
        assert "Take Profit 1: $110.00 (+10%, exit 50%)" in text
        assert "Take Profit 3: $120.00 (+20%, exit 20%)" in text

    def test_equal_fractions_keep_their_own_offsets(self):
        """Batches 50/25/25 at +10/+15/+20: the two 25% batches differ in offset."""
        planner = ExitPlanner(StrategyParameters(batch_fractions=(0.50, 0.25, 0.25)))
        text = planner.summary(planner.plan(_make_trade()))
        assert "Take Profit 2: $115.00 (+15%, exit 25%)" in text
        assert "Take Profit 3: $120.00 (+20%, exit 25%)" in text

    def test_sell_offsets(self):
        planner = ExitPlanner()
        text = planner.summary(planner.plan(_make_trade(action=Action.SELL)))
        assert "Take Profit 1: $90.00 (+10%, exit 50%)" in text
