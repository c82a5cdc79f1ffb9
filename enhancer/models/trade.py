"""Trade data models: inputs handed to the enhancement pipeline."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from enhancer.errors import ContractViolation


# Loosely-typed market data keyed by symbol or indicator name.
MarketSnapshot = Mapping[str, Any]


class Action(str, Enum):
    """Trade direction."""

    BUY = "BUY"
    SELL = "SELL"

    @classmethod
    def parse(cls, value) -> "Action":
        """Accept an ``Action`` or a case-insensitive ``"buy"``/``"sell"``."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise ContractViolation(
                f"action must be 'BUY' or 'SELL', got {value!r}"
            ) from None


@dataclass(frozen=True)
class TradeIntention:
    """A proposed trade before enhancement."""

    symbol: str
    action: Action
    quantity: int
    price_target: float
    stop_loss: float
    take_profit: float
    confidence: float
    reasoning: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TradeIntention":
        """Build an intention from a parsed JSON object."""
        try:
            return cls(
                symbol=str(data["symbol"]),
                action=Action.parse(data["action"]),
                quantity=int(data.get("quantity", 0)),
                price_target=float(data["price_target"]),
                stop_loss=float(data.get("stop_loss", 0.0)),
                take_profit=float(data.get("take_profit", 0.0)),
                confidence=float(data["confidence"]),
                reasoning=str(data.get("reasoning", "")),
            )
        except KeyError as exc:
            raise ContractViolation(f"trade intention missing field {exc}") from None
        except (TypeError, ValueError) as exc:
            if isinstance(exc, ContractViolation):
                raise
            raise ContractViolation(f"malformed trade intention: {exc}") from None

    def validate(self) -> None:
        """Raise ``ContractViolation`` for out-of-contract numeric fields."""
        if not isinstance(self.action, Action):
            raise ContractViolation(
                f"{self.symbol}: action must be an Action, got {self.action!r}"
            )
        if not _is_finite_number(self.confidence) or not 0.0 <= self.confidence <= 1.0:
            raise ContractViolation(
                f"{self.symbol}: confidence must be a finite number in [0, 1], "
                f"got {self.confidence!r}"
            )
        if not _is_finite_number(self.price_target) or self.price_target <= 0:
            raise ContractViolation(
                f"{self.symbol}: price_target must be positive, got {self.price_target!r}"
            )


@dataclass(frozen=True)
class TradePlan:
    """A batch of intentions with the upstream planner's metadata."""

    id: str
    date: str
    trades: tuple[TradeIntention, ...]
    market_analysis: str = ""
    risk_assessment: str = ""


@dataclass(frozen=True)
class Position:
    """An open brokerage position (long or short)."""

    symbol: str
    qty: float
    side: str  # "long" or "short"
    cost_basis: float

    @property
    def entry_price(self) -> float:
        """Average entry price per share."""
        if self.qty == 0:
            raise ContractViolation(f"{self.symbol}: position quantity is zero")
        return self.cost_basis / abs(self.qty)


@dataclass(frozen=True)
class ExecutedTrade:
    """Execution outcome reported back by the order-submission collaborator."""

    symbol: str
    action: Action
    executed_quantity: int
    price_target: float
    status: str  # "executed" or "failed"
    filled_avg_price: Optional[float] = None
    order_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "executed"


def _is_finite_number(value) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )
