"""Market snapshot accessors: pure functions, no I/O.

A ``MarketSnapshot`` is loosely typed: per-symbol entries, an
``indicators`` mapping, free-text sentiment, and whatever else the
collector found.  Everything here treats absent or malformed fields as
*unknown* and returns ``None`` so the caller applies its own default.

Default policy (one named rule per breakout indicator):

    volume_surge         → NEUTRAL     (0.5)
    price_momentum       → CONFIDENCE  (the trade's own confidence)
    volatility_breakout  → NEUTRAL
    market_sentiment     → NEUTRAL
    technical_strength   → CONFIDENCE
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from enhancer.models.trade import MarketSnapshot


class DefaultPolicy(str, Enum):
    """Fallback used when an indicator cannot be derived."""

    NEUTRAL = "neutral"
    CONFIDENCE = "confidence"


INDICATOR_DEFAULTS: dict[str, DefaultPolicy] = {
    "volume_surge": DefaultPolicy.NEUTRAL,
    "price_momentum": DefaultPolicy.CONFIDENCE,
    "volatility_breakout": DefaultPolicy.NEUTRAL,
    "market_sentiment": DefaultPolicy.NEUTRAL,
    "technical_strength": DefaultPolicy.CONFIDENCE,
}


def default_for(indicator: str, confidence: float, neutral: float = 0.5) -> float:
    """Return the fallback value for *indicator* under its named policy.

    Raises:
        KeyError: If *indicator* has no registered policy.
    """
    policy = INDICATOR_DEFAULTS[indicator]
    if policy is DefaultPolicy.CONFIDENCE:
        return confidence
    return neutral


def as_number(value: Any) -> Optional[float]:
    """Return *value* as a finite float, or ``None`` if it is not one.

    Booleans are not numbers here; numeric strings are accepted.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def symbol_entry(market: MarketSnapshot, symbol: str) -> Optional[Mapping[str, Any]]:
    """Return the per-symbol mapping, or ``None`` if absent or not a mapping."""
    entry = market.get(symbol) if isinstance(market, Mapping) else None
    return entry if isinstance(entry, Mapping) else None


def indicator_block(market: MarketSnapshot) -> Optional[Mapping[str, Any]]:
    """Return the shared ``indicators`` mapping, or ``None``."""
    block = market.get("indicators") if isinstance(market, Mapping) else None
    return block if isinstance(block, Mapping) else None


def first_number(data: Optional[Mapping[str, Any]], *keys: str) -> Optional[float]:
    """Return the first of *keys* holding a non-zero finite number.

    Zero counts as *unknown*: collectors emit 0 for fields they could
    not fill.
    """
    if data is None:
        return None
    for key in keys:
        number = as_number(data.get(key))
        if number is not None and number != 0:
            return number
    return None


def first_series(
    data: Optional[Mapping[str, Any]], *keys: str,
) -> Optional[list[float]]:
    """Return the first of *keys* holding a non-empty numeric sequence.

    Returns ``None`` if the sequence contains anything non-numeric.
    """
    if data is None:
        return None
    for key in keys:
        raw = data.get(key)
        if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)) or not raw:
            continue
        series = [as_number(v) for v in raw]
        if any(v is None for v in series):
            return None
        return series  # type: ignore[return-value]
    return None


def text_field(market: MarketSnapshot, key: str) -> Optional[str]:
    """Return a lower-cased text field, or ``None`` if absent or empty."""
    value = market.get(key) if isinstance(market, Mapping) else None
    if value is None or value == "":
        return None
    return str(value).lower()


def has_data(market: MarketSnapshot, key: str) -> bool:
    """``True`` when *key* is present with a non-empty value."""
    if not isinstance(market, Mapping):
        return False
    return bool(market.get(key))
