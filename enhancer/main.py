"""Trade enhancer: CLI entry point.

Reads trade intentions and a market snapshot from JSON files, runs one
enhancement cycle and prints the enhanced plan as JSON.

    python -m enhancer.main --intentions trades.json --market market.json \
        --equity 100000
"""

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from enhancer.config import load_config
from enhancer.errors import ContractViolation, EnhancerError
from enhancer.models.trade import TradeIntention, TradePlan
from enhancer.strategy.coordinator import StrategyCoordinator

logger = logging.getLogger("enhancer")


def load_intentions(path: str) -> TradePlan:
    """Read intentions from *path*.

    Accepts either a bare list of trade objects or a trade-plan object
    with a ``trades`` list and optional ``id``/``date``/``market_analysis``/
    ``risk_assessment``.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, list):
        data = {"trades": data}
    if not isinstance(data, dict) or not isinstance(data.get("trades"), list):
        raise ContractViolation(f"{path}: expected a list of trades or a plan object")
    return TradePlan(
        id=str(data.get("id", "")),
        date=str(data.get("date", "")),
        trades=tuple(TradeIntention.from_dict(t) for t in data["trades"]),
        market_analysis=str(data.get("market_analysis", "")),
        risk_assessment=str(data.get("risk_assessment", "")),
    )


def load_market(path: Optional[str]) -> dict:
    """Read the market snapshot; a missing path means an empty snapshot."""
    if not path:
        return {}
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ContractViolation(f"{path}: market snapshot must be a JSON object")
    return data


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Filter, size and attach exit plans to AI trade intentions",
    )
    parser.add_argument("--intentions", required=True, help="JSON file of trade intentions")
    parser.add_argument("--market", help="JSON file with the market snapshot")
    parser.add_argument("--equity", type=float, help="Account equity (default: ACCOUNT_EQUITY)")
    parser.add_argument(
        "--as-of",
        type=datetime.fromisoformat,
        help="Creation timestamp (ISO 8601); defaults to now. Fix it for reproducible output",
    )
    parser.add_argument("--summary", action="store_true", help="Log the batch summary block")
    return parser


def run(argv: Optional[list[str]] = None) -> int:
    """Parse CLI arguments, run one cycle and print the plan.

    Returns the process exit code.
    """
    args = _build_parser().parse_args(argv)
    config = load_config()

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    equity = args.equity if args.equity is not None else config.account_equity
    if equity is None:
        logger.error("No account equity given (use --equity or ACCOUNT_EQUITY).")
        return 2

    coordinator = StrategyCoordinator(config.parameters)
    try:
        plan = coordinator.enhance_plan(
            load_intentions(args.intentions),
            load_market(args.market),
            equity,
            as_of=args.as_of or datetime.now(timezone.utc),
        )
    except (EnhancerError, OSError, json.JSONDecodeError) as exc:
        logger.error("Enhancement aborted: %s", exc)
        return 1

    if args.summary:
        coordinator.log_summary(plan)

    print(json.dumps(plan.to_dict(), indent=config.json_indent))
    return 0


if __name__ == "__main__":
    sys.exit(run())
