import argparse
import json
from pathlib import Path

from loguru import logger

from app.core.config import get_settings
from app.domain import PositionResult, PositionType
from app.services.ledger import SideRule
from app.services.position_service import PositionService
from ingestion.client import ClobClient, GammaClient
from pipelines.trading_cycle import PublicDataExchange, load_trades


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Report wallet positions with resolution and PnL")
    parser.add_argument(
        "--trades",
        type=Path,
        required=True,
        help="JSON file with the wallet's trade history",
    )
    parser.add_argument(
        "--type",
        choices=[member.value for member in PositionType],
        default=None,
        help="Only report LONG or SHORT positions",
    )
    parser.add_argument(
        "--result",
        choices=[member.value for member in PositionResult],
        default=None,
        help="Only report positions with this result",
    )
    status = parser.add_mutually_exclusive_group()
    status.add_argument(
        "--resolved", dest="resolved", action="store_true", help="Only resolved markets"
    )
    status.add_argument(
        "--open", dest="resolved", action="store_false", help="Only unresolved markets"
    )
    parser.set_defaults(resolved=None)
    parser.add_argument(
        "--side-rule",
        choices=[member.value for member in SideRule],
        default=SideRule.NET_SIGN.value,
        help="How a token's LONG/SHORT side is decided (default: %(default)s)",
    )
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    settings = get_settings()
    trades = load_trades(args.trades)
    logger.info("Loaded {} trades from {}", len(trades), args.trades)

    timeout = settings.http_timeout_seconds
    clob_client = ClobClient(base_url=str(settings.clob_base_url), timeout=timeout)
    gamma_client = GammaClient(base_url=str(settings.gamma_base_url), timeout=timeout)
    with clob_client as clob, gamma_client as gamma:
        service = PositionService(
            PublicDataExchange(clob, trades),
            gamma,
            settings=settings,
            side_rule=SideRule(args.side_rule),
            market_lookup=gamma,
        )
        report = service.get_wallet_positions(
            position_type=PositionType(args.type) if args.type else None,
            result=PositionResult(args.result) if args.result else None,
            resolved=args.resolved,
        )

    print(json.dumps(report.to_payload(), indent=2))


if __name__ == "__main__":
    main()
