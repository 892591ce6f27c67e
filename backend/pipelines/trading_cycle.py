"""Sequential polling loop: positions, market selection, signals, submission."""

from __future__ import annotations

import argparse
import json
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Sequence

from loguru import logger

from app.core.config import Settings, get_settings
from app.domain import Market, OrderBook, Position, PositionType, Trade, TradeSignal
from app.errors import OrderSubmissionError, TradingError
from app.services.ai.cache import Clock, utc_now
from app.services.batching import run_in_batches
from app.services.exchange import ExchangeClient, OrderAck
from app.services.ledger import PositionLedger, SideRule, active_positions
from ingestion.client import ClobClient
from ingestion.normalize import normalize_trades

from .context import CycleContext
from .strategies import BaseStrategy, available_strategies, get_strategy


@dataclass(slots=True)
class CycleSummary:
    cycle_id: int
    strategy: str
    dry_run: bool
    started_at: datetime
    finished_at: datetime | None = None
    trades_loaded: int = 0
    positions_held: int = 0
    markets_fetched: int = 0
    markets_selected: int = 0
    prices_missing: int = 0
    signals_generated: int = 0
    signals_rejected: int = 0
    close_signals: int = 0
    orders_submitted: int = 0
    orders_failed: int = 0
    signals: list[dict[str, Any]] = field(default_factory=list)
    failures: list[dict[str, str]] = field(default_factory=list)

    def record_failure(self, stage: str, subject: str, error: object) -> None:
        self.failures.append({"stage": stage, "subject": subject, "error": str(error)})

    def to_dict(self) -> dict[str, object]:
        return {
            "cycle_id": self.cycle_id,
            "strategy": self.strategy,
            "dry_run": self.dry_run,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "trades_loaded": self.trades_loaded,
            "positions_held": self.positions_held,
            "markets_fetched": self.markets_fetched,
            "markets_selected": self.markets_selected,
            "prices_missing": self.prices_missing,
            "signals_generated": self.signals_generated,
            "signals_rejected": self.signals_rejected,
            "close_signals": self.close_signals,
            "orders_submitted": self.orders_submitted,
            "orders_failed": self.orders_failed,
            "signals": self.signals,
            "failures": self.failures,
        }


class TradingBot:
    """Run one strategy against an exchange, one cycle at a time."""

    def __init__(
        self,
        settings: Settings,
        exchange: ExchangeClient,
        strategy: BaseStrategy,
        *,
        clock: Clock = utc_now,
        sleep: Callable[[float], None] = time.sleep,
        side_rule: SideRule = SideRule.NET_SIGN,
        dry_run: bool | None = None,
    ) -> None:
        self.settings = settings
        self.exchange = exchange
        self.strategy = strategy
        self.clock = clock
        self._sleep = sleep
        self.side_rule = side_rule
        self.dry_run = settings.dry_run if dry_run is None else dry_run
        self.cycles_run = 0
        self.ledger: PositionLedger | None = None

    def _lookup_prices(self, token_ids: Sequence[str]) -> dict[str, float | None]:
        return run_in_batches(
            token_ids,
            self.exchange.get_midpoint,
            batch_size=self.settings.lookup_batch_size,
            delay_seconds=self.settings.lookup_batch_delay_seconds,
            label="Midpoint lookup",
            sleep=self._sleep,
        )

    @staticmethod
    def _market_position(ledger: PositionLedger, market: Market) -> Position | None:
        """Prefer the YES holding; fall back to any other held token of the market."""

        held: list[Position] = []
        for token in market.tokens:
            position = ledger.position(token.token_id)
            if position is not None and position.size > 0:
                held.append(position)
        yes_token = market.yes_token
        for position in held:
            if yes_token is not None and position.token_id == yes_token.token_id:
                return position
        return held[0] if held else None

    def _submit(self, signal: TradeSignal) -> OrderAck:
        try:
            return self.exchange.submit_order(signal)
        except TradingError as exc:
            return OrderAck(success=False, error_message=str(exc))
        except Exception as exc:  # noqa: BLE001 - one failed order must not abort the cycle
            logger.exception("Order submission for {} raised", signal.token_id)
            return OrderAck(success=False, error_message=f"{type(exc).__name__}: {exc}")

    def _execute(
        self,
        context: CycleContext,
        summary: CycleSummary,
        signal: TradeSignal,
        *,
        closing: bool = False,
    ) -> bool:
        summary.signals_generated += 1
        if not self.strategy.validate_signal(signal, closing=closing):
            summary.signals_rejected += 1
            return False

        record = signal.to_dict()
        record["closing"] = closing
        if context.dry_run:
            logger.info(
                "[dry-run] {} {} {} @ {:.4f}: {}",
                signal.side.value,
                signal.size,
                signal.token_id,
                signal.price,
                signal.reason,
            )
            record["status"] = "dry_run"
            summary.signals.append(record)
            return True

        ack = self._submit(signal)
        if not ack.success:
            # Local state is untouched; the next cycle re-reads trades from the exchange.
            logger.error(
                "Order for {} failed: {}", signal.token_id, ack.error_message or "no acknowledgment"
            )
            summary.orders_failed += 1
            summary.record_failure("submit", signal.token_id, ack.error_message or "rejected")
            record["status"] = "failed"
            summary.signals.append(record)
            return False

        context.ledger.record(
            Trade(
                token_id=signal.token_id,
                side=signal.side,
                size=signal.size,
                price=signal.price,
                timestamp=self.clock(),
                trade_id=ack.order_id,
                condition_id=signal.market.condition_id,
            )
        )
        summary.orders_submitted += 1
        record["status"] = "submitted"
        record["order_id"] = ack.order_id
        summary.signals.append(record)
        logger.info(
            "Order {} accepted: {} {} {} @ {:.4f}",
            ack.order_id,
            signal.side.value,
            signal.size,
            signal.token_id,
            signal.price,
        )
        return True

    def _close_positions(
        self,
        context: CycleContext,
        summary: CycleSummary,
        positions: dict[str, Position],
        markets_by_token: dict[str, Market],
        prices: dict[str, float | None],
    ) -> None:
        for token_id, position in positions.items():
            market = markets_by_token.get(token_id)
            price = prices.get(token_id)
            if market is None or price is None:
                continue
            if position.position_type is not PositionType.LONG:
                continue
            try:
                should_close = self.strategy.should_close_position(market, position, price)
            except Exception as exc:  # noqa: BLE001 - one market must not abort the cycle
                logger.exception("Close check failed for {}", token_id)
                summary.record_failure("close_check", token_id, exc)
                continue
            if not should_close:
                continue
            summary.close_signals += 1
            signal = self.strategy.close_signal(market, position, price)
            if self._execute(context, summary, signal, closing=True):
                context.closed_tokens.add(token_id)

    def _open_positions(
        self,
        context: CycleContext,
        summary: CycleSummary,
        markets: Sequence[Market],
        prices: dict[str, float | None],
    ) -> None:
        for market in markets:
            token = market.yes_token
            if token is None:
                continue
            if any(t.token_id in context.closed_tokens for t in market.tokens):
                continue
            price = prices.get(token.token_id)
            if price is None:
                summary.prices_missing += 1
                continue
            position = self._market_position(context.ledger, market)
            try:
                signals = self.strategy.generate_signals(market, price, position)
            except Exception as exc:  # noqa: BLE001 - one market must not abort the cycle
                logger.exception("Signal generation failed for {}", market.condition_id)
                summary.record_failure("signals", market.condition_id, exc)
                continue
            for signal in signals:
                self._execute(context, summary, signal)

    def run_cycle(self) -> CycleSummary:
        self.cycles_run += 1
        started_at = self.clock()
        summary = CycleSummary(
            cycle_id=self.cycles_run,
            strategy=self.strategy.name,
            dry_run=self.dry_run,
            started_at=started_at,
        )
        logger.info(
            "Cycle {} started (strategy={}, dry_run={})",
            self.cycles_run,
            self.strategy.name,
            self.dry_run,
        )
        self.strategy.begin_cycle()

        trades = self.exchange.get_trades()
        summary.trades_loaded = len(trades)
        ledger = PositionLedger.from_trades(trades, side_rule=self.side_rule)
        self.ledger = ledger
        context = CycleContext(
            cycle_id=self.cycles_run,
            started_at=started_at,
            settings=self.settings,
            dry_run=self.dry_run,
            ledger=ledger,
        )
        held = active_positions(ledger.positions())
        summary.positions_held = len(held)

        markets = list(self.exchange.get_markets())
        summary.markets_fetched = len(markets)
        markets_by_token = {
            token.token_id: market for market in markets for token in market.tokens
        }
        selected = self.strategy.filter_markets(markets)
        summary.markets_selected = len(selected)

        token_ids = [market.yes_token.token_id for market in selected if market.yes_token]
        token_ids += [token_id for token_id in held if token_id in markets_by_token]
        prices = self._lookup_prices(token_ids)

        self._close_positions(context, summary, held, markets_by_token, prices)
        self._open_positions(context, summary, selected, prices)

        summary.finished_at = self.clock()
        logger.info(
            "Cycle {} finished: {} signals, {} rejected, {} submitted, {} failed",
            summary.cycle_id,
            summary.signals_generated,
            summary.signals_rejected,
            summary.orders_submitted,
            summary.orders_failed,
        )
        return summary

    def run_forever(self, max_cycles: int | None = None) -> list[CycleSummary]:
        """Run cycles back to back; an error costs one backoff, never the loop."""

        summaries: list[CycleSummary] = []
        attempts = 0
        while max_cycles is None or attempts < max_cycles:
            attempts += 1
            try:
                summaries.append(self.run_cycle())
            except Exception:  # noqa: BLE001 - the polling loop must survive any cycle error
                logger.exception(
                    "Trading cycle failed; retrying in {}s",
                    self.settings.error_backoff_seconds,
                )
                self._sleep(self.settings.error_backoff_seconds)
                continue
            if max_cycles is None or attempts < max_cycles:
                self._sleep(self.settings.update_interval_seconds)
        return summaries


class PublicDataExchange:
    """Exchange view backed by public CLOB data and a recorded trade history.

    Order submission needs an authenticated client, so this view only supports
    dry runs.
    """

    def __init__(self, clob: ClobClient, trades: Sequence[Trade] = ()) -> None:
        self.clob = clob
        self.trades = list(trades)

    def get_trades(self) -> list[Trade]:
        return list(self.trades)

    def get_markets(self) -> list[Market]:
        return self.clob.get_markets()

    def get_midpoint(self, token_id: str) -> float | None:
        return self.clob.get_midpoint(token_id)

    def get_order_book(self, token_id: str) -> OrderBook:
        return self.clob.get_order_book(token_id)

    def submit_order(self, signal: TradeSignal) -> OrderAck:
        raise OrderSubmissionError("public data exchange cannot submit orders")


def load_trades(path: Path) -> list[Trade]:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, dict):
        payload = payload.get("data") or payload.get("trades") or []
    if not isinstance(payload, list):
        raise ValueError(f"{path} does not contain a list of trades")
    return normalize_trades([item for item in payload if isinstance(item, dict)])


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Run the Polymarket trading loop")
    parser.add_argument(
        "--strategy",
        choices=available_strategies(),
        default=settings.strategy,
        help="Signal generator to run (default: %(default)s)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single cycle and exit",
    )
    parser.add_argument(
        "--max-cycles",
        type=int,
        default=None,
        help="Stop after this many cycles",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Generate and validate signals without submitting orders",
    )
    parser.add_argument(
        "--trades",
        type=Path,
        default=None,
        help="JSON file with the wallet's trade history",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    args = _parse_args(argv)
    settings = get_settings()
    if not (args.dry_run or settings.dry_run):
        raise SystemExit(
            "Live trading needs an authenticated exchange client; run with --dry-run "
            "or construct TradingBot with your own ExchangeClient."
        )

    trades = load_trades(args.trades) if args.trades else []
    with ClobClient() as clob:
        exchange = PublicDataExchange(clob, trades)
        strategy = get_strategy(args.strategy, settings, order_books=clob.get_order_book)
        bot = TradingBot(settings, exchange, strategy, dry_run=True)
        max_cycles = 1 if args.once else args.max_cycles
        summaries = bot.run_forever(max_cycles=max_cycles)

    print(json.dumps([summary.to_dict() for summary in summaries], indent=2, sort_keys=True))


if __name__ == "__main__":
    main()
