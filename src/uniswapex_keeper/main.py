from __future__ import annotations

import argparse
import json
import logging
import signal
import time
from typing import Iterable

from uniswapex_keeper.book import ChainBook
from uniswapex_keeper.chain import build_web3
from uniswapex_keeper.codec import OrderDecodeError, build_order
from uniswapex_keeper.config import ConfigError, KeeperConfig, load_config
from uniswapex_keeper.executor import Executor, Relayer
from uniswapex_keeper.indexer import Indexer
from uniswapex_keeper.models import ChainEvent, RoundSummary
from uniswapex_keeper.relayer import ChainRelayer
from uniswapex_keeper.storage import Storage

LOGGER = logging.getLogger("uniswapex_keeper")


class KeeperRuntime:
    def __init__(
        self,
        config: KeeperConfig,
        *,
        w3=None,
        storage: Storage | None = None,
        indexer: Indexer | None = None,
        executor: Executor | None = None,
    ) -> None:
        self.config = config
        self.w3 = w3 if w3 is not None else build_web3(config)
        self.storage = storage if storage is not None else Storage(config.database_path, config.from_block)
        self.indexer = indexer if indexer is not None else Indexer(self.w3, config, self.storage)
        if executor is None:
            relayer: Relayer | None = None
            if config.relayer_enabled:
                relayer = ChainRelayer(self.w3, config)
            else:
                LOGGER.warning("RELAYER_PRIVATE_KEY not set, fillable orders will only be reported")
            executor = Executor(
                ChainBook(self.w3, config),
                relayer,
                self.storage,
                exists_retry_attempts=config.retry_attempts,
                fill_retry_attempts=config.fill_retry_attempts,
                backoff_seconds=config.retry_backoff_seconds,
            )
        self.executor = executor
        self._keep_running = True

    def stop(self) -> None:
        self._keep_running = False

    def close(self) -> None:
        self.storage.close()

    def on_raw_order(self, data: bytes, event: ChainEvent) -> None:
        try:
            order = build_order(data, event, selector=self.config.order_tx_selector)
        except OrderDecodeError as exc:
            LOGGER.warning("order_decode_failed tx=%s error=%s", event.transaction_hash, exc)
            return
        if self.storage.exist_order(order.order_id):
            return
        self.storage.save_order(order)
        LOGGER.info(
            "order_saved id=%s from=%s to=%s amount=%s",
            order.order_id,
            order.from_token,
            order.to_token,
            order.amount,
        )

    def target_block(self) -> int:
        head = int(self.w3.eth.block_number)
        return max(0, head - self.config.confirmation_blocks)

    def index(self, to_block: int | None = None) -> bool:
        target = self.target_block() if to_block is None else int(to_block)
        try:
            self.indexer.get_orders(target, self.on_raw_order)
        except Exception as exc:
            LOGGER.error(
                "index_failed from=%s to=%s error=%s",
                self.indexer.last_monitored,
                target,
                exc,
            )
            return False
        return True

    def cycle(self) -> RoundSummary:
        self.index()
        return self.executor.watch_round()

    def run(self, once: bool = False) -> None:
        while self._keep_running:
            started = time.time()
            self.cycle()
            if once:
                return
            elapsed = time.time() - started
            sleep_seconds = max(0.0, self.config.poll_interval_seconds - elapsed)
            if sleep_seconds > 0:
                time.sleep(sleep_seconds)


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    for noisy in ("httpx", "httpcore", "urllib3", "web3"):
        logging.getLogger(noisy).setLevel(logging.ERROR)


def _load_checked_config() -> KeeperConfig | None:
    try:
        config = load_config()
        _setup_logging(config.log_level)
        config.validate()
    except ConfigError as exc:
        _setup_logging("INFO")
        LOGGER.error("Invalid configuration: %s", exc)
        return None
    return config


def _run_command(args: argparse.Namespace) -> int:
    config = _load_checked_config()
    if config is None:
        return 2
    try:
        runtime = KeeperRuntime(config)
    except Exception as exc:
        LOGGER.error("Keeper preflight failed: %s", exc)
        return 2
    LOGGER.info(
        "Starting keeper uniswapex=%s from_block=%s relayer=%s",
        config.uniswapex_address,
        runtime.indexer.last_monitored,
        "on" if config.relayer_enabled else "off",
    )
    signal_count = {"count": 0}

    def _handle_signal(signum: int, _frame: object) -> None:
        signal_count["count"] += 1
        if signal_count["count"] >= 2:
            LOGGER.error("Received signal %s again, forcing exit now", signum)
            raise SystemExit(130)
        LOGGER.warning(
            "Received signal %s, stopping after this cycle (press Ctrl+C again to force-exit)",
            signum,
        )
        runtime.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)
    try:
        runtime.run(once=bool(args.once))
        return 0
    except Exception as exc:
        LOGGER.error("Fatal runtime error: %s", exc)
        return 2
    finally:
        runtime.close()


def _scan_command(args: argparse.Namespace) -> int:
    config = _load_checked_config()
    if config is None:
        return 2
    w3 = build_web3(config)
    storage = Storage(config.database_path, config.from_block)
    try:
        indexer = Indexer(w3, config, storage)
        runtime = KeeperRuntime(config, w3=w3, storage=storage, indexer=indexer, executor=_NoopExecutor())
        ok = runtime.index(args.to_block)
        print(json.dumps(indexer.status(), indent=2))
        return 0 if ok else 2
    finally:
        storage.close()


def _pending_command(args: argparse.Namespace) -> int:
    del args
    try:
        config = load_config()
    except ConfigError as exc:
        _setup_logging("INFO")
        LOGGER.error("Invalid configuration: %s", exc)
        return 2
    _setup_logging(config.log_level)
    storage = Storage(config.database_path, config.from_block)
    try:
        orders = [order.to_dict() for order in storage.get_pending_orders()]
        print(json.dumps({"pending": len(orders), "orders": orders}, indent=2))
    finally:
        storage.close()
    return 0


class _NoopExecutor:
    def watch_round(self) -> RoundSummary:
        return RoundSummary()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="uniswapex_keeper", description="UniswapEx limit order indexer and executor"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run the index + execute loop")
    run.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    run.set_defaults(func=_run_command)

    scan = sub.add_parser("scan", help="Run one indexing pass and exit")
    scan.add_argument(
        "--to-block",
        type=int,
        default=None,
        help="Scan up to this block instead of the chain head",
    )
    scan.set_defaults(func=_scan_command)

    pending = sub.add_parser("pending", help="Print pending orders from SQLite")
    pending.set_defaults(func=_pending_command)
    return parser


def cli(argv: Iterable[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    return int(args.func(args))


def main() -> None:
    raise SystemExit(cli())


if __name__ == "__main__":
    main()
