from __future__ import annotations

from dataclasses import replace
from pathlib import Path
import sys
import threading
import time
from types import SimpleNamespace
from typing import Any

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from uniswapex_keeper.config import load_config  # noqa: E402
from uniswapex_keeper.models import Order  # noqa: E402

FACTORY = "0x" + "fa" * 20
UNISWAPEX = "0x" + "ee" * 20
TOKEN_A = "0x" + "a1" * 20
TOKEN_B = "0x" + "b2" * 20
USDT = "0xdac17f958d2ee523a2206206994597c13d831ec7"


def build_config(**kwargs):
    cfg = replace(
        load_config(),
        factory_address=FACTORY,
        uniswapex_address=UNISWAPEX,
        database_path=":memory:",
        from_block=100,
        retry_attempts=2,
        batch_retry_attempts=1,
        fill_retry_attempts=4,
        retry_backoff_seconds=0.0,
        token_denylist=(USDT,),
    )
    return replace(cfg, **kwargs)


def tx_hash(n: int) -> str:
    return "0x" + f"{n:064x}"


def make_log(
    block: int,
    tx: int,
    log_index: int = 0,
    *,
    event: str = "Transfer",
    address: str = TOKEN_A,
    args: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "event": event,
        "address": address,
        "blockNumber": block,
        "transactionHash": tx_hash(tx),
        "logIndex": log_index,
        "args": args or {},
    }


def build_order(order_id: str = "0xabc-0", executed_tx: str | None = None) -> Order:
    return Order(
        order_id=order_id,
        from_token="0x" + "11" * 20,
        to_token="0x" + "22" * 20,
        min_return=10**18,
        fee=10**15,
        owner="0x" + "33" * 20,
        secret="0x" + "44" * 32,
        witness="0x" + "55" * 20,
        amount=5 * 10**18,
        raw_data="0x",
        block_number=150,
        tx_hash="0xabc",
        executed_tx=executed_tx,
    )


class FakeEvent:
    """``contract.events.<Name>`` stand-in serving logs by block range."""

    def __init__(
        self,
        logs: list[dict[str, Any]] | None = None,
        *,
        ceiling: int | None = None,
        error: Exception | None = None,
        delays: dict[tuple[int, int], float] | None = None,
    ) -> None:
        self.logs = list(logs or [])
        self.ceiling = ceiling
        self.error = error
        self.delays = delays or {}
        self.calls: list[tuple[int, int]] = []
        self._lock = threading.Lock()

    def get_logs(self, from_block: int, to_block: int) -> list[dict[str, Any]]:
        with self._lock:
            self.calls.append((from_block, to_block))
        delay = self.delays.get((from_block, to_block))
        if delay:
            time.sleep(delay)
        if self.error is not None:
            raise self.error
        matched = [log for log in self.logs if from_block <= log["blockNumber"] <= to_block]
        if self.ceiling is not None and len(matched) > self.ceiling:
            raise ValueError({"code": -32005, "message": "query returned more than 10000 results"})
        return matched


class _Call:
    def __init__(self, fn) -> None:
        self._fn = fn

    def call(self):
        return self._fn()


class FakeFactoryFunctions:
    def __init__(self, tokens: list[str], count_error: Exception | None = None) -> None:
        self.tokens = tokens
        self.count_error = count_error
        self.token_lookups: list[int] = []

    def tokenCount(self) -> _Call:
        def _count() -> int:
            if self.count_error is not None:
                raise self.count_error
            return len(self.tokens)

        return _Call(_count)

    def getTokenWithId(self, index: int) -> _Call:
        def _lookup() -> str:
            self.token_lookups.append(index)
            return self.tokens[index - 1]

        return _Call(_lookup)


class FakeContract:
    def __init__(self, address: str, events: dict[str, FakeEvent] | None = None, functions: Any = None) -> None:
        self.address = address
        self.events = SimpleNamespace(**(events or {}))
        self.functions = functions


class FakeEth:
    def __init__(self) -> None:
        self.contracts: dict[str, FakeContract] = {}
        self.transactions: dict[str, dict[str, Any]] = {}
        self.transaction_lookups: list[str] = []
        self.block_number = 0
        self._lock = threading.Lock()

    def contract(self, address: str, abi: Any = None) -> FakeContract:
        key = address.lower()
        if key not in self.contracts:
            self.contracts[key] = FakeContract(address, {"Transfer": FakeEvent()})
        return self.contracts[key]

    def get_transaction(self, tx: str) -> dict[str, Any] | None:
        with self._lock:
            self.transaction_lookups.append(tx)
        return self.transactions.get(tx)


class FakeWeb3:
    def __init__(self, tokens: list[str] | None = None) -> None:
        self.eth = FakeEth()
        self.factory_functions = FakeFactoryFunctions(list(tokens or []))
        self.eth.contracts[FACTORY] = FakeContract(FACTORY, functions=self.factory_functions)
        self.eth.contracts[UNISWAPEX] = FakeContract(UNISWAPEX, {"DepositETH": FakeEvent()})

    def event(self, address: str, name: str) -> FakeEvent:
        return getattr(self.eth.contract(address).events, name)

    def set_events(self, address: str, name: str, fake: FakeEvent) -> FakeEvent:
        contract = self.eth.contract(address)
        setattr(contract.events, name, fake)
        return fake


class MemoryStorage:
    def __init__(self, latest_block: int = 100) -> None:
        self.orders: dict[str, Order] = {}
        self.blocks: list[int] = []
        self.latest_block = latest_block
        self._lock = threading.Lock()

    def save_order(self, order: Order) -> None:
        with self._lock:
            current = self.orders.get(order.order_id)
            if current is not None and current.executed_tx is not None:
                return
            self.orders[order.order_id] = replace(order)

    def exist_order(self, order_id: str) -> bool:
        with self._lock:
            return order_id in self.orders

    def get_pending_orders(self) -> list[Order]:
        with self._lock:
            return [replace(order) for order in self.orders.values() if order.executed_tx is None]

    def save_block(self, block: int) -> None:
        self.blocks.append(block)
        self.latest_block = max(self.latest_block, block)

    def get_latest_block(self) -> int:
        return self.latest_block

    def close(self) -> None:
        return
