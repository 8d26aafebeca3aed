from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from uniswapex_keeper.batching import retry_call, run_batched
from uniswapex_keeper.chain import RangeScanner, TokenAddressCache, checksum
from uniswapex_keeper.config import KeeperConfig
from uniswapex_keeper.contracts import ERC20_ABI, UNISWAP_FACTORY_ABI, UNISWAPEX_ABI
from uniswapex_keeper.models import ChainEvent, to_bytes
from uniswapex_keeper.storage import Storage

LOGGER = logging.getLogger("uniswapex_keeper")

RawOrderCallback = Callable[[bytes, ChainEvent], None]


def is_order_transfer(tx_input: Any, selector: str, expected_length: int) -> bool:
    data = to_bytes(tx_input)
    return len(data) == expected_length and data[:4] == to_bytes(selector)


class Indexer:
    """Discovers UniswapEx orders between the cursor and a target block.

    ETH orders come straight from ``DepositETH`` events. Token orders are
    plain ERC20 transfers to the order vault with the order appended to the
    calldata, so every Uniswap token's ``Transfer`` log is scanned and the
    originating transaction input is matched on selector and exact length.
    """

    def __init__(self, w3, config: KeeperConfig, storage: Storage, scanner: RangeScanner | None = None) -> None:
        self.w3 = w3
        self.config = config
        self.storage = storage
        self.scanner = scanner or RangeScanner()
        self.factory = w3.eth.contract(address=checksum(config.factory_address), abi=UNISWAP_FACTORY_ABI)
        self.uniswapex = w3.eth.contract(address=checksum(config.uniswapex_address), abi=UNISWAPEX_ABI)
        self.denylist = {address.lower() for address in config.token_denylist}
        self.token_cache = TokenAddressCache(self._fetch_token_address)
        self.last_monitored = storage.get_latest_block()

    def _retry(self, operation: Callable[[], Any], label: str) -> Any:
        return retry_call(
            operation,
            attempts=self.config.retry_attempts,
            backoff_seconds=self.config.retry_backoff_seconds,
            label=label,
        )

    def _fetch_token_address(self, index: int) -> str:
        return self._retry(lambda: self.factory.functions.getTokenWithId(index).call(), f"getTokenWithId {index}")

    def get_orders(self, to_block: int, on_raw_order: RawOrderCallback) -> None:
        from_block = self.last_monitored
        if to_block <= from_block:
            LOGGER.debug("indexer_skip from=%s to=%s", from_block, to_block)
            return
        LOGGER.debug("indexer_range from=%s to=%s", from_block, to_block)

        self._scan_eth_orders(from_block, to_block, on_raw_order)

        total = int(self._retry(lambda: self.factory.functions.tokenCount().call(), "tokenCount"))

        def scan_pool(index: int) -> None:
            token_address = self.token_cache.resolve(index)
            if token_address.lower() in self.denylist:
                LOGGER.debug("indexer_skip_token index=%s token=%s", index, token_address)
                return
            LOGGER.info("indexer_token %s/%s token=%s", index, total, token_address)
            self._scan_token_orders(token_address, from_block, to_block, on_raw_order)

        run_batched(
            list(range(1, total + 1)),
            scan_pool,
            batch_size=self.config.outer_batch_size,
            retry_attempts=self.config.batch_retry_attempts,
        )

        LOGGER.info("indexer_finished from=%s to=%s", from_block, to_block)
        self.last_monitored = to_block
        self.storage.save_block(to_block)

    def _scan_eth_orders(self, from_block: int, to_block: int, on_raw_order: RawOrderCallback) -> None:
        events = self._retry(
            lambda: self.scanner.scan(self.uniswapex, "DepositETH", from_block, to_block),
            "DepositETH",
        )
        LOGGER.debug("indexer_eth_events count=%s", len(events))
        for event in events:
            order_id = event.order_id
            if self.storage.exist_order(order_id):
                LOGGER.info("indexer_eth_order_known id=%s", order_id)
                continue
            LOGGER.info("indexer_eth_order tx=%s", event.transaction_hash)
            on_raw_order(to_bytes(event.args["_data"]), event)

    def _token_contract(self, token_address: str):
        return self.w3.eth.contract(address=checksum(token_address), abi=ERC20_ABI)

    def _scan_token_orders(
        self,
        token_address: str,
        from_block: int,
        to_block: int,
        on_raw_order: RawOrderCallback,
    ) -> None:
        token = self._token_contract(token_address)
        events = self._retry(
            lambda: self.scanner.scan(token, "Transfer", from_block, to_block),
            f"Transfer {token_address}",
        )
        LOGGER.info("indexer_transfer_events token=%s count=%s", token_address, len(events))
        checked: set[str] = set()
        claim_lock = threading.Lock()

        def check_event(event: ChainEvent) -> None:
            tx_hash = event.transaction_hash
            with claim_lock:
                if tx_hash in checked:
                    return
                checked.add(tx_hash)
            try:
                if self.storage.exist_order(event.order_id):
                    LOGGER.info("indexer_token_order_known id=%s", event.order_id)
                    return
                tx = self._retry(lambda: self.w3.eth.get_transaction(tx_hash), f"getTransaction {tx_hash}")
                tx_input = to_bytes(tx["input"]) if tx else b""
                if is_order_transfer(tx_input, self.config.order_tx_selector, self.config.order_tx_length):
                    LOGGER.info("indexer_token_order token=%s tx=%s", token_address, tx_hash)
                    on_raw_order(tx_input, event)
            except Exception:
                # released so the batch retry examines it again
                with claim_lock:
                    checked.discard(tx_hash)
                raise

        run_batched(
            events,
            check_event,
            batch_size=self.config.inner_batch_size,
            retry_attempts=self.config.batch_retry_attempts,
        )

    def status(self) -> dict[str, Any]:
        return {
            "last_monitored": self.last_monitored,
            "cached_tokens": len(self.token_cache),
            "uniswapex": self.config.uniswapex_address,
        }
