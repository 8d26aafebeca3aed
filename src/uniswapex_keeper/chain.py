from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import logging
from typing import Any, Callable

from uniswapex_keeper.config import KeeperConfig
from uniswapex_keeper.models import ChainEvent

LOGGER = logging.getLogger("uniswapex_keeper")

RESULT_CEILING_MARKERS: tuple[str, ...] = (
    "more than 10000 results",
    "query returned more than",
    "exceeds max results",
)


def build_web3(config: KeeperConfig):
    from web3 import Web3

    provider = Web3.HTTPProvider(
        config.node_url,
        request_kwargs={"timeout": max(1.0, config.rpc_timeout_seconds)},
    )
    return Web3(provider)


def checksum(address: str) -> str:
    from web3 import Web3

    return Web3.to_checksum_address(address)


class RangeScanner:
    """Fetch event logs for a block range, bisecting on provider ceilings.

    A range the provider refuses for returning too many results is split at
    ``from + (to - from) // 2``; both halves are queried concurrently and
    include the pivot block (except for two block ranges, which split into
    their two blocks). Pivot events already returned by the lower half are
    dropped from the upper half when the two are joined.
    """

    def __init__(self, ceiling_markers: tuple[str, ...] = RESULT_CEILING_MARKERS) -> None:
        self.ceiling_markers = tuple(marker.lower() for marker in ceiling_markers)

    def is_ceiling_error(self, exc: Exception) -> bool:
        text = str(exc).lower()
        return any(marker in text for marker in self.ceiling_markers)

    def scan(self, contract: Any, event_name: str, from_block: int, to_block: int) -> list[ChainEvent]:
        event = getattr(contract.events, event_name)
        try:
            logs = event.get_logs(from_block=from_block, to_block=to_block)
        except Exception as exc:
            if from_block == to_block or not self.is_ceiling_error(exc):
                raise
            pivot = from_block + (to_block - from_block) // 2
            # a two block range would otherwise re-query itself as the upper half
            upper_start = pivot if pivot > from_block else pivot + 1
            LOGGER.debug(
                "scan_split address=%s event=%s range=%s-%s pivot=%s",
                getattr(contract, "address", ""),
                event_name,
                from_block,
                to_block,
                pivot,
            )
            with ThreadPoolExecutor(max_workers=2) as pool:
                lower_future = pool.submit(self.scan, contract, event_name, from_block, pivot)
                upper_future = pool.submit(self.scan, contract, event_name, upper_start, to_block)
                lower = lower_future.result()
                upper = upper_future.result()
            return self._join(lower, upper, pivot)

        events = [ChainEvent.from_log(log) for log in logs]
        events.sort(key=lambda item: item.position)
        return events

    @staticmethod
    def _join(lower: list[ChainEvent], upper: list[ChainEvent], pivot: int) -> list[ChainEvent]:
        seen = {
            (item.transaction_hash, item.log_index)
            for item in lower
            if item.block_number == pivot
        }
        if not seen:
            return lower + upper
        return lower + [
            item
            for item in upper
            if item.block_number != pivot or (item.transaction_hash, item.log_index) not in seen
        ]


class TokenAddressCache:
    """Pool index -> token address. Factory ids never change once assigned."""

    def __init__(self, resolver: Callable[[int], str]) -> None:
        self._resolver = resolver
        self._addresses: dict[int, str] = {}

    def __len__(self) -> int:
        return len(self._addresses)

    def __contains__(self, index: object) -> bool:
        return index in self._addresses

    def resolve(self, index: int) -> str:
        cached = self._addresses.get(index)
        if cached is not None:
            return cached
        address = str(self._resolver(index))
        self._addresses[index] = address
        return address
