from __future__ import annotations

from typing import Any

from eth_abi import encode

from uniswapex_keeper.chain import checksum
from uniswapex_keeper.config import KeeperConfig
from uniswapex_keeper.contracts import UNISWAPEX_ABI
from uniswapex_keeper.models import Order


def encode_aux_data(handler_address: str) -> bytes:
    if not handler_address:
        return b""
    return encode(["address"], [checksum(handler_address)])


def order_call_args(order: Order) -> list[Any]:
    return [
        checksum(order.from_token),
        checksum(order.to_token),
        int(order.min_return),
        int(order.fee),
        checksum(order.owner),
        checksum(order.witness),
    ]


class ChainBook:
    """Order validity as reported by the UniswapEx contract views."""

    def __init__(self, w3, config: KeeperConfig) -> None:
        self.w3 = w3
        self.aux_data = encode_aux_data(config.handler_address)
        self.uniswapex = w3.eth.contract(address=checksum(config.uniswapex_address), abi=UNISWAPEX_ABI)

    def exists(self, order: Order) -> bool:
        return bool(self.uniswapex.functions.existOrder(*order_call_args(order)).call())

    def can_execute(self, order: Order) -> bool:
        return bool(
            self.uniswapex.functions.canExecuteOrder(*order_call_args(order), self.aux_data).call()
        )
