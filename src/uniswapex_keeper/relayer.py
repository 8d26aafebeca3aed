from __future__ import annotations

import logging
from typing import Any

from eth_account import Account
from eth_account.messages import encode_defunct

from uniswapex_keeper.book import encode_aux_data
from uniswapex_keeper.chain import checksum
from uniswapex_keeper.config import KeeperConfig
from uniswapex_keeper.contracts import UNISWAPEX_ABI
from uniswapex_keeper.models import Order, to_hex

LOGGER = logging.getLogger("uniswapex_keeper")


class FillFailedError(RuntimeError):
    pass


def receipt_status(receipt: Any) -> int:
    raw = receipt.get("status") if isinstance(receipt, dict) else getattr(receipt, "status", None)
    if raw is None:
        return 0
    if isinstance(raw, str):
        return int(raw, 16) if raw.startswith("0x") else int(raw)
    return int(raw)


class ChainRelayer:
    def __init__(self, w3, config: KeeperConfig, receipt_timeout_seconds: float = 180.0) -> None:
        if not config.relayer_private_key:
            raise RuntimeError("Missing RELAYER_PRIVATE_KEY for filling orders")
        self.w3 = w3
        self.config = config
        self.receipt_timeout_seconds = receipt_timeout_seconds
        self.aux_data = encode_aux_data(config.handler_address)
        self.uniswapex = w3.eth.contract(address=checksum(config.uniswapex_address), abi=UNISWAPEX_ABI)
        self.address = Account.from_key(config.relayer_private_key).address

    def witness_signature(self, order: Order) -> bytes:
        # the order secret proves to the contract that this relayer may execute it
        from web3 import Web3

        digest = Web3.solidity_keccak(["address"], [self.address])
        signed = Account.sign_message(encode_defunct(primitive=digest), private_key=order.secret)
        return bytes(signed.signature)

    def fill_order(self, order: Order) -> str:
        fn = self.uniswapex.functions.executeOrder(
            checksum(order.from_token),
            checksum(order.to_token),
            int(order.min_return),
            int(order.fee),
            checksum(order.owner),
            self.witness_signature(order),
            self.aux_data,
        )
        tx_hash = self._send_function_tx(fn)
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout_seconds)
        if receipt_status(receipt) != 1:
            raise FillFailedError(f"fill transaction reverted tx={to_hex(tx_hash)} order={order.order_id}")
        LOGGER.info("fill_confirmed order=%s tx=%s", order.order_id, to_hex(tx_hash))
        return to_hex(tx_hash)

    def _send_function_tx(self, fn):
        w3 = self.w3
        nonce = int(w3.eth.get_transaction_count(self.address, "pending"))
        gas_price = max(1, int(w3.eth.gas_price))
        tx = fn.build_transaction(
            {
                "from": self.address,
                "nonce": nonce,
                "chainId": int(self.config.chain_id),
                "gasPrice": gas_price,
            }
        )
        gas_limit = int(tx.get("gas", 0) or 0)
        if gas_limit <= 0:
            gas_limit = int(w3.eth.estimate_gas(tx))
        tx["gas"] = max(21_000, int(gas_limit * 1.20))

        signed = Account.sign_transaction(tx, self.config.relayer_private_key)
        return w3.eth.send_raw_transaction(signed.raw_transaction)
