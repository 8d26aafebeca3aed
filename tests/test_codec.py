from __future__ import annotations

import unittest

from eth_abi import encode

from uniswapex_keeper.codec import (
    OrderDecodeError,
    TRANSFER_WITH_ORDER_TYPES,
    build_order,
    decode_eth_order,
    decode_token_order,
    encode_order_data,
)
from uniswapex_keeper.config import TOKEN_ORDER_TX_LENGTH, TRANSFER_SELECTOR
from uniswapex_keeper.indexer import is_order_transfer
from uniswapex_keeper.models import ChainEvent
from tests.helpers import TOKEN_A, UNISWAPEX, make_log

FROM_TOKEN = "0x" + "11" * 20
TO_TOKEN = "0x" + "22" * 20
OWNER = "0x" + "33" * 20
WITNESS = "0x" + "55" * 20
SECRET = bytes.fromhex("44" * 32)
VAULT = "0x" + "66" * 20


def _order_data() -> bytes:
    return encode_order_data(FROM_TOKEN, TO_TOKEN, 990, 7, OWNER, SECRET, WITNESS)


def _token_input(amount: int = 5000) -> bytes:
    return bytes.fromhex(TRANSFER_SELECTOR[2:]) + encode(TRANSFER_WITH_ORDER_TYPES, [VAULT, amount, _order_data()])


class CodecTests(unittest.TestCase):
    def test_eth_order_amount_comes_from_event(self) -> None:
        event = ChainEvent.from_log(
            make_log(150, 1, 2, event="DepositETH", address=UNISWAPEX, args={"_amount": 10**18})
        )
        order = decode_eth_order(_order_data(), event)

        self.assertEqual(order.order_id, event.order_id)
        self.assertEqual(order.from_token, FROM_TOKEN)
        self.assertEqual(order.to_token, TO_TOKEN)
        self.assertEqual(order.min_return, 990)
        self.assertEqual(order.fee, 7)
        self.assertEqual(order.owner, OWNER)
        self.assertEqual(order.witness, WITNESS)
        self.assertEqual(order.secret, "0x" + "44" * 32)
        self.assertEqual(order.amount, 10**18)
        self.assertEqual(order.block_number, 150)
        self.assertIsNone(order.executed_tx)

    def test_token_order_input_has_expected_shape(self) -> None:
        tx_input = _token_input()
        self.assertEqual(len(tx_input), TOKEN_ORDER_TX_LENGTH)
        self.assertTrue(is_order_transfer(tx_input, TRANSFER_SELECTOR, TOKEN_ORDER_TX_LENGTH))

    def test_token_order_amount_comes_from_transfer(self) -> None:
        event = ChainEvent.from_log(make_log(160, 2, 0, address=TOKEN_A))
        order = decode_token_order(_token_input(amount=5000), event)

        self.assertEqual(order.amount, 5000)
        self.assertEqual(order.from_token, FROM_TOKEN)
        self.assertEqual(order.raw_data, "0x" + _token_input(amount=5000).hex())

    def test_build_order_dispatches_on_selector(self) -> None:
        transfer_event = ChainEvent.from_log(make_log(160, 2, 0, address=TOKEN_A))
        deposit_event = ChainEvent.from_log(
            make_log(150, 1, 0, event="DepositETH", address=UNISWAPEX, args={"_amount": 3})
        )

        self.assertEqual(build_order(_token_input(amount=9), transfer_event).amount, 9)
        self.assertEqual(build_order("0x" + _order_data().hex(), deposit_event).amount, 3)

    def test_build_order_uses_given_selector_for_token_orders(self) -> None:
        event = ChainEvent.from_log(make_log(160, 2, 0, address=TOKEN_A))
        tx_input = bytes.fromhex("deadbeef") + _token_input(amount=77)[4:]

        self.assertEqual(build_order(tx_input, event, selector="0xdeadbeef").amount, 77)
        with self.assertRaises(OrderDecodeError):
            build_order(tx_input, event)

    def test_garbage_payload_raises_decode_error(self) -> None:
        event = ChainEvent.from_log(make_log(150, 1, 0))
        with self.assertRaises(OrderDecodeError):
            build_order(b"\x01\x02\x03", event)
        with self.assertRaises(OrderDecodeError):
            decode_token_order(bytes.fromhex("a9059cbb") + b"\xff" * 40, event)


if __name__ == "__main__":
    unittest.main()
