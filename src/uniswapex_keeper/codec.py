from __future__ import annotations

from typing import Any

from eth_abi import decode, encode

from uniswapex_keeper.config import TRANSFER_SELECTOR
from uniswapex_keeper.models import ChainEvent, Order, to_bytes, to_hex

ORDER_DATA_TYPES = ["address", "address", "uint256", "uint256", "address", "bytes32", "address"]
TRANSFER_WITH_ORDER_TYPES = ["address", "uint256", "bytes"]


class OrderDecodeError(ValueError):
    pass


def encode_order_data(
    from_token: str,
    to_token: str,
    min_return: int,
    fee: int,
    owner: str,
    secret: bytes,
    witness: str,
) -> bytes:
    return encode(ORDER_DATA_TYPES, [from_token, to_token, min_return, fee, owner, secret, witness])


def _order_fields(data: bytes) -> dict[str, Any]:
    try:
        from_token, to_token, min_return, fee, owner, secret, witness = decode(ORDER_DATA_TYPES, data)
    except Exception as exc:
        raise OrderDecodeError(f"undecodable order data len={len(data)}") from exc
    return {
        "from_token": str(from_token).lower(),
        "to_token": str(to_token).lower(),
        "min_return": int(min_return),
        "fee": int(fee),
        "owner": str(owner).lower(),
        "secret": to_hex(secret),
        "witness": str(witness).lower(),
    }


def decode_eth_order(data: bytes, event: ChainEvent) -> Order:
    fields = _order_fields(data)
    return Order(
        order_id=event.order_id,
        amount=int(event.args.get("_amount", 0)),
        raw_data=to_hex(data),
        block_number=event.block_number,
        tx_hash=event.transaction_hash,
        **fields,
    )


def decode_token_order(tx_input: bytes, event: ChainEvent, selector: str = TRANSFER_SELECTOR) -> Order:
    if tx_input[:4] != to_bytes(selector):
        raise OrderDecodeError(f"token order input does not start with {selector}")
    try:
        _vault, amount, data = decode(TRANSFER_WITH_ORDER_TYPES, tx_input[4:])
    except Exception as exc:
        raise OrderDecodeError(f"undecodable transfer input len={len(tx_input)}") from exc
    fields = _order_fields(data)
    return Order(
        order_id=event.order_id,
        amount=int(amount),
        raw_data=to_hex(tx_input),
        block_number=event.block_number,
        tx_hash=event.transaction_hash,
        **fields,
    )


def build_order(data: Any, event: ChainEvent, selector: str = TRANSFER_SELECTOR) -> Order:
    """Decode a raw payload; ``selector`` must match the indexer's order selector."""
    payload = to_bytes(data)
    if payload[:4] == to_bytes(selector):
        return decode_token_order(payload, event, selector)
    return decode_eth_order(payload, event)
