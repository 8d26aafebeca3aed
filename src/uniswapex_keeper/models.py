from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Mapping

# executed_tx value for orders that disappeared on-chain without a fill by us
INVALIDATED_TX = "0x"


def to_bytes(value: Any) -> bytes:
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        text = value[2:] if value.startswith(("0x", "0X")) else value
        return bytes.fromhex(text)
    raise TypeError(f"cannot convert {type(value).__name__} to bytes")


def to_hex(value: Any) -> str:
    if isinstance(value, str):
        return value.lower() if value.startswith("0x") else "0x" + value.lower()
    return "0x" + to_bytes(value).hex()


def build_order_id(event: "ChainEvent") -> str:
    return f"{event.transaction_hash}-{event.log_index}"


@dataclass(frozen=True)
class ChainEvent:
    event: str
    address: str
    block_number: int
    transaction_hash: str
    log_index: int
    args: dict[str, Any] = field(default_factory=dict)

    @property
    def order_id(self) -> str:
        return build_order_id(self)

    @property
    def position(self) -> tuple[int, int]:
        return self.block_number, self.log_index

    @classmethod
    def from_log(cls, log: Mapping[str, Any]) -> "ChainEvent":
        # web3 hands back AttributeDict logs; tests hand back plain dicts
        return cls(
            event=str(log.get("event", "")),
            address=str(log.get("address", "")),
            block_number=int(log["blockNumber"]),
            transaction_hash=to_hex(log["transactionHash"]),
            log_index=int(log["logIndex"]),
            args=dict(log.get("args") or {}),
        )


@dataclass
class Order:
    order_id: str
    from_token: str
    to_token: str
    min_return: int
    fee: int
    owner: str
    secret: str
    witness: str
    amount: int
    raw_data: str
    block_number: int
    tx_hash: str
    executed_tx: str | None = None

    @property
    def pending(self) -> bool:
        return self.executed_tx is None

    @property
    def invalidated(self) -> bool:
        return self.executed_tx == INVALIDATED_TX

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        # uint256 values exceed JSON-safe integers in most consumers
        payload["min_return"] = str(self.min_return)
        payload["fee"] = str(self.fee)
        payload["amount"] = str(self.amount)
        return payload


@dataclass
class RoundSummary:
    checked: int = 0
    filled: int = 0
    invalidated: int = 0
    not_ready: int = 0
    fill_exhausted: int = 0
    failed: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)
