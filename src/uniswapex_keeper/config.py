from __future__ import annotations

from dataclasses import dataclass
import os


USDT_ADDRESS = "0xdac17f958d2ee523a2206206994597c13d831ec7"
DEFAULT_TOKEN_DENYLIST = (USDT_ADDRESS,)
UNISWAP_V1_FACTORY = "0xc0a47dFe034B400B47bDaD5FecDa2621de6c4d95"

TRANSFER_SELECTOR = "0xa9059cbb"
# transfer(address,uint256) + abi-encoded `bytes` holding the 7-word order
TOKEN_ORDER_TX_LENGTH = 4 + 11 * 32


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class KeeperConfig:
    node_url: str
    rpc_timeout_seconds: float
    chain_id: int
    from_block: int
    confirmation_blocks: int
    factory_address: str
    uniswapex_address: str
    handler_address: str
    relayer_private_key: str
    database_path: str
    poll_interval_seconds: float

    outer_batch_size: int
    inner_batch_size: int
    retry_attempts: int
    batch_retry_attempts: int
    fill_retry_attempts: int
    retry_backoff_seconds: float

    token_denylist: tuple[str, ...]
    order_tx_selector: str
    order_tx_length: int

    log_level: str

    @property
    def relayer_enabled(self) -> bool:
        return bool(self.relayer_private_key)

    def validate(self) -> None:
        if not self.uniswapex_address:
            raise ConfigError("UNISWAPEX_CONTRACT is required")
        if not self.factory_address:
            raise ConfigError("UNISWAP_FACTORY_CONTRACT is required")
        for name in ("outer_batch_size", "inner_batch_size"):
            if getattr(self, name) < 1:
                raise ConfigError(f"{name} must be >= 1")
        for name in ("retry_attempts", "batch_retry_attempts", "fill_retry_attempts"):
            if getattr(self, name) < 1:
                raise ConfigError(f"{name} must be >= 1")
        if not self.order_tx_selector.startswith("0x") or len(self.order_tx_selector) != 10:
            raise ConfigError(f"ORDER_TX_SELECTOR must be a 4-byte hex selector, got {self.order_tx_selector!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


def _parse_denylist(raw: str | None) -> tuple[str, ...]:
    if raw is None:
        return DEFAULT_TOKEN_DENYLIST
    return tuple(item.strip().lower() for item in raw.split(",") if item.strip())


def load_config() -> KeeperConfig:
    return KeeperConfig(
        node_url=os.getenv("NODE_URL", "http://localhost:8545"),
        rpc_timeout_seconds=_env_float("RPC_TIMEOUT_SECONDS", 10.0),
        chain_id=_env_int("CHAIN_ID", 1),
        from_block=_env_int("FROM_BLOCK", 6627917),
        confirmation_blocks=max(0, _env_int("CONFIRMATION_BLOCKS", 0)),
        factory_address=os.getenv("UNISWAP_FACTORY_CONTRACT", UNISWAP_V1_FACTORY).strip(),
        uniswapex_address=os.getenv("UNISWAPEX_CONTRACT", "").strip(),
        handler_address=os.getenv("HANDLER_CONTRACT", "").strip(),
        relayer_private_key=os.getenv("RELAYER_PRIVATE_KEY", "").strip(),
        database_path=os.getenv("DB_PATH", "data/keeper.db"),
        poll_interval_seconds=_env_float("POLL_INTERVAL_SECONDS", 15.0),
        outer_batch_size=_env_int("OUTER_BATCH_SIZE", 1),
        inner_batch_size=_env_int("INNER_BATCH_SIZE", 50),
        retry_attempts=_env_int("RETRY_ATTEMPTS", 10),
        batch_retry_attempts=_env_int("BATCH_RETRY_ATTEMPTS", 20),
        fill_retry_attempts=_env_int("FILL_RETRY_ATTEMPTS", 4),
        retry_backoff_seconds=_env_float("RETRY_BACKOFF_SECONDS", 0.5),
        token_denylist=_parse_denylist(os.getenv("TOKEN_DENYLIST")),
        order_tx_selector=os.getenv("ORDER_TX_SELECTOR", TRANSFER_SELECTOR).strip().lower(),
        order_tx_length=_env_int("ORDER_TX_LENGTH", TOKEN_ORDER_TX_LENGTH),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
    )
