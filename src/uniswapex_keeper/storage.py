from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
import sqlite3
import threading

from uniswapex_keeper.models import Order

_ORDER_COLUMNS = (
    "order_id",
    "from_token",
    "to_token",
    "min_return",
    "fee",
    "owner",
    "secret",
    "witness",
    "amount",
    "raw_data",
    "block_number",
    "tx_hash",
    "executed_tx",
)


class Storage:
    def __init__(self, database_path: str, from_block: int = 0) -> None:
        self.from_block = int(from_block)
        if database_path == ":memory:":
            self.path = None
            target = database_path
        else:
            self.path = Path(database_path)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            target = str(self.path)
        # indexer worker threads share this connection behind the lock
        self.conn = sqlite3.connect(target, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._create_schema()

    def _create_schema(self) -> None:
        with self._lock:
            self.conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS orders (
                  order_id TEXT PRIMARY KEY,
                  from_token TEXT NOT NULL,
                  to_token TEXT NOT NULL,
                  min_return TEXT NOT NULL,
                  fee TEXT NOT NULL,
                  owner TEXT NOT NULL,
                  secret TEXT NOT NULL,
                  witness TEXT NOT NULL,
                  amount TEXT NOT NULL,
                  raw_data TEXT NOT NULL,
                  block_number INTEGER NOT NULL,
                  tx_hash TEXT NOT NULL,
                  executed_tx TEXT,
                  created_at TEXT NOT NULL,
                  updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS orders_pending
                  ON orders (executed_tx) WHERE executed_tx IS NULL;

                CREATE TABLE IF NOT EXISTS block_number (
                  id INTEGER PRIMARY KEY CHECK (id = 0),
                  block INTEGER NOT NULL,
                  updated_at TEXT NOT NULL
                );
                """
            )
            self.conn.commit()

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def save_order(self, order: Order) -> None:
        now = datetime.now(tz=timezone.utc).isoformat()
        with self._lock:
            # a terminal executed_tx is never replaced
            self.conn.execute(
                """
                INSERT INTO orders (
                  order_id, from_token, to_token, min_return, fee, owner, secret,
                  witness, amount, raw_data, block_number, tx_hash, executed_tx,
                  created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(order_id) DO UPDATE SET
                  executed_tx=COALESCE(orders.executed_tx, excluded.executed_tx),
                  updated_at=excluded.updated_at
                """,
                (
                    order.order_id,
                    order.from_token,
                    order.to_token,
                    str(order.min_return),
                    str(order.fee),
                    order.owner,
                    order.secret,
                    order.witness,
                    str(order.amount),
                    order.raw_data,
                    int(order.block_number),
                    order.tx_hash,
                    order.executed_tx,
                    now,
                    now,
                ),
            )
            self.conn.commit()

    def exist_order(self, order_id: str) -> bool:
        with self._lock:
            row = self.conn.execute(
                "SELECT 1 FROM orders WHERE order_id = ? LIMIT 1", (order_id,)
            ).fetchone()
        return row is not None

    def get_order(self, order_id: str) -> Order | None:
        with self._lock:
            row = self.conn.execute(
                f"SELECT {', '.join(_ORDER_COLUMNS)} FROM orders WHERE order_id = ?",
                (order_id,),
            ).fetchone()
        return self._row_to_order(row) if row else None

    def get_pending_orders(self) -> list[Order]:
        with self._lock:
            rows = self.conn.execute(
                f"""
                SELECT {', '.join(_ORDER_COLUMNS)}
                FROM orders
                WHERE executed_tx IS NULL
                ORDER BY block_number ASC, order_id ASC
                """
            ).fetchall()
        return [self._row_to_order(row) for row in rows]

    def save_block(self, block: int) -> None:
        with self._lock:
            self.conn.execute(
                """
                INSERT INTO block_number (id, block, updated_at) VALUES (0, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                  block=MAX(block_number.block, excluded.block),
                  updated_at=excluded.updated_at
                """,
                (int(block), datetime.now(tz=timezone.utc).isoformat()),
            )
            self.conn.commit()

    def get_latest_block(self) -> int:
        with self._lock:
            row = self.conn.execute("SELECT block FROM block_number WHERE id = 0").fetchone()
        return int(row["block"]) if row else self.from_block

    @staticmethod
    def _row_to_order(row: sqlite3.Row) -> Order:
        return Order(
            order_id=str(row["order_id"]),
            from_token=str(row["from_token"]),
            to_token=str(row["to_token"]),
            min_return=int(row["min_return"]),
            fee=int(row["fee"]),
            owner=str(row["owner"]),
            secret=str(row["secret"]),
            witness=str(row["witness"]),
            amount=int(row["amount"]),
            raw_data=str(row["raw_data"]),
            block_number=int(row["block_number"]),
            tx_hash=str(row["tx_hash"]),
            executed_tx=row["executed_tx"],
        )
