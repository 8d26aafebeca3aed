from __future__ import annotations

from dataclasses import replace
import logging
from typing import Protocol

from uniswapex_keeper.batching import retry_call, retry_or_none
from uniswapex_keeper.models import INVALIDATED_TX, Order, RoundSummary
from uniswapex_keeper.storage import Storage

LOGGER = logging.getLogger("uniswapex_keeper")


class Book(Protocol):
    def exists(self, order: Order) -> bool: ...

    def can_execute(self, order: Order) -> bool: ...


class Relayer(Protocol):
    def fill_order(self, order: Order) -> str: ...


class Executor:
    def __init__(
        self,
        book: Book,
        relayer: Relayer | None,
        storage: Storage,
        *,
        exists_retry_attempts: int = 10,
        fill_retry_attempts: int = 4,
        backoff_seconds: float = 0.5,
    ) -> None:
        self.book = book
        self.relayer = relayer
        self.storage = storage
        self.exists_retry_attempts = exists_retry_attempts
        self.fill_retry_attempts = fill_retry_attempts
        self.backoff_seconds = backoff_seconds

    def watch_round(self) -> RoundSummary:
        summary = RoundSummary()
        for order in self.storage.get_pending_orders():
            summary.checked += 1
            try:
                self._process(order, summary)
            except Exception as exc:
                summary.failed += 1
                LOGGER.warning("order_round_failed order=%s error=%s", order.order_id, exc)
        if summary.checked:
            LOGGER.info(
                "executor_round checked=%s filled=%s invalidated=%s not_ready=%s exhausted=%s failed=%s",
                summary.checked,
                summary.filled,
                summary.invalidated,
                summary.not_ready,
                summary.fill_exhausted,
                summary.failed,
            )
        return summary

    def _process(self, order: Order, summary: RoundSummary) -> None:
        exists = retry_call(
            lambda: self.book.exists(order),
            attempts=self.exists_retry_attempts,
            backoff_seconds=self.backoff_seconds,
            label=f"exists {order.order_id}",
        )
        LOGGER.debug("executor_loaded order=%s tx=%s", order.order_id, order.tx_hash)

        if not exists:
            LOGGER.info("executor_invalidated order=%s tx=%s", order.order_id, order.tx_hash)
            self.storage.save_order(replace(order, executed_tx=INVALIDATED_TX))
            summary.invalidated += 1
            return

        if not self.book.can_execute(order):
            LOGGER.debug("executor_not_ready order=%s", order.order_id)
            summary.not_ready += 1
            return

        if self.relayer is None:
            LOGGER.info("executor_fillable_no_relayer order=%s", order.order_id)
            summary.not_ready += 1
            return

        LOGGER.info("executor_filling order=%s tx=%s", order.order_id, order.tx_hash)
        fill_tx = retry_or_none(
            lambda: self.relayer.fill_order(order),
            attempts=self.fill_retry_attempts,
            backoff_seconds=self.backoff_seconds,
            label=f"fill {order.order_id}",
        )
        if fill_tx is None:
            LOGGER.warning("fill_exhausted order=%s attempts=%s", order.order_id, self.fill_retry_attempts)
            summary.fill_exhausted += 1
            return

        self.storage.save_order(replace(order, executed_tx=fill_tx))
        summary.filled += 1
