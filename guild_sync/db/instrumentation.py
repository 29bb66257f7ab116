"""Connection pool instrumentation.

Warns when a pooled connection stays checked out longer than a threshold.
A timer is armed on checkout and cancelled on checkin, so the warning fires
while the connection is still held rather than after the fact.

Usage:
    engine = create_async_engine(url)
    instrument_slow_checkouts(engine, threshold=5.0)
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

_TIMER_KEY = "slow_checkout_timer"
_STARTED_KEY = "slow_checkout_started"


def _warn_slow_checkout(connection_record: Any, threshold: float) -> None:
    started = connection_record.info.get(_STARTED_KEY)
    held = time.monotonic() - started if started is not None else threshold
    logger.warning(
        f"Database connection held for {held:.1f}s "
        f"(threshold {threshold:.1f}s); possible leaked or long transaction"
    )


def instrument_slow_checkouts(engine: AsyncEngine, threshold: float) -> None:
    """Attach checkout/checkin listeners that log long-held connections.

    Args:
        engine: The async engine whose pool to instrument.
        threshold: Seconds a connection may be held before a warning.
            Zero or negative disables instrumentation.
    """
    if threshold <= 0:
        return

    pool = engine.sync_engine.pool

    @event.listens_for(pool, "checkout")
    def _on_checkout(
        dbapi_connection: Any, connection_record: Any, connection_proxy: Any
    ) -> None:
        connection_record.info[_STARTED_KEY] = time.monotonic()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Checked out outside an event loop: no timer, checkin still
            # reports the hold time.
            return
        connection_record.info[_TIMER_KEY] = loop.call_later(
            threshold, _warn_slow_checkout, connection_record, threshold
        )

    @event.listens_for(pool, "checkin")
    def _on_checkin(dbapi_connection: Any, connection_record: Any) -> None:
        timer = connection_record.info.pop(_TIMER_KEY, None)
        started = connection_record.info.pop(_STARTED_KEY, None)
        if timer is not None:
            timer.cancel()
        elif started is not None:
            held = time.monotonic() - started
            if held > threshold:
                logger.warning(f"Database connection was held for {held:.1f}s")
