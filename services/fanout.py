"""
Per-order fan-out of upstream calls.

Bundle operations issue one independent upstream call per member order.
There is no transaction across those calls: some may succeed while
others fail. fan_out() runs the calls concurrently and always returns a
FanOutResult with exactly one OrderOutcome per order id, in input order.

Thread Model:
    Request thread (Flask)
    └── ThreadPoolExecutor (max_workers threads, named FanOut-<operation>-<n>)
        └── fn(order_id) -> upstream call on the shared IconaAPIClient

The API client keeps one requests.Session per thread, so workers never
share a connection. Nothing else crosses threads: each worker returns its
own OrderOutcome.

Usage:
    result = fan_out(
        "unbundle",
        order_ids,
        lambda order_id: client.update_order(order_id, {"bundleId": None}),
    )
    if not result.all_succeeded:
        ...
"""

from __future__ import annotations

import itertools
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, Sequence

from core.exceptions import ShippingServiceError, UpstreamError
from models.results import FanOutResult, OrderOutcome
from logging_config import get_logger, set_thread_name


logger = get_logger(__name__)

DEFAULT_MAX_WORKERS = 8


def _error_message(error: Exception) -> str:
    if isinstance(error, UpstreamError):
        return error.upstream_message
    if isinstance(error, ShippingServiceError):
        return error.message
    return str(error) or type(error).__name__


def fan_out(
    operation: str,
    order_ids: Sequence[str],
    fn: Callable[[str], Any],
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> FanOutResult:
    """
    Call ``fn`` once per order id and collect the outcomes.

    A call that raises becomes a failed outcome carrying the error message;
    nothing is retried and no exception escapes.

    Args:
        operation: Short name used for thread names and logs
        order_ids: Orders to act on
        fn: Per-order call; its return value becomes the outcome data
        max_workers: Upper bound on concurrent upstream calls

    Returns:
        FanOutResult with one outcome per order id, in input order
    """
    ids: List[str] = list(order_ids)
    if not ids:
        return FanOutResult(operation=operation)

    counter = itertools.count(1)
    counter_lock = threading.Lock()

    def run(order_id: str) -> OrderOutcome:
        with counter_lock:
            worker_number = next(counter)
        set_thread_name(f"FanOut-{operation}-{worker_number}")
        try:
            data = fn(order_id)
        except Exception as e:
            logger.warning(f"{operation}: order {order_id} failed: {_error_message(e)}")
            return OrderOutcome(order_id=order_id, success=False, error=_error_message(e))
        logger.debug(f"{operation}: order {order_id} updated")
        return OrderOutcome(order_id=order_id, success=True, data=data)

    workers = max(1, min(max_workers, len(ids)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"FanOut-{operation}") as pool:
        outcomes = list(pool.map(run, ids))

    result = FanOutResult(operation=operation, outcomes=outcomes)
    if result.failed:
        logger.warning(
            f"{operation}: {len(result.succeeded)}/{len(outcomes)} succeeded, "
            f"failed: {', '.join(result.failed_ids)}"
        )
    else:
        logger.info(f"{operation}: all {len(outcomes)} order(s) succeeded")
    return result
