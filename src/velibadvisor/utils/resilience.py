from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
import logging
import time
from typing import Any, Callable, Mapping, Optional, TypeVar

from velibadvisor.errors import ProviderTimeout


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CallOutcome:
    name: str
    value: Any
    ok: bool
    timed_out: bool = False
    error: Optional[str] = None


def _shutdown(pool: ThreadPoolExecutor) -> None:
    # Stop waiting on stragglers; they finish (or hang) on their own thread.
    pool.shutdown(wait=False, cancel_futures=True)


def run_with_deadline(fn: Callable[[], T], *, timeout_s: float, label: str) -> T:
    """
    Run `fn` and wait at most `timeout_s` seconds for it.

    Raises `ProviderTimeout` when the deadline passes; exceptions raised by `fn` propagate unchanged.
    """

    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"deadline-{label}")
    try:
        future = pool.submit(fn)
        try:
            return future.result(timeout=timeout_s)
        except FuturesTimeoutError as e:
            logger.warning("%s timed out after %.1fs", label, timeout_s)
            raise ProviderTimeout(f"{label} timed out after {timeout_s:.1f}s") from e
    finally:
        _shutdown(pool)


def fan_out(
    calls: Mapping[str, Callable[[], Any]],
    *,
    timeout_s: float,
    defaults: Optional[Mapping[str, Any]] = None,
    now_fn: Callable[[], float] = time.monotonic,
) -> dict[str, CallOutcome]:
    """
    Run independent calls concurrently, each bounded by its own deadline.

    Every call is submitted at once and gets `timeout_s` from submission. A call that times out
    or raises resolves to `defaults[name]` (None when absent); the others keep running and are
    collected normally.
    """

    defaults = defaults or {}
    if not calls:
        return {}

    pool = ThreadPoolExecutor(max_workers=len(calls), thread_name_prefix="fanout")
    try:
        started = now_fn()
        futures: dict[str, Future[Any]] = {name: pool.submit(fn) for name, fn in calls.items()}

        outcomes: dict[str, CallOutcome] = {}
        for name, future in futures.items():
            remaining = max(timeout_s - (now_fn() - started), 0.0)
            try:
                value = future.result(timeout=remaining)
            except FuturesTimeoutError:
                logger.warning("%s timed out after %.1fs; continuing without it", name, timeout_s)
                outcomes[name] = CallOutcome(
                    name=name,
                    value=defaults.get(name),
                    ok=False,
                    timed_out=True,
                    error=f"timed out after {timeout_s:.1f}s",
                )
            except Exception as e:
                logger.warning("%s failed (%s: %s); continuing without it", name, type(e).__name__, e)
                outcomes[name] = CallOutcome(
                    name=name,
                    value=defaults.get(name),
                    ok=False,
                    error=f"{type(e).__name__}: {e}",
                )
            else:
                outcomes[name] = CallOutcome(name=name, value=value, ok=True)
        return outcomes
    finally:
        _shutdown(pool)
