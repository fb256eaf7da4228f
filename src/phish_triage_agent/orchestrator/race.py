"""Race a blocking call against a timer."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Callable, TypeVar

from phish_triage_agent.providers.base import ModelTimeoutError

T = TypeVar("T")


def race(fn: Callable[[], T], *, timeout_s: float) -> T:
    """Run `fn` on a worker thread; give up after `timeout_s` and discard any late result."""

    if timeout_s <= 0:
        raise ModelTimeoutError("no time left for model call")
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="model-call")
    future = pool.submit(fn)
    try:
        return future.result(timeout=timeout_s)
    except FutureTimeoutError as exc:
        future.cancel()
        raise ModelTimeoutError(f"model call exceeded {timeout_s:.2f}s") from exc
    finally:
        pool.shutdown(wait=False, cancel_futures=True)
