"""Tool execution wrapper with per-call timeout and timing telemetry."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass
import logging
import time
from typing import Callable, Sequence

from phish_triage_agent.domain.analysis import ToolInvocation, ToolOutcome
from phish_triage_agent.providers.base import RequestedToolCall
from phish_triage_agent.tools.catalog import tool_source

logger = logging.getLogger(__name__)

ToolRunner = Callable[[RequestedToolCall], ToolOutcome]


@dataclass(frozen=True)
class BatchResult:
    invocations: list[ToolInvocation]
    elapsed_ms: int


def _timed(run: ToolRunner, call: RequestedToolCall) -> tuple[ToolOutcome, float]:
    start = time.perf_counter()
    try:
        outcome = run(call)
    except Exception as exc:
        logger.error("Tool execution failed name=%s id=%s error=%s", call.name, call.id, exc)
        outcome = ToolOutcome.failure(str(exc) or type(exc).__name__, source=tool_source(call.name))
    return outcome, time.perf_counter() - start


@dataclass
class ToolExecutor:
    """Runs one turn's tool calls side by side and waits for all of them.

    One worker per call, so no call sits in a queue while its timeout runs.
    """

    tool_timeout_s: float = 4.0
    wall_clock: Callable[[], float] = time.time

    def execute_batch(
        self,
        calls: Sequence[RequestedToolCall],
        run: ToolRunner,
        deadline_s: float | None = None,
    ) -> BatchResult:
        """`deadline_s` caps each call's wait at what the caller has left."""

        if not calls:
            return BatchResult(invocations=[], elapsed_ms=0)

        timeout_s = self.tool_timeout_s
        if deadline_s is not None:
            timeout_s = max(0.0, min(timeout_s, deadline_s))
        pool = ThreadPoolExecutor(max_workers=len(calls), thread_name_prefix="tool")
        submitted = []
        try:
            for call in calls:
                logger.info("Executing tool name=%s id=%s", call.name, call.id)
                invocation = ToolInvocation(
                    id=call.id,
                    name=call.name,
                    input=dict(call.arguments),
                    started_at=self.wall_clock(),
                )
                submitted.append((invocation, time.perf_counter(), pool.submit(_timed, run, call)))

            total_ms = 0
            for invocation, started, future in submitted:
                wait_s = max(0.0, timeout_s - (time.perf_counter() - started))
                try:
                    outcome, duration_s = future.result(timeout=wait_s)
                except FutureTimeoutError:
                    duration_s = time.perf_counter() - started
                    outcome = ToolOutcome.failure(
                        f"Tool timed out after {timeout_s:.2f}s", source=tool_source(invocation.name)
                    )
                    logger.warning("Tool abandoned after timeout name=%s id=%s", invocation.name, invocation.id)
                duration_ms = int(duration_s * 1000)
                total_ms += duration_ms
                invocation.complete(
                    outcome,
                    ended_at=invocation.started_at + duration_s,
                    duration_ms=duration_ms,
                )
                logger.info(
                    "Tool finished name=%s success=%s duration_ms=%d cached=%s",
                    invocation.name,
                    outcome.success,
                    duration_ms,
                    outcome.cached,
                )
            return BatchResult(invocations=[item[0] for item in submitted], elapsed_ms=total_ms)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)
