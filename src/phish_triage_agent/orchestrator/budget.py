"""Wall-clock budget for one analysis invocation."""

from __future__ import annotations

from dataclasses import dataclass, field
import time
from typing import Callable


@dataclass(frozen=True)
class BudgetPolicy:
    """Time and iteration ceilings; every value is a configuration knob."""

    total_budget_s: float = 8.0
    tool_phase_budget_s: float = 5.0
    model_call_timeout_s: float = 7.0
    min_fallback_budget_s: float = 2.5
    max_iterations: int = 3
    max_tool_calls: int = 9
    tool_timeout_s: float = 4.0

    def normalized(self) -> "BudgetPolicy":
        total = max(0.0, float(self.total_budget_s))
        return BudgetPolicy(
            total_budget_s=total,
            tool_phase_budget_s=min(total, max(0.0, float(self.tool_phase_budget_s))),
            model_call_timeout_s=max(0.0, float(self.model_call_timeout_s)),
            min_fallback_budget_s=max(0.0, float(self.min_fallback_budget_s)),
            max_iterations=max(0, int(self.max_iterations)),
            max_tool_calls=max(0, int(self.max_tool_calls)),
            tool_timeout_s=max(0.0, float(self.tool_timeout_s)),
        )


@dataclass
class TimeBudget:
    policy: BudgetPolicy
    clock: Callable[[], float] = time.monotonic
    started_at: float = field(default=-1.0)

    def __post_init__(self) -> None:
        if self.started_at < 0:
            self.started_at = self.clock()

    def elapsed_s(self) -> float:
        return max(0.0, self.clock() - self.started_at)

    def elapsed_ms(self) -> int:
        return int(self.elapsed_s() * 1000)

    def remaining_s(self) -> float:
        return max(0.0, self.policy.total_budget_s - self.elapsed_s())

    def tool_phase_expired(self) -> bool:
        return self.elapsed_s() > self.policy.tool_phase_budget_s

    def tool_deadline(self) -> float:
        """Longest a tool batch may run: inside the tool phase and the total budget."""

        phase_left = max(0.0, self.policy.tool_phase_budget_s - self.elapsed_s())
        return min(self.policy.tool_timeout_s, phase_left, self.remaining_s())

    def model_call_timeout(self) -> float:
        """Per-call race timer; never longer than what is left of the total budget."""

        return min(self.policy.model_call_timeout_s, self.remaining_s())

    def can_afford_fallback(self) -> bool:
        return self.remaining_s() >= self.policy.min_fallback_budget_s
