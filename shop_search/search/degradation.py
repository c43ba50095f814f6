"""
Degradation ladder for search fallbacks.

A ladder is an ordered list of attempts. Each step either produces an
accepted result (the ladder stops), or fails in a way its step recovers
from (the next step runs). Any other exception propagates.

Usage:
    ladder = DegradationLadder("vector", [
        LadderStep("full", lambda: backend.vector_search(req),
                   recover_on=(PayloadTooLargeError,)),
        LadderStep("truncated", lambda: backend.vector_search(req.truncated(768))),
    ])
    hits = await ladder.run()
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")

_MISSING = object()


def _always(_: Any) -> bool:
    return True


@dataclass
class LadderStep(Generic[T]):
    """One rung of a degradation ladder.

    Attributes:
        name: Step name for logging
        attempt: Zero-argument coroutine factory
        recover_on: Exceptions that move on to the next step
        accept: Predicate a result must satisfy to end the ladder
    """
    name: str
    attempt: Callable[[], Awaitable[T]]
    recover_on: tuple[type[BaseException], ...] = ()
    accept: Callable[[T], bool] = field(default=_always)


@dataclass
class LadderResult(Generic[T]):
    """Result of running a ladder."""
    value: T
    step: str | None
    failures: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.failures)


class DegradationLadder(Generic[T]):
    """Ordered fallback steps evaluated sequentially."""

    def __init__(
        self,
        name: str,
        steps: list[LadderStep[T]],
        default: Any = _MISSING,
    ):
        """Create a ladder.

        Args:
            name: Ladder name for logging
            steps: Steps in the order they are tried
            default: Value returned when every step fails; without one the
                last error is raised (or the last rejected result returned)
        """
        if not steps:
            raise ValueError("A degradation ladder needs at least one step")
        self.name = name
        self.steps = steps
        self.default = default

    async def run(self) -> LadderResult[T]:
        """Evaluate the steps in order."""
        failures: list[str] = []
        last_error: BaseException | None = None
        last_value: Any = _MISSING
        last_step: str | None = None

        for index, step in enumerate(self.steps):
            is_last = index == len(self.steps) - 1
            try:
                value = await step.attempt()
            except step.recover_on as e:
                failures.append(f"{step.name}: {e}")
                last_error = e
                logger.warning(
                    "degradation_step_failed",
                    ladder=self.name,
                    step=step.name,
                    error=str(e),
                    next_step=None if is_last else self.steps[index + 1].name,
                )
                continue

            if step.accept(value):
                return LadderResult(value=value, step=step.name, failures=failures)

            failures.append(f"{step.name}: result rejected")
            last_value = value
            last_step = step.name
            last_error = None
            logger.debug(
                "degradation_step_rejected",
                ladder=self.name,
                step=step.name,
                next_step=None if is_last else self.steps[index + 1].name,
            )

        if self.default is not _MISSING:
            return LadderResult(value=self.default, step=None, failures=failures)
        if last_error is not None:
            raise last_error
        return LadderResult(value=last_value, step=last_step, failures=failures)
