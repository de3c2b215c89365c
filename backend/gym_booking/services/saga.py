"""
Minimal saga runner for multi-step store writes without a shared transaction.

Steps run in order. When a step fails, the compensations of every step
that already succeeded run in reverse order before the failure is raised.
A failing compensation raises CompensationFailed instead of the original
error: the store is now in a state nobody asked for and a human has to
reconcile it.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from gym_booking.core.errors import BookingError, CompensationFailed, StoreError
from gym_booking.core.logging import get_logger
from gym_booking.core.metrics import record_compensation

logger = get_logger(__name__)


@dataclass
class SagaStep:
    name: str
    action: Callable[[], Awaitable[Any]]
    # Receives the action's result
    compensation: Optional[Callable[[Any], Awaitable[Any]]] = None
    # Error raised in place of a StoreError from the action
    on_failure: Optional[Callable[[], BookingError]] = None


class Saga:

    def __init__(self, name: str, steps: list[SagaStep], **context: Any):
        self.name = name
        self.steps = steps
        self.context = context

    async def run(self) -> list[Any]:
        """Run every step and return their results in order."""
        completed: list[tuple[SagaStep, Any]] = []
        for step in self.steps:
            try:
                result = await step.action()
            except StoreError as e:
                failure = step.on_failure() if step.on_failure else e
                await self._compensate(completed, step, failure)
                raise failure from e
            except BookingError as e:
                await self._compensate(completed, step, e)
                raise
            completed.append((step, result))
        return [result for _, result in completed]

    async def _compensate(
        self,
        completed: list[tuple[SagaStep, Any]],
        failed_step: SagaStep,
        failure: BookingError,
    ) -> None:
        for step, result in reversed(completed):
            if step.compensation is None:
                continue
            try:
                await step.compensation(result)
            except Exception as e:
                record_compensation(self.name, succeeded=False)
                logger.critical(
                    "saga_compensation_failed",
                    saga=self.name,
                    step=step.name,
                    failed_step=failed_step.name,
                    error=failure.error_code,
                    compensation_error=str(e),
                    **self.context,
                )
                raise CompensationFailed(step=step.name, original=failure) from e
            record_compensation(self.name, succeeded=True)
            logger.warning(
                "saga_step_compensated",
                saga=self.name,
                step=step.name,
                failed_step=failed_step.name,
                error=failure.error_code,
                **self.context,
            )
