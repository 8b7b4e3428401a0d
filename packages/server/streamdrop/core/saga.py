"""
Saga runner: an ordered list of steps, each with an optional compensating action.

Steps run strictly in sequence. When a step fails, the compensations of the
steps that already completed run in reverse order and the first failure is
reported. Failure kinds:

- StepFailed raised by an action: a business-rule failure with a stable code.
- IntegrityError from the storage layer: reported as "constraint_violation".
- Anything else: compensations run, then the exception propagates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, Optional, Sequence, TypeVar

import structlog
from sqlalchemy.exc import IntegrityError

log = structlog.get_logger()

CONSTRAINT_VIOLATION = "constraint_violation"

C = TypeVar("C")


class StepFailed(Exception):
    """Raised by a step action to abort the saga with a typed reason."""

    def __init__(self, code: str, detail: Optional[str] = None) -> None:
        self.code = code
        self.detail = detail or code.replace("_", " ")
        super().__init__(self.detail)


@dataclass(frozen=True)
class SagaStep(Generic[C]):
    name: str
    action: Callable[[C], Awaitable[None]]
    compensation: Optional[Callable[[C], Awaitable[None]]] = None


@dataclass
class SagaResult:
    success: bool
    error: Optional[str] = None
    detail: Optional[str] = None
    failed_step: Optional[str] = None
    completed: list[str] = field(default_factory=list)


async def _compensate(completed: Sequence[SagaStep[C]], context: C) -> None:
    first_error: Optional[BaseException] = None
    for step in reversed(completed):
        if step.compensation is None:
            continue
        try:
            await step.compensation(context)
            log.debug("saga.compensated", step=step.name)
        except Exception as exc:
            log.error("saga.compensation_failed", step=step.name, error=str(exc))
            if first_error is None:
                first_error = exc
    if first_error is not None:
        raise first_error


async def run_saga(
    steps: Sequence[SagaStep[C]],
    context: C,
    on_constraint_violation: Optional[Callable[[C], Awaitable[None]]] = None,
) -> SagaResult:
    """
    Run steps in order against a shared context.

    on_constraint_violation runs before compensation when the storage layer
    rejects a write, so the caller can restore a usable transaction.
    """
    completed: list[SagaStep[C]] = []

    for step in steps:
        try:
            await step.action(context)
        except StepFailed as exc:
            log.info("saga.step_failed", step=step.name, error=exc.code)
            await _compensate(completed, context)
            return SagaResult(
                success=False,
                error=exc.code,
                detail=exc.detail,
                failed_step=step.name,
                completed=[s.name for s in completed],
            )
        except IntegrityError as exc:
            log.warning("saga.constraint_violation", step=step.name, error=str(exc.orig))
            if on_constraint_violation is not None:
                await on_constraint_violation(context)
            await _compensate(completed, context)
            return SagaResult(
                success=False,
                error=CONSTRAINT_VIOLATION,
                detail=str(exc.orig),
                failed_step=step.name,
                completed=[s.name for s in completed],
            )
        except Exception:
            log.error("saga.step_crashed", step=step.name)
            await _compensate(completed, context)
            raise
        completed.append(step)

    return SagaResult(success=True, completed=[s.name for s in completed])
