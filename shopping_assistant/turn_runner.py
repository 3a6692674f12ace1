from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, List, Optional, TypeVar

ContextT = TypeVar("ContextT")


@dataclass
class TurnStep(Generic[ContextT]):
    """One stage of a conversational turn."""
    name: str
    fn: Callable[[ContextT], None]
    skip_if: Optional[Callable[[ContextT], bool]] = None


class TurnRunner(Generic[ContextT]):
    """Runs turn stages in order against a shared mutable context."""

    def __init__(self, steps: List[TurnStep[ContextT]]) -> None:
        """Purpose: Initialize the runner with an ordered list of steps.
        Inputs/Outputs: Input is a list of TurnStep; no return value.
        Side Effects / State: Stores the step list for later execution.
        Dependencies: None beyond TurnStep definitions.
        Failure Modes: None; assumes valid callables in steps.
        If Removed: The orchestrator has no way to sequence a turn.
        Testing Notes: Provide a minimal step list and ensure order is preserved.
        """
        # Keep the steps in declaration order.
        self._steps = list(steps)

    @property
    def step_names(self) -> List[str]:
        return [step.name for step in self._steps]

    def run(self, context: ContextT) -> List[str]:
        """Purpose: Execute steps in order, honoring skip_if guards.
        Inputs/Outputs: Input is a mutable context; returns names of the steps that ran.
        Side Effects / State: Invokes step functions that may mutate context.
        Dependencies: Depends on TurnStep.fn and TurnStep.skip_if semantics.
        Failure Modes: Exceptions in step functions propagate to the caller and stop
            the remaining steps.
        If Removed: No turn can complete.
        Testing Notes: Verify skip_if and that a raising step halts the run.
        """
        # Guards are evaluated lazily so earlier steps can decide later ones.
        ran: List[str] = []
        for step in self._steps:
            if step.skip_if and step.skip_if(context):
                continue
            step.fn(context)
            ran.append(step.name)
        return ran
