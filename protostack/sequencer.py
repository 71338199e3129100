# /*
# Copyright 2026 The protostack Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Named provisioning steps with explicit requirements, run one at a time."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field

from rich.markup import escape

from protostack import console, logger
from protostack.errors import PlanError, StepFailed


@dataclass(frozen=True)
class Step:
    """An idempotent unit of provisioning work.

    Attributes:
        name: Unique step name.
        action: Callable performing the step.
        requires: Names of steps that must complete first.
        fatal: Whether a failure stops the run.
        description: One-line summary for plan listings.
    """

    name: str
    action: Callable[[], object]
    requires: tuple[str, ...] = ()
    fatal: bool = True
    description: str = ""


@dataclass
class RunReport:
    """Outcome of a plan run."""

    completed: list[str] = field(default_factory=list)
    warnings: dict[str, str] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)


class Plan:
    """A directed acyclic graph of steps.

    Execution order is a topological order that keeps declaration order
    among steps whose requirements are met, so declaring steps in the
    intended sequence reproduces that sequence exactly.
    """

    def __init__(self, steps: Sequence[Step]) -> None:
        self._steps: dict[str, Step] = {}
        for step in steps:
            if step.name in self._steps:
                raise PlanError(f"Duplicate step '{step.name}'")
            self._steps[step.name] = step
        for step in steps:
            unknown = [req for req in step.requires if req not in self._steps]
            if unknown:
                raise PlanError(f"Step '{step.name}' requires unknown steps: {', '.join(unknown)}")
        self._order = self._toposort()

    def __iter__(self):
        return iter(self._order)

    def __len__(self) -> int:
        return len(self._order)

    def __getitem__(self, name: str) -> Step:
        return self._steps[name]

    @property
    def names(self) -> list[str]:
        return [step.name for step in self._order]

    def _toposort(self) -> list[Step]:
        pending = list(self._steps.values())
        done: set[str] = set()
        order: list[Step] = []
        while pending:
            ready = next((s for s in pending if all(req in done for req in s.requires)), None)
            if ready is None:
                raise PlanError(f"Cyclic requirements among: {', '.join(s.name for s in pending)}")
            pending.remove(ready)
            done.add(ready.name)
            order.append(ready)
        return order

    def order(self) -> list[Step]:
        return list(self._order)

    def requirements(self, name: str) -> set[str]:
        """Transitive requirements of step *name*."""
        seen: set[str] = set()
        stack = list(self._steps[name].requires)
        while stack:
            req = stack.pop()
            if req not in seen:
                seen.add(req)
                stack.extend(self._steps[req].requires)
        return seen

    def select(self, targets: Iterable[str] | None = None, skip: Iterable[str] = ()) -> list[Step]:
        """Ordered steps needed for *targets*, minus *skip*.

        Args:
            targets: Step names to run with their transitive requirements,
                or None for the whole plan.
            skip: Step names to leave out even if required.

        Raises:
            PlanError: If a target or skipped name is unknown.
        """
        skip = set(skip)
        unknown = skip - self._steps.keys()
        if targets is None:
            wanted = set(self._steps)
        else:
            targets = list(targets)
            unknown |= set(targets) - self._steps.keys()
            wanted = set()
            for target in targets:
                if target in self._steps:
                    wanted |= {target} | self.requirements(target)
        if unknown:
            raise PlanError(f"Unknown steps: {', '.join(sorted(unknown))}")
        return [step for step in self._order if step.name in wanted and step.name not in skip]


def run_plan(plan: Plan, targets: Iterable[str] | None = None, skip: Iterable[str] = ()) -> RunReport:
    """Run the selected steps sequentially.

    A fatal step failure raises StepFailed and no later step runs. A
    best-effort failure is logged and recorded, and the run continues.

    Raises:
        StepFailed: On the first fatal step failure.
    """
    skip = set(skip)
    selected = plan.select(targets, skip)
    report = RunReport(skipped=[name for name in plan.names if name in skip])
    for name in report.skipped:
        logger.info("Skipping step %s", name)
    for step in selected:
        logger.debug("Running step %s", step.name)
        try:
            step.action()
        except Exception as e:
            if step.fatal:
                raise StepFailed(step.name, e) from e
            logger.debug("Best-effort step %s failed", step.name, exc_info=True)
            console.print(f"[yellow]⚠️  {step.name} did not complete: {escape(str(e))}[/yellow]")
            report.warnings[step.name] = str(e)
            continue
        report.completed.append(step.name)
    return report
