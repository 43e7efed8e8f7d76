"""Turn a declarative plan of shell steps into queueable tasks."""

from __future__ import annotations

import json
import logging
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

import networkx as nx
from pydantic import BaseModel, Field, ValidationError, field_validator

from stagerun.errors import PlanError
from stagerun.tasks import FunctionTask, Result, Task, upon_success_of
from stagerun.tools import Command, CommandFailedError, CommandTimeoutError

logger = logging.getLogger(__name__)


class PlanStep(BaseModel):
    """One entry of a plan file."""

    id: str = Field(min_length=1)
    command: list[str] = Field(min_length=1)
    depends_on: list[str] = Field(default_factory=list)
    timeout: float | None = Field(default=None, gt=0)

    @field_validator("command", mode="before")
    @classmethod
    def split_command(cls, value: Any):
        if isinstance(value, str):
            return shlex.split(value)
        return value


class ShellTask(FunctionTask):
    """Runs a host command; a non-zero exit is EXEC_FAILED, a timeout EXEC_TIMEOUT."""

    def __init__(self, name: str, command: Command, after: Task | None = None):
        super().__init__(name, self._run_command, after=after)
        self.command = command
        self.output: list[str] = []

    def _run_command(self) -> Result:
        try:
            self.output = self.command.execute()
        except CommandTimeoutError as e:
            logger.warning("%s: %s", self, e)
            return Result.EXEC_TIMEOUT
        except CommandFailedError as e:
            self.output = e.output
            logger.warning("%s: %s", self, e)
            return Result.EXEC_FAILED
        return Result.SUCCESS


@dataclass(slots=True)
class Plan:
    """Tasks built from a plan; ``tasks`` also holds the composite gates."""

    steps: dict[str, ShellTask] = field(default_factory=dict)
    tasks: list[Task] = field(default_factory=list)


def load_plan(entries: Iterable[dict]) -> Plan:
    """Build tasks from plan entries, gating each step on its dependencies.

    Raises:
        PlanError: On invalid entries, duplicate or unknown ids, or cycles
    """
    try:
        steps = [PlanStep.model_validate(entry) for entry in entries]
    except ValidationError as e:
        raise PlanError(f"Invalid plan entry: {e}") from e

    graph = nx.DiGraph()
    by_id: dict[str, PlanStep] = {}
    for step in steps:
        if step.id in by_id:
            raise PlanError(f"Duplicate step id {step.id!r}")
        by_id[step.id] = step
        graph.add_node(step.id)

    for step in steps:
        for dep in step.depends_on:
            if dep not in by_id:
                raise PlanError(f"Step {step.id!r} depends on unknown step {dep!r}")
            graph.add_edge(dep, step.id)

    if not nx.is_directed_acyclic_graph(graph):
        cycle = " -> ".join(edge[0] for edge in nx.find_cycle(graph))
        raise PlanError(f"Circular dependencies detected in plan: {cycle}")

    plan = Plan()
    for step_id in nx.topological_sort(graph):
        step = by_id[step_id]
        gate: Task | None = None
        if step.depends_on:
            gate = upon_success_of(plan.steps[dep] for dep in step.depends_on)
            plan.tasks.append(gate)
        task = ShellTask(step.id, Command(*step.command, timeout=step.timeout), after=gate)
        plan.steps[step.id] = task
        plan.tasks.append(task)
    return plan


def load_plan_file(path: Path) -> Plan:
    try:
        entries = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise PlanError(f"Cannot read plan {path}: {e}") from e
    if not isinstance(entries, list):
        raise PlanError(f"Plan {path} must be a JSON list of steps")
    return load_plan(entries)
