"""Dependency graph over declared task prerequisites."""

from __future__ import annotations

from typing import Iterable

import networkx as nx

from .task import Task


class TaskGraph:
    """Directed graph of tasks; an edge runs from a prerequisite to its dependent."""

    def __init__(self, tasks: Iterable[Task] = ()) -> None:
        self.graph = nx.DiGraph()
        for task in tasks:
            self.add_task(task)

    def add_task(self, task: Task) -> None:
        self.graph.add_node(task)
        for prerequisite in task.prerequisites():
            self.graph.add_edge(prerequisite, task)

    def cycles(self) -> list[list[Task]]:
        return [list(cycle) for cycle in nx.simple_cycles(self.graph)]

    def is_acyclic(self) -> bool:
        return nx.is_directed_acyclic_graph(self.graph)

    def explain_stuck(self, stuck: Iterable[Task], known: Iterable[Task]) -> dict[Task, str]:
        """Give a reason for every task in ``stuck`` that never ran."""

        stuck = list(stuck)
        known_ids = {id(task) for task in known}
        in_cycle: set[int] = set()
        for cycle in self.cycles():
            if all(task.result is None for task in cycle):
                in_cycle.update(id(task) for task in cycle)

        reasons: dict[Task, str] = {}
        for task in stuck:
            if id(task) in in_cycle:
                reasons[task] = "part of a dependency cycle"
                continue
            unmet = [p for p in task.prerequisites() if p.result is None]
            missing = [p for p in unmet if id(p) not in known_ids]
            if missing:
                reasons[task] = "waits on task(s) never enqueued: " + ", ".join(map(str, missing))
            elif unmet:
                reasons[task] = "waits on task(s) that never ran: " + ", ".join(map(str, unmet))
            else:
                reasons[task] = "never became runnable"
        return reasons
