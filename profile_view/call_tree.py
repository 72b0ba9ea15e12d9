"""
call_tree.py

Aggregates a filtered thread into a call tree over its func stacks. Each
node carries self time (samples landing exactly on it) and total time
(itself plus all descendants), both in milliseconds.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .func_stacks import ROOT, FuncStackInfo
from .logging_setup import time_code
from .tables import Thread

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallNodeData:
    func_stack: int
    func: int
    name: str
    lib: str
    self_time: float
    total_time: float
    total_time_percent: float
    dim: bool


class CallTree:
    def __init__(self, thread: Thread, func_stack_info: FuncStackInfo,
                 self_time: list, total_time: list, child_count: list,
                 root_total_time: float, js_only: bool):
        self._thread = thread
        self._func_stack_table = func_stack_info.func_stack_table
        self._self_time = self_time
        self._total_time = total_time
        self._child_count = child_count
        self._root_total_time = root_total_time
        self._js_only = js_only
        self._children_cache = {}
        self._node_cache = {}

    @property
    def total_time(self) -> float:
        """Total time of all roots; equals the time covered by all samples."""
        return self._root_total_time

    def roots(self) -> list:
        return self.children(ROOT)

    def children(self, func_stack: int) -> list:
        """Children with any time, by descending total time then function id."""
        if func_stack in self._children_cache:
            return self._children_cache[func_stack]
        table = self._func_stack_table
        if func_stack != ROOT and self._child_count[func_stack] == 0:
            children = []
        else:
            # Children always come after their parent.
            children = [
                child for child in range(func_stack + 1, table.length)
                if table.prefix[child] == func_stack and self._total_time[child] != 0
            ]
            children.sort(key=lambda child: (-self._total_time[child], table.func[child]))
        self._children_cache[func_stack] = children
        return children

    def has_children(self, func_stack: int) -> bool:
        return self._child_count[func_stack] != 0

    def parent(self, func_stack: int) -> Optional[int]:
        prefix = self._func_stack_table.prefix[func_stack]
        return None if prefix == ROOT else prefix

    def depth(self, func_stack: int) -> int:
        return self._func_stack_table.depth[func_stack]

    def all_descendants(self, func_stack: int) -> set:
        result = set()
        for child in self.children(func_stack):
            result.add(child)
            result.update(self.all_descendants(child))
        return result

    def node(self, func_stack: int) -> CallNodeData:
        if func_stack in self._node_cache:
            return self._node_cache[func_stack]
        func_table = self._thread.func_table
        resource_table = self._thread.resource_table
        func = self._func_stack_table.func[func_stack]
        resource = func_table.resource[func]
        lib = ""
        if resource is not None and 0 <= resource < resource_table.length:
            lib = resource_table.name[resource] or ""
        total = self._total_time[func_stack]
        node = CallNodeData(
            func_stack=func_stack,
            func=func,
            name=func_table.name[func],
            lib=lib,
            self_time=self._self_time[func_stack],
            total_time=total,
            total_time_percent=(100 * total / self._root_total_time) if self._root_total_time else 0.0,
            dim=self._js_only and not func_table.is_js[func],
        )
        self._node_cache[func_stack] = node
        return node


def get_call_tree(thread: Thread, interval: float, func_stack_info: FuncStackInfo,
                  js_only: bool) -> CallTree:
    with time_code("get_call_tree"):
        table = func_stack_info.func_stack_table
        stack_to_func_stack = func_stack_info.stack_index_to_func_stack_index

        sample_counts = [0] * table.length
        for stack in thread.samples.stack:
            sample_counts[stack_to_func_stack[stack]] += 1
        self_time = [count * interval for count in sample_counts]

        total_time = [0.0] * table.length
        child_count = [0] * table.length
        root_total_time = 0.0
        # Children have higher ids than parents, so a reverse walk finishes
        # every subtree before reaching its parent.
        for func_stack in range(table.length - 1, -1, -1):
            total_time[func_stack] += self_time[func_stack]
            if total_time[func_stack] == 0:
                continue
            prefix = table.prefix[func_stack]
            if prefix == ROOT:
                root_total_time += total_time[func_stack]
            else:
                total_time[prefix] += total_time[func_stack]
                child_count[prefix] += 1

        logger.debug("call tree over %d samples, %.2fms", thread.samples.length, root_total_time)
        return CallTree(thread, func_stack_info, self_time, total_time, child_count,
                        root_total_time, js_only)
