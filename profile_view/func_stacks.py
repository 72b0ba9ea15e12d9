"""
func_stacks.py

Deduplicates raw stacks into "func stacks": call paths identified by
function identity only. Two raw stacks whose frames resolve to the same
sequence of functions share one func stack.

A func stack path (a sequence of function ids, root first) is the
filter-independent way to address a node, since stack rows are renumbered
by every filter stage but function ids are not.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from .logging_setup import time_code
from .tables import FrameTable, FuncTable, StackTable

logger = logging.getLogger(__name__)

# Prefix of a func stack that has no parent.
ROOT = -1


@dataclass(frozen=True)
class FuncStackTable:
    prefix: tuple
    func: tuple
    depth: tuple

    @property
    def length(self) -> int:
        return len(self.func)


@dataclass(frozen=True)
class FuncStackInfo:
    func_stack_table: FuncStackTable
    stack_index_to_func_stack_index: tuple


def get_func_stack_info(
    stack_table: StackTable, frame_table: FrameTable, func_table: FuncTable
) -> FuncStackInfo:
    """
    Build the func stack table for a stack table.

    Stack rows are visited in order; parents precede children, so the
    parent's func stack is always known when a row is reached. Func stack
    ids are handed out in the same order and are therefore topological.
    """
    with time_code("get_func_stack_info"):
        prefix = []
        func = []
        depth = []
        stack_to_func_stack = []
        # (prefix func stack, func) -> func stack
        known = {}

        for stack_index in range(stack_table.length):
            prefix_stack = stack_table.prefix[stack_index]
            if prefix_stack is None:
                prefix_func_stack = ROOT
            else:
                prefix_func_stack = stack_to_func_stack[prefix_stack]
            func_index = frame_table.func[stack_table.frame[stack_index]]
            key = (prefix_func_stack, func_index)
            func_stack = known.get(key)
            if func_stack is None:
                func_stack = len(func)
                prefix.append(prefix_func_stack)
                func.append(func_index)
                depth.append(0 if prefix_func_stack == ROOT else depth[prefix_func_stack] + 1)
                known[key] = func_stack
            stack_to_func_stack.append(func_stack)

        logger.debug(
            "indexed %d stacks into %d func stacks", stack_table.length, len(func)
        )
        return FuncStackInfo(
            func_stack_table=FuncStackTable(
                prefix=tuple(prefix), func=tuple(func), depth=tuple(depth)
            ),
            stack_index_to_func_stack_index=tuple(stack_to_func_stack),
        )


def get_func_stack_from_func_array(
    func_array: Sequence[int], func_stack_table: FuncStackTable
) -> Optional[int]:
    """
    Resolve a path of function ids to a func stack.

    Returns None when the path is empty or no longer exists in this table,
    e.g. because a filter removed the calls it pointed at.
    """
    if not func_array:
        return None
    func_stack = ROOT
    for func in func_array:
        # Children always come after their parent.
        candidate = func_stack + 1
        while candidate < func_stack_table.length and (
            func_stack_table.prefix[candidate] != func_stack
            or func_stack_table.func[candidate] != func
        ):
            candidate += 1
        if candidate == func_stack_table.length:
            return None
        func_stack = candidate
    return func_stack


def get_func_array_from_func_stack(
    func_stack: Optional[int], func_stack_table: FuncStackTable
) -> tuple:
    """The path of function ids leading to a func stack, root first."""
    funcs = []
    while func_stack is not None and func_stack != ROOT:
        funcs.append(func_stack_table.func[func_stack])
        func_stack = func_stack_table.prefix[func_stack]
    funcs.reverse()
    return tuple(funcs)
