"""
stack_timing.py

Flame chart timing: for each depth, the time intervals during which a func
stack was on the sampled stack. A sample lasts until the next sample; the
last one lasts one sampling interval.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable

from .config import DEFAULT_CATEGORY_COLOR
from .func_stacks import ROOT, FuncStackInfo
from .logging_setup import time_code
from .tables import ProfileMeta, Thread

logger = logging.getLogger(__name__)


@dataclass
class StackTimingRow:
    start: list = field(default_factory=list)
    end: list = field(default_factory=list)
    func_stack: list = field(default_factory=list)

    @property
    def length(self) -> int:
        return len(self.start)


@dataclass
class LeafCategoryTimingRow:
    start: list = field(default_factory=list)
    end: list = field(default_factory=list)
    category: list = field(default_factory=list)
    color: list = field(default_factory=list)

    @property
    def length(self) -> int:
        return len(self.start)


def _sample_end_times(thread: Thread, interval: float) -> list:
    times = thread.samples.time
    return [times[i + 1] for i in range(len(times) - 1)] + ([times[-1] + interval] if times else [])


def compute_func_stack_max_depth(thread: Thread, func_stack_info: FuncStackInfo) -> int:
    """Deepest func stack any sample lands on, or -1 when there are no samples."""
    depth = func_stack_info.func_stack_table.depth
    stack_to_func_stack = func_stack_info.stack_index_to_func_stack_index
    return max(
        (depth[stack_to_func_stack[stack]] for stack in thread.samples.stack),
        default=-1,
    )


def get_stack_timing_by_depth(thread: Thread, func_stack_info: FuncStackInfo,
                              max_depth: int, interval: float) -> list:
    with time_code("get_stack_timing_by_depth"):
        table = func_stack_info.func_stack_table
        stack_to_func_stack = func_stack_info.stack_index_to_func_stack_index
        rows = [StackTimingRow() for _ in range(max_depth + 1)]
        # open_boxes[depth] = (func_stack, start) still running at that depth
        open_boxes = []

        def close_from(depth: int, time: float):
            while len(open_boxes) > depth:
                func_stack, start = open_boxes.pop()
                row = rows[len(open_boxes)]
                row.start.append(start)
                row.end.append(time)
                row.func_stack.append(func_stack)

        previous_func_stack = None
        samples = thread.samples
        for i in range(samples.length):
            func_stack = stack_to_func_stack[samples.stack[i]]
            if func_stack == previous_func_stack:
                continue
            previous_func_stack = func_stack
            time = samples.time[i]

            path = []
            current = func_stack
            while current != ROOT:
                path.append(current)
                current = table.prefix[current]
            path.reverse()

            shared = 0
            while (shared < len(open_boxes) and shared < len(path)
                   and open_boxes[shared][0] == path[shared]):
                shared += 1
            close_from(shared, time)
            for depth in range(shared, len(path)):
                open_boxes.append((path[depth], time))

        if samples.length:
            close_from(0, samples.time[-1] + interval)

        # Boxes close deepest-first; put every row back in time order.
        for row in rows:
            order = sorted(range(row.length), key=lambda i: row.start[i])
            row.start[:] = [row.start[i] for i in order]
            row.end[:] = [row.end[i] for i in order]
            row.func_stack[:] = [row.func_stack[i] for i in order]
        return rows


def get_category_color_strategy(meta: ProfileMeta) -> Callable:
    """Map a frame category to the color the profile declares for it."""
    categories = meta.categories

    def category_color(category) -> str:
        if isinstance(category, int) and 0 <= category < len(categories):
            return categories[category].color
        return DEFAULT_CATEGORY_COLOR

    return category_color


def get_leaf_category_stack_timing(thread: Thread, interval: float,
                                   category_color: Callable) -> list:
    """A single row of intervals, split wherever the leaf frame's category changes."""
    row = LeafCategoryTimingRow()
    samples = thread.samples
    stack_table = thread.stack_table
    frame_table = thread.frame_table
    end_times = _sample_end_times(thread, interval)
    previous_category = object()
    for i in range(samples.length):
        category = frame_table.category[stack_table.frame[samples.stack[i]]]
        if row.length and category == previous_category:
            row.end[-1] = end_times[i]
            continue
        previous_category = category
        row.start.append(samples.time[i])
        row.end.append(end_times[i])
        row.category.append(category)
        row.color.append(category_color(category))
    return [row]
