"""
filters.py

The thread filter pipeline. Every stage is a pure function from a Thread to
a new Thread.

Row ids: frame, func and resource rows are never pruned or renumbered here;
stack rows may be rebuilt. A sample whose stack a stage removes is dropped,
so no stackless samples leave any stage.
"""

import logging
from bisect import bisect_left
from dataclasses import replace
from typing import Callable, Optional, Sequence

from .call_tree_filters import CallTreeFilter, PostfixCallTreeFilter, PrefixCallTreeFilter
from .config import PLATFORM_FUNC_NAME
from .errors import UnhandledCallTreeFilterError
from .logging_setup import time_code
from .tables import FrameTable, FuncTable, StackTable, Thread

logger = logging.getLogger(__name__)


def _update_thread_stacks(
    thread: Thread, stack_table: StackTable, convert_stack: Callable[[int], Optional[int]]
) -> Thread:
    """Swap in a new stack table, mapping each sample's stack through convert_stack."""
    samples = thread.samples
    kept = []
    new_stacks = []
    for i, stack in enumerate(samples.stack):
        new_stack = convert_stack(stack)
        if new_stack is None:
            continue
        kept.append(i)
        new_stacks.append(new_stack)
    new_samples = replace(samples.take(kept), stack=tuple(new_stacks))
    if len(kept) != samples.length:
        logger.debug("dropped %d of %d samples", samples.length - len(kept), samples.length)
    return thread.with_stacks(stack_table, new_samples)


class _StackBuilder:
    """Accumulates a new stack table, deduplicating (prefix, frame) rows."""

    def __init__(self):
        self.frame = []
        self.prefix = []
        self._rows = {}

    def stack_for(self, prefix: Optional[int], frame: int) -> int:
        key = (prefix, frame)
        stack = self._rows.get(key)
        if stack is None:
            stack = len(self.frame)
            self.frame.append(frame)
            self.prefix.append(prefix)
            self._rows[key] = stack
        return stack

    def build(self) -> StackTable:
        return StackTable(frame=tuple(self.frame), prefix=tuple(self.prefix))


def filter_thread_to_range(thread: Thread, range_start: float, range_end: float) -> Thread:
    """Keep samples and markers with range_start <= time < range_end."""
    samples = thread.samples
    begin = bisect_left(samples.time, range_start)
    end = bisect_left(samples.time, range_end)
    markers = thread.markers
    marker_begin = bisect_left(markers.time, range_start)
    marker_end = bisect_left(markers.time, range_end)
    return replace(
        thread,
        samples=samples.slice(begin, end),
        markers=markers.slice(marker_begin, marker_end),
    )


def filter_thread_to_prefix_stack(
    thread: Thread, prefix_funcs: Sequence[int], match_js_only: bool
) -> Thread:
    """
    Keep samples whose stack starts with prefix_funcs and re-root them at the
    last function of the prefix.
    """
    with time_code("filter_thread_to_prefix_stack"):
        stack_table = thread.stack_table
        frame_table = thread.frame_table
        func_table = thread.func_table
        prefix_depth = len(prefix_funcs)
        # How many prefix funcs each stack has matched so far; -1 means it
        # diverged from the prefix.
        stack_matches = [-1] * stack_table.length
        old_stack_to_new_stack = {}
        builder = _StackBuilder()

        for stack_index in range(stack_table.length):
            prefix = stack_table.prefix[stack_index]
            prefix_matches_up_to = stack_matches[prefix] if prefix is not None else 0
            stack_matches_up_to = -1
            if prefix_matches_up_to != -1:
                frame = stack_table.frame[stack_index]
                if prefix_matches_up_to == prefix_depth:
                    stack_matches_up_to = prefix_depth
                else:
                    func_index = frame_table.func[frame]
                    if func_index == prefix_funcs[prefix_matches_up_to]:
                        stack_matches_up_to = prefix_matches_up_to + 1
                    elif match_js_only and not func_table.is_js[func_index]:
                        stack_matches_up_to = prefix_matches_up_to
                if stack_matches_up_to == prefix_depth:
                    new_prefix = old_stack_to_new_stack.get(prefix)
                    old_stack_to_new_stack[stack_index] = builder.stack_for(new_prefix, frame)
            stack_matches[stack_index] = stack_matches_up_to

        return _update_thread_stacks(
            thread, builder.build(), lambda stack: old_stack_to_new_stack.get(stack)
        )


def filter_thread_to_postfix_stack(
    thread: Thread, postfix_funcs: Sequence[int], match_js_only: bool
) -> Thread:
    """
    Keep samples whose stack ends with postfix_funcs (given leaf first) and
    cut each stack off at the outermost matched frame.
    """
    with time_code("filter_thread_to_postfix_stack"):
        stack_table = thread.stack_table
        frame_table = thread.frame_table
        func_table = thread.func_table
        postfix_depth = len(postfix_funcs)
        converted = {}

        def convert_stack(leaf: int) -> Optional[int]:
            if leaf in converted:
                return converted[leaf]
            result = None
            matches_up_to = 0
            stack = leaf
            while stack is not None and postfix_depth:
                func = frame_table.func[stack_table.frame[stack]]
                if func == postfix_funcs[matches_up_to]:
                    matches_up_to += 1
                    if matches_up_to == postfix_depth:
                        result = stack
                        break
                elif not match_js_only or func_table.is_js[func]:
                    break
                stack = stack_table.prefix[stack]
            converted[leaf] = result
            return result

        return _update_thread_stacks(thread, stack_table, convert_stack)


def apply_call_tree_filters(thread: Thread, filters: Sequence[CallTreeFilter]) -> Thread:
    """Apply call-tree filters left to right; an empty list returns the thread as is."""
    for call_tree_filter in filters:
        if isinstance(call_tree_filter, PrefixCallTreeFilter):
            thread = filter_thread_to_prefix_stack(
                thread, call_tree_filter.prefix_funcs, call_tree_filter.match_js_only
            )
        elif isinstance(call_tree_filter, PostfixCallTreeFilter):
            thread = filter_thread_to_postfix_stack(
                thread, call_tree_filter.postfix_funcs, call_tree_filter.match_js_only
            )
        else:
            raise UnhandledCallTreeFilterError(call_tree_filter)
    return thread


def filter_thread_to_js_only(thread: Thread) -> Thread:
    """Remove native frames; each JS frame is re-parented to its nearest JS ancestor."""
    with time_code("filter_thread_to_js_only"):
        stack_table = thread.stack_table
        frame_table = thread.frame_table
        func_table = thread.func_table
        builder = _StackBuilder()
        old_stack_to_new_stack = []

        for stack_index in range(stack_table.length):
            prefix = stack_table.prefix[stack_index]
            new_prefix = old_stack_to_new_stack[prefix] if prefix is not None else None
            frame = stack_table.frame[stack_index]
            if func_table.is_js[frame_table.func[frame]]:
                old_stack_to_new_stack.append(builder.stack_for(new_prefix, frame))
            else:
                old_stack_to_new_stack.append(new_prefix)

        return _update_thread_stacks(
            thread, builder.build(), lambda stack: old_stack_to_new_stack[stack]
        )


def filter_thread_to_search_string(thread: Thread, search_string: str) -> Thread:
    """
    Keep samples with at least one function whose name, file or resource
    contains search_string (case-insensitive), and markers whose name does.
    """
    if not search_string:
        return thread
    with time_code("filter_thread_to_search_string"):
        needle = search_string.lower()
        stack_table = thread.stack_table
        frame_table = thread.frame_table
        func_table = thread.func_table
        resource_table = thread.resource_table
        func_matches_cache = {}

        def func_matches(func: int) -> bool:
            if func in func_matches_cache:
                return func_matches_cache[func]
            haystacks = [func_table.name[func], func_table.file_name[func]]
            resource = func_table.resource[func]
            if resource is not None and 0 <= resource < resource_table.length:
                haystacks.append(resource_table.name[resource])
            result = any(h is not None and needle in h.lower() for h in haystacks)
            func_matches_cache[func] = result
            return result

        stack_matches = []
        for stack_index in range(stack_table.length):
            prefix = stack_table.prefix[stack_index]
            if prefix is not None and stack_matches[prefix]:
                stack_matches.append(True)
            else:
                stack_matches.append(
                    func_matches(frame_table.func[stack_table.frame[stack_index]])
                )

        markers = thread.markers
        kept_markers = [
            i for i, name in enumerate(markers.name) if needle in name.lower()
        ]
        thread = replace(thread, markers=markers.take(kept_markers))
        return _update_thread_stacks(
            thread,
            stack_table,
            lambda stack: stack if stack_matches[stack] else None,
        )


def invert_callstack(thread: Thread) -> Thread:
    """
    Reverse every sample's stack so that leaves become roots. Distinct
    leaves that share a function are merged, so inverting twice does not
    necessarily give back the original stack table.
    """
    with time_code("invert_callstack"):
        stack_table = thread.stack_table
        builder = _StackBuilder()
        old_stack_to_new_stack = {}

        def convert_stack(stack_index: int) -> int:
            new_stack = old_stack_to_new_stack.get(stack_index)
            if new_stack is None:
                current = stack_index
                while current is not None:
                    new_stack = builder.stack_for(new_stack, stack_table.frame[current])
                    current = stack_table.prefix[current]
                old_stack_to_new_stack[stack_index] = new_stack
            return new_stack

        new_stacks = tuple(convert_stack(stack) for stack in thread.samples.stack)
        samples = replace(thread.samples, stack=new_stacks)
        return thread.with_stacks(builder.build(), samples)


def collapse_platform_stack_frames(thread: Thread) -> Thread:
    """
    Collapse every run of consecutive native frames into one synthetic
    "Platform" frame. One Platform function is appended to the func table,
    and one frame per category of collapsed code to the frame table.
    """
    with time_code("collapse_platform_stack_frames"):
        stack_table = thread.stack_table
        frame_table = thread.frame_table
        func_table = thread.func_table

        def is_js_stack(stack_index: int) -> bool:
            return func_table.is_js[frame_table.func[stack_table.frame[stack_index]]]

        platform_func = func_table.length
        new_frames = {}
        builder = _StackBuilder()
        old_stack_to_new_stack = []

        for stack_index in range(stack_table.length):
            prefix = stack_table.prefix[stack_index]
            new_prefix = old_stack_to_new_stack[prefix] if prefix is not None else None
            frame = stack_table.frame[stack_index]
            if is_js_stack(stack_index):
                old_stack_to_new_stack.append(builder.stack_for(new_prefix, frame))
            elif prefix is None or is_js_stack(prefix):
                category = frame_table.category[frame]
                if category not in new_frames:
                    new_frames[category] = frame_table.length + len(new_frames)
                old_stack_to_new_stack.append(
                    builder.stack_for(new_prefix, new_frames[category])
                )
            else:
                old_stack_to_new_stack.append(new_prefix)

        if not new_frames:
            return thread

        categories = list(new_frames)
        new_frame_table = FrameTable(
            func=frame_table.func + (platform_func,) * len(categories),
            category=frame_table.category + tuple(categories),
            address=frame_table.address + (None,) * len(categories),
        )
        new_func_table = FuncTable(
            name=func_table.name + (PLATFORM_FUNC_NAME,),
            is_js=func_table.is_js + (False,),
            resource=func_table.resource + (None,),
            file_name=func_table.file_name + (None,),
        )
        thread = replace(thread, frame_table=new_frame_table, func_table=new_func_table)
        return _update_thread_stacks(
            thread, builder.build(), lambda stack: old_stack_to_new_stack[stack]
        )


def filter_thread(
    thread: Thread,
    *,
    call_tree_filters: Sequence[CallTreeFilter] = (),
    js_only: bool = False,
    search_string: str = "",
    invert: bool = False,
) -> Thread:
    """Run the call-tree stages of the pipeline after any range filtering."""
    thread = apply_call_tree_filters(thread, call_tree_filters)
    if js_only:
        thread = filter_thread_to_js_only(thread)
    thread = filter_thread_to_search_string(thread, search_string)
    if invert:
        thread = invert_callstack(thread)
    return thread


def filter_thread_for_flame_chart(
    thread: Thread,
    *,
    hide_platform_details: bool = False,
    search_string: str = "",
    invert: bool = False,
) -> Thread:
    """
    The flame chart variant: it honours "hide platform details" instead of
    JS-only and ignores call-tree filters.
    """
    thread = filter_thread_to_search_string(thread, search_string)
    if hide_platform_details:
        thread = collapse_platform_stack_frames(thread)
    if invert:
        thread = invert_callstack(thread)
    return thread
