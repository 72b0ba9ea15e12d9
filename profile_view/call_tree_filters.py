"""
call_tree_filters.py

Prefix/postfix call-tree filters, their labels, and the rule that keeps a
persisted func stack path meaningful after a filter is added.
"""

from dataclasses import dataclass
from typing import Sequence, Union

from .config import COMPLETE_THREAD_LABEL, UNKNOWN_FUNC_LABEL
from .errors import UnhandledCallTreeFilterError
from .tables import Thread


@dataclass(frozen=True)
class PrefixCallTreeFilter:
    """Keep calls under `prefix_funcs` (root first)."""

    prefix_funcs: tuple
    match_js_only: bool = False


@dataclass(frozen=True)
class PostfixCallTreeFilter:
    """Keep calls ending in `postfix_funcs` (leaf first, as in the inverted tree)."""

    postfix_funcs: tuple
    match_js_only: bool = False


CallTreeFilter = Union[PrefixCallTreeFilter, PostfixCallTreeFilter]


def filter_funcs(call_tree_filter: CallTreeFilter) -> tuple:
    if isinstance(call_tree_filter, PrefixCallTreeFilter):
        return call_tree_filter.prefix_funcs
    if isinstance(call_tree_filter, PostfixCallTreeFilter):
        return call_tree_filter.postfix_funcs
    raise UnhandledCallTreeFilterError(call_tree_filter)


def get_call_tree_filter_labels(thread: Thread, filters: Sequence[CallTreeFilter]) -> list:
    """Breadcrumb labels: the complete thread, then the last function of each filter."""
    labels = [COMPLETE_THREAD_LABEL]
    for call_tree_filter in filters:
        funcs = filter_funcs(call_tree_filter)
        if funcs and 0 <= funcs[-1] < thread.func_table.length:
            labels.append(thread.func_table.name[funcs[-1]])
        else:
            # The path may come from another profile.
            labels.append(UNKNOWN_FUNC_LABEL)
    return labels


def remove_prefix_from_func_array(prefix_funcs: Sequence[int], func_array: Sequence[int]) -> tuple:
    """
    Drop a matched prefix from a path, keeping the boundary function, which is
    the root of the prefix-filtered tree. A path the prefix does not cover
    becomes empty.
    """
    if len(prefix_funcs) > len(func_array) or any(
        prefix_func != func_array[i] for i, prefix_func in enumerate(prefix_funcs)
    ):
        return ()
    return tuple(func_array[len(prefix_funcs) - 1:])


def func_stack_after_call_tree_filter(func_array: Sequence[int], call_tree_filter: CallTreeFilter) -> tuple:
    if isinstance(call_tree_filter, PrefixCallTreeFilter):
        if call_tree_filter.match_js_only:
            # Native frames skipped while matching make the prefix length
            # meaningless for this path.
            return tuple(func_array)
        return remove_prefix_from_func_array(call_tree_filter.prefix_funcs, func_array)
    if isinstance(call_tree_filter, PostfixCallTreeFilter):
        return tuple(func_array)
    raise UnhandledCallTreeFilterError(call_tree_filter)


def parse_func_path(text: str) -> tuple:
    """Parse "3,7,12" into a func path."""
    parts = [p.strip() for p in text.split(",") if p.strip()]
    return tuple(int(p) for p in parts)
