"""
selectors.py

Memoized derived values. A Selector recomputes only when one of its
dependency values is a different object than the last time it ran;
equality is by identity, never by structure. Reducers keep untouched parts
of the state as the same objects, so unchanged views are served from cache.

Per-thread selector sets are built eagerly, one per thread, when a profile is
loaded (see session.py). SelectedThreadSelectors forwards to whichever
thread is selected; the selected index is itself a dependency, so switching
threads invalidates through the ordinary cache check.
"""

import logging

from . import call_tree, call_tree_filters, filters, func_stacks, markers, stack_timing
from .config import JANK_THRESHOLD_MS

logger = logging.getLogger(__name__)

_UNSET = object()


class Selector:
    """A cache node: dependencies, the inputs seen last time, and the output."""

    def __init__(self, name: str, dependencies, combiner):
        self.name = name
        self.dependencies = tuple(dependencies)
        self.combiner = combiner
        self.recomputations = 0
        self._last_inputs = None
        self._cached_output = _UNSET

    def __call__(self, state):
        inputs = [dependency(state) for dependency in self.dependencies]
        if self._cached_output is not _UNSET and all(
            new is old for new, old in zip(inputs, self._last_inputs)
        ):
            return self._cached_output
        self._cached_output = self.combiner(*inputs)
        self._last_inputs = inputs
        self.recomputations += 1
        logger.debug("recomputed %s (%d)", self.name, self.recomputations)
        return self._cached_output

    def __repr__(self):
        return f"<Selector {self.name}>"


def create_selector(*args, name: str = None) -> Selector:
    """create_selector(dep1, dep2, ..., combiner): the last argument combines the rest."""
    *dependencies, combiner = args
    if not dependencies:
        raise TypeError("create_selector needs at least one dependency")
    return Selector(name or getattr(combiner, "__name__", "selector"), dependencies, combiner)


def _display_range(root_range, zero_at, range_filters):
    if range_filters:
        last = range_filters[-1]
        return markers.StartEndRange(last.start + zero_at, last.end + zero_at)
    return root_range


class ProfileSelectors:
    """Selectors shared by every thread."""

    def __init__(self):
        self.get_profile_view = lambda state: state.profile_view
        self.get_profile_view_options = lambda state: state.profile_view.view_options
        self.get_profile = lambda state: state.profile_view.profile
        self.get_profile_interval = lambda state: state.profile_view.profile.meta.interval
        self.get_profile_meta = lambda state: state.profile_view.profile.meta
        self.get_threads = lambda state: state.profile_view.profile.threads
        self.get_profile_selection = lambda state: state.profile_view.view_options.selection
        self.get_root_range = lambda state: state.profile_view.view_options.root_range
        self.get_url_state = lambda state: state.url_state
        self.get_selected_thread_index = lambda state: state.url_state.selected_thread
        self.get_js_only = lambda state: state.url_state.js_only
        self.get_search_string = lambda state: state.url_state.search_string
        self.get_invert_callstack = lambda state: state.url_state.invert_callstack
        self.get_hide_platform_details = lambda state: state.url_state.hide_platform_details
        self.get_range_filters = lambda state: state.url_state.range_filters

        self.get_zero_at = create_selector(
            self.get_profile_view_options, lambda options: options.zero_at, name="get_zero_at")
        self.get_thread_order = create_selector(
            self.get_profile_view_options, lambda options: options.thread_order,
            name="get_thread_order")
        self.get_scroll_to_selection_generation = create_selector(
            self.get_profile_view_options,
            lambda options: options.scroll_to_selection_generation,
            name="get_scroll_to_selection_generation")
        self.get_thread_names = create_selector(
            self.get_threads, lambda threads: [t.name for t in threads], name="get_thread_names")
        self.get_display_range = create_selector(
            self.get_root_range, self.get_zero_at, self.get_range_filters, _display_range,
            name="get_display_range")
        self.get_category_color_strategy = create_selector(
            self.get_profile_meta, stack_timing.get_category_color_strategy,
            name="get_category_color_strategy")


THREAD_SELECTOR_NAMES = (
    "get_thread",
    "get_view_options",
    "get_call_tree_filters",
    "get_call_tree_filter_labels",
    "get_range_filtered_thread",
    "get_jank_instances",
    "get_tracing_markers",
    "get_range_selection_filtered_tracing_markers",
    "get_filtered_thread",
    "get_range_selection_filtered_thread",
    "get_func_stack_info",
    "get_selected_func_stack",
    "get_expanded_func_stacks",
    "get_call_tree",
    "get_filtered_thread_for_flame_chart",
    "get_func_stack_info_of_filtered_thread_for_flame_chart",
    "get_func_stack_max_depth_for_flame_chart",
    "get_stack_timing_by_depth_for_flame_chart",
    "get_leaf_category_stack_timing_for_flame_chart",
)


def _func_stack_info_for(thread):
    return func_stacks.get_func_stack_info(thread.stack_table, thread.frame_table, thread.func_table)


def _filter_to_selection(thread, selection):
    if not selection.has_selection:
        return thread
    return filters.filter_thread_to_range(thread, selection.selection_start, selection.selection_end)


def _filter_markers_to_view(tracing_markers, display_range, selection):
    result = markers.filter_tracing_markers_to_range(
        tracing_markers, display_range.start, display_range.end)
    if selection.has_selection:
        result = markers.filter_tracing_markers_to_range(
            result, selection.selection_start, selection.selection_end)
    return result


def _resolve_expanded(func_stack_info, func_arrays):
    table = func_stack_info.func_stack_table
    resolved = (func_stacks.get_func_stack_from_func_array(path, table) for path in func_arrays)
    return [func_stack for func_stack in resolved if func_stack is not None]


class ThreadSelectors:
    """The full set of derived values for one thread index."""

    def __init__(self, thread_index: int, shared: ProfileSelectors):
        self.thread_index = thread_index
        s = shared

        def named(label):
            return f"{label}[{thread_index}]"

        self.get_thread = lambda state: s.get_profile(state).threads[thread_index]
        self.get_view_options = (
            lambda state: s.get_profile_view_options(state).per_thread[thread_index])
        self.get_call_tree_filters = (
            lambda state: state.url_state.call_tree_filters.get(thread_index, ()))

        self.get_call_tree_filter_labels = create_selector(
            self.get_thread, self.get_call_tree_filters,
            call_tree_filters.get_call_tree_filter_labels,
            name=named("get_call_tree_filter_labels"))
        self.get_range_filtered_thread = create_selector(
            self.get_thread, s.get_display_range,
            lambda thread, r: filters.filter_thread_to_range(thread, r.start, r.end),
            name=named("get_range_filtered_thread"))
        _get_range_filtered_samples = create_selector(
            self.get_range_filtered_thread, lambda thread: thread.samples,
            name=named("_get_range_filtered_samples"))
        self.get_jank_instances = create_selector(
            _get_range_filtered_samples,
            lambda state: self.get_thread(state).process_type,
            lambda samples, process_type: markers.get_jank_instances(
                samples, process_type, JANK_THRESHOLD_MS),
            name=named("get_jank_instances"))
        self.get_tracing_markers = create_selector(
            self.get_thread, markers.get_tracing_markers,
            name=named("get_tracing_markers"))
        self.get_range_selection_filtered_tracing_markers = create_selector(
            self.get_tracing_markers, s.get_display_range, s.get_profile_selection,
            _filter_markers_to_view,
            name=named("get_range_selection_filtered_tracing_markers"))

        _get_range_and_call_tree_filtered_thread = create_selector(
            self.get_range_filtered_thread, self.get_call_tree_filters,
            filters.apply_call_tree_filters,
            name=named("_get_range_and_call_tree_filtered_thread"))
        _get_js_only_filtered_thread = create_selector(
            _get_range_and_call_tree_filtered_thread, s.get_js_only,
            lambda thread, js_only: filters.filter_thread_to_js_only(thread) if js_only else thread,
            name=named("_get_js_only_filtered_thread"))
        _get_js_only_and_search_filtered_thread = create_selector(
            _get_js_only_filtered_thread, s.get_search_string,
            filters.filter_thread_to_search_string,
            name=named("_get_js_only_and_search_filtered_thread"))
        self.get_filtered_thread = create_selector(
            _get_js_only_and_search_filtered_thread, s.get_invert_callstack,
            lambda thread, invert: filters.invert_callstack(thread) if invert else thread,
            name=named("get_filtered_thread"))
        self.get_range_selection_filtered_thread = create_selector(
            self.get_filtered_thread, s.get_profile_selection, _filter_to_selection,
            name=named("get_range_selection_filtered_thread"))

        self.get_func_stack_info = create_selector(
            self.get_filtered_thread, _func_stack_info_for,
            name=named("get_func_stack_info"))
        _get_selected_func_stack_as_func_array = create_selector(
            self.get_view_options, lambda options: options.selected_func_stack,
            name=named("_get_selected_func_stack_as_func_array"))
        self.get_selected_func_stack = create_selector(
            self.get_func_stack_info, _get_selected_func_stack_as_func_array,
            lambda info, func_array: func_stacks.get_func_stack_from_func_array(
                func_array, info.func_stack_table),
            name=named("get_selected_func_stack"))
        _get_expanded_func_stacks_as_func_arrays = create_selector(
            self.get_view_options, lambda options: options.expanded_func_stacks,
            name=named("_get_expanded_func_stacks_as_func_arrays"))
        self.get_expanded_func_stacks = create_selector(
            self.get_func_stack_info, _get_expanded_func_stacks_as_func_arrays,
            _resolve_expanded,
            name=named("get_expanded_func_stacks"))
        self.get_call_tree = create_selector(
            self.get_range_selection_filtered_thread, s.get_profile_interval,
            self.get_func_stack_info, s.get_js_only,
            call_tree.get_call_tree,
            name=named("get_call_tree"))

        # The flame chart honours "hide platform details" rather than JS-only
        # and ignores call-tree filters.
        self.get_filtered_thread_for_flame_chart = create_selector(
            self.get_range_filtered_thread, s.get_hide_platform_details,
            s.get_invert_callstack, s.get_search_string,
            lambda thread, hide, invert, search: filters.filter_thread_for_flame_chart(
                thread, hide_platform_details=hide, search_string=search, invert=invert),
            name=named("get_filtered_thread_for_flame_chart"))
        self.get_func_stack_info_of_filtered_thread_for_flame_chart = create_selector(
            self.get_filtered_thread_for_flame_chart, _func_stack_info_for,
            name=named("get_func_stack_info_of_filtered_thread_for_flame_chart"))
        self.get_func_stack_max_depth_for_flame_chart = create_selector(
            self.get_filtered_thread_for_flame_chart,
            self.get_func_stack_info_of_filtered_thread_for_flame_chart,
            stack_timing.compute_func_stack_max_depth,
            name=named("get_func_stack_max_depth_for_flame_chart"))
        self.get_stack_timing_by_depth_for_flame_chart = create_selector(
            self.get_filtered_thread_for_flame_chart,
            self.get_func_stack_info_of_filtered_thread_for_flame_chart,
            self.get_func_stack_max_depth_for_flame_chart,
            s.get_profile_interval,
            stack_timing.get_stack_timing_by_depth,
            name=named("get_stack_timing_by_depth_for_flame_chart"))
        self.get_leaf_category_stack_timing_for_flame_chart = create_selector(
            self.get_filtered_thread_for_flame_chart, s.get_profile_interval,
            s.get_category_color_strategy,
            stack_timing.get_leaf_category_stack_timing,
            name=named("get_leaf_category_stack_timing_for_flame_chart"))


def build_selector_table(thread_count: int, shared: ProfileSelectors) -> tuple:
    """One ThreadSelectors per thread, built up front."""
    return tuple(ThreadSelectors(i, shared) for i in range(thread_count))


class SelectedThreadSelectors:
    """
    The selector set of the currently selected thread. Its only cache node
    depends on the selected thread index (and the table it indexes), and
    every accessor forwards to the entry it picks.
    """

    def __init__(self, get_selector_table, shared: ProfileSelectors):
        self._get_thread_selectors = create_selector(
            shared.get_selected_thread_index, get_selector_table,
            lambda index, table: table[index],
            name="get_selected_thread_selectors")
        for name in THREAD_SELECTOR_NAMES:
            setattr(self, name, self._forward(name))

    def _forward(self, name):
        def accessor(state):
            return getattr(self._get_thread_selectors(state), name)(state)
        accessor.__name__ = name
        return accessor

    def thread_selectors(self, state) -> ThreadSelectors:
        return self._get_thread_selectors(state)
