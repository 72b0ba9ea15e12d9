"""
reducers.py

Pure state transitions. `reduce(state, action)` returns a new State built
from the previous one; any part an action does not touch is returned as the
very same object, which is what lets the selectors skip recomputation.

Selection state only ever reacts to filter changes, never the other way
round.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional

from . import actions as a
from .call_tree_filters import func_stack_after_call_tree_filter
from .config import DEFAULT_TAB_ORDER
from .markers import StartEndRange, default_thread_order, get_time_range_including_all_threads
from .symbolication import apply_function_merging, remap_func, set_func_names, set_task_tracer_names
from .tables import Profile

logger = logging.getLogger(__name__)

SYMBOLICATING = "SYMBOLICATING"
DONE = "DONE"


@dataclass(frozen=True)
class ThreadViewOptions:
    selected_func_stack: tuple = ()
    expanded_func_stacks: tuple = ()
    selected_marker: Optional[int] = None


@dataclass(frozen=True)
class ProfileViewOptions:
    per_thread: tuple = ()
    thread_order: tuple = ()
    symbolication_status: str = DONE
    waiting_for_libs: frozenset = frozenset()
    selection: a.ProfileSelection = a.ProfileSelection()
    scroll_to_selection_generation: int = 0
    root_range: StartEndRange = StartEndRange(0, 1)
    zero_at: float = 0
    tab_order: tuple = DEFAULT_TAB_ORDER


@dataclass(frozen=True)
class ProfileViewState:
    view_options: ProfileViewOptions = ProfileViewOptions()
    profile: Optional[Profile] = None


@dataclass(frozen=True)
class UrlState:
    """Filter settings; encoding them into a URL happens elsewhere."""

    selected_thread: int = 0
    # thread index -> tuple of call tree filters
    call_tree_filters: Mapping[int, tuple] = field(default_factory=dict)
    js_only: bool = False
    search_string: str = ""
    invert_callstack: bool = False
    hide_platform_details: bool = False
    # committed ranges, relative to zero_at
    range_filters: tuple = ()


@dataclass(frozen=True)
class State:
    profile_view: ProfileViewState = ProfileViewState()
    url_state: UrlState = UrlState()


def _combine(record, reducers: Mapping[str, Any], action):
    """Run one reducer per field; keep the record itself if nothing changed."""
    changes = {}
    for name, reducer in reducers.items():
        old = getattr(record, name)
        new = reducer(old, action)
        if new is not old:
            changes[name] = new
    return replace(record, **changes) if changes else record


def _replace_at(items: tuple, index: int, item) -> tuple:
    return items[:index] + (item,) + items[index + 1:]


def profile(state: Optional[Profile], action):
    if isinstance(action, a.ReceiveProfile):
        return action.profile
    if isinstance(action, a.CoalescedFunctionsUpdate):
        if state is None:
            return None
        updates = action.functions_update_per_thread
        threads = []
        for thread_index, thread in enumerate(state.threads):
            update = updates.get(thread_index)
            if update is None:
                threads.append(thread)
                continue
            thread = apply_function_merging(thread, update.old_func_to_new_func)
            threads.append(set_func_names(thread, update.func_indices, update.func_names))
        return replace(state, threads=tuple(threads))
    if isinstance(action, a.AssignTaskTracerNames):
        if state is None or state.tasktracer is None:
            return state
        tasktracer = set_task_tracer_names(
            state.tasktracer, action.address_indices, action.symbol_names)
        return replace(state, tasktracer=tasktracer)
    return state


def _remap_func_array(func_array: tuple, old_func_to_new_func) -> tuple:
    return tuple(remap_func(func, old_func_to_new_func) for func in func_array)


def _with_ancestors(expanded: tuple, selected: tuple) -> tuple:
    """Add every strict, non-empty ancestor prefix of selected to expanded."""
    result = list(expanded)
    seen = set(expanded)
    for i in range(1, len(selected)):
        ancestor = tuple(selected[:i])
        if ancestor not in seen:
            seen.add(ancestor)
            result.append(ancestor)
    return tuple(result)


def per_thread(state: tuple, action):
    if isinstance(action, a.ReceiveProfile):
        return tuple(ThreadViewOptions() for _ in action.profile.threads)

    if isinstance(action, a.CoalescedFunctionsUpdate):
        updates = action.functions_update_per_thread
        result = []
        for thread_index, options in enumerate(state):
            update = updates.get(thread_index)
            if update is None:
                result.append(options)
                continue
            mapping = update.old_func_to_new_func
            result.append(replace(
                options,
                selected_func_stack=_remap_func_array(options.selected_func_stack, mapping),
                expanded_func_stacks=tuple(
                    _remap_func_array(path, mapping) for path in options.expanded_func_stacks
                ),
            ))
        return tuple(result)

    if isinstance(action, a.ChangeSelectedFuncStack):
        options = state[action.thread_index]
        selected = tuple(action.selected_func_stack)
        return _replace_at(state, action.thread_index, replace(
            options,
            selected_func_stack=selected,
            expanded_func_stacks=_with_ancestors(options.expanded_func_stacks, selected),
        ))

    if isinstance(action, a.ChangeExpandedFuncStacks):
        options = state[action.thread_index]
        return _replace_at(state, action.thread_index, replace(
            options,
            expanded_func_stacks=tuple(tuple(path) for path in action.expanded_func_stacks),
        ))

    if isinstance(action, a.ChangeSelectedMarker):
        options = state[action.thread_index]
        return _replace_at(state, action.thread_index, replace(
            options, selected_marker=action.selected_marker,
        ))

    if isinstance(action, a.AddCallTreeFilter):
        options = state[action.thread_index]
        call_tree_filter = action.filter
        return _replace_at(state, action.thread_index, replace(
            options,
            selected_func_stack=func_stack_after_call_tree_filter(
                options.selected_func_stack, call_tree_filter),
            expanded_func_stacks=tuple(
                func_stack_after_call_tree_filter(path, call_tree_filter)
                for path in options.expanded_func_stacks
            ),
        ))

    return state


def thread_order(state: tuple, action):
    if isinstance(action, a.ReceiveProfile):
        return default_thread_order(action.profile.threads)
    if isinstance(action, a.ChangeThreadOrder):
        return tuple(action.thread_order)
    return state


def symbolication_status(state: str, action):
    if isinstance(action, a.StartSymbolicating):
        return SYMBOLICATING
    if isinstance(action, a.DoneSymbolicating):
        return DONE
    return state


def waiting_for_libs(state: frozenset, action):
    if isinstance(action, a.RequestingSymbolTable):
        return state | {action.requested_lib}
    if isinstance(action, a.ReceivedSymbolTableReply):
        return state - {action.requested_lib}
    return state


def selection(state: a.ProfileSelection, action):
    if isinstance(action, a.UpdateProfileSelection):
        return action.selection
    return state


_SCROLL_TO_SELECTION_ACTIONS = (
    a.ChangeInvertCallstack,
    a.ChangeJSOnly,
    a.ChangeSelectedFuncStack,
    a.ChangeSelectedThread,
)


def scroll_to_selection_generation(state: int, action):
    if isinstance(action, _SCROLL_TO_SELECTION_ACTIONS):
        return state + 1
    return state


def root_range(state: StartEndRange, action):
    if isinstance(action, a.ReceiveProfile):
        return get_time_range_including_all_threads(action.profile)
    return state


def zero_at(state: float, action):
    if isinstance(action, a.ReceiveProfile):
        return get_time_range_including_all_threads(action.profile).start
    return state


def tab_order(state: tuple, action):
    if isinstance(action, a.ChangeTabOrder):
        return tuple(action.tab_order)
    return state


VIEW_OPTIONS_REDUCERS = {
    "per_thread": per_thread,
    "thread_order": thread_order,
    "symbolication_status": symbolication_status,
    "waiting_for_libs": waiting_for_libs,
    "selection": selection,
    "scroll_to_selection_generation": scroll_to_selection_generation,
    "root_range": root_range,
    "zero_at": zero_at,
    "tab_order": tab_order,
}


def profile_view(state: ProfileViewState, action) -> ProfileViewState:
    view_options = _combine(state.view_options, VIEW_OPTIONS_REDUCERS, action)
    new_profile = profile(state.profile, action)
    if view_options is state.view_options and new_profile is state.profile:
        return state
    return ProfileViewState(view_options=view_options, profile=new_profile)


def url_state(state: UrlState, action) -> UrlState:
    if isinstance(action, a.ChangeSelectedThread):
        return replace(state, selected_thread=action.selected_thread)
    if isinstance(action, a.AddCallTreeFilter):
        filters = dict(state.call_tree_filters)
        filters[action.thread_index] = filters.get(action.thread_index, ()) + (action.filter,)
        return replace(state, call_tree_filters=filters)
    if isinstance(action, a.ChangeJSOnly):
        return replace(state, js_only=action.js_only)
    if isinstance(action, a.ChangeSearchString):
        return replace(state, search_string=action.search_string)
    if isinstance(action, a.ChangeInvertCallstack):
        return replace(state, invert_callstack=action.invert_callstack)
    if isinstance(action, a.ChangeHidePlatformDetails):
        return replace(state, hide_platform_details=action.hide_platform_details)
    if isinstance(action, a.AddRangeFilter):
        return replace(state, range_filters=state.range_filters + (StartEndRange(action.start, action.end),))
    if isinstance(action, a.PopRangeFilters):
        return replace(state, range_filters=state.range_filters[:action.first_popped_index])
    if isinstance(action, a.ReceiveProfile):
        if state.selected_thread >= len(action.profile.threads):
            return replace(state, selected_thread=0)
    return state


def reduce(state: State, action) -> State:
    logger.debug("reducing %s", type(action).__name__)
    new_profile_view = profile_view(state.profile_view, action)
    new_url_state = url_state(state.url_state, action)
    if new_profile_view is state.profile_view and new_url_state is state.url_state:
        return state
    return State(profile_view=new_profile_view, url_state=new_url_state)
