from dataclasses import replace

import pytest

from profile_view import actions as a
from profile_view.call_tree_filters import (
    PostfixCallTreeFilter,
    PrefixCallTreeFilter,
    get_call_tree_filter_labels,
    remove_prefix_from_func_array,
)
from profile_view.errors import UnhandledCallTreeFilterError
from profile_view.reducers import DONE, SYMBOLICATING, State, ThreadViewOptions, reduce
from profile_view.symbolication import FunctionsUpdate, RequestedLib


@pytest.fixture
def loaded(make_thread, make_profile):
    main = make_thread([["A", "B", "C"], ["A", "D"]], times=[3, 4])
    worker = make_thread([["X"]], times=[1], name="Worker")
    profile = make_profile(main, worker)
    return reduce(State(), a.ReceiveProfile(profile, source="web"))


def options(state, thread_index=0) -> ThreadViewOptions:
    return state.profile_view.view_options.per_thread[thread_index]


def test_profile_load_resets_view_options(loaded):
    view_options = loaded.profile_view.view_options
    assert view_options.per_thread == (ThreadViewOptions(), ThreadViewOptions())
    assert options(loaded).selected_marker is None
    assert view_options.thread_order == (0, 1)
    assert view_options.root_range.start == 1
    assert view_options.root_range.end == 5
    assert view_options.zero_at == 1


def test_selecting_expands_every_ancestor(loaded):
    state = reduce(loaded, a.ChangeExpandedFuncStacks(0, ((0,), (5, 6))))
    state = reduce(state, a.ChangeSelectedFuncStack(0, (0, 1, 2)))
    assert options(state).selected_func_stack == (0, 1, 2)
    assert options(state).expanded_func_stacks == ((0,), (5, 6), (0, 1))
    assert (0, 1, 2) not in options(state).expanded_func_stacks


@pytest.mark.parametrize("path", [(), (4,), (0, 1), (3, 1, 4, 1, 5)])
def test_expanded_contains_strict_ancestors_after_selection(loaded, path):
    state = reduce(loaded, a.ChangeSelectedFuncStack(0, path))
    expanded = options(state).expanded_func_stacks
    for i in range(1, len(path)):
        assert path[:i] in expanded


def test_expansion_and_marker_are_replaced(loaded):
    state = reduce(loaded, a.ChangeSelectedFuncStack(0, (0, 1)))
    state = reduce(state, a.ChangeExpandedFuncStacks(0, [[0, 3]]))
    assert options(state).expanded_func_stacks == ((0, 3),)
    state = reduce(state, a.ChangeSelectedMarker(1, 4))
    assert options(state, 1).selected_marker == 4
    assert options(state).selected_func_stack == (0, 1)


@pytest.mark.parametrize(
    "prefix, path, expected",
    [
        ((0,), (0, 1, 2), (0, 1, 2)),
        ((0, 1), (0, 1, 2), (1, 2)),
        ((0, 1, 2), (0, 1, 2), (2,)),
        ((0, 1), (0,), ()),
        ((0, 3), (0, 1, 2), ()),
        ((9,), (0, 1), ()),
    ],
)
def test_prefix_remap_keeps_boundary(prefix, path, expected):
    assert remove_prefix_from_func_array(prefix, path) == expected


def test_prefix_filter_remaps_selection_and_expansion(loaded):
    state = reduce(loaded, a.ChangeSelectedFuncStack(0, (0, 1, 2)))
    state = reduce(state, a.ChangeExpandedFuncStacks(0, ((0,), (0, 1), (0, 3))))
    state = reduce(state, a.AddCallTreeFilter(0, PrefixCallTreeFilter((0, 1))))
    assert options(state).selected_func_stack == (1, 2)
    assert options(state).expanded_func_stacks == ((), (1,), ())
    assert state.url_state.call_tree_filters[0] == (PrefixCallTreeFilter((0, 1)),)


def test_prefix_filter_with_single_function_keeps_selection(loaded):
    state = reduce(loaded, a.ChangeSelectedFuncStack(0, (0, 1, 2)))
    state = reduce(state, a.AddCallTreeFilter(0, PrefixCallTreeFilter((0,))))
    assert options(state).selected_func_stack == (0, 1, 2)


def test_js_only_prefix_and_postfix_filters_leave_paths_alone(loaded):
    state = reduce(loaded, a.ChangeSelectedFuncStack(0, (0, 1, 2)))
    state = reduce(state, a.AddCallTreeFilter(0, PrefixCallTreeFilter((0, 1), match_js_only=True)))
    state = reduce(state, a.AddCallTreeFilter(0, PostfixCallTreeFilter((2,))))
    assert options(state).selected_func_stack == (0, 1, 2)
    assert len(state.url_state.call_tree_filters[0]) == 2


def test_unknown_filter_is_fatal(loaded):
    with pytest.raises(UnhandledCallTreeFilterError):
        reduce(loaded, a.AddCallTreeFilter(0, ("infix", (0,))))


def test_adding_a_filter_keeps_other_threads_untouched(loaded):
    state = reduce(loaded, a.AddCallTreeFilter(1, PrefixCallTreeFilter((0,))))
    state2 = reduce(state, a.AddCallTreeFilter(0, PrefixCallTreeFilter((0,))))
    assert state2.url_state.call_tree_filters[1] is state.url_state.call_tree_filters[1]
    assert options(state2, 1) is options(state, 1)


def test_coalesced_functions_remap_paths_and_tables(loaded):
    state = reduce(loaded, a.ChangeSelectedFuncStack(0, (0, 1, 2)))
    update = FunctionsUpdate(old_func_to_new_func={1: 3}, func_indices=(3,), func_names=("merged",))
    state = reduce(state, a.CoalescedFunctionsUpdate({0: update}))
    assert options(state).selected_func_stack == (0, 3, 2)
    assert options(state).expanded_func_stacks == ((0,), (0, 3))
    thread = state.profile_view.profile.threads[0]
    assert thread.frame_table.func == (0, 3, 2, 3)
    assert thread.func_table.name[3] == "merged"
    assert state.profile_view.profile.threads[1] is loaded.profile_view.profile.threads[1]


def test_waiting_for_libs_is_idempotent(loaded):
    lib = RequestedLib("xul.pdb", "ABCDEF0")
    state = reduce(loaded, a.RequestingSymbolTable(lib))
    state = reduce(state, a.RequestingSymbolTable(RequestedLib("xul.pdb", "ABCDEF0")))
    assert state.profile_view.view_options.waiting_for_libs == {lib}
    state = reduce(state, a.ReceivedSymbolTableReply(lib))
    state = reduce(state, a.ReceivedSymbolTableReply(lib))
    assert state.profile_view.view_options.waiting_for_libs == frozenset()


def test_symbolication_status(loaded):
    state = reduce(loaded, a.StartSymbolicating())
    assert state.profile_view.view_options.symbolication_status == SYMBOLICATING
    state = reduce(state, a.DoneSymbolicating())
    assert state.profile_view.view_options.symbolication_status == DONE


def test_scroll_generation_bumps(loaded):
    state = reduce(loaded, a.ChangeInvertCallstack(True))
    state = reduce(state, a.ChangeSelectedThread(1))
    state = reduce(state, a.ChangeSearchString("foo"))
    assert state.profile_view.view_options.scroll_to_selection_generation == 2
    assert state.url_state.invert_callstack
    assert state.url_state.selected_thread == 1


def test_simple_view_options(loaded):
    state = reduce(loaded, a.ChangeTabOrder((5, 4, 3, 2, 1, 0)))
    state = reduce(state, a.ChangeThreadOrder((1, 0)))
    selection = a.ProfileSelection(has_selection=True, selection_start=2, selection_end=4)
    state = reduce(state, a.UpdateProfileSelection(selection))
    view_options = state.profile_view.view_options
    assert view_options.tab_order == (5, 4, 3, 2, 1, 0)
    assert view_options.thread_order == (1, 0)
    assert view_options.selection is selection


def test_range_filters_push_and_pop(loaded):
    state = reduce(loaded, a.AddRangeFilter(0, 3))
    state = reduce(state, a.AddRangeFilter(1, 2))
    assert len(state.url_state.range_filters) == 2
    state = reduce(state, a.PopRangeFilters(1))
    assert [(r.start, r.end) for r in state.url_state.range_filters] == [(0, 3)]


def test_unrelated_action_keeps_state(loaded):
    assert reduce(loaded, object()) is loaded


def test_filter_labels_tolerate_unknown_functions(make_thread):
    thread = make_thread([["A", "B"]])
    filters = [PrefixCallTreeFilter((0, 1)), PrefixCallTreeFilter((9,)), PostfixCallTreeFilter(())]
    assert get_call_tree_filter_labels(thread, filters) == [
        "Complete Thread", "B", "(unknown function)", "(unknown function)",
    ]


def test_task_tracer_names(loaded):
    tasktracer = {"addressTable": {"address": [16, 32], "className": [None, None]}, "taskTable": {}}
    profile = replace(loaded.profile_view.profile, tasktracer=tasktracer)
    state = reduce(loaded, a.ReceiveProfile(profile))
    state = reduce(state, a.AssignTaskTracerNames((1,), ("nsTimerEvent",)))
    named = state.profile_view.profile.tasktracer
    assert named["addressTable"]["className"] == [None, "nsTimerEvent"]
    assert named["addressTable"]["address"] == [16, 32]
    assert tasktracer["addressTable"]["className"] == [None, None]
    assert state.profile_view.profile.threads is profile.threads
    # Without a tasktracer table there is nothing to name.
    assert reduce(loaded, a.AssignTaskTracerNames((0,), ("x",))) is loaded
