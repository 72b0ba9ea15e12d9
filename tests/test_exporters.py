from rich.console import Console
from rich.tree import Tree

from profile_view.call_tree import get_call_tree
from profile_view.exporters.speedscope import folded_stacks
from profile_view.exporters.view_flame import format_time, render, root_label
from profile_view.func_stacks import get_func_stack_info


def test_folded_stacks(make_thread):
    thread = make_thread([["A", "B"], ["A", "B"], ["A", "C;D"], ["A"]])
    assert folded_stacks(thread, interval=0.5) == ["A;B 1", "A;C:D 0.5", "A 0.5"]
    assert folded_stacks(thread, interval=0.5, min_weight=1) == ["A;B 1"]


def test_format_time():
    assert format_time(2500) == "2.50s"
    assert format_time(12.5) == "12.50ms"
    assert format_time(0.25) == "250μs"


def render_text(thread, **kwargs):
    info = get_func_stack_info(thread.stack_table, thread.frame_table, thread.func_table)
    call_tree = get_call_tree(thread, 1.0, info, False)
    tree = Tree(root_label(call_tree, "Complete Thread"))
    render(call_tree, tree, **kwargs)
    console = Console(record=True, width=120)
    console.print(tree)
    return console.export_text()


def test_render_tree(abc_thread):
    text = render_text(abc_thread)
    assert "Complete Thread • 3.00ms (100%)" in text
    assert "A • 3.00ms (100.0%)" in text
    assert "B • 2.00ms (66.7%)" in text
    assert "C • 1.00ms (33.3%)" in text
    assert text.index("B •") < text.index("C •")


def test_render_respects_max_depth_and_expansion(make_thread):
    thread = make_thread([["A", "B", "C"]])
    text = render_text(thread, max_depth=1)
    assert "A •" in text
    assert "B •" not in text
    # func stack 0 is A; expanding it reveals B.
    text = render_text(thread, max_depth=1, expanded={0})
    assert "B •" in text
    assert "C •" not in text


def test_render_escapes_markup(make_thread):
    thread = make_thread([["[bold]x"]])
    assert "[bold]x •" in render_text(thread)
