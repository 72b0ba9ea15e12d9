"""
view_flame.py

Render a call tree as a collapsible tree in your terminal using Rich,
with human-friendly time units.
"""

from rich.markup import escape
from rich.tree import Tree

from ..call_tree import CallTree
from ..func_stacks import ROOT


def format_time(ms: float) -> str:
    """Convert milliseconds to a human-friendly string."""
    if ms >= 1_000:
        return f"{ms / 1_000:.2f}s"
    elif ms >= 1:
        return f"{ms:.2f}ms"
    else:
        return f"{ms * 1_000:.0f}μs"


def root_label(call_tree: CallTree, label: str = "root") -> str:
    return f"[b]{escape(label)}[/] • {format_time(call_tree.total_time)} (100%)"


def render(call_tree: CallTree, tree: Tree, func_stack: int = ROOT,
           max_depth: int = None, selected: int = None, expanded=()):
    """
    Add the children of func_stack to tree, heaviest first.

    Nodes deeper than max_depth are left out unless they are expanded;
    the selected node is highlighted.
    """
    for child in call_tree.children(func_stack):
        node = call_tree.node(child)
        name = escape(node.name)
        if node.lib:
            name += f" [dim]{escape(node.lib)}[/]"
        text = f"[bold]{name}[/] • {format_time(node.total_time)} ({node.total_time_percent:.1f}%)"
        if node.dim:
            text = f"[dim]{text}[/]"
        if child == selected:
            text = f"[reverse]{text}[/]"
        branch = tree.add(text)
        depth = call_tree.depth(child)
        if max_depth is None or depth + 1 < max_depth or child in expanded:
            render(call_tree, branch, child, max_depth, selected, expanded)
