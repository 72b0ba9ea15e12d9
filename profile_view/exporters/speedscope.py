"""
speedscope.py

Emits a (filtered) thread as FlameGraph-style folded stacks:

    root;child;subchild <weight>

You can then load the resulting file into Speedscope
(via "Import" -> "Text (FlameGraph)").
"""

from collections import Counter

from ..tables import Thread


def build_path(thread: Thread, stack_index: int) -> list:
    return [thread.func_table.name[func] for func in thread.func_array_for_stack(stack_index)]


def folded_stacks(thread: Thread, interval: float = 1.0, min_weight: float = 0) -> list:
    """
    One line per distinct stack, weighted by sample count times interval.
    Lines come out in first-sampled order.
    """
    counts = Counter(thread.samples.stack)
    lines = []
    for stack_index, count in counts.items():
        weight = count * interval
        if weight < min_weight:
            continue
        # Semicolons separate frames, so they can't appear inside a name.
        path = [name.replace(";", ":") for name in build_path(thread, stack_index)]
        weight_text = f"{weight:g}"
        lines.append(f"{';'.join(path)} {weight_text}")
    return lines
