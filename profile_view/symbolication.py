"""
symbolication.py

Applies the results of symbolication to a thread: merging functions that
resolved to the same symbol, and naming them. Symbol lookup itself happens
elsewhere.
"""

from dataclasses import dataclass, field, replace
from typing import Mapping, Sequence

from .tables import Thread


@dataclass(frozen=True)
class FunctionsUpdate:
    old_func_to_new_func: Mapping[int, int] = field(default_factory=dict)
    func_indices: tuple = ()
    func_names: tuple = ()


@dataclass(frozen=True)
class RequestedLib:
    pdb_name: str
    breakpad_id: str


def remap_func(func: int, old_func_to_new_func: Mapping[int, int]) -> int:
    return old_func_to_new_func.get(func, func)


def apply_function_merging(thread: Thread, old_func_to_new_func: Mapping[int, int]) -> Thread:
    """Point every frame at its merged function; unmapped functions stay."""
    frame_table = replace(
        thread.frame_table,
        func=tuple(remap_func(f, old_func_to_new_func) for f in thread.frame_table.func),
    )
    return replace(thread, frame_table=frame_table)


def set_func_names(thread: Thread, func_indices: Sequence[int], func_names: Sequence[str]) -> Thread:
    names = list(thread.func_table.name)
    for func_index, name in zip(func_indices, func_names):
        names[func_index] = name
    return replace(thread, func_table=replace(thread.func_table, name=tuple(names)))


def set_task_tracer_names(tasktracer: Mapping, address_indices: Sequence[int],
                          symbol_names: Sequence[str]) -> dict:
    """Name task tracer addresses in the tasktracer side table's addressTable.className."""
    address_table = dict(tasktracer.get("addressTable") or {})
    class_names = list(address_table.get("className") or [])
    for address_index, name in zip(address_indices, symbol_names):
        if address_index >= len(class_names):
            class_names.extend([None] * (address_index + 1 - len(class_names)))
        class_names[address_index] = name
    address_table["className"] = class_names
    return {**tasktracer, "addressTable": address_table}
