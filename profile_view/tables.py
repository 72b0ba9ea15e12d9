"""
tables.py

Columnar trace tables. Every table is a frozen record whose columns are
tuples of equal length; row ids are plain indexes into those tuples.
Filtering never mutates a table, it builds a new one.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Optional


@dataclass(frozen=True)
class StackTable:
    """Raw stacks: each row points at a frame and at its parent row (or None)."""

    frame: tuple = ()
    prefix: tuple = ()

    @property
    def length(self) -> int:
        return len(self.frame)


@dataclass(frozen=True)
class FrameTable:
    func: tuple = ()
    category: tuple = ()
    address: tuple = ()

    @property
    def length(self) -> int:
        return len(self.func)


@dataclass(frozen=True)
class FuncTable:
    name: tuple = ()
    is_js: tuple = ()
    resource: tuple = ()
    file_name: tuple = ()

    @property
    def length(self) -> int:
        return len(self.name)


@dataclass(frozen=True)
class ResourceTable:
    name: tuple = ()
    lib: tuple = ()

    @property
    def length(self) -> int:
        return len(self.name)


@dataclass(frozen=True)
class SamplesTable:
    stack: tuple = ()
    time: tuple = ()
    responsiveness: tuple = ()

    @property
    def length(self) -> int:
        return len(self.stack)

    def take(self, indexes) -> "SamplesTable":
        """Keep the given sample rows, in order."""
        return SamplesTable(
            stack=tuple(self.stack[i] for i in indexes),
            time=tuple(self.time[i] for i in indexes),
            responsiveness=tuple(self.responsiveness[i] for i in indexes),
        )

    def slice(self, begin: int, end: int) -> "SamplesTable":
        return SamplesTable(
            stack=self.stack[begin:end],
            time=self.time[begin:end],
            responsiveness=self.responsiveness[begin:end],
        )


@dataclass(frozen=True)
class MarkersTable:
    name: tuple = ()
    time: tuple = ()
    data: tuple = ()

    @property
    def length(self) -> int:
        return len(self.name)

    def take(self, indexes) -> "MarkersTable":
        return MarkersTable(
            name=tuple(self.name[i] for i in indexes),
            time=tuple(self.time[i] for i in indexes),
            data=tuple(self.data[i] for i in indexes),
        )

    def slice(self, begin: int, end: int) -> "MarkersTable":
        return MarkersTable(
            name=self.name[begin:end],
            time=self.time[begin:end],
            data=self.data[begin:end],
        )


@dataclass(frozen=True)
class Thread:
    name: str
    process_type: str = "default"
    stack_table: StackTable = field(default_factory=StackTable)
    frame_table: FrameTable = field(default_factory=FrameTable)
    func_table: FuncTable = field(default_factory=FuncTable)
    resource_table: ResourceTable = field(default_factory=ResourceTable)
    samples: SamplesTable = field(default_factory=SamplesTable)
    markers: MarkersTable = field(default_factory=MarkersTable)

    def func_for_stack(self, stack_index: int) -> int:
        return self.frame_table.func[self.stack_table.frame[stack_index]]

    def func_array_for_stack(self, stack_index: Optional[int]) -> list:
        """Function ids of a raw stack, root first."""
        funcs = []
        while stack_index is not None:
            funcs.append(self.func_for_stack(stack_index))
            stack_index = self.stack_table.prefix[stack_index]
        funcs.reverse()
        return funcs

    def with_stacks(self, stack_table: StackTable, samples: SamplesTable) -> "Thread":
        return replace(self, stack_table=stack_table, samples=samples)


@dataclass(frozen=True)
class Category:
    name: str
    color: str = "grey"


@dataclass(frozen=True)
class ProfileMeta:
    interval: float = 1.0
    start_time: float = 0.0
    categories: tuple = ()


@dataclass(frozen=True)
class Profile:
    meta: ProfileMeta
    threads: tuple = ()
    tasktracer: Optional[Any] = None
