import pytest

from profile_view.tables import (
    Category,
    FrameTable,
    FuncTable,
    MarkersTable,
    Profile,
    ProfileMeta,
    ResourceTable,
    SamplesTable,
    StackTable,
    Thread,
)


def build_thread(stacks, names=None, native=(), times=None, categories=None,
                 markers=(), responsiveness=None, resources=None,
                 name="GeckoMain", process_type="default"):
    """
    Build a thread from stacks given as lists of function names, root first.
    Every function gets one frame, frame i -> func i.
    """
    if names is None:
        names = []
        for stack in stacks:
            for func_name in stack:
                if func_name not in names:
                    names.append(func_name)
    func_ids = {func_name: i for i, func_name in enumerate(names)}
    categories = categories or {}
    resources = resources or {}
    resource_names = sorted(set(resources.values()))

    rows = {}
    frame_column = []
    prefix_column = []
    sample_stacks = []
    for stack in stacks:
        prefix = None
        for func_name in stack:
            key = (prefix, func_ids[func_name])
            if key not in rows:
                rows[key] = len(frame_column)
                frame_column.append(func_ids[func_name])
                prefix_column.append(prefix)
            prefix = rows[key]
        sample_stacks.append(prefix)

    if times is None:
        times = list(range(len(stacks)))
    if responsiveness is None:
        responsiveness = [None] * len(stacks)

    return Thread(
        name=name,
        process_type=process_type,
        stack_table=StackTable(frame=tuple(frame_column), prefix=tuple(prefix_column)),
        frame_table=FrameTable(
            func=tuple(range(len(names))),
            category=tuple(categories.get(n, 0) for n in names),
            address=tuple(0x1000 + i for i in range(len(names))),
        ),
        func_table=FuncTable(
            name=tuple(names),
            is_js=tuple(n not in native for n in names),
            resource=tuple(
                resource_names.index(resources[n]) if n in resources else None for n in names
            ),
            file_name=tuple(None for _ in names),
        ),
        resource_table=ResourceTable(
            name=tuple(resource_names), lib=tuple(None for _ in resource_names)
        ),
        samples=SamplesTable(
            stack=tuple(sample_stacks),
            time=tuple(times),
            responsiveness=tuple(responsiveness),
        ),
        markers=MarkersTable(
            name=tuple(m[0] for m in markers),
            time=tuple(m[1] for m in markers),
            data=tuple(m[2] for m in markers),
        ),
    )


def func_arrays(thread):
    """Each sample's stack as function names, root first."""
    return [
        [thread.func_table.name[f] for f in thread.func_array_for_stack(stack)]
        for stack in thread.samples.stack
    ]


@pytest.fixture
def make_thread():
    return build_thread


@pytest.fixture
def stacks_of():
    return func_arrays


@pytest.fixture
def make_profile():
    def _make_profile(*threads, interval=1.0, categories=()):
        return Profile(
            meta=ProfileMeta(
                interval=interval,
                categories=tuple(Category(*c) for c in categories),
            ),
            threads=tuple(threads),
        )

    return _make_profile


@pytest.fixture
def abc_thread():
    """Three samples: A>B, A>B, A>C."""
    return build_thread([["A", "B"], ["A", "B"], ["A", "C"]])
