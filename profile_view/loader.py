"""
loader.py

Reads a processed profile (Firefox profiler column layout) from JSON,
optionally gzip-compressed, into Profile tables. String-table indices are
resolved to strings while loading.

Tables may be stored either as columns ({"frame": [...], "prefix": [...]})
or as rows with a schema ({"schema": {"frame": 0, ...}, "data": [[...]]}).
"""

import gzip
import json
import logging
from typing import Any, Dict, List, Optional

from .errors import ProfileFormatError
from .tables import (
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

logger = logging.getLogger(__name__)


def read_profile_json(path: str) -> Dict[str, Any]:
    with open(path, "rb") as f:
        data = f.read()
    if path.endswith(".gz"):
        data = gzip.decompress(data)
    try:
        document = json.loads(data)
    except ValueError as exc:
        raise ProfileFormatError(f"{path}: not valid JSON ({exc})") from exc
    # Some tools wrap the profile in {"profile": {...}}.
    if isinstance(document, dict) and isinstance(document.get("profile"), dict):
        document = document["profile"]
    return document


def _column(table: Dict[str, Any], key: str, length: int, default=None) -> list:
    values = table.get(key)
    if values is None:
        return [default] * length
    if len(values) != length:
        raise ProfileFormatError(f"column {key!r} has {len(values)} rows, expected {length}")
    return list(values)


def _as_columns(table: Optional[Dict[str, Any]], name: str) -> Dict[str, Any]:
    """Normalize a schema/data table into column form."""
    if table is None:
        return {}
    if not isinstance(table, dict):
        raise ProfileFormatError(f"{name} must be an object")
    rows = table.get("data")
    schema = table.get("schema")
    if isinstance(rows, list) and isinstance(schema, dict):
        columns = {key: [] for key in schema}
        for row in rows:
            for key, index in schema.items():
                if isinstance(row, dict):
                    columns[key].append(row.get(key))
                else:
                    columns[key].append(row[index] if index < len(row) else None)
        columns["length"] = len(rows)
        return columns
    return table


def _table_length(table: Dict[str, Any], first_column: str) -> int:
    length = table.get("length")
    if isinstance(length, int):
        return length
    return len(table.get(first_column) or [])


def _strings(values: list, string_table: List[str]) -> list:
    result = []
    for value in values:
        if isinstance(value, int) and 0 <= value < len(string_table):
            result.append(string_table[value])
        elif value is None or isinstance(value, str):
            result.append(value)
        else:
            result.append(str(value))
    return result


def _optional_index(value) -> Optional[int]:
    if value is None or (isinstance(value, int) and value < 0):
        return None
    return value


def _check_rows(values, column: str, table: str, length: int, allow_none: bool = False):
    """Every value of a reference column must be a row of the table it points into."""
    for i, value in enumerate(values):
        if value is None and allow_none:
            continue
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value < length:
            raise ProfileFormatError(
                f"{column}[{i}] = {value!r} is not a row of {table} ({length} rows)")


def _check_times(values, column: str):
    for i, value in enumerate(values):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ProfileFormatError(f"{column}[{i}] = {value!r} is not a time")


def parse_thread(raw: Dict[str, Any]) -> Thread:
    if not isinstance(raw, dict):
        raise ProfileFormatError("thread must be an object")
    string_table = raw.get("stringTable") or raw.get("stringArray") or []

    stacks = _as_columns(raw.get("stackTable"), "stackTable")
    n = _table_length(stacks, "frame")
    stack_table = StackTable(
        frame=tuple(_column(stacks, "frame", n)),
        prefix=tuple(_optional_index(p) for p in _column(stacks, "prefix", n)),
    )
    for i, prefix in enumerate(stack_table.prefix):
        if prefix is not None and prefix >= i:
            raise ProfileFormatError(f"stack {i} refers to a later prefix {prefix}")

    frames = _as_columns(raw.get("frameTable"), "frameTable")
    n = _table_length(frames, "func")
    frame_table = FrameTable(
        func=tuple(_column(frames, "func", n)),
        category=tuple(_column(frames, "category", n, 0)),
        address=tuple(_column(frames, "address", n)),
    )

    funcs = _as_columns(raw.get("funcTable"), "funcTable")
    n = _table_length(funcs, "name")
    func_table = FuncTable(
        name=tuple(_strings(_column(funcs, "name", n), string_table)),
        is_js=tuple(bool(v) for v in _column(funcs, "isJS", n, False)),
        resource=tuple(_optional_index(r) for r in _column(funcs, "resource", n)),
        file_name=tuple(_strings(_column(funcs, "fileName", n), string_table)),
    )

    resources = _as_columns(raw.get("resourceTable"), "resourceTable")
    n = _table_length(resources, "name")
    resource_table = ResourceTable(
        name=tuple(_strings(_column(resources, "name", n), string_table)),
        lib=tuple(_column(resources, "lib", n)),
    )

    samples = _as_columns(raw.get("samples"), "samples")
    n = _table_length(samples, "stack")
    stack_column = _column(samples, "stack", n)
    time_column = _column(samples, "time", n)
    responsiveness_column = _column(samples, "responsiveness", n)
    # Stackless samples carry no call information; drop them up front.
    kept = [i for i, stack in enumerate(stack_column) if stack is not None]
    samples_table = SamplesTable(
        stack=tuple(stack_column[i] for i in kept),
        time=tuple(time_column[i] for i in kept),
        responsiveness=tuple(responsiveness_column[i] for i in kept),
    )

    markers = _as_columns(raw.get("markers"), "markers")
    n = _table_length(markers, "name")
    marker_times = _column(markers, "time", n)
    _check_times(marker_times, "markers.time")
    # Markers are not stored in time order; range filtering bisects on time.
    order = sorted(range(n), key=lambda i: marker_times[i])
    markers_table = MarkersTable(
        name=tuple(_strings(_column(markers, "name", n), string_table)),
        time=tuple(marker_times),
        data=tuple(_column(markers, "data", n)),
    ).take(order)

    _check_rows(stack_table.frame, "stackTable.frame", "frameTable", frame_table.length)
    _check_rows(frame_table.func, "frameTable.func", "funcTable", func_table.length)
    _check_rows(func_table.resource, "funcTable.resource", "resourceTable",
                resource_table.length, allow_none=True)
    _check_rows(samples_table.stack, "samples.stack", "stackTable", stack_table.length)
    _check_times(samples_table.time, "samples.time")
    for i in range(1, samples_table.length):
        if samples_table.time[i] < samples_table.time[i - 1]:
            raise ProfileFormatError(f"samples.time is not sorted at row {i}")

    return Thread(
        name=raw.get("name") or "Thread",
        process_type=raw.get("processType") or "default",
        stack_table=stack_table,
        frame_table=frame_table,
        func_table=func_table,
        resource_table=resource_table,
        samples=samples_table,
        markers=markers_table,
    )


def parse_profile(document: Dict[str, Any]) -> Profile:
    if not isinstance(document, dict):
        raise ProfileFormatError("profile must be an object")
    meta = document.get("meta") or {}
    threads = document.get("threads")
    if not isinstance(threads, list):
        raise ProfileFormatError("profile has no threads list")
    categories = tuple(
        Category(name=c.get("name", "Other"), color=c.get("color", "grey"))
        for c in meta.get("categories") or []
    )
    profile = Profile(
        meta=ProfileMeta(
            interval=float(meta.get("interval", 1.0)),
            start_time=float(meta.get("startTime", 0.0)),
            categories=categories,
        ),
        threads=tuple(parse_thread(t) for t in threads),
        tasktracer=document.get("tasktracer"),
    )
    logger.info("loaded profile with %d threads", len(profile.threads))
    return profile


def load_profile(path: str) -> Profile:
    return parse_profile(read_profile_json(path))
