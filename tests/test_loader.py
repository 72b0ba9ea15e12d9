import gzip
import json

import pytest

from profile_view import actions as a
from profile_view.errors import ProfileFormatError
from profile_view.loader import load_profile, parse_profile, parse_thread
from profile_view.session import AnalysisSession


def sample_document():
    return {
        "meta": {
            "interval": 0.5,
            "startTime": 1000,
            "categories": [{"name": "Idle", "color": "transparent"}, {"name": "JS", "color": "yellow"}],
        },
        "threads": [
            {
                "name": "GeckoMain",
                "processType": "content",
                "stringTable": ["main", "helper", "app.js", "libxul.so", "Paint"],
                "stackTable": {"frame": [0, 1], "prefix": [None, 0]},
                "frameTable": {"func": [0, 1], "category": [1, 1], "address": [None, 4096]},
                "funcTable": {
                    "name": [0, 1],
                    "isJS": [True, False],
                    "resource": [-1, 0],
                    "fileName": [2, None],
                },
                "resourceTable": {"name": [3], "lib": [0]},
                "samples": {
                    "stack": [0, 1, None, 1],
                    "time": [1000, 1000.5, 1001, 1001.5],
                    "responsiveness": [0, 0, 0, 0],
                },
                "markers": {
                    "name": [4],
                    "time": [1000.25],
                    "data": [{"type": "tracing", "interval": "start"}],
                },
            }
        ],
    }


def test_parse_resolves_strings_and_drops_stackless_samples():
    profile = parse_profile(sample_document())
    assert profile.meta.interval == 0.5
    assert profile.meta.start_time == 1000
    assert [c.color for c in profile.meta.categories] == ["transparent", "yellow"]

    (thread,) = profile.threads
    assert thread.name == "GeckoMain"
    assert thread.process_type == "content"
    assert thread.func_table.name == ("main", "helper")
    assert thread.func_table.file_name == ("app.js", None)
    assert thread.func_table.resource == (None, 0)
    assert thread.func_table.is_js == (True, False)
    assert thread.resource_table.name == ("libxul.so",)
    assert thread.stack_table.prefix == (None, 0)
    assert thread.samples.stack == (0, 1, 1)
    assert thread.samples.time == (1000, 1000.5, 1001.5)
    assert thread.markers.name == ("Paint",)


def test_schema_and_data_tables():
    raw = {
        "name": "Worker",
        "stringArray": ["run"],
        "stackTable": {"schema": {"prefix": 0, "frame": 1}, "data": [[None, 0], [0, 0]]},
        "frameTable": {"schema": {"func": 0, "category": 1}, "data": [[0, 2]]},
        "funcTable": {"name": [0], "isJS": [True]},
        "samples": {"schema": {"stack": 0, "time": 1}, "data": [[1, 5.0], [0, 6.0]]},
    }
    thread = parse_thread(raw)
    assert thread.stack_table.frame == (0, 0)
    assert thread.stack_table.prefix == (None, 0)
    assert thread.frame_table.category == (2,)
    assert thread.func_table.name == ("run",)
    assert thread.samples.stack == (1, 0)
    assert thread.samples.responsiveness == (None, None)
    assert thread.markers.length == 0
    assert thread.process_type == "default"


def test_load_from_gzip_and_wrapped_document(tmp_path):
    plain = tmp_path / "profile.json"
    plain.write_text(json.dumps({"profile": sample_document()}))
    compressed = tmp_path / "profile.json.gz"
    compressed.write_bytes(gzip.compress(json.dumps(sample_document()).encode("utf-8")))

    for path in (plain, compressed):
        profile = load_profile(str(path))
        assert profile.threads[0].samples.length == 3


def test_invalid_json(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json")
    with pytest.raises(ProfileFormatError):
        load_profile(str(path))


def test_missing_threads():
    with pytest.raises(ProfileFormatError):
        parse_profile({"meta": {}})


def test_column_length_mismatch():
    document = sample_document()
    document["threads"][0]["samples"]["time"].pop()
    with pytest.raises(ProfileFormatError):
        parse_profile(document)


def test_prefix_must_come_first():
    document = sample_document()
    document["threads"][0]["stackTable"]["prefix"] = [1, None]
    with pytest.raises(ProfileFormatError):
        parse_profile(document)


def test_markers_are_sorted_by_time():
    document = sample_document()
    document["threads"][0]["stringTable"] += ["M1", "M2", "M3"]
    document["threads"][0]["markers"] = {
        "name": [5, 6, 7],
        "time": [1004, 1001, 1002],
        "data": [None, None, None],
    }
    profile = parse_profile(document)
    assert profile.threads[0].markers.name == ("M2", "M3", "M1")
    assert profile.threads[0].markers.time == (1001, 1002, 1004)

    session = AnalysisSession()
    session.dispatch(a.ReceiveProfile(profile))
    session.dispatch(a.AddRangeFilter(0.5, 3))
    thread = session.select("get_range_filtered_thread", 0)
    assert thread.markers.name == ("M2", "M3")


def test_unsorted_sample_times():
    document = sample_document()
    document["threads"][0]["samples"]["time"] = [1000, 1001.5, 1001, 1000.5]
    with pytest.raises(ProfileFormatError):
        parse_profile(document)


@pytest.mark.parametrize(
    "table, column, values",
    [
        ("samples", "stack", [0, 7, None, 1]),
        ("stackTable", "frame", [0, 2]),
        ("frameTable", "func", [0, 5]),
        ("funcTable", "resource", [-1, 3]),
        ("samples", "stack", [0, "1", None, 1]),
    ],
)
def test_references_must_point_at_existing_rows(table, column, values):
    document = sample_document()
    document["threads"][0][table][column] = values
    with pytest.raises(ProfileFormatError):
        parse_profile(document)
