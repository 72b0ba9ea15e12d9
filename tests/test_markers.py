from profile_view.markers import (
    StartEndRange,
    TracingMarker,
    default_thread_order,
    filter_tracing_markers_to_range,
    get_jank_instances,
    get_time_range_for_thread,
    get_time_range_including_all_threads,
    get_tracing_markers,
)


def test_jank_instances(make_thread):
    thread = make_thread(
        [["A"]] * 6,
        times=[0, 10, 20, 30, 40, 50],
        responsiveness=[0, 20, 60, 10, 30, 45],
    )
    (jank,) = get_jank_instances(thread.samples, "content", 50)
    assert jank.start == 20 - 60
    assert jank.dur == 60
    assert jank.name == "Jank"
    assert jank.title == "60.00ms event processing delay on content thread"


def test_no_jank_below_threshold(make_thread):
    thread = make_thread([["A"]] * 3, responsiveness=[10, 49, 0])
    assert get_jank_instances(thread.samples, "default", 50) == []


def test_tracing_markers_pair_start_and_end(make_thread):
    thread = make_thread(
        [],
        markers=[
            ("Paint", 1, {"type": "tracing", "interval": "start"}),
            ("Instant", 2, None),
            ("Paint", 4, {"type": "tracing", "interval": "end"}),
            ("GC", 5, {"type": "tracing", "interval": "end"}),
            ("Other", 6, {"type": "gpu"}),
        ],
    )
    tracing = get_tracing_markers(thread)
    assert [(m.name, m.start, m.dur) for m in tracing] == [("Instant", 2, 0), ("Paint", 1, 3)]


def test_filter_tracing_markers_to_range():
    markers = [TracingMarker(0, 5, "a"), TracingMarker(6, 1, "b"), TracingMarker(10, 0, "c")]
    assert [m.name for m in filter_tracing_markers_to_range(markers, 4, 10)] == ["a", "b"]


def test_time_ranges(make_thread, make_profile):
    sampled = make_thread([["A"], ["A"]], times=[5, 9])
    marker_only = make_thread([], markers=[("M", 2, None), ("M", 12, None)])
    assert get_time_range_for_thread(sampled, 1) == StartEndRange(5, 10)
    assert get_time_range_for_thread(marker_only, 1) == StartEndRange(2, 12)
    assert get_time_range_for_thread(make_thread([]), 1) is None
    profile = make_profile(sampled, marker_only)
    assert get_time_range_including_all_threads(profile) == StartEndRange(2, 12)
    assert get_time_range_including_all_threads(make_profile()) == StartEndRange(0, 1)


def test_compositor_sorts_last(make_thread):
    threads = [
        make_thread([], name="Compositor"),
        make_thread([], name="GeckoMain"),
        make_thread([], name="DOM Worker"),
    ]
    assert default_thread_order(threads) == (1, 2, 0)
