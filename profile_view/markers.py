"""
markers.py

Marker-derived views: jank instances from the responsiveness column,
tracing markers paired from start/end payloads, and the time ranges a
profile covers.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from .config import COMPOSITOR_THREAD_NAME
from .tables import Profile, SamplesTable, Thread

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TracingMarker:
    start: float
    dur: float
    name: str
    title: Optional[str] = None
    data: Optional[Any] = None


@dataclass(frozen=True)
class StartEndRange:
    start: float
    end: float


def get_jank_instances(samples: SamplesTable, process_type: str, threshold_ms: float) -> list:
    """
    A jank ends where responsiveness drops after having reached threshold_ms;
    it started responsiveness milliseconds before the last sample of the run.
    """
    jank_instances = []
    last_responsiveness = 0
    last_timestamp = 0
    for i in range(samples.length):
        responsiveness = samples.responsiveness[i]
        if responsiveness is None:
            continue
        if responsiveness < last_responsiveness and last_responsiveness >= threshold_ms:
            jank_instances.append(
                TracingMarker(
                    start=last_timestamp - last_responsiveness,
                    dur=last_responsiveness,
                    name="Jank",
                    title=f"{last_responsiveness:.2f}ms event processing delay on {process_type} thread",
                )
            )
        last_responsiveness = responsiveness
        last_timestamp = samples.time[i]
    return jank_instances


def get_tracing_markers(thread: Thread) -> list:
    markers = thread.markers
    tracing_markers = []
    open_markers = {}
    for i in range(markers.length):
        data = markers.data[i]
        time = markers.time[i]
        name = markers.name[i]
        if not data:
            tracing_markers.append(TracingMarker(start=time, dur=0, name=name))
        elif data.get("type") == "tracing":
            interval = data.get("interval")
            if interval == "start":
                open_markers[name] = (time, data)
            elif interval == "end":
                if name not in open_markers:
                    logger.debug("tracing marker %r ended without a start", name)
                    continue
                start, start_data = open_markers.pop(name)
                dur = time - start if start <= time else 0
                tracing_markers.append(
                    TracingMarker(start=start, dur=dur, name=name, data=start_data)
                )
    return tracing_markers


def filter_tracing_markers_to_range(
    tracing_markers: Sequence[TracingMarker], range_start: float, range_end: float
) -> list:
    return [
        tm for tm in tracing_markers
        if tm.start < range_end and tm.start + tm.dur >= range_start
    ]


def get_time_range_for_thread(thread: Thread, interval: float) -> Optional[StartEndRange]:
    samples = thread.samples
    markers = thread.markers
    if samples.length:
        return StartEndRange(samples.time[0], samples.time[-1] + interval)
    if markers.length:
        return StartEndRange(markers.time[0], markers.time[-1])
    return None


def get_time_range_including_all_threads(profile: Profile) -> StartEndRange:
    ranges = [
        r for r in (
            get_time_range_for_thread(thread, profile.meta.interval)
            for thread in profile.threads
        )
        if r is not None
    ]
    if not ranges:
        return StartEndRange(0, 1)
    return StartEndRange(min(r.start for r in ranges), max(r.end for r in ranges))


def default_thread_order(threads: Sequence[Thread]) -> tuple:
    """Profile order, with compositor threads moved to the end."""
    return tuple(
        sorted(
            range(len(threads)),
            key=lambda i: (threads[i].name == COMPOSITOR_THREAD_NAME, i),
        )
    )
