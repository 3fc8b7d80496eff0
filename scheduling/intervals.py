"""
Half-open interval algebra used by availability calculation
Intervals are [start, end): touching endpoints do not overlap
"""
from datetime import timedelta
from typing import Iterable, List, NamedTuple, Any


class Interval(NamedTuple):
    start: Any
    end: Any

    @property
    def duration(self):
        return self.end - self.start

    def contains(self, start, end) -> bool:
        """True if [start, end) lies fully inside this interval"""
        return self.start <= start and end <= self.end


def overlaps(a: Interval, b: Interval) -> bool:
    return a.start < b.end and b.start < a.end


def expand(interval: Interval, minutes: int) -> Interval:
    """Pad an interval by `minutes` on both sides (buffer around a meeting)"""
    pad = timedelta(minutes=minutes)
    return Interval(interval.start - pad, interval.end + pad)


def merge(intervals: Iterable[Interval]) -> List[Interval]:
    """Union overlapping or touching intervals into a sorted list"""
    ordered = sorted(i for i in intervals if i.start < i.end)
    merged: List[Interval] = []
    for current in ordered:
        if merged and current.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = Interval(last.start, max(last.end, current.end))
        else:
            merged.append(current)
    return merged


def subtract(window: Interval, blocked: Iterable[Interval]) -> List[Interval]:
    """
    Remove every blocked interval from `window`.

    Returns the sorted, non-overlapping free remainder. Remainders are only
    separate entries when a blocked interval lies between them.
    """
    free: List[Interval] = []
    cursor = window.start
    for block in merge(blocked):
        if block.end <= cursor:
            continue
        if block.start >= window.end:
            break
        if block.start > cursor:
            free.append(Interval(cursor, block.start))
        cursor = max(cursor, block.end)
        if cursor >= window.end:
            break
    if cursor < window.end:
        free.append(Interval(cursor, window.end))
    return free


def step_starts(interval: Interval, duration: timedelta, step: timedelta = None):
    """
    Yield every start `t` aligned to interval.start with t + duration <= end.
    Step defaults to the duration so consecutive candidates never overlap.
    """
    step = step or duration
    current = interval.start
    while current + duration <= interval.end:
        yield current
        current = current + step
