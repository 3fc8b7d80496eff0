"""
Test the half-open interval helpers used by slot generation
"""
from datetime import datetime, timedelta

from scheduling.intervals import Interval, overlaps, expand, merge, subtract, step_starts


def t(hour, minute=0):
    return datetime(2026, 3, 1, hour, minute)


class TestOverlaps:

    def test_touching_intervals_do_not_overlap(self):
        assert not overlaps(Interval(t(9), t(10)), Interval(t(10), t(11)))
        assert not overlaps(Interval(t(10), t(11)), Interval(t(9), t(10)))

    def test_partial_and_nested_overlap(self):
        assert overlaps(Interval(t(9), t(10)), Interval(t(9, 59), t(11)))
        assert overlaps(Interval(t(9), t(12)), Interval(t(10), t(11)))


class TestExpandAndMerge:

    def test_expand_pads_both_sides(self):
        assert expand(Interval(t(10), t(11)), 15) == Interval(t(9, 45), t(11, 15))

    def test_expand_by_zero_is_identity(self):
        assert expand(Interval(t(10), t(11)), 0) == Interval(t(10), t(11))

    def test_merge_joins_overlapping_and_touching(self):
        merged = merge([
            Interval(t(13), t(14)),
            Interval(t(9), t(10)),
            Interval(t(10), t(11)),
            Interval(t(10, 30), t(10, 45)),
        ])
        assert merged == [Interval(t(9), t(11)), Interval(t(13), t(14))]

    def test_merge_drops_empty_intervals(self):
        assert merge([Interval(t(9), t(9))]) == []


class TestSubtract:

    def test_block_in_the_middle_splits_window(self):
        free = subtract(Interval(t(9), t(12)), [Interval(t(9, 45), t(11, 15))])
        assert free == [Interval(t(9), t(9, 45)), Interval(t(11, 15), t(12))]

    def test_block_covering_window_leaves_nothing(self):
        assert subtract(Interval(t(9), t(12)), [Interval(t(8), t(13))]) == []

    def test_blocks_outside_window_are_ignored(self):
        window = Interval(t(9), t(12))
        assert subtract(window, [Interval(t(7), t(8)), Interval(t(12), t(13))]) == [window]

    def test_overlapping_blocks_in_any_order(self):
        free = subtract(
            Interval(t(9), t(17)),
            [Interval(t(14), t(15)), Interval(t(10), t(11)), Interval(t(10, 30), t(12))]
        )
        assert free == [Interval(t(9), t(10)), Interval(t(12), t(14)), Interval(t(15), t(17))]

    def test_block_at_window_edges(self):
        free = subtract(Interval(t(9), t(12)), [Interval(t(9), t(10)), Interval(t(11), t(12))])
        assert free == [Interval(t(10), t(11))]


class TestStepStarts:

    def test_steps_by_duration_from_interval_start(self):
        starts = list(step_starts(Interval(t(9), t(10, 45)), timedelta(minutes=30)))
        assert starts == [t(9), t(9, 30), t(10)]

    def test_last_candidate_may_end_exactly_at_interval_end(self):
        starts = list(step_starts(Interval(t(11, 15), t(12)), timedelta(minutes=45)))
        assert starts == [t(11, 15)]

    def test_interval_shorter_than_duration_yields_nothing(self):
        assert list(step_starts(Interval(t(9), t(9, 45)), timedelta(minutes=60))) == []

    def test_custom_step(self):
        starts = list(step_starts(Interval(t(9), t(10)), timedelta(minutes=30), timedelta(minutes=15)))
        assert starts == [t(9), t(9, 15), t(9, 30)]
