"""Tests for segment merging and size filtering."""

import numpy as np
import pytest

from cnpedigree.calling.postprocess import (
    filter_excessively_short_segments,
    merge_segments,
    merge_two_segments,
)
from cnpedigree.core.segments import Balleles, Segment


def _called(begin, end, copy_number, qscore=30.0, chromosome="chr1", dq_score=None):
    return Segment(
        chromosome,
        begin,
        end,
        counts=np.full(4, float(copy_number)),
        balleles=Balleles.from_counts([5], [5], positions=[begin]),
        copy_number=copy_number,
        qscore=qscore,
        dq_score=dq_score,
    )


def _rows(*calls_per_sample):
    """Rows from per-position tuples of (s1 call, s2 call)."""
    return [{"s1": s1, "s2": s2} for s1, s2 in calls_per_sample]


def test_merge_two_segments():
    """Test evidence and score combination of two merged segments."""
    left = _called(0, 3000, 2, qscore=10.0, dq_score=5.0)
    right = _called(3000, 4000, 2, qscore=2.0, dq_score=12.0)
    right.add_filter("q7")

    merged = merge_two_segments(left, right, quality_filter_threshold=7)

    assert (merged.begin, merged.end) == (0, 4000)
    assert merged.qscore == pytest.approx((10.0 * 3000 + 2.0 * 1000) / 4000)
    assert merged.dq_score == 12.0
    assert merged.filters == set()
    assert merged.balleles.size() == 2
    assert len(merged.counts) == 8


def test_adjacent_identical_calls_merge():
    """Adjacent rows with identical calls in every sample merge."""
    rows = _rows(
        (_called(0, 20000, 2), _called(0, 20000, 3)),
        (_called(20000, 40000, 2), _called(20000, 40000, 3)),
        (_called(40000, 60000, 2), _called(40000, 60000, 2)),
    )

    merged = merge_segments(rows, minimum_call_size=1000, max_merge_distance=10000, quality_filter_threshold=7)

    assert len(merged) == 2
    assert (merged[0]["s2"].begin, merged[0]["s2"].end) == (0, 40000)
    assert merged[1]["s2"].copy_number == 2


def test_distant_or_cross_chromosome_calls_stay_apart():
    """Rows beyond the merge distance or on another chromosome stay apart."""
    rows = _rows(
        (_called(0, 20000, 2), _called(0, 20000, 2)),
        (_called(50000, 70000, 2), _called(50000, 70000, 2)),
        (_called(0, 20000, 2, chromosome="chr2"), _called(0, 20000, 2, chromosome="chr2")),
    )

    merged = merge_segments(rows, minimum_call_size=1000, max_merge_distance=10000, quality_filter_threshold=7)

    assert len(merged) == 3


def test_short_low_quality_rows_are_absorbed():
    """A short low-quality row is absorbed into the previous row."""
    rows = _rows(
        (_called(0, 20000, 2), _called(0, 20000, 2)),
        (_called(20000, 20500, 4, qscore=3.0), _called(20000, 20500, 1, qscore=5.0)),
        (_called(20500, 40000, 2), _called(20500, 40000, 2)),
    )

    merged = merge_segments(rows, minimum_call_size=1000, max_merge_distance=10000, quality_filter_threshold=7)

    assert len(merged) == 1
    segment = merged[0]["s1"]
    assert (segment.begin, segment.end, segment.copy_number) == (0, 40000, 2)


def test_short_high_quality_rows_are_kept():
    """A short row with good quality is kept."""
    rows = _rows(
        (_called(0, 20000, 2), _called(0, 20000, 2)),
        (_called(20000, 20500, 4, qscore=40.0), _called(20000, 20500, 2, qscore=40.0)),
    )

    merged = merge_segments(rows, minimum_call_size=1000, max_merge_distance=10000, quality_filter_threshold=7)

    assert [row["s1"].copy_number for row in merged] == [2, 4]


def test_filter_excessively_short_segments():
    """Test size filter tagging."""
    rows = _rows(
        (_called(0, 5000, 2), _called(0, 5000, 2)),
        (_called(5000, 25000, 3), _called(5000, 25000, 2)),
    )

    n_filtered = filter_excessively_short_segments(rows, segment_size_cutoff=10000)

    assert n_filtered == 1
    assert rows[0]["s1"].filters == {"L10kb"}
    assert rows[0]["s2"].filter_string == "L10kb"
    assert rows[1]["s1"].filter_string == "PASS"
