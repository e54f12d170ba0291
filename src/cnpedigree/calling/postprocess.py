"""
Post-processing of called segment rows.

Rows are index-aligned across samples and are merged jointly so that every
sample keeps the same segment boundaries.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from cnpedigree.core.segments import (
    Segment,
    SegmentRow,
    get_cnv_size_filter,
    get_quality_filter,
)

logger = logging.getLogger(__name__)


def _mean_qscore(row: SegmentRow) -> float:
    return float(np.mean([segment.qscore for segment in row.values()]))


def _row_span(row: SegmentRow) -> Segment:
    return next(iter(row.values()))


def merge_two_segments(left: Segment, right: Segment, quality_filter_threshold: int) -> Segment:
    """
    Merge ``right`` into ``left``, keeping the call of ``left``.

    Evidence is concatenated, QScore is the length-weighted mean, DQScore the
    largest of the two, and the quality filter is recomputed.
    """
    total_length = left.length + right.length
    if total_length > 0:
        qscore = (left.qscore * left.length + right.qscore * right.length) / total_length
    else:
        qscore = max(left.qscore, right.qscore)
    dq_scores = [score for score in (left.dq_score, right.dq_score) if score is not None]

    quality_filter = get_quality_filter(quality_filter_threshold)
    filters = (left.filters | right.filters) - {quality_filter}
    if qscore < quality_filter_threshold:
        filters.add(quality_filter)

    return Segment(
        chromosome=left.chromosome,
        begin=left.begin,
        end=max(left.end, right.end),
        counts=np.concatenate([left.counts, right.counts]),
        balleles=left.balleles.concat(right.balleles),
        copy_number=left.copy_number,
        major_chromosome_count=left.major_chromosome_count,
        qscore=qscore,
        dq_score=max(dq_scores) if dq_scores else None,
        filters=filters,
    )


def _merge_rows(left: SegmentRow, right: SegmentRow, quality_filter_threshold: int) -> SegmentRow:
    return {
        sample_id: merge_two_segments(left[sample_id], right[sample_id], quality_filter_threshold)
        for sample_id in left
    }


def _same_calls(left: SegmentRow, right: SegmentRow) -> bool:
    return all(left[sid].copy_number == right[sid].copy_number for sid in left)


def merge_segments(
    rows: Sequence[SegmentRow],
    minimum_call_size: int,
    max_merge_distance: int,
    quality_filter_threshold: int,
) -> List[SegmentRow]:
    """
    Merge called segment rows.

    1. A row shorter than ``minimum_call_size`` whose mean QScore across
       samples is below ``quality_filter_threshold`` is absorbed into the
       preceding row on the same chromosome.
    2. Adjacent rows on the same chromosome with the same copy number in
       every sample and a gap of at most ``max_merge_distance`` are merged.

    Args:
        rows: Called rows in genomic order
        minimum_call_size: Shortest row kept on its own when of low quality
        max_merge_distance: Largest gap bridged between identical calls
        quality_filter_threshold: QScore threshold of the quality filter

    Returns:
        Merged rows in genomic order
    """
    absorbed: List[SegmentRow] = []
    for row in rows:
        span = _row_span(row)
        previous: Optional[Segment] = _row_span(absorbed[-1]) if absorbed else None
        if (
            previous is not None
            and previous.chromosome == span.chromosome
            and span.length < minimum_call_size
            and _mean_qscore(row) < quality_filter_threshold
        ):
            absorbed[-1] = _merge_rows(absorbed[-1], row, quality_filter_threshold)
        else:
            absorbed.append(row)

    merged: List[SegmentRow] = []
    for row in absorbed:
        span = _row_span(row)
        previous = _row_span(merged[-1]) if merged else None
        if (
            previous is not None
            and previous.chromosome == span.chromosome
            and span.begin - previous.end <= max_merge_distance
            and _same_calls(merged[-1], row)
        ):
            merged[-1] = _merge_rows(merged[-1], row, quality_filter_threshold)
        else:
            merged.append(row)

    logger.info(
        "Merged %d segment rows into %d (%d absorbed as short low-quality calls)",
        len(rows),
        len(merged),
        len(rows) - len(absorbed),
    )
    return merged


def filter_excessively_short_segments(rows: Sequence[SegmentRow], segment_size_cutoff: int) -> int:
    """
    Tag every segment shorter than ``segment_size_cutoff`` with a size filter.

    Returns:
        Number of rows tagged
    """
    size_filter = get_cnv_size_filter(segment_size_cutoff)
    n_filtered = 0
    for row in rows:
        if _row_span(row).length >= segment_size_cutoff:
            continue
        for segment in row.values():
            segment.add_filter(size_filter)
        n_filtered += 1
    return n_filtered
