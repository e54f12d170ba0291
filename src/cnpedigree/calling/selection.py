"""
Choice between alternative segmentations of a region.

Each region carries a partition-derived segmentation (hypothesis A) and,
where it overlaps common CNV intervals, a segmentation anchored to those
intervals (hypothesis B). The hypothesis with the higher sum of independent
maximal depth log-likelihoods is kept.
"""

import logging
from typing import List, Mapping, Optional, Sequence, Set, Tuple

from cnpedigree.calling.genotyper import get_copy_numbers_no_pedigree_info
from cnpedigree.calling.likelihoods import CopyNumberLikelihoodCalculator
from cnpedigree.core.models import CopyNumberModel
from cnpedigree.core.segments import Segment, SegmentRow, SegmentSet, SegmentsSet

logger = logging.getLogger(__name__)


class SegmentSetSelector:
    """
    Selects the most likely segmentation hypothesis of a region.

    Attributes:
        calculator: Likelihood calculator providing depth likelihoods
    """

    def __init__(self, calculator: CopyNumberLikelihoodCalculator):
        self.calculator = calculator

    def get_segment_set_log_likelihood(
        self,
        segment_set: SegmentSet,
        which: SegmentsSet,
        models: Mapping[str, CopyNumberModel],
    ) -> float:
        """
        Sum over the rows of a hypothesis of the independent maximal
        log-likelihood, using depth evidence only.
        """
        log_likelihood = 0.0
        for row in segment_set.get_set(which):
            depth = self.calculator.get_copy_numbers_likelihoods(row, models)
            _, joint = get_copy_numbers_no_pedigree_info(
                list(row), self.calculator.convert_to_log_likelihood(depth)
            )
            log_likelihood += joint.maximal_log_likelihood
        return log_likelihood

    def select(
        self,
        segment_set: SegmentSet,
        models: Mapping[str, CopyNumberModel],
    ) -> SegmentSet:
        """
        Mark the selected hypothesis of ``segment_set`` and return it.

        An absent hypothesis leaves the other selected without scoring.
        Ties go to hypothesis B.
        """
        if segment_set.set_a is None:
            segment_set.set_selected(SegmentsSet.SET_B)
        elif segment_set.set_b is None:
            segment_set.set_selected(SegmentsSet.SET_A)
        else:
            log_likelihood_a = self.get_segment_set_log_likelihood(
                segment_set, SegmentsSet.SET_A, models
            )
            log_likelihood_b = self.get_segment_set_log_likelihood(
                segment_set, SegmentsSet.SET_B, models
            )
            segment_set.set_selected(
                SegmentsSet.SET_A if log_likelihood_a > log_likelihood_b else SegmentsSet.SET_B
            )
            logger.debug(
                "Region with %d/%d rows: log-likelihood A=%.3f B=%.3f, selected %s",
                len(segment_set.set_a),
                len(segment_set.set_b),
                log_likelihood_a,
                log_likelihood_b,
                segment_set.selected.value,
            )
        return segment_set


def _rows(
    segments: Mapping[str, Sequence[Segment]], sample_ids: List[str], indices: Sequence[int]
) -> List[SegmentRow]:
    return [{sid: segments[sid][i] for sid in sample_ids} for i in indices]


def _check_aligned(segments: Mapping[str, Sequence[Segment]], what: str) -> None:
    lengths = {sid: len(sample_segments) for sid, sample_segments in segments.items()}
    if len(set(lengths.values())) > 1:
        raise ValueError(f"{what} segment lists differ in length across samples: {lengths}")


def _check_common_intervals(common_reference: Sequence[Segment]) -> None:
    for previous, current in zip(common_reference, common_reference[1:]):
        if previous.chromosome == current.chromosome and current.begin < previous.end:
            raise ValueError(
                f"Common CNV intervals must be sorted and non-overlapping: {previous}, {current}"
            )


def _common_hypothesis_rows(
    partition_segments: Mapping[str, Sequence[Segment]],
    common_segments: Mapping[str, Sequence[Segment]],
    sample_ids: List[str],
    group: Sequence[int],
    common_indices: Sequence[int],
) -> List[SegmentRow]:
    """
    Rows of hypothesis B over the span of partition rows ``group``.

    Common CNV segments are clipped to the span; the remainder of each
    partition segment outside them is kept as a flanking piece.
    """
    reference = partition_segments[sample_ids[0]]
    common_reference = common_segments[sample_ids[0]]
    span_begin = reference[group[0]].begin
    span_end = reference[group[-1]].end

    pieces: List[Tuple[int, int, Mapping[str, Sequence[Segment]], int]] = []
    for i in group:
        segment = reference[i]
        cursor = segment.begin
        for j in common_indices:
            common = common_reference[j]
            if common.end <= cursor or common.begin >= segment.end:
                continue
            if common.begin > cursor:
                pieces.append((cursor, common.begin, partition_segments, i))
            cursor = common.end
        if cursor < segment.end:
            pieces.append((cursor, segment.end, partition_segments, i))
    for j in common_indices:
        common = common_reference[j]
        pieces.append((max(common.begin, span_begin), min(common.end, span_end), common_segments, j))

    pieces.sort(key=lambda piece: piece[0])
    return [
        {sid: source[sid][index].subsegment(begin, end) for sid in sample_ids}
        for begin, end, source, index in pieces
    ]


def build_segment_sets(
    partition_segments: Mapping[str, Sequence[Segment]],
    common_segments: Optional[Mapping[str, Sequence[Segment]]] = None,
) -> List[SegmentSet]:
    """
    Group per-sample segments into regions with alternative segmentations.

    Segment lists are index-aligned across samples; coordinates are taken
    from the first sample. On each chromosome, consecutive partition segments
    linked through overlapping common CNV segments form one region. Its
    hypothesis B covers the same span: the common CNV segments clipped to the
    region plus the partition pieces outside them. All other partition
    segments form single-row regions without hypothesis B.

    Args:
        partition_segments: Sample id -> ordered partition segments
        common_segments: Sample id -> ordered segments of common CNV intervals

    Returns:
        Regions in partition order

    Raises:
        ValueError: If segment lists are misaligned, common CNV intervals
            overlap, or no common CNV chromosome matches a partition chromosome
    """
    if not partition_segments:
        return []
    _check_aligned(partition_segments, "Partition")
    sample_ids = list(partition_segments)
    reference = partition_segments[sample_ids[0]]

    if not common_segments:
        return [SegmentSet(set_a=_rows(partition_segments, sample_ids, [i])) for i in range(len(reference))]

    _check_aligned(common_segments, "Common CNV")
    if set(common_segments) != set(sample_ids):
        raise ValueError("Common CNV segments must be given for every sample")
    common_reference = common_segments[sample_ids[0]]
    partition_chromosomes = {segment.chromosome for segment in reference}
    if not any(segment.chromosome in partition_chromosomes for segment in common_reference):
        raise ValueError("Chromosome names of common CNV intervals do not match the genome reference")
    _check_common_intervals(common_reference)

    overlaps: List[Set[int]] = [
        {
            j
            for j, common in enumerate(common_reference)
            if common.overlaps(segment.chromosome, segment.begin, segment.end)
        }
        for segment in reference
    ]

    segment_sets = []
    group: List[int] = []
    group_common: Set[int] = set()

    def flush():
        if group:
            segment_sets.append(
                SegmentSet(
                    set_a=_rows(partition_segments, sample_ids, group),
                    set_b=_common_hypothesis_rows(
                        partition_segments, common_segments, sample_ids, group, sorted(group_common)
                    ),
                )
            )

    for i, segment in enumerate(reference):
        if not overlaps[i]:
            flush()
            group, group_common = [], set()
            segment_sets.append(SegmentSet(set_a=_rows(partition_segments, sample_ids, [i])))
        elif group and overlaps[i] & group_common:
            group.append(i)
            group_common |= overlaps[i]
        else:
            flush()
            group, group_common = [i], set(overlaps[i])
    flush()

    n_common = sum(1 for segment_set in segment_sets if segment_set.set_b is not None)
    logger.info(
        "Built %d regions (%d with a common CNV hypothesis) from %d segments",
        len(segment_sets),
        n_common,
        len(reference),
    )
    return segment_sets


def flatten_selected(segment_sets: Sequence[SegmentSet]) -> List[SegmentRow]:
    """Ordered segment rows of the selected hypothesis of each region."""
    rows = []
    for segment_set in segment_sets:
        rows.extend(segment_set.get_set())
    return rows

