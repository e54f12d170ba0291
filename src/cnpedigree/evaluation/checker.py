"""
Evaluation of copy number calls against a truth set.

Truth intervals carry a known copy number. Every base of a truth interval is
classified as excluded, called correctly, called incorrectly, or not called,
according to the calls overlapping it.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set

from cnpedigree.core.ploidy import DEFAULT_PLOIDY, PloidyInfo
from cnpedigree.core.segments import Segment

logger = logging.getLogger(__name__)


def _overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> int:
    return max(0, min(end_a, end_b) - max(start_a, start_b))


@dataclass
class CNInterval:
    """
    A truth interval and its base-level evaluation counts.

    Attributes:
        chromosome: Chromosome name
        start: 0-based start (inclusive)
        end: 0-based end (exclusive)
        copy_number: Known copy number
        reference_copy_number: Expected copy number from the reference ploidy
    """

    chromosome: str
    start: int
    end: int
    copy_number: int
    reference_copy_number: int = DEFAULT_PLOIDY
    bases_excluded: int = 0
    bases_called_correctly: int = 0
    bases_called_incorrectly: int = 0

    def __post_init__(self):
        if self.end <= self.start:
            raise ValueError(f"Truth interval {self} is empty")

    @property
    def length(self) -> int:
        return self.end - self.start

    @property
    def bases_not_called(self) -> int:
        return (
            self.length
            - self.bases_excluded
            - self.bases_called_correctly
            - self.bases_called_incorrectly
        )

    @property
    def is_variant(self) -> bool:
        return self.copy_number != self.reference_copy_number

    def reset(self) -> None:
        self.bases_excluded = 0
        self.bases_called_correctly = 0
        self.bases_called_incorrectly = 0

    def __str__(self) -> str:
        return f"{self.chromosome}:{self.start + 1}-{self.end}"


@dataclass(frozen=True)
class CnvCall:
    """A copy number call reduced to what evaluation needs."""

    chromosome: str
    start: int
    end: int
    copy_number: int
    reference_copy_number: int = DEFAULT_PLOIDY
    dq_score: Optional[float] = None
    filters: frozenset = field(default_factory=frozenset)

    @classmethod
    def from_segment(cls, segment: Segment, reference_copy_number: int = DEFAULT_PLOIDY) -> "CnvCall":
        return cls(
            chromosome=segment.chromosome,
            start=segment.begin,
            end=segment.end,
            copy_number=segment.copy_number,
            reference_copy_number=reference_copy_number,
            dq_score=segment.dq_score,
            filters=frozenset(segment.filters),
        )

    @property
    def is_alt_variant(self) -> bool:
        return self.copy_number != self.reference_copy_number

    @property
    def is_pass(self) -> bool:
        return not self.filters


@dataclass
class EvaluationSummary:
    """Base counts over all truth intervals and over variant intervals."""

    total_bases: int = 0
    excluded_bases: int = 0
    correct_bases: int = 0
    incorrect_bases: int = 0
    not_called_bases: int = 0
    variant_bases: int = 0
    variant_correct_bases: int = 0

    def add(self, interval: CNInterval) -> None:
        self.total_bases += interval.length
        self.excluded_bases += interval.bases_excluded
        self.correct_bases += interval.bases_called_correctly
        self.incorrect_bases += interval.bases_called_incorrectly
        self.not_called_bases += interval.bases_not_called
        if interval.is_variant:
            self.variant_bases += interval.length - interval.bases_excluded
            self.variant_correct_bases += interval.bases_called_correctly

    @property
    def accuracy(self) -> float:
        evaluated = self.total_bases - self.excluded_bases
        return self.correct_bases / evaluated if evaluated > 0 else 0.0

    @property
    def variant_recall(self) -> float:
        return self.variant_correct_bases / self.variant_bases if self.variant_bases > 0 else 0.0


class CNVChecker:
    """
    Base-level comparison of calls with known copy number intervals.

    Attributes:
        known_cn: Truth intervals keyed by chromosome
        exclude_intervals: Intervals ignored by the evaluation, by chromosome
        dq_score_threshold: If set, only non-reference calls with a DQScore
            at or above this value are evaluated

    Example:
        >>> checker = CNVChecker(truth, dq_score_threshold=20)
        >>> checker.set_truth_reference_ploidy(ploidy)
        >>> summary = checker.evaluate(calls)
        >>> summary.accuracy
    """

    def __init__(
        self,
        truth_intervals: Iterable[CNInterval],
        exclude_intervals: Optional[Iterable[CNInterval]] = None,
        dq_score_threshold: Optional[float] = None,
    ):
        self.known_cn: Dict[str, List[CNInterval]] = {}
        for interval in truth_intervals:
            self.known_cn.setdefault(interval.chromosome, []).append(interval)
        self.exclude_intervals: Dict[str, List[CNInterval]] = {}
        for interval in exclude_intervals or []:
            self.exclude_intervals.setdefault(interval.chromosome, []).append(interval)
        self.dq_score_threshold = dq_score_threshold

    def set_truth_reference_ploidy(self, ploidy: PloidyInfo) -> None:
        """
        Assign the reference copy number of every truth interval.

        Raises:
            PloidyBoundaryError: If a truth interval crosses a ploidy region
        """
        ploidy = ploidy.copy()
        ploidy.make_chromosome_name_agnostic(self.known_cn.keys())
        for chromosome, intervals in self.known_cn.items():
            for interval in intervals:
                interval.reference_copy_number = ploidy.get_contained_ploidy(
                    chromosome, interval.start, interval.end
                )

    def initialize_interval_metrics(self) -> None:
        for intervals in self.known_cn.values():
            for interval in intervals:
                interval.reset()

    def _excluded_overlap(self, chromosome: str, start: int, end: int) -> int:
        return sum(
            _overlap(start, end, excluded.start, excluded.end)
            for excluded in self.exclude_intervals.get(chromosome, [])
        )

    def count_excluded_bases_in_truth_set_intervals(self) -> None:
        for chromosome, intervals in self.known_cn.items():
            for interval in intervals:
                interval.bases_excluded = self._excluded_overlap(
                    chromosome, interval.start, interval.end
                )

    def filter_calls(self, calls: Iterable[CnvCall], include_passing_only: bool = False) -> List[CnvCall]:
        """Calls kept for evaluation under the PASS and DQScore settings."""
        kept = []
        for call in calls:
            if include_passing_only and not call.is_pass:
                continue
            if self.dq_score_threshold is not None:
                if not call.is_alt_variant or call.dq_score is None:
                    continue
                if call.dq_score < self.dq_score_threshold:
                    continue
            kept.append(call)
        return kept

    def evaluate(
        self,
        calls: Iterable[CnvCall],
        include_passing_only: bool = False,
    ) -> EvaluationSummary:
        """
        Classify every truth base against the calls.

        Args:
            calls: Copy number calls
            include_passing_only: Ignore filtered calls

        Returns:
            EvaluationSummary over all truth intervals
        """
        self.initialize_interval_metrics()
        self.count_excluded_bases_in_truth_set_intervals()
        kept = self.filter_calls(calls, include_passing_only)

        calls_by_chromosome: Dict[str, List[CnvCall]] = {}
        for call in kept:
            calls_by_chromosome.setdefault(call.chromosome, []).append(call)

        summary = EvaluationSummary()
        for chromosome, intervals in self.known_cn.items():
            for interval in intervals:
                for call in calls_by_chromosome.get(chromosome, []):
                    start = max(interval.start, call.start)
                    end = min(interval.end, call.end)
                    if start >= end:
                        continue
                    bases = end - start - self._excluded_overlap(chromosome, start, end)
                    if call.copy_number == interval.copy_number:
                        interval.bases_called_correctly += bases
                    else:
                        interval.bases_called_incorrectly += bases
                summary.add(interval)

        logger.info(
            "Evaluated %d calls against %d truth intervals: accuracy %.4f, variant recall %.4f",
            len(kept),
            sum(len(intervals) for intervals in self.known_cn.values()),
            summary.accuracy,
            summary.variant_recall,
        )
        return summary


def calls_from_segments(
    segments: Sequence[Segment],
    ploidy: Optional[PloidyInfo] = None,
) -> List[CnvCall]:
    """Evaluation calls of a sample's annotated segments."""
    ploidy = ploidy.copy() if ploidy is not None else PloidyInfo()
    chromosomes: Set[str] = {segment.chromosome for segment in segments}
    ploidy.make_chromosome_name_agnostic(chromosomes)
    return [
        CnvCall.from_segment(
            segment,
            ploidy.get_reference_copy_number(segment.chromosome, segment.begin, segment.end),
        )
        for segment in segments
    ]
