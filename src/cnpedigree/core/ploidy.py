"""Reference ploidy intervals.

Expected (reference) copy number is normally 2, but sex chromosomes and other
known regions may carry a different value for a given sample: 0 on chrY for XX
samples, 1 on chrX and chrY for XY samples.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List

import numpy as np


DEFAULT_PLOIDY = 2
MAX_SUPPORTED_PLOIDY = 4


class PloidyBoundaryError(ValueError):
    """An interval crosses the boundary of a reference ploidy region."""


@dataclass(frozen=True)
class PloidyInterval:
    """
    A region of known reference ploidy.

    Attributes:
        chromosome: Chromosome name
        start: 1-based start (inclusive)
        end: 1-based end (inclusive)
        ploidy: Reference copy number in the region
    """

    chromosome: str
    start: int
    end: int
    ploidy: int

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError(f"Ploidy interval {self} has end before start")
        if not 0 <= self.ploidy <= MAX_SUPPORTED_PLOIDY:
            raise ValueError(
                f"Ploidy must be between 0 and {MAX_SUPPORTED_PLOIDY}, got {self.ploidy}"
            )

    def __str__(self) -> str:
        return f"{self.chromosome}:{self.start}-{self.end}"


def _alternative_chromosome_name(chromosome: str) -> str:
    return chromosome[3:] if chromosome.startswith("chr") else "chr" + chromosome


@dataclass
class PloidyInfo:
    """
    Reference ploidy of one sample.

    Attributes:
        ploidy_by_chromosome: Ploidy intervals keyed by chromosome name
    """

    ploidy_by_chromosome: Dict[str, List[PloidyInterval]] = field(default_factory=dict)

    @classmethod
    def from_intervals(cls, intervals: Iterable[PloidyInterval]) -> "PloidyInfo":
        by_chromosome: Dict[str, List[PloidyInterval]] = {}
        for interval in intervals:
            by_chromosome.setdefault(interval.chromosome, []).append(interval)
        for chromosome_intervals in by_chromosome.values():
            chromosome_intervals.sort(key=lambda ival: ival.start)
        return cls(ploidy_by_chromosome=by_chromosome)

    def copy(self) -> "PloidyInfo":
        return PloidyInfo(
            {chromosome: list(intervals) for chromosome, intervals in self.ploidy_by_chromosome.items()}
        )

    def make_chromosome_name_agnostic(self, chromosomes: Iterable[str]) -> None:
        """
        Make intervals reachable under both naming conventions ("chrX" / "X").

        Every chromosome in ``chromosomes`` gets an entry, empty if no ploidy
        intervals are known for it under either name.
        """
        agnostic = dict(self.ploidy_by_chromosome)
        for chromosome in chromosomes:
            alternative = _alternative_chromosome_name(chromosome)
            intervals = agnostic.get(chromosome, agnostic.get(alternative, []))
            agnostic.setdefault(chromosome, intervals)
            agnostic.setdefault(alternative, intervals)
        self.ploidy_by_chromosome = agnostic

    def _ploidy_base_counts(self, chromosome: str, begin: int, end: int) -> np.ndarray:
        # begin is 0-based inclusive, end exclusive
        base_counts = np.zeros(MAX_SUPPORTED_PLOIDY + 1, dtype=int)
        base_counts[DEFAULT_PLOIDY] = end - begin
        for interval in self.ploidy_by_chromosome[chromosome]:
            if interval.ploidy == DEFAULT_PLOIDY:
                continue
            overlap_start = max(begin, interval.start - 1)
            overlap_end = min(end, interval.end)
            overlap = overlap_end - overlap_start
            if overlap <= 0:
                continue
            base_counts[DEFAULT_PLOIDY] -= overlap
            base_counts[interval.ploidy] += overlap
        return base_counts

    def get_reference_copy_number(self, chromosome: str, begin: int, end: int) -> int:
        """
        Expected copy number of a 0-based half-open interval.

        The ploidy covering the most bases wins; ties go to the lower ploidy.
        """
        if chromosome not in self.ploidy_by_chromosome:
            return DEFAULT_PLOIDY
        base_counts = self._ploidy_base_counts(chromosome, begin, end)
        if base_counts.max() <= 0:
            return DEFAULT_PLOIDY
        return int(np.argmax(base_counts))

    def is_uniform_reference_ploidy(self, chromosome: str, begin: int, end: int) -> bool:
        """True if the interval lies within a single reference ploidy."""
        if chromosome not in self.ploidy_by_chromosome:
            return True
        base_counts = self._ploidy_base_counts(chromosome, begin, end)
        return int(np.count_nonzero(base_counts > 0)) < 2

    def get_contained_ploidy(self, chromosome: str, begin: int, end: int) -> int:
        """
        Reference ploidy of an interval that must not straddle a ploidy region.

        Args:
            chromosome: Chromosome name
            begin: 0-based start (inclusive)
            end: 0-based end (exclusive)

        Returns:
            Ploidy of the region containing the interval, or the default
            ploidy if it overlaps none

        Raises:
            PloidyBoundaryError: If the interval partially overlaps a region
        """
        for region in self.ploidy_by_chromosome.get(chromosome, []):
            region_begin = region.start - 1
            if end <= region_begin or begin >= region.end:
                continue
            if begin >= region_begin and end <= region.end:
                return region.ploidy
            raise PloidyBoundaryError(
                f"Interval {chromosome}:{begin + 1}-{end} crosses reference ploidy region {region}"
            )
        return DEFAULT_PLOIDY
