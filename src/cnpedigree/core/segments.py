"""
Segments and per-segment evidence.

A segment is a contiguous genomic interval called as one statistical unit.
Segments are annotated in place by successive calling stages (genotype
assignment, scoring, filtering); downstream writers read the annotations.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set

import numpy as np


PASS_FILTER = "PASS"


def format_cnv_size_with_suffix(size: int) -> str:
    """
    Format a length in bases with a unit suffix.

    Example:
        >>> format_cnv_size_with_suffix(10000)
        '10kb'
        >>> format_cnv_size_with_suffix(2000000)
        '2Mb'
        >>> format_cnv_size_with_suffix(500)
        '500bp'
    """
    if size >= 1_000_000 and size % 1_000_000 == 0:
        return f"{size // 1_000_000}Mb"
    if size >= 1000 and size % 1000 == 0:
        return f"{size // 1000}kb"
    return f"{size}bp"


def get_cnv_size_filter(size_cutoff: int) -> str:
    """Filter tag for segments shorter than ``size_cutoff`` (e.g. 'L10kb')."""
    return f"L{format_cnv_size_with_suffix(size_cutoff)}"


def get_quality_filter(threshold: int) -> str:
    """Filter tag for calls below a QScore threshold (e.g. 'q7')."""
    return f"q{threshold}"


@dataclass(eq=False)
class Balleles:
    """
    Allele counts at heterozygous sites within a segment.

    Attributes:
        positions: 0-based site positions
        counts_a: Reads supporting allele A per site
        counts_b: Reads supporting allele B per site
    """

    positions: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=int))
    counts_a: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=int))
    counts_b: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=int))

    def __post_init__(self):
        self.positions = np.asarray(self.positions, dtype=int)
        self.counts_a = np.asarray(self.counts_a, dtype=int)
        self.counts_b = np.asarray(self.counts_b, dtype=int)
        if not (len(self.positions) == len(self.counts_a) == len(self.counts_b)):
            raise ValueError(
                "positions, counts_a and counts_b must have equal lengths, got "
                f"{len(self.positions)}, {len(self.counts_a)}, {len(self.counts_b)}"
            )
        if np.any(self.counts_a < 0) or np.any(self.counts_b < 0):
            raise ValueError("Allele counts must be non-negative")

    @classmethod
    def from_counts(cls, counts_a, counts_b, positions=None) -> "Balleles":
        if positions is None:
            positions = np.arange(len(counts_a))
        return cls(positions=positions, counts_a=counts_a, counts_b=counts_b)

    @property
    def total_coverage(self) -> np.ndarray:
        return self.counts_a + self.counts_b

    def size(self) -> int:
        return len(self.positions)

    def count_sites_with_coverage(self, min_coverage: int) -> int:
        """Number of sites whose total coverage is at least ``min_coverage``."""
        return int(np.count_nonzero(self.total_coverage >= min_coverage))

    def concat(self, other: "Balleles") -> "Balleles":
        return Balleles(
            positions=np.concatenate([self.positions, other.positions]),
            counts_a=np.concatenate([self.counts_a, other.counts_a]),
            counts_b=np.concatenate([self.counts_b, other.counts_b]),
        )

    def subset(self, begin: int, end: int) -> "Balleles":
        """Sites with positions in [begin, end)."""
        mask = (self.positions >= begin) & (self.positions < end)
        return Balleles(
            positions=self.positions[mask],
            counts_a=self.counts_a[mask],
            counts_b=self.counts_b[mask],
        )


@dataclass(eq=False)
class Segment:
    """
    A genomic segment of one sample and its calling annotations.

    Attributes:
        chromosome: Chromosome name
        begin: 0-based start (inclusive)
        end: 0-based end (exclusive)
        counts: Normalised bin coverages within the segment
        balleles: Allele counts at sites within the segment
        copy_number: Assigned total copy number
        major_chromosome_count: Larger allele copy number (phased calls only)
        qscore: Call quality score
        dq_score: De novo quality score (qualifying offspring only)
        filters: Filter tags; empty means PASS
    """

    chromosome: str
    begin: int
    end: int
    counts: np.ndarray = field(default_factory=lambda: np.zeros(0))
    balleles: Balleles = field(default_factory=Balleles)
    copy_number: int = -1
    major_chromosome_count: Optional[int] = None
    qscore: float = 0.0
    dq_score: Optional[float] = None
    filters: Set[str] = field(default_factory=set)

    def __post_init__(self):
        if self.end < self.begin:
            raise ValueError(
                f"Segment end {self.end} precedes begin {self.begin} on {self.chromosome}"
            )
        self.counts = np.asarray(self.counts, dtype=float)

    @property
    def length(self) -> int:
        return self.end - self.begin

    @property
    def median_count(self) -> float:
        if len(self.counts) == 0:
            return 0.0
        return float(np.median(self.counts))

    @property
    def filter_string(self) -> str:
        if not self.filters:
            return PASS_FILTER
        return ";".join(sorted(self.filters))

    def add_filter(self, tag: str) -> None:
        self.filters.add(tag)

    def overlaps(self, chromosome: str, begin: int, end: int) -> bool:
        return self.chromosome == chromosome and self.begin < end and begin < self.end

    def subsegment(self, begin: int, end: int) -> "Segment":
        """
        Evidence of the segment restricted to [begin, end).

        Bins are taken as evenly spaced over the segment; a bin belongs to the
        piece containing its centre. A piece containing no bin centre keeps the
        bin nearest to its midpoint. Returns the segment itself if the range
        covers it.

        Raises:
            ValueError: If the range does not overlap the segment
        """
        begin = max(begin, self.begin)
        end = min(end, self.end)
        if end <= begin:
            raise ValueError(f"Range {begin}-{end} does not overlap {self}")
        if begin == self.begin and end == self.end:
            return self

        n_bins = len(self.counts)
        counts = self.counts[:0]
        if n_bins > 0 and self.length > 0:
            centres = self.begin + (np.arange(n_bins) + 0.5) * self.length / n_bins
            counts = self.counts[(centres >= begin) & (centres < end)]
            if len(counts) == 0:
                nearest = int((begin + end) / 2 - self.begin) * n_bins // self.length
                counts = self.counts[min(nearest, n_bins - 1):][:1]
        return Segment(
            self.chromosome,
            begin,
            end,
            counts=counts,
            balleles=self.balleles.subset(begin, end),
        )

    def __repr__(self) -> str:
        return (
            f"Segment({self.chromosome}:{self.begin}-{self.end}, "
            f"CN={self.copy_number}, Q={self.qscore:.1f})"
        )


SegmentRow = Dict[str, Segment]
"""One segment position across all samples, keyed by sample id."""


class SegmentsSet(Enum):
    """Segmentation hypothesis of a region."""

    SET_A = "A"
    SET_B = "B"


@dataclass
class SegmentSet:
    """
    A genomic region represented by two alternative segmentations.

    Hypothesis A is the independent partition; hypothesis B is anchored to
    common CNV intervals. Either may be absent (``None``), in which case the
    other is selected without comparison.

    Attributes:
        set_a: Segment rows of hypothesis A
        set_b: Segment rows of hypothesis B
        selected: Selected hypothesis, once decided
    """

    set_a: Optional[List[SegmentRow]] = None
    set_b: Optional[List[SegmentRow]] = None
    selected: Optional[SegmentsSet] = None

    def __post_init__(self):
        if self.set_a is None and self.set_b is None:
            raise ValueError("SegmentSet needs at least one hypothesis")

    def get_set(self, which: Optional[SegmentsSet] = None) -> List[SegmentRow]:
        """
        Rows of a hypothesis (defaults to the selected one).

        Raises:
            ValueError: If no hypothesis has been selected, or the requested
                one is absent
        """
        which = which or self.selected
        if which is None:
            raise ValueError("No segmentation hypothesis selected")
        rows = self.set_a if which is SegmentsSet.SET_A else self.set_b
        if rows is None:
            raise ValueError(f"Hypothesis {which.value} is absent")
        return rows

    def set_selected(self, which: SegmentsSet) -> None:
        self.get_set(which)
        self.selected = which

    @property
    def sample_ids(self) -> List[str]:
        rows = self.set_a if self.set_a is not None else self.set_b
        return list(rows[0].keys()) if rows else []
