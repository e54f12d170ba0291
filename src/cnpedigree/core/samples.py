"""Sample roles and per-sample metrics."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence
import warnings

import numpy as np

from cnpedigree.core.ploidy import PloidyInfo
from cnpedigree.core.segments import Segment


class SampleType(Enum):
    """Declared pedigree role of a sample."""

    MOTHER = "mother"
    FATHER = "father"
    PROBAND = "proband"
    SIBLING = "sibling"
    OTHER = "other"

    @property
    def is_parent(self) -> bool:
        return self in (SampleType.MOTHER, SampleType.FATHER)

    @property
    def is_offspring(self) -> bool:
        return self in (SampleType.PROBAND, SampleType.SIBLING)

    @classmethod
    def parse(cls, value: str) -> "SampleType":
        """Parse a role name case-insensitively ('parent' maps to MOTHER, 'unrelated' to OTHER)."""
        normalized = value.strip().lower()
        if normalized == "parent":
            return cls.MOTHER
        if normalized == "offspring":
            return cls.PROBAND
        if normalized == "unrelated":
            return cls.OTHER
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Unknown sample type: {value}") from None


@dataclass(frozen=True)
class SampleMetrics:
    """
    Read-only description of a sample for a calling run.

    Attributes:
        sample_id: Sample identifier
        mean_coverage: Mean (diploid) bin coverage
        mean_maf_coverage: Mean total coverage at allele sites
        max_coverage: Coverage upper bound used by the depth model
        sample_type: Pedigree role
        ploidy: Reference ploidy intervals
    """

    sample_id: str
    mean_coverage: float
    mean_maf_coverage: float
    max_coverage: int
    sample_type: SampleType = SampleType.OTHER
    ploidy: PloidyInfo = field(default_factory=PloidyInfo)

    def __post_init__(self):
        if self.mean_coverage <= 0:
            raise ValueError(
                f"mean_coverage must be positive for {self.sample_id}, got {self.mean_coverage}"
            )
        if self.max_coverage <= 0:
            raise ValueError(
                f"max_coverage must be positive for {self.sample_id}, got {self.max_coverage}"
            )

    def get_ploidy(self, segment: Segment) -> int:
        """Expected reference copy number of ``segment`` for this sample."""
        return self.ploidy.get_reference_copy_number(segment.chromosome, segment.begin, segment.end)

    @classmethod
    def from_segments(
        cls,
        sample_id: str,
        segments: Sequence[Segment],
        sample_type: SampleType = SampleType.OTHER,
        ploidy: Optional[PloidyInfo] = None,
        number_of_trimmed_bins: int = 2,
    ) -> "SampleMetrics":
        """
        Derive coverage metrics from a sample's segments.

        Bins at both ends of each segment are trimmed before averaging.

        Args:
            sample_id: Sample identifier
            segments: All segments of the sample
            sample_type: Pedigree role
            ploidy: Reference ploidy (default: diploid everywhere)
            number_of_trimmed_bins: Bins dropped at each segment end

        Returns:
            SampleMetrics for the sample
        """
        ploidy = ploidy.copy() if ploidy is not None else PloidyInfo()
        chromosomes = {segment.chromosome for segment in segments}
        ploidy.make_chromosome_name_agnostic(chromosomes)

        diploid_counts = []
        for segment in segments:
            counts = segment.counts
            if len(counts) > 2 * number_of_trimmed_bins:
                counts = counts[number_of_trimmed_bins:len(counts) - number_of_trimmed_bins]
            if ploidy.get_reference_copy_number(segment.chromosome, segment.begin, segment.end) == 2:
                diploid_counts.append(counts)
        if diploid_counts:
            all_counts = np.concatenate(diploid_counts)
        else:
            all_counts = np.zeros(0)

        if len(all_counts) == 0:
            warnings.warn(f"Sample {sample_id} has no diploid coverage bins; using unit coverage")
            mean_coverage = 1.0
            max_coverage = 1
        else:
            mean_coverage = float(np.mean(all_counts))
            max_coverage = int(np.ceil(np.percentile(all_counts, 99.9) * 2)) + 1

        allele_coverage = [s.balleles.total_coverage for s in segments if s.balleles.size() > 0]
        if allele_coverage:
            mean_maf_coverage = float(np.mean(np.concatenate(allele_coverage)))
        else:
            mean_maf_coverage = 0.0

        return cls(
            sample_id=sample_id,
            mean_coverage=mean_coverage if mean_coverage > 0 else 1.0,
            mean_maf_coverage=mean_maf_coverage,
            max_coverage=max(max_coverage, 1),
            sample_type=sample_type,
            ploidy=ploidy,
        )
