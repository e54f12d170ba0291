"""Caller configuration.

A single immutable parameter object is built once per calling run and handed
to every component at construction time.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping


DEFAULT_QUALITY_FILTER_THRESHOLD = 7
DEFAULT_DE_NOVO_QUALITY_FILTER_THRESHOLD = 20


@dataclass(frozen=True)
class CallerParameters:
    """
    Parameters of a pedigree calling run.

    Attributes:
        maximum_copy_number: Number of total copy number states (0..N-1)
        quality_filter_threshold: QScore below which a call is filtered
        de_novo_quality_filter_threshold: DQScore threshold reported downstream
        max_core_number: Upper bound on worker processes
        min_allele_counts_threshold: Minimum coverage for an allele site to count
        min_allele_number_in_segment: Minimum usable allele sites per sample
        de_novo_rate: Transmission probability of a non-Mendelian genotype
        max_qscore: Cap for reported QScore and DQScore
        minimum_call_size: Rows shorter than this may be absorbed when merging
        segment_size_cutoff: Segments shorter than this are size-filtered
        max_merge_distance: Largest gap bridged when merging adjacent segments
    """

    maximum_copy_number: int = 5
    quality_filter_threshold: int = DEFAULT_QUALITY_FILTER_THRESHOLD
    de_novo_quality_filter_threshold: int = DEFAULT_DE_NOVO_QUALITY_FILTER_THRESHOLD
    max_core_number: int = 8
    min_allele_counts_threshold: int = 10
    min_allele_number_in_segment: int = 10
    de_novo_rate: float = 1e-5
    max_qscore: float = 60.0
    minimum_call_size: int = 1000
    segment_size_cutoff: int = 10000
    max_merge_distance: int = 10000

    def __post_init__(self):
        """Validate parameter ranges."""
        if self.maximum_copy_number < 3:
            raise ValueError(
                f"maximum_copy_number must be at least 3, got {self.maximum_copy_number}"
            )
        if self.max_core_number <= 0:
            raise ValueError(f"max_core_number must be positive, got {self.max_core_number}")
        if not 0.0 < self.de_novo_rate < 1.0:
            raise ValueError(f"de_novo_rate must be in (0, 1), got {self.de_novo_rate}")
        if self.max_qscore <= 0:
            raise ValueError(f"max_qscore must be positive, got {self.max_qscore}")
        if self.min_allele_counts_threshold < 0:
            raise ValueError(
                f"min_allele_counts_threshold must be non-negative, got {self.min_allele_counts_threshold}"
            )
        if self.min_allele_number_in_segment < 0:
            raise ValueError(
                f"min_allele_number_in_segment must be non-negative, got {self.min_allele_number_in_segment}"
            )
        for name in ("minimum_call_size", "segment_size_cutoff", "max_merge_distance"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "CallerParameters":
        """
        Build parameters from a plain mapping.

        Raises:
            ValueError: If the mapping contains unknown keys
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown caller parameters: {', '.join(unknown)}")
        return cls(**dict(values))

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
