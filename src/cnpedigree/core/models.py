"""
Copy number observation models.

Maps read depth and allele counts of a segment to likelihoods of candidate
copy number genotypes. The calling core only relies on the
:class:`CopyNumberModel` interface; :class:`HaplotypeCopyNumberModel` is the
default negative binomial implementation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict

import numpy as np
from scipy import stats

from cnpedigree.core.genotypes import Genotype, PhasedGenotype
from cnpedigree.core.samples import SampleMetrics
from cnpedigree.core.segments import Balleles


class CopyNumberModel(ABC):
    """
    Abstract base class for per-sample copy number models.

    A model is fitted once per sample and is read-only for the rest of the
    calling run.
    """

    @abstractmethod
    def get_total_copy_number_likelihoods(self, median_count: float) -> Dict[Genotype, float]:
        """
        Depth likelihood of each total copy number.

        Args:
            median_count: Median normalised bin coverage of the segment

        Returns:
            Mapping from unphased genotype (0..max_cn-1) to likelihood
        """
        pass

    @abstractmethod
    def get_genotype_log_likelihood(self, balleles: Balleles, genotype: PhasedGenotype) -> float:
        """
        Allele-count log-likelihood of a phased genotype.

        Args:
            balleles: Allele counts of the segment
            genotype: Candidate phased genotype

        Returns:
            Log-likelihood summed over all allele sites
        """
        pass


@dataclass
class HaplotypeCopyNumberModel(CopyNumberModel):
    """
    Negative binomial depth and allele-count model.

    Depth:
        coverage | cn ~ NB(mean = max(cn, ε) · c / 2, var = φ · mean)

    Allele counts at a site, for phased genotype (a, b):
        n_A | a ~ NB(mean = max(a, ε) · m / 2),  n_B | b likewise

    where c is the mean diploid coverage, m the mean allele-site coverage and
    φ the overdispersion. Site alleles are not phased to haplotypes, so both
    orientations are averaged.

    Parameters:
        maximum_copy_number: Number of total copy number states
        mean_coverage: Mean diploid bin coverage (c)
        mean_maf_coverage: Mean allele-site coverage (m)
        max_coverage: Observed coverage is truncated at this value
        overdispersion: Variance-to-mean ratio φ (> 1)
        null_copy_fraction: ε, expected coverage fraction of a zero-copy allele
    """

    maximum_copy_number: int
    mean_coverage: float
    mean_maf_coverage: float
    max_coverage: int
    overdispersion: float = 1.5
    null_copy_fraction: float = 0.05

    def __post_init__(self):
        if self.maximum_copy_number <= 0:
            raise ValueError(
                f"maximum_copy_number must be positive, got {self.maximum_copy_number}"
            )
        if self.mean_coverage <= 0:
            raise ValueError(f"mean_coverage must be positive, got {self.mean_coverage}")
        if self.overdispersion <= 1.0:
            raise ValueError(f"overdispersion must exceed 1, got {self.overdispersion}")
        if not 0.0 < self.null_copy_fraction < 1.0:
            raise ValueError(
                f"null_copy_fraction must be in (0, 1), got {self.null_copy_fraction}"
            )

    def _nb_params(self, means: np.ndarray):
        p = 1.0 / self.overdispersion
        n = means * p / (1.0 - p)
        return n, p

    def _expected(self, copy_numbers: np.ndarray, haploid_coverage: float) -> np.ndarray:
        return np.maximum(copy_numbers, self.null_copy_fraction) * haploid_coverage

    def get_total_copy_number_likelihoods(self, median_count: float) -> Dict[Genotype, float]:
        """Negative binomial pmf of the (truncated) median coverage."""
        observed = int(round(min(max(median_count, 0.0), self.max_coverage)))
        copy_numbers = np.arange(self.maximum_copy_number, dtype=float)
        n, p = self._nb_params(self._expected(copy_numbers, self.mean_coverage / 2.0))
        likelihoods = stats.nbinom.pmf(observed, n, p)
        return {Genotype.create(cn): float(likelihoods[cn]) for cn in range(self.maximum_copy_number)}

    def get_genotype_log_likelihood(self, balleles: Balleles, genotype: PhasedGenotype) -> float:
        if balleles.size() == 0:
            return 0.0
        haploid = max(self.mean_maf_coverage, 1.0) / 2.0
        means = self._expected(
            np.array([genotype.copy_number_a, genotype.copy_number_b], dtype=float), haploid
        )
        n, p = self._nb_params(means)
        counts_a = balleles.counts_a
        counts_b = balleles.counts_b
        forward = stats.nbinom.logpmf(counts_a, n[0], p) + stats.nbinom.logpmf(counts_b, n[1], p)
        reverse = stats.nbinom.logpmf(counts_a, n[1], p) + stats.nbinom.logpmf(counts_b, n[0], p)
        per_site = np.logaddexp(forward, reverse) - np.log(2.0)
        return float(np.sum(per_site))


def create_copy_number_model(
    sample: SampleMetrics,
    maximum_copy_number: int,
    model_type: str = "haplotype",
    **kwargs,
) -> CopyNumberModel:
    """
    Factory function for per-sample copy number models.

    Args:
        sample: Sample metrics the model is fitted to
        maximum_copy_number: Number of total copy number states
        model_type: Type of model ('haplotype')
        **kwargs: Extra model parameters

    Returns:
        CopyNumberModel instance

    Example:
        >>> model = create_copy_number_model(sample, maximum_copy_number=5)
        >>> model = create_copy_number_model(sample, 5, overdispersion=2.0)
    """
    if model_type == "haplotype":
        return HaplotypeCopyNumberModel(
            maximum_copy_number=maximum_copy_number,
            mean_coverage=sample.mean_coverage,
            mean_maf_coverage=sample.mean_maf_coverage,
            max_coverage=sample.max_coverage,
            **kwargs,
        )
    else:
        raise ValueError(f"Unknown model_type: {model_type}")
