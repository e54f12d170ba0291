"""
Per-sample genotype likelihoods of a segment.

Depth evidence gives a likelihood per total copy number. When every sample
has enough well-covered allele sites, allele evidence gives a log-likelihood
per phased genotype, and both are merged into a phased table.
"""

import math
from typing import Dict, Mapping

from cnpedigree.core.genotypes import (
    Genotype,
    LikelihoodTable,
    PhasedGenotype,
    SampleLikelihoods,
    generate_phased_genotypes,
)
from cnpedigree.core.joint import SANITIZED_LOG_LIKELIHOOD
from cnpedigree.core.models import CopyNumberModel
from cnpedigree.core.segments import SegmentRow


REFERENCE_GENOTYPE = PhasedGenotype(1, 1)
LOH_GENOTYPES = (PhasedGenotype(0, 2), PhasedGenotype(2, 0))


def _safe_log(value: float) -> float:
    return math.log(value) if value > 0 else -math.inf


def use_allele_counts_information(
    segments: SegmentRow,
    min_allele_counts_threshold: int,
    min_allele_number_in_segment: int,
) -> bool:
    """
    Decide whether allele counts are informative for a segment.

    Every sample must have at least ``min_allele_number_in_segment`` sites
    whose total coverage reaches ``min_allele_counts_threshold``.
    """
    return all(
        segment.balleles.count_sites_with_coverage(min_allele_counts_threshold)
        >= min_allele_number_in_segment
        for segment in segments.values()
    )


class CopyNumberLikelihoodCalculator:
    """
    Builds per-sample likelihood tables over candidate genotypes.

    Attributes:
        maximum_copy_number: Number of total copy number states
        min_allele_counts_threshold: Minimum coverage of a usable allele site
        min_allele_number_in_segment: Minimum usable allele sites per sample
    """

    def __init__(
        self,
        maximum_copy_number: int,
        min_allele_counts_threshold: int,
        min_allele_number_in_segment: int,
    ):
        if maximum_copy_number <= 0:
            raise ValueError(f"maximum_copy_number must be positive, got {maximum_copy_number}")
        self.maximum_copy_number = maximum_copy_number
        self.min_allele_counts_threshold = min_allele_counts_threshold
        self.min_allele_number_in_segment = min_allele_number_in_segment
        self.phased_genotypes = generate_phased_genotypes(maximum_copy_number)

    @classmethod
    def from_parameters(cls, parameters) -> "CopyNumberLikelihoodCalculator":
        return cls(
            maximum_copy_number=parameters.maximum_copy_number,
            min_allele_counts_threshold=parameters.min_allele_counts_threshold,
            min_allele_number_in_segment=parameters.min_allele_number_in_segment,
        )

    def get_copy_numbers_likelihoods(
        self,
        segments: SegmentRow,
        models: Mapping[str, CopyNumberModel],
    ) -> SampleLikelihoods:
        """Depth likelihood (not log) of each total copy number per sample."""
        return {
            sample_id: models[sample_id].get_total_copy_number_likelihoods(segment.median_count)
            for sample_id, segment in segments.items()
        }

    def get_genotype_log_likelihoods(
        self,
        segments: SegmentRow,
        models: Mapping[str, CopyNumberModel],
    ) -> Dict[str, Dict[PhasedGenotype, float]]:
        """
        Allele-count log-likelihood of each phased genotype per sample.

        LOH collapse: when the balanced reference genotype (1, 1) scores at
        least as well as both copy-neutral LOH genotypes, both LOH entries are
        lowered to the smallest finite log-likelihood of the table.
        """
        result = {}
        for sample_id, segment in segments.items():
            log_likelihoods = {
                genotype: models[sample_id].get_genotype_log_likelihood(segment.balleles, genotype)
                for genotype in self.phased_genotypes
            }
            loh_best = max(log_likelihoods[gt] for gt in LOH_GENOTYPES)
            if log_likelihoods[REFERENCE_GENOTYPE] >= loh_best:
                finite = [ll for ll in log_likelihoods.values() if ll > -math.inf]
                if finite:
                    floor = min(finite)
                    for gt in LOH_GENOTYPES:
                        log_likelihoods[gt] = floor
            result[sample_id] = log_likelihoods
        return result

    @staticmethod
    def join_likelihoods(
        genotype_log_likelihoods: Mapping[str, Mapping[PhasedGenotype, float]],
        copy_number_likelihoods: SampleLikelihoods,
        n_balleles: int,
    ) -> SampleLikelihoods:
        """
        Merge allele log-likelihoods with depth likelihoods.

        joint = allele_ll / n_balleles + max(floor, log(depth[total_cn]))

        The allele term is averaged over sites; depth is a single point
        estimate per segment.
        """
        if n_balleles <= 0:
            raise ValueError(f"n_balleles must be positive, got {n_balleles}")
        joint: SampleLikelihoods = {}
        for sample_id, genotype_lls in genotype_log_likelihoods.items():
            depth = copy_number_likelihoods[sample_id]
            table: LikelihoodTable = {}
            for phased, allele_ll in genotype_lls.items():
                depth_ll = _safe_log(depth[Genotype.create(phased.total_copy_number)])
                table[Genotype.create(phased)] = (
                    allele_ll / n_balleles + max(SANITIZED_LOG_LIKELIHOOD, depth_ll)
                )
            joint[sample_id] = table
        return joint

    @staticmethod
    def convert_to_log_likelihood(likelihoods: SampleLikelihoods) -> SampleLikelihoods:
        """Natural log of every entry; zero likelihood maps to -inf."""
        return {
            sample_id: {genotype: _safe_log(value) for genotype, value in table.items()}
            for sample_id, table in likelihoods.items()
        }

    def get_single_sample_likelihoods(
        self,
        segments: SegmentRow,
        models: Mapping[str, CopyNumberModel],
    ) -> SampleLikelihoods:
        """
        Log-likelihood table per sample for one segment position.

        Phased tables are produced only when allele evidence is sufficient for
        every sample; otherwise the depth-only table is returned.
        """
        coverage_likelihoods = self.get_copy_numbers_likelihoods(segments, models)
        n_balleles = next(iter(segments.values())).balleles.size()
        if n_balleles > 0 and use_allele_counts_information(
            segments, self.min_allele_counts_threshold, self.min_allele_number_in_segment
        ):
            return self.join_likelihoods(
                self.get_genotype_log_likelihoods(segments, models),
                coverage_likelihoods,
                n_balleles,
            )
        return self.convert_to_log_likelihood(coverage_likelihoods)

