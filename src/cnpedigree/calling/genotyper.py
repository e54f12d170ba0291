"""
Joint copy number genotyping of a segment row.

Pedigree members are genotyped jointly by a branch-and-bound search over
parent and offspring genotypes under a transmission model. Samples outside a
full pedigree are genotyped independently by maximum likelihood.

Two capabilities share one interface:
- PedigreeVariantCaller: pedigree search + independent calling of the rest
- IndependentVariantCaller: independent calling of every sample
"""

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from cnpedigree.calling.likelihoods import CopyNumberLikelihoodCalculator
from cnpedigree.calling.scoring import assign_cn_and_scores
from cnpedigree.core.config import CallerParameters
from cnpedigree.core.genotypes import Genotype, LikelihoodTable, SampleLikelihoods
from cnpedigree.core.joint import (
    JointLikelihoods,
    make_assignment,
    sanitize_log_likelihood,
)
from cnpedigree.core.models import CopyNumberModel
from cnpedigree.core.pedigree import PedigreeInfo
from cnpedigree.core.samples import SampleMetrics
from cnpedigree.core.segments import SegmentRow

logger = logging.getLogger(__name__)

TOP_GENOTYPES_MULTI_OFFSPRING = 3


class SearchExhaustedError(RuntimeError):
    """No genotype assignment was recorded by the pedigree search."""


@dataclass
class PedigreeCall:
    """
    Best joint genotype assignment of a pedigree.

    Attributes:
        genotypes: Called genotype per pedigree member
        joint_likelihoods: Maximal log-likelihood and masses of all
            evaluated assignments
    """

    genotypes: Dict[str, Genotype]
    joint_likelihoods: JointLikelihoods


@dataclass(frozen=True)
class SearchExhausted:
    """Failure result of the pedigree search."""

    reason: str


PedigreeSearchResult = Union[PedigreeCall, SearchExhausted]


def get_copy_numbers_no_pedigree_info(
    sample_ids: Sequence[str],
    log_likelihoods: SampleLikelihoods,
) -> Tuple[Dict[str, Genotype], JointLikelihoods]:
    """
    Call each sample independently by maximum likelihood.

    The maximal joint log-likelihood is the sum of each sample's maximal
    log-likelihood.

    Args:
        sample_ids: Samples to call
        log_likelihoods: Log-likelihood table per sample

    Returns:
        (genotype per sample, joint likelihoods)
    """
    joint = JointLikelihoods(maximal_log_likelihood=0.0)
    genotypes = {}
    for sample_id in sample_ids:
        table = log_likelihoods[sample_id]
        if not table:
            raise ValueError(f"Empty likelihood table for sample {sample_id}")
        best = max(table, key=table.__getitem__)
        genotypes[sample_id] = best
        joint.maximal_log_likelihood += table[best]
    return genotypes, joint


def estimate_transmission_probability(
    parent1: Genotype,
    parent2: Genotype,
    offspring: Genotype,
    transition_matrix: np.ndarray,
    de_novo_rate: float,
) -> float:
    """
    Probability that ``offspring`` arises from the two parental genotypes.

    Phased genotypes: 1.0 if the offspring carries one allele copy number of
    each parent, otherwise ``de_novo_rate``. Unphased genotypes use the
    total copy number transition matrix of both parents.
    """
    if (
        parent1.has_allele_copy_numbers
        and parent2.has_allele_copy_numbers
        and offspring.has_allele_copy_numbers
    ):
        if offspring.phased_genotype.inherits_from(
            parent1.phased_genotype, parent2.phased_genotype
        ):
            return 1.0
        return de_novo_rate
    return float(
        transition_matrix[parent1.total_copy_number, offspring.total_copy_number]
        * transition_matrix[parent2.total_copy_number, offspring.total_copy_number]
    )


def _top_genotypes(table: LikelihoodTable, n_highest: int) -> LikelihoodTable:
    ordered = sorted(table.items(), key=lambda item: item[1], reverse=True)
    return dict(ordered[:n_highest])


def get_pedigree_copy_numbers(
    pedigree: PedigreeInfo,
    log_likelihoods: SampleLikelihoods,
    maximum_copy_number: int,
    de_novo_rate: float,
) -> PedigreeSearchResult:
    """
    Maximum a posteriori genotypes of a full pedigree.

    Candidate genotypes are restricted to the top 3 per sample with two or
    more offspring, otherwise to the top ``maximum_copy_number``. Every
    parent pair is combined with every offspring combination, accumulating

        ll = ll(p1) + ll(p2) + Σ_o [ll(o) + log T(p1, p2 -> o)]

    Candidates whose upper bound ll(p1) + ll(p2) + Σ_o max ll(o) does not
    exceed the best value found so far are skipped. Transmission terms are
    log-probabilities (<= 0), so the bound never discards the optimum.

    Args:
        pedigree: Full pedigree
        log_likelihoods: Log-likelihood table per sample
        maximum_copy_number: Number of total copy number states
        de_novo_rate: Transmission probability of a non-Mendelian phased
            offspring genotype

    Returns:
        PedigreeCall, or SearchExhausted if no assignment was recorded
    """
    parent1_id, parent2_id = pedigree.parent_ids
    offspring_ids = pedigree.offspring_ids
    members = set(pedigree.pedigree_member_ids)
    member_order = [sid for sid in log_likelihoods if sid in members]

    n_highest = (
        TOP_GENOTYPES_MULTI_OFFSPRING if len(offspring_ids) >= 2 else maximum_copy_number
    )
    tables = {
        sid: _top_genotypes(log_likelihoods[sid], n_highest)
        for sid in pedigree.pedigree_member_ids
    }

    use_phased = all(
        genotype.has_allele_copy_numbers for table in tables.values() for genotype in table
    )
    combinations = (
        pedigree.offspring_phased_genotypes if use_phased else pedigree.offspring_total_cn_genotypes
    )
    combinations = [
        combination
        for combination in combinations
        if all(genotype in tables[oid] for oid, genotype in zip(offspring_ids, combination))
    ]

    offspring_bound = sum(
        max(tables[oid].values()) if tables[oid] else -math.inf for oid in offspring_ids
    )

    joint = JointLikelihoods()
    best: Optional[Dict[str, Genotype]] = None
    for parent1, parent1_ll in tables[parent1_id].items():
        for parent2, parent2_ll in tables[parent2_id].items():
            parents_ll = parent1_ll + parent2_ll
            bound = sanitize_log_likelihood(parents_ll + offspring_bound)
            for combination in combinations:
                if bound <= joint.maximal_log_likelihood:
                    break
                log_likelihood = parents_ll
                for oid, offspring in zip(offspring_ids, combination):
                    transmission = estimate_transmission_probability(
                        parent1, parent2, offspring, pedigree.transition_matrix, de_novo_rate
                    )
                    log_likelihood += tables[oid][offspring] + (
                        math.log(transmission) if transmission > 0 else -math.inf
                    )
                log_likelihood = sanitize_log_likelihood(log_likelihood)

                genotypes = {parent1_id: parent1, parent2_id: parent2}
                genotypes.update(zip(offspring_ids, combination))
                genotypes = {sid: genotypes[sid] for sid in member_order}
                joint.add_joint_likelihood(make_assignment(genotypes), log_likelihood)

                if log_likelihood > joint.maximal_log_likelihood:
                    joint.maximal_log_likelihood = log_likelihood
                    best = genotypes

    if best is None:
        return SearchExhausted(
            f"No genotype assignment for pedigree {pedigree.pedigree_member_ids} "
            f"({len(combinations)} offspring combinations)"
        )
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "Pedigree call %s, log-likelihood %.3f over %d assignments",
            best,
            joint.maximal_log_likelihood,
            len(joint),
        )
    return PedigreeCall(genotypes=best, joint_likelihoods=joint)


class VariantCaller(ABC):
    """
    Abstract base class for genotyping a segment row.

    Subclasses decide how genotypes are chosen; likelihood computation and
    score assignment are shared.
    """

    def __init__(
        self,
        parameters: CallerParameters,
        calculator: Optional[CopyNumberLikelihoodCalculator] = None,
    ):
        self.parameters = parameters
        self.calculator = calculator or CopyNumberLikelihoodCalculator.from_parameters(parameters)

    @abstractmethod
    def call_variant(
        self,
        segments: SegmentRow,
        samples: Mapping[str, SampleMetrics],
        models: Mapping[str, CopyNumberModel],
    ) -> SegmentRow:
        """
        Genotype and score one segment row in place.

        Args:
            segments: One segment per sample
            samples: Sample metrics by id
            models: Copy number model by sample id

        Returns:
            The annotated row
        """
        pass

    def _assign(
        self,
        segments: SegmentRow,
        samples: Mapping[str, SampleMetrics],
        log_likelihoods: SampleLikelihoods,
        copy_numbers: Mapping[str, Genotype],
        pedigree: Optional[PedigreeInfo] = None,
        joint_likelihoods: Optional[JointLikelihoods] = None,
    ) -> SegmentRow:
        assign_cn_and_scores(
            segments,
            samples,
            log_likelihoods,
            copy_numbers,
            quality_filter_threshold=self.parameters.quality_filter_threshold,
            max_qscore=self.parameters.max_qscore,
            maximum_copy_number=self.parameters.maximum_copy_number,
            pedigree=pedigree,
            joint_likelihoods=joint_likelihoods,
        )
        return segments


class IndependentVariantCaller(VariantCaller):
    """Maximum likelihood genotype of every sample, no transmission model."""

    def call_variant(self, segments, samples, models):
        log_likelihoods = self.calculator.get_single_sample_likelihoods(segments, models)
        copy_numbers, _ = get_copy_numbers_no_pedigree_info(list(segments), log_likelihoods)
        return self._assign(segments, samples, log_likelihoods, copy_numbers)


class PedigreeVariantCaller(VariantCaller):
    """
    Joint pedigree genotyping with de novo scoring.

    Samples in ``pedigree.other_ids`` are called independently.
    """

    def __init__(
        self,
        pedigree: PedigreeInfo,
        parameters: CallerParameters,
        calculator: Optional[CopyNumberLikelihoodCalculator] = None,
    ):
        if not pedigree.has_full_pedigree():
            raise ValueError(f"PedigreeVariantCaller requires a full pedigree, got {pedigree}")
        super().__init__(parameters, calculator)
        self.pedigree = pedigree

    def call_variant(self, segments, samples, models):
        log_likelihoods = self.calculator.get_single_sample_likelihoods(segments, models)
        result = get_pedigree_copy_numbers(
            self.pedigree,
            log_likelihoods,
            self.parameters.maximum_copy_number,
            self.parameters.de_novo_rate,
        )
        if isinstance(result, SearchExhausted):
            first = next(iter(segments.values()))
            raise SearchExhaustedError(
                f"{result.reason} at {first.chromosome}:{first.begin}-{first.end}"
            )

        copy_numbers = dict(result.genotypes)
        other_ids = [sid for sid in segments if sid not in result.genotypes]
        if other_ids:
            other_copy_numbers, _ = get_copy_numbers_no_pedigree_info(other_ids, log_likelihoods)
            copy_numbers.update(other_copy_numbers)
        return self._assign(
            segments,
            samples,
            log_likelihoods,
            copy_numbers,
            pedigree=self.pedigree,
            joint_likelihoods=result.joint_likelihoods,
        )


def create_variant_caller(
    pedigree: Optional[PedigreeInfo],
    parameters: CallerParameters,
    calculator: Optional[CopyNumberLikelihoodCalculator] = None,
) -> VariantCaller:
    """
    Factory function for the variant caller of a run.

    Args:
        pedigree: Declared pedigree, or None
        parameters: Caller parameters
        calculator: Likelihood calculator (built from parameters if omitted)

    Returns:
        PedigreeVariantCaller for a full pedigree, IndependentVariantCaller
        otherwise

    Example:
        >>> caller = create_variant_caller(pedigree, CallerParameters())
        >>> caller.call_variant(row, samples, models)
    """
    if pedigree is not None and pedigree.has_full_pedigree():
        return PedigreeVariantCaller(pedigree, parameters, calculator)
    return IndependentVariantCaller(parameters, calculator)
