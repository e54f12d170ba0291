"""
Pedigree structure and copy number transmission model.

A pedigree is "full" with exactly two parents and at least one offspring.
Any other configuration degrades to independent calling of every sample.
"""

from dataclasses import dataclass, field
from typing import List, Mapping, Tuple

import numpy as np
from scipy import stats

from cnpedigree.core.genotypes import (
    Genotype,
    generate_phased_genotypes,
    offspring_genotype_combinations,
)
from cnpedigree.core.samples import SampleType


MIN_TRANSMITTED_MEAN = 0.1


def get_transition_matrix(number_of_cn_states: int) -> np.ndarray:
    """
    Empirical parent-to-offspring copy number transmission matrix.

    Row = parent total copy number, column = offspring total copy number.
    A parent transmits about half of its copies:
        T[0, :] = δ(0)
        T[cn, j] = Poisson(j; max(cn / 2, 0.1))   for cn > 0

    Args:
        number_of_cn_states: Copy numbers 0..number_of_cn_states-1

    Returns:
        (number_of_cn_states, number_of_cn_states) matrix
    """
    if number_of_cn_states <= 0:
        raise ValueError(f"number_of_cn_states must be positive, got {number_of_cn_states}")
    matrix = np.zeros((number_of_cn_states, number_of_cn_states))
    matrix[0, 0] = 1.0
    states = np.arange(number_of_cn_states)
    for cn in range(1, number_of_cn_states):
        matrix[cn, :] = stats.poisson.pmf(states, max(cn / 2.0, MIN_TRANSMITTED_MEAN))
    return matrix


@dataclass
class PedigreeInfo:
    """
    Pedigree declaration for a calling run.

    Attributes:
        parent_ids: Parent sample ids (two for a full pedigree)
        offspring_ids: Ordered offspring sample ids
        other_ids: Samples called independently
        transition_matrix: Copy number transmission matrix
        offspring_total_cn_genotypes: Unphased offspring genotype combinations
        offspring_phased_genotypes: Phased offspring genotype combinations
    """

    parent_ids: List[str] = field(default_factory=list)
    offspring_ids: List[str] = field(default_factory=list)
    other_ids: List[str] = field(default_factory=list)
    transition_matrix: np.ndarray = field(default_factory=lambda: np.zeros((0, 0)))
    offspring_total_cn_genotypes: List[Tuple[Genotype, ...]] = field(default_factory=list)
    offspring_phased_genotypes: List[Tuple[Genotype, ...]] = field(default_factory=list)

    def has_full_pedigree(self) -> bool:
        return len(self.parent_ids) == 2 and len(self.offspring_ids) >= 1

    @property
    def pedigree_member_ids(self) -> List[str]:
        return self.parent_ids + self.offspring_ids

    @classmethod
    def from_sample_types(
        cls,
        kinships: Mapping[str, SampleType],
        maximum_copy_number: int,
    ) -> "PedigreeInfo":
        """
        Build pedigree information from declared sample roles.

        Without a full pedigree, every sample is placed in ``other_ids``.

        Args:
            kinships: Sample id -> declared role, in sample order
            maximum_copy_number: Number of total copy number states

        Returns:
            PedigreeInfo
        """
        parent_ids = [sid for sid, kind in kinships.items() if kind.is_parent]
        offspring_ids = [sid for sid, kind in kinships.items() if kind.is_offspring]
        other_ids = [sid for sid, kind in kinships.items() if kind is SampleType.OTHER]

        if not (len(parent_ids) == 2 and offspring_ids):
            return cls(other_ids=list(kinships.keys()))

        total_cn_genotypes = [Genotype.create(cn) for cn in range(maximum_copy_number)]
        phased_genotypes = [
            Genotype.create(gt) for gt in generate_phased_genotypes(maximum_copy_number)
        ]
        return cls(
            parent_ids=parent_ids,
            offspring_ids=offspring_ids,
            other_ids=other_ids,
            transition_matrix=get_transition_matrix(maximum_copy_number),
            offspring_total_cn_genotypes=offspring_genotype_combinations(
                total_cn_genotypes, len(offspring_ids)
            ),
            offspring_phased_genotypes=offspring_genotype_combinations(
                phased_genotypes, len(offspring_ids)
            ),
        )

    def __repr__(self) -> str:
        return (
            f"PedigreeInfo(parents={self.parent_ids}, offspring={self.offspring_ids}, "
            f"other={self.other_ids})"
        )
