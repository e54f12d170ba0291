"""
Copy number genotypes.

A genotype is a candidate copy number state of a segment. It always carries a
total copy number and, when allele evidence is available, a phased split of
that total into two allele-specific copy numbers.
"""

from dataclasses import dataclass
from itertools import product
from typing import Dict, List, Optional, Sequence, Tuple, Union


@dataclass(frozen=True)
class PhasedGenotype:
    """
    Allele-specific copy numbers (A, B) of a segment.

    Example:
        >>> PhasedGenotype(1, 1)   # balanced diploid
        >>> PhasedGenotype(0, 2)   # copy-neutral LOH
    """

    copy_number_a: int
    copy_number_b: int

    def __post_init__(self):
        if self.copy_number_a < 0 or self.copy_number_b < 0:
            raise ValueError(
                f"Allele copy numbers must be non-negative, got ({self.copy_number_a}, {self.copy_number_b})"
            )

    @property
    def total_copy_number(self) -> int:
        return self.copy_number_a + self.copy_number_b

    @property
    def major_chromosome_count(self) -> int:
        return max(self.copy_number_a, self.copy_number_b)

    def contains_shared_allele_a(self, other: "PhasedGenotype") -> bool:
        """True if allele A copy number matches either allele of ``other``."""
        return self.copy_number_a in (other.copy_number_a, other.copy_number_b)

    def contains_shared_allele_b(self, other: "PhasedGenotype") -> bool:
        """True if allele B copy number matches either allele of ``other``."""
        return self.copy_number_b in (other.copy_number_a, other.copy_number_b)

    def inherits_from(self, parent1: "PhasedGenotype", parent2: "PhasedGenotype") -> bool:
        """
        Check Mendelian consistency with two phased parents.

        One allele must be shared with each parent, in either pairing
        (parent1 -> A and parent2 -> B, or parent2 -> A and parent1 -> B).
        """
        return (
            self.contains_shared_allele_a(parent1) and self.contains_shared_allele_b(parent2)
        ) or (
            self.contains_shared_allele_a(parent2) and self.contains_shared_allele_b(parent1)
        )

    def __repr__(self) -> str:
        return f"PhasedGenotype({self.copy_number_a}, {self.copy_number_b})"


@dataclass(frozen=True)
class Genotype:
    """
    Copy number genotype with optional phasing.

    Equality and hashing are by value, so genotypes are used directly as keys
    of likelihood tables.

    Attributes:
        total_copy_number: Total copy number of the segment
        phased_genotype: Optional allele-specific split of the total
    """

    total_copy_number: int
    phased_genotype: Optional[PhasedGenotype] = None

    def __post_init__(self):
        if self.total_copy_number < 0:
            raise ValueError(f"total_copy_number must be non-negative, got {self.total_copy_number}")
        if (
            self.phased_genotype is not None
            and self.phased_genotype.total_copy_number != self.total_copy_number
        ):
            raise ValueError(
                f"Phased genotype {self.phased_genotype} does not sum to "
                f"total copy number {self.total_copy_number}"
            )

    @classmethod
    def create(cls, value: Union[int, PhasedGenotype]) -> "Genotype":
        """
        Create a genotype from a total copy number or a phased genotype.

        Example:
            >>> Genotype.create(2)
            Genotype(2)
            >>> Genotype.create(PhasedGenotype(0, 2)).total_copy_number
            2
        """
        if isinstance(value, PhasedGenotype):
            return cls(value.total_copy_number, value)
        return cls(int(value))

    @property
    def has_allele_copy_numbers(self) -> bool:
        return self.phased_genotype is not None

    def __repr__(self) -> str:
        if self.phased_genotype is None:
            return f"Genotype({self.total_copy_number})"
        return (
            f"Genotype({self.total_copy_number}, "
            f"{self.phased_genotype.copy_number_a}/{self.phased_genotype.copy_number_b})"
        )


LikelihoodTable = Dict[Genotype, float]
SampleLikelihoods = Dict[str, LikelihoodTable]


def generate_phased_genotypes(number_of_cn_states: int) -> List[PhasedGenotype]:
    """
    Enumerate all phased genotypes with total copy number below a bound.

    Args:
        number_of_cn_states: Total copy numbers 0..number_of_cn_states-1

    Returns:
        Phased genotypes ordered by total copy number, then allele A
    """
    if number_of_cn_states <= 0:
        raise ValueError(f"number_of_cn_states must be positive, got {number_of_cn_states}")
    genotypes = []
    for cn in range(number_of_cn_states):
        for gt in range(cn + 1):
            genotypes.append(PhasedGenotype(gt, cn - gt))
    return genotypes


def offspring_genotype_combinations(
    genotypes: Sequence[Genotype], n_offspring: int
) -> List[Tuple[Genotype, ...]]:
    """
    Cartesian product of candidate genotypes over all offspring.

    Element ``i`` of each tuple is the genotype of offspring ``i``.
    """
    if n_offspring <= 0:
        return []
    return list(product(genotypes, repeat=n_offspring))
